"""
Root of the ethlite exception hierarchy.

Every error carries a stable ``code`` next to its message, the hash of
the transaction concerned (when there is one) and a ``details`` mapping
with whatever context the raising module had: RPC method, block range,
nonce. Key material never goes into any of them.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class EthLiteError(Exception):
    """
    Base class for every error ethlite raises.

    Attributes:
        message: Human-readable description
        code: Stable identifier such as ``"RPC_ERROR"`` or ``"ABI_TRUNCATED"``
        tx_hash: Transaction the error is about, if any
        details: Extra context for logs and callers

    Example:
        >>> try:
        ...     sub.raise_for_error()
        ... except EthLiteError as exc:
        ...     logger.warning("Submission failed", extra={"error": exc.to_dict()})
    """

    def __init__(
        self,
        message: str,
        *,
        code: str = "ETHLITE_ERROR",
        tx_hash: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.tx_hash = tx_hash
        self.details: Dict[str, Any] = dict(details) if details else {}

    def __str__(self) -> str:
        if self.tx_hash:
            return f"{self.message} [{self.code}, tx {self.tx_hash}]"
        return f"{self.message} [{self.code}]"

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, code={self.code!r}, tx_hash={self.tx_hash!r})"

    def to_dict(self) -> Dict[str, Any]:
        """Flat mapping for structured logging or JSON output."""
        return {
            "type": type(self).__name__,
            "code": self.code,
            "message": self.message,
            "tx_hash": self.tx_hash,
            **{f"detail_{key}": value for key, value in self.details.items()},
        }
