"""
Transaction lifecycle exceptions.

These describe outcomes of a write submission: estimation rejected,
no receipt in time, or the nonce taken by another transaction.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from ethlite.errors.base import EthLiteError
from ethlite.errors.network import ExecutionReverted


class GasEstimationFailed(EthLiteError):
    """
    Raised when ``eth_estimateGas`` reports the call would revert.

    Attributes:
        cause: The underlying ExecutionReverted.
        reason: Shortcut to ``cause.reason``.
    """

    def __init__(self, cause: ExecutionReverted) -> None:
        super().__init__(
            f"Gas estimation failed: {cause.message}",
            code="GAS_ESTIMATION_FAILED",
            details={"reason": cause.reason, "selector": cause.selector},
        )
        self.cause = cause
        self.reason = cause.reason


class TransactionTimedOut(EthLiteError):
    """
    Raised when no receipt was observed within the polling timeout.

    The nonce stays reserved; resubmission is the caller's decision.

    Example:
        >>> raise TransactionTimedOut(tx_hash="0xabc...", nonce=7, timeout_seconds=300)
    """

    def __init__(self, *, tx_hash: str, nonce: int, timeout_seconds: float) -> None:
        super().__init__(
            f"No receipt for transaction after {timeout_seconds}s",
            code="TRANSACTION_TIMED_OUT",
            tx_hash=tx_hash,
            details={"nonce": nonce, "timeout_seconds": timeout_seconds},
        )
        self.nonce = nonce
        self.timeout_seconds = timeout_seconds


class TransactionReplaced(EthLiteError):
    """
    Raised when another transaction with the same sender and nonce was mined.

    Attributes:
        replacement_hash: Hash of the mined transaction, or None when it was
            not found inside the scan window.
    """

    def __init__(
        self,
        *,
        tx_hash: str,
        nonce: int,
        replacement_hash: Optional[str] = None,
    ) -> None:
        super().__init__(
            f"Transaction with nonce {nonce} was replaced",
            code="TRANSACTION_REPLACED",
            tx_hash=tx_hash,
            details={"nonce": nonce, "replacement_hash": replacement_hash},
        )
        self.nonce = nonce
        self.replacement_hash = replacement_hash


class SignerError(EthLiteError):
    """Raised for key, nonce or signature problems. Never includes key material."""

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, code="SIGNER_ERROR", details=details)


class InvalidStateTransition(EthLiteError):
    """Raised when a lifecycle step is applied to a submission in the wrong state."""

    def __init__(self, *, step: str, state: str, allowed: Any) -> None:
        super().__init__(
            f"Cannot {step} a submission in state {state}",
            code="INVALID_STATE_TRANSITION",
            details={"step": step, "state": state, "allowed": list(allowed)},
        )
        self.step = step
        self.state = state
