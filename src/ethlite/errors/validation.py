"""
Input validation exceptions.

Raised synchronously, before any network call is made.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from ethlite.errors.base import EthLiteError


class ValidationError(EthLiteError):
    """Base exception for invalid caller input."""

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if field:
            details["field"] = field
        super().__init__(message, code="VALIDATION_ERROR", details=details)
        self.field = field


class InvalidAddress(ValidationError):
    """
    Raised when a value is not a 20-byte hex address.

    Example:
        >>> raise InvalidAddress("0x123", field="to")
    """

    def __init__(
        self,
        address: Any,
        *,
        field: str = "address",
        reason: Optional[str] = None,
    ) -> None:
        message = f"Invalid address for {field}: {address!r}"
        if reason:
            message += f" ({reason})"
        super().__init__(message, field=field, details={"address": str(address)})
        self.code = "INVALID_ADDRESS"
        self.address = address
        self.reason = reason


class InvalidRange(ValidationError):
    """Raised for an empty, negative or inverted block range."""

    def __init__(self, from_block: Any, to_block: Any, *, reason: str) -> None:
        super().__init__(
            f"Invalid block range [{from_block}, {to_block}]: {reason}",
            field="block_range",
            details={"from_block": from_block, "to_block": to_block},
        )
        self.code = "INVALID_RANGE"
        self.from_block = from_block
        self.to_block = to_block
        self.reason = reason


class ChainMismatch(ValidationError):
    """Raised when the endpoint serves a different chain than requested."""

    def __init__(self, *, expected: int, actual: int, endpoint: str) -> None:
        super().__init__(
            f"Endpoint reports chainId {actual}, expected {expected}",
            field="chain_id",
            details={"expected": expected, "actual": actual, "endpoint": endpoint},
        )
        self.code = "CHAIN_MISMATCH"
        self.expected = expected
        self.actual = actual
