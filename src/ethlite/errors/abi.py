"""ABI codec exceptions. Both are caller programming errors and never retried."""

from __future__ import annotations

from typing import Any, Dict, Optional

from ethlite.errors.base import EthLiteError


class AbiError(EthLiteError):
    """Base exception for ABI encoding/decoding."""

    def __init__(
        self,
        message: str,
        *,
        name: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if name:
            details["name"] = name
        super().__init__(message, code="ABI_ERROR", details=details)
        self.name = name


class AbiMismatch(AbiError):
    """
    Raised when arguments do not fit the descriptor.

    Wrong argument count, a value of the wrong shape for its type,
    an unknown or ambiguous function name, or an unparseable fragment.

    Example:
        >>> raise AbiMismatch("expected 2 arguments, got 1", name="transfer")
    """

    def __init__(
        self,
        message: str,
        *,
        name: Optional[str] = None,
        expected: Optional[int] = None,
        actual: Optional[int] = None,
    ) -> None:
        details: Dict[str, Any] = {}
        if expected is not None:
            details["expected"] = expected
        if actual is not None:
            details["actual"] = actual
        super().__init__(message, name=name, details=details)
        self.code = "ABI_MISMATCH"
        self.expected = expected
        self.actual = actual


class AbiTruncated(AbiError):
    """
    Raised when decode input is shorter than the declared types require.

    Also raised for logs carrying fewer topics than the event's indexed
    parameter count.
    """

    def __init__(
        self,
        message: str,
        *,
        name: Optional[str] = None,
        required: Optional[int] = None,
        actual: Optional[int] = None,
    ) -> None:
        details: Dict[str, Any] = {}
        if required is not None:
            details["required"] = required
        if actual is not None:
            details["actual"] = actual
        super().__init__(message, name=name, details=details)
        self.code = "ABI_TRUNCATED"
        self.required = required
        self.actual = actual
