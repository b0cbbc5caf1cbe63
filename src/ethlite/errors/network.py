"""
Transport and JSON-RPC exceptions.

TransportUnavailable is the only retryable error in this module; the
others describe what the provider or the contract reported.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from ethlite.errors.base import EthLiteError


class TransportUnavailable(EthLiteError):
    """
    Raised when the endpoint cannot be reached or answers without JSON-RPC.

    Covers connection failures, timeouts, HTTP 429/5xx and non-JSON bodies.
    Safe to retry for idempotent methods.

    Example:
        >>> raise TransportUnavailable("connection refused", endpoint="https://rpc.example")
    """

    def __init__(
        self,
        message: str,
        *,
        endpoint: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if endpoint:
            details["endpoint"] = endpoint
        if status_code is not None:
            details["status_code"] = status_code

        super().__init__(message, code="TRANSPORT_UNAVAILABLE", details=details)
        self.endpoint = endpoint
        self.status_code = status_code


class RpcError(EthLiteError):
    """
    Raised when the provider answers with a JSON-RPC error object.

    Attributes:
        rpc_code: JSON-RPC error code reported by the provider.
        rpc_message: Error message reported by the provider.
        data: Optional ``error.data`` payload.
    """

    def __init__(
        self,
        rpc_code: Optional[int],
        rpc_message: str,
        *,
        data: Any = None,
        method: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        details["rpc_code"] = rpc_code
        if method:
            details["method"] = method
        if data is not None:
            details["data"] = data

        super().__init__(
            f"RPC error {rpc_code}: {rpc_message}",
            code="RPC_ERROR",
            details=details,
        )
        self.rpc_code = rpc_code
        self.rpc_message = rpc_message
        self.data = data
        self.method = method


class ProtocolViolation(RpcError):
    """
    Raised when a response breaks the JSON-RPC contract.

    Examples: response id does not match the request, missing ``result``,
    receipt returned for a different transaction hash.
    """

    def __init__(self, message: str, *, method: Optional[str] = None) -> None:
        super().__init__(None, message, method=method)
        self.code = "PROTOCOL_VIOLATION"
        self.message = message


class ExecutionReverted(RpcError):
    """
    Raised when the contract rejected the call.

    Attributes:
        reason: Decoded ``Error(string)`` / ``Panic(uint256)`` reason, if any.
        selector: 4-byte selector of the revert payload (``0x``-prefixed), if any.
    """

    def __init__(
        self,
        reason: Optional[str] = None,
        *,
        selector: Optional[str] = None,
        data: Optional[str] = None,
        rpc_code: Optional[int] = 3,
        method: Optional[str] = None,
        tx_hash: Optional[str] = None,
    ) -> None:
        label = reason or (f"custom error {selector}" if selector else "no reason")
        super().__init__(
            rpc_code,
            f"execution reverted: {label}",
            data=data,
            method=method,
            details={"reason": reason, "selector": selector},
        )
        self.code = "EXECUTION_REVERTED"
        self.message = f"execution reverted: {label}"
        self.reason = reason
        self.selector = selector
        self.tx_hash = tx_hash


class TransactionReverted(ExecutionReverted):
    """
    Raised when a mined transaction's receipt has status 0.

    Example:
        >>> raise TransactionReverted(tx_hash="0xabc...", receipt=receipt)
    """

    def __init__(self, *, tx_hash: str, receipt: Any = None) -> None:
        super().__init__(None, rpc_code=None, tx_hash=tx_hash)
        self.code = "TRANSACTION_REVERTED"
        self.message = "transaction reverted on-chain"
        self.receipt = receipt
