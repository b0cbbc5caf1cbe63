"""
Exception hierarchy for ethlite.

All exceptions derive from EthLiteError and carry a machine-readable code.
"""

from ethlite.errors.abi import AbiError, AbiMismatch, AbiTruncated
from ethlite.errors.base import EthLiteError
from ethlite.errors.network import (
    ExecutionReverted,
    ProtocolViolation,
    RpcError,
    TransactionReverted,
    TransportUnavailable,
)
from ethlite.errors.transaction import (
    GasEstimationFailed,
    InvalidStateTransition,
    SignerError,
    TransactionReplaced,
    TransactionTimedOut,
)
from ethlite.errors.validation import (
    ChainMismatch,
    InvalidAddress,
    InvalidRange,
    ValidationError,
)

__all__ = [
    "EthLiteError",
    # Network
    "TransportUnavailable",
    "RpcError",
    "ProtocolViolation",
    "ExecutionReverted",
    "TransactionReverted",
    # ABI
    "AbiError",
    "AbiMismatch",
    "AbiTruncated",
    # Transaction
    "GasEstimationFailed",
    "TransactionTimedOut",
    "TransactionReplaced",
    "SignerError",
    "InvalidStateTransition",
    # Validation
    "ValidationError",
    "InvalidAddress",
    "InvalidRange",
    "ChainMismatch",
]
