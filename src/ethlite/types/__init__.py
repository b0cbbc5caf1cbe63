"""
Data model shared by the transport, contract, lifecycle and log layers.
"""

from ethlite.types.log import LogEntry
from ethlite.types.quantity import hex_to_bytes, to_int, to_optional_int, to_quantity
from ethlite.types.transaction import (
    Block,
    CallRequest,
    FeeEstimate,
    ReceiptStatus,
    SignedTransaction,
    TransactionInfo,
    TransactionReceipt,
    TransactionRequest,
)

__all__ = [
    "CallRequest",
    "TransactionRequest",
    "SignedTransaction",
    "FeeEstimate",
    "TransactionReceipt",
    "ReceiptStatus",
    "TransactionInfo",
    "Block",
    "LogEntry",
    # RPC quantities
    "to_int",
    "to_optional_int",
    "to_quantity",
    "hex_to_bytes",
]
