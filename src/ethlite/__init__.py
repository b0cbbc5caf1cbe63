"""
ethlite - a small async Ethereum JSON-RPC client.

Reads chain and contract state, encodes and decodes ABI calls, drives
write transactions through simulate / estimate / sign / send / confirm,
and fetches event logs across block ranges larger than a provider allows
in one request.

Quick Start:
    >>> import asyncio
    >>> from ethlite import Client
    >>>
    >>> async def main():
    ...     async with await Client.connect("base-sepolia") as client:
    ...         token = client.erc20("0x036CbD53842c5426634e7929541eC2318f3dCF7e")
    ...         meta = await token.metadata()
    ...         print(meta.symbol, await client.block_number())
    ...
    >>> asyncio.run(main())

Modules:
- `client`: Client context (network + transport + optional signer)
- `abi`: ABI descriptors, parsing and codec
- `contract`: Contract facade (read, simulate, estimate, populate)
- `lifecycle`: Transaction lifecycle manager and Submission results
- `logs`: Windowed event log query engine
- `signer`: Signer and nonce tracking
- `transport`: JSON-RPC transport over httpx
- `errors`: Exception hierarchy
- `utils`: Logging, retry, validation and unit helpers
"""

from ethlite.version import __version__, __version_info__

# Client
from ethlite.client import Client

# ABI
from ethlite.abi import (
    AbiEvent,
    AbiFunction,
    AbiParam,
    ContractAbi,
    Mutability,
    decode_log,
    decode_return,
    encode,
    parse_abi,
    parse_event,
    parse_function,
)

# Config
from ethlite.config import (
    NETWORKS,
    LifecycleConfig,
    LogQueryConfig,
    Network,
    NetworkDescriptor,
    get_network,
    infura_endpoint,
)

# Components
from ethlite.contract import Contract
from ethlite.lifecycle import Submission, SubmissionState, TransactionLifecycleManager
from ethlite.logs import (
    DecodedEvent,
    EventStream,
    LogFilter,
    LogQueryEngine,
    LogQueryStats,
    build_topic_filter,
)
from ethlite.signer import NonceStatus, NonceTracker, Signer
from ethlite.tokens import ERC20, ERC20_ABI, TokenMetadata
from ethlite.transport import JsonRpcTransport, Transport

# Types
from ethlite.types import (
    Block,
    CallRequest,
    FeeEstimate,
    LogEntry,
    ReceiptStatus,
    SignedTransaction,
    TransactionInfo,
    TransactionReceipt,
    TransactionRequest,
)

# Errors
from ethlite.errors import (
    AbiError,
    AbiMismatch,
    AbiTruncated,
    ChainMismatch,
    EthLiteError,
    ExecutionReverted,
    GasEstimationFailed,
    InvalidAddress,
    InvalidRange,
    InvalidStateTransition,
    ProtocolViolation,
    RpcError,
    SignerError,
    TransactionReplaced,
    TransactionReverted,
    TransactionTimedOut,
    TransportUnavailable,
    ValidationError,
)

# Utils
from ethlite.utils import (
    configure_logging,
    format_units,
    from_wei,
    get_logger,
    parse_units,
    to_wei,
)

__all__ = [
    # Version
    "__version__",
    "__version_info__",
    # Client
    "Client",
    # ABI
    "AbiParam",
    "AbiFunction",
    "AbiEvent",
    "ContractAbi",
    "Mutability",
    "parse_abi",
    "parse_function",
    "parse_event",
    "encode",
    "decode_return",
    "decode_log",
    # Config
    "Network",
    "NetworkDescriptor",
    "NETWORKS",
    "get_network",
    "infura_endpoint",
    "LifecycleConfig",
    "LogQueryConfig",
    # Components
    "Contract",
    "TransactionLifecycleManager",
    "Submission",
    "SubmissionState",
    "LogQueryEngine",
    "LogFilter",
    "LogQueryStats",
    "EventStream",
    "DecodedEvent",
    "build_topic_filter",
    "Signer",
    "NonceTracker",
    "NonceStatus",
    "ERC20",
    "ERC20_ABI",
    "TokenMetadata",
    "Transport",
    "JsonRpcTransport",
    # Types
    "CallRequest",
    "TransactionRequest",
    "SignedTransaction",
    "FeeEstimate",
    "TransactionReceipt",
    "ReceiptStatus",
    "TransactionInfo",
    "Block",
    "LogEntry",
    # Errors
    "EthLiteError",
    "TransportUnavailable",
    "RpcError",
    "ProtocolViolation",
    "ExecutionReverted",
    "TransactionReverted",
    "AbiError",
    "AbiMismatch",
    "AbiTruncated",
    "GasEstimationFailed",
    "TransactionTimedOut",
    "TransactionReplaced",
    "InvalidStateTransition",
    "SignerError",
    "ValidationError",
    "InvalidAddress",
    "InvalidRange",
    "ChainMismatch",
    # Utils
    "get_logger",
    "configure_logging",
    "parse_units",
    "format_units",
    "to_wei",
    "from_wei",
]
