"""Constants for ethlite.

This module defines all constant values used across the package,
including ABI encoding constants, gas parameters, polling defaults
and log query limits.
"""

# ABI Encoding Constants
ABI_SELECTOR_LENGTH = 4
ABI_WORD_LENGTH = 32
REVERT_SELECTOR = "0x08c379a0"  # Error(string)
PANIC_SELECTOR = "0x4e487b71"  # Panic(uint256)

# Ethereum Constants
ADDRESS_LENGTH = 20
BYTES32_HEX_LENGTH = 64
BYTES32_LENGTH = 32
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
EMPTY_CODE = "0x"
MAX_UINT256 = 2**256 - 1
MAX_UINT64 = 2**64 - 1

# JSON-RPC
JSONRPC_VERSION = "2.0"
EXECUTION_REVERTED_CODE = 3
BLOCK_TAGS = ("earliest", "latest", "pending", "safe", "finalized")

# Gas Constants
GAS_ESTIMATION_BUFFER = 1.15
MAX_GAS_LIMIT = 30_000_000
MAX_FEE_MULTIPLIER = 2
TRANSFER_GAS = 21_000

# Network Constants
PROVIDER_TIMEOUT_SECONDS = 30

# Confirmation polling
DEFAULT_CONFIRMATIONS = 1
DEFAULT_TX_WAIT_TIMEOUT = 300.0
DEFAULT_POLL_INTERVAL = 1.0
MAX_POLL_INTERVAL = 12.0
REPLACEMENT_SCAN_BLOCKS = 64

# Log query limits
DEFAULT_LOG_CHUNK_SIZE = 2_000
DEFAULT_LOG_CONCURRENCY = 1

# Provider messages that mean "narrow the block range and retry"
RANGE_ERROR_PATTERNS = (
    "query returned more than",
    "too many results",
    "response size exceeded",
    "log response size exceeded",
    "block range",
    "range too large",
    "range too wide",
    "logs matched by query exceeds limit",
    "eth_getlogs is limited to",
    "exceed maximum block range",
)

# Panic(uint256) codes emitted by the Solidity compiler
PANIC_REASONS = {
    0x00: "generic compiler panic",
    0x01: "assertion failed",
    0x11: "arithmetic overflow or underflow",
    0x12: "division or modulo by zero",
    0x21: "invalid enum value",
    0x22: "invalid storage byte array encoding",
    0x31: "pop on empty array",
    0x32: "array index out of bounds",
    0x41: "out of memory",
    0x51: "call to zero-initialized function",
}

__all__ = [
    "ABI_SELECTOR_LENGTH",
    "ABI_WORD_LENGTH",
    "REVERT_SELECTOR",
    "PANIC_SELECTOR",
    "ADDRESS_LENGTH",
    "BYTES32_HEX_LENGTH",
    "BYTES32_LENGTH",
    "ZERO_ADDRESS",
    "EMPTY_CODE",
    "MAX_UINT256",
    "MAX_UINT64",
    "JSONRPC_VERSION",
    "EXECUTION_REVERTED_CODE",
    "BLOCK_TAGS",
    "GAS_ESTIMATION_BUFFER",
    "MAX_GAS_LIMIT",
    "MAX_FEE_MULTIPLIER",
    "TRANSFER_GAS",
    "PROVIDER_TIMEOUT_SECONDS",
    "DEFAULT_CONFIRMATIONS",
    "DEFAULT_TX_WAIT_TIMEOUT",
    "DEFAULT_POLL_INTERVAL",
    "MAX_POLL_INTERVAL",
    "REPLACEMENT_SCAN_BLOCKS",
    "DEFAULT_LOG_CHUNK_SIZE",
    "DEFAULT_LOG_CONCURRENCY",
    "RANGE_ERROR_PATTERNS",
    "PANIC_REASONS",
]
