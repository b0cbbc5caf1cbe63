"""
ethlite utilities.

This module provides logging, retry, validation and unit helpers.
"""

from ethlite.utils.logging import (
    LogContext,
    configure_logging,
    disable_logging,
    enable_debug,
    get_logger,
    set_level,
)
from ethlite.utils.retry import RetryConfig, calculate_delay, retry_async, with_retry
from ethlite.utils.units import format_units, from_wei, parse_units, to_wei
from ethlite.utils.validation import (
    is_valid_address,
    to_block_param,
    validate_address,
    validate_block,
    validate_block_range,
    validate_hash,
    validate_hex_data,
)

__all__ = [
    # Structured logging
    "get_logger",
    "configure_logging",
    "set_level",
    "disable_logging",
    "enable_debug",
    "LogContext",
    # Retry
    "RetryConfig",
    "calculate_delay",
    "retry_async",
    "with_retry",
    # Units
    "parse_units",
    "format_units",
    "to_wei",
    "from_wei",
    # Validation
    "is_valid_address",
    "validate_address",
    "validate_hash",
    "validate_hex_data",
    "validate_block",
    "validate_block_range",
    "to_block_param",
]
