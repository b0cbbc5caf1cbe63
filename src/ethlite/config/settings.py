"""
Tunables for the lifecycle manager and the log query engine.

Both models are frozen; build a new one with ``model_copy(update=...)``
to change a setting.
"""

from __future__ import annotations

from typing import Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ethlite.constants import (
    DEFAULT_CONFIRMATIONS,
    DEFAULT_LOG_CHUNK_SIZE,
    DEFAULT_LOG_CONCURRENCY,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_TX_WAIT_TIMEOUT,
    GAS_ESTIMATION_BUFFER,
    MAX_FEE_MULTIPLIER,
    MAX_GAS_LIMIT,
    MAX_POLL_INTERVAL,
    RANGE_ERROR_PATTERNS,
    REPLACEMENT_SCAN_BLOCKS,
)

PollBackoff = Literal["fixed", "exponential"]


# ============================================================================
# Transaction lifecycle
# ============================================================================

class LifecycleConfig(BaseModel):
    """Settings for ``TransactionLifecycleManager``."""

    model_config = ConfigDict(frozen=True)

    gas_margin: float = Field(
        default=GAS_ESTIMATION_BUFFER,
        ge=1.0,
        description="Multiplier applied to eth_estimateGas",
    )
    max_gas_limit: int = Field(
        default=MAX_GAS_LIMIT,
        ge=21_000,
        description="Upper bound for the padded gas limit",
    )
    confirmations: int = Field(
        default=DEFAULT_CONFIRMATIONS,
        ge=1,
        description="Blocks (including the receipt's) required for Confirmed",
    )
    timeout_seconds: float = Field(
        default=DEFAULT_TX_WAIT_TIMEOUT,
        gt=0,
        description="Polling budget before a submission is reported Dropped",
    )
    poll_interval_seconds: float = Field(
        default=DEFAULT_POLL_INTERVAL,
        gt=0,
        description="Delay between receipt polls",
    )
    max_poll_interval_seconds: float = Field(
        default=MAX_POLL_INTERVAL,
        gt=0,
        description="Cap for exponential poll backoff",
    )
    poll_backoff: PollBackoff = Field(
        default="exponential",
        description="fixed or exponential (capped) polling delay",
    )
    simulate: bool = Field(
        default=True,
        description="Run eth_call before estimating gas",
    )
    max_fee_multiplier: int = Field(
        default=MAX_FEE_MULTIPLIER,
        ge=1,
        description="maxFeePerGas = baseFee * multiplier + priority fee",
    )
    replacement_scan_blocks: int = Field(
        default=REPLACEMENT_SCAN_BLOCKS,
        ge=0,
        description="Blocks searched for a same-nonce replacement",
    )

    @model_validator(mode="after")
    def _check_intervals(self) -> "LifecycleConfig":
        if self.max_poll_interval_seconds < self.poll_interval_seconds:
            raise ValueError("max_poll_interval_seconds must be >= poll_interval_seconds")
        return self


# ============================================================================
# Log queries
# ============================================================================

class LogQueryConfig(BaseModel):
    """Settings for ``LogQueryEngine``."""

    model_config = ConfigDict(frozen=True)

    chunk_size: int = Field(
        default=DEFAULT_LOG_CHUNK_SIZE,
        ge=1,
        description="Initial sub-range width in blocks",
    )
    max_concurrency: int = Field(
        default=DEFAULT_LOG_CONCURRENCY,
        ge=1,
        description="Sub-range requests in flight at once",
    )
    max_logs: Optional[int] = Field(
        default=None,
        ge=1,
        description="Abort a query returning more logs than this",
    )
    split_error_patterns: Tuple[str, ...] = Field(
        default=RANGE_ERROR_PATTERNS,
        description="Lowercase provider error fragments that trigger bisection",
    )
