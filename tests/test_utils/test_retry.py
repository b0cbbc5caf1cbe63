"""
Tests for retry utility with exponential backoff.

Tests cover:
- RetryConfig defaults
- Delay calculation (exponential, fixed, capped, jitter)
- Retrying only transport-level failures
- Decorator pattern
"""

from typing import List
from unittest.mock import AsyncMock, patch

import pytest

from ethlite.errors import ExecutionReverted, RpcError, TransportUnavailable
from ethlite.utils.retry import (
    RetryConfig,
    calculate_delay,
    retry_async,
    with_retry,
)


# =============================================================================
# RetryConfig Tests
# =============================================================================


class TestRetryConfig:
    """Tests for RetryConfig dataclass."""

    def test_default_values(self) -> None:
        """Only transport failures are retried by default."""
        config = RetryConfig()

        assert config.max_attempts == 3
        assert config.base_delay_ms == 500
        assert config.max_delay_ms == 10000
        assert config.jitter is True
        assert config.exponential_base == 2.0
        assert config.retryable_errors == (TransportUnavailable,)

    def test_custom_retryable_errors(self) -> None:
        """retryable_errors can be replaced per config."""
        assert RetryConfig(retryable_errors=(ValueError,)).retryable_errors == (ValueError,)


# =============================================================================
# Delay Calculation Tests
# =============================================================================


class TestDelayCalculation:
    """Tests for calculate_delay function."""

    def test_exponential_growth(self) -> None:
        """Delay doubles per attempt."""
        config = RetryConfig(base_delay_ms=100, jitter=False)
        assert [calculate_delay(i, config) for i in range(4)] == [0.1, 0.2, 0.4, 0.8]

    def test_fixed_delay(self) -> None:
        """An exponential base of 1 gives a constant delay."""
        config = RetryConfig(base_delay_ms=250, jitter=False, exponential_base=1.0)
        assert {calculate_delay(i, config) for i in range(5)} == {0.25}

    def test_max_delay_cap(self) -> None:
        """Delay is capped at max_delay_ms."""
        config = RetryConfig(base_delay_ms=1000, max_delay_ms=5000, jitter=False)
        assert calculate_delay(10, config) == 5.0

    def test_jitter_bounds(self) -> None:
        """Full jitter stays between zero and the computed delay."""
        config = RetryConfig(base_delay_ms=1000, jitter=True)
        delays = [calculate_delay(0, config) for _ in range(100)]

        assert min(delays) != max(delays)
        assert all(0 <= d <= 1.0 for d in delays)


# =============================================================================
# Async Retry Tests
# =============================================================================


class TestRetryAsync:
    """Tests for retry_async function."""

    @pytest.mark.asyncio
    async def test_success_on_first_attempt(self) -> None:
        """No retry when the first call succeeds."""
        fn = AsyncMock(return_value="0x1")

        assert await retry_async(fn) == "0x1"
        assert fn.await_count == 1

    @pytest.mark.asyncio
    async def test_retries_transport_failures(self) -> None:
        """TransportUnavailable is retried until a call succeeds."""
        fn = AsyncMock(
            side_effect=[TransportUnavailable("503"), TransportUnavailable("503"), "0x1"]
        )
        config = RetryConfig(max_attempts=5, base_delay_ms=1, jitter=False)

        assert await retry_async(fn, config) == "0x1"
        assert fn.await_count == 3

    @pytest.mark.asyncio
    async def test_max_attempts_exceeded(self) -> None:
        """The last error is raised once attempts run out."""
        fn = AsyncMock(side_effect=TransportUnavailable("connection refused"))
        config = RetryConfig(max_attempts=3, base_delay_ms=1, jitter=False)

        with pytest.raises(TransportUnavailable, match="connection refused"):
            await retry_async(fn, config)
        assert fn.await_count == 3

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [
            RpcError(-32000, "nonce too low"),
            ExecutionReverted("paused"),
            ValueError("bug"),
        ],
    )
    async def test_non_retryable_errors(self, error: Exception) -> None:
        """RPC errors, reverts and programming errors are raised immediately."""
        fn = AsyncMock(side_effect=error)

        with pytest.raises(type(error)):
            await retry_async(fn, RetryConfig(max_attempts=5, base_delay_ms=1))
        assert fn.await_count == 1

    @pytest.mark.asyncio
    async def test_sleeps_follow_backoff(self) -> None:
        """Sleeps between attempts follow calculate_delay."""
        fn = AsyncMock(side_effect=[TransportUnavailable("x")] * 3 + ["ok"])
        config = RetryConfig(max_attempts=4, base_delay_ms=100, jitter=False)

        with patch("ethlite.utils.retry.asyncio.sleep", new_callable=AsyncMock) as sleep:
            assert await retry_async(fn, config) == "ok"

        delays: List[float] = [call.args[0] for call in sleep.await_args_list]
        assert delays == [0.1, 0.2, 0.4]

    def test_zero_attempts(self) -> None:
        """max_attempts below one is a configuration error."""
        with pytest.raises(ValueError):
            RetryConfig(max_attempts=0)


# =============================================================================
# Decorator Tests
# =============================================================================


class TestWithRetryDecorator:
    """Tests for with_retry decorator."""

    @pytest.mark.asyncio
    async def test_decorator_with_retry(self) -> None:
        """Decorated coroutine functions are retried with their arguments."""
        calls: List[int] = []

        @with_retry(RetryConfig(max_attempts=3, base_delay_ms=1, jitter=False))
        async def latest_block(offset: int, *, scale: int = 1) -> int:
            calls.append(offset)
            if len(calls) < 2:
                raise TransportUnavailable("timeout")
            return (100 + offset) * scale

        assert await latest_block(5, scale=2) == 210
        assert calls == [5, 5]

    @pytest.mark.asyncio
    async def test_decorator_preserves_function_name(self) -> None:
        """Decorator preserves function metadata."""
        @with_retry()
        async def my_function() -> str:
            """My docstring."""
            return "result"

        assert my_function.__name__ == "my_function"
        assert my_function.__doc__ == "My docstring."
