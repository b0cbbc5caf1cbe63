"""
Backoff schedule and retry loop for idempotent RPC reads.

``JsonRpcTransport`` sends every request exactly once. Retrying is left
to callers that know the method is safe to repeat: the lifecycle
manager wraps receipt lookups in ``retry_async`` and derives its poll
interval from ``calculate_delay``. ``eth_sendRawTransaction`` is never
retried here.
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from functools import wraps
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

from ethlite.errors import TransportUnavailable
from ethlite.utils.logging import get_logger

T = TypeVar("T")

_logger = get_logger(__name__)


@dataclass
class RetryConfig:
    """
    Retry policy.

    Attributes:
        max_attempts: Calls in total, the first one included
        base_delay_ms: Delay before the first retry
        max_delay_ms: Ceiling for the growing delay
        jitter: Draw each delay uniformly from ``[0, delay]``
        exponential_base: Growth factor per retry; 1.0 keeps the delay fixed
        retryable_errors: Exceptions worth another attempt; anything else
            propagates on the first failure
    """

    max_attempts: int = 3
    base_delay_ms: int = 500
    max_delay_ms: int = 10_000
    jitter: bool = True
    exponential_base: float = 2.0
    retryable_errors: Tuple[Type[Exception], ...] = (TransportUnavailable,)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")


def calculate_delay(attempt: int, config: RetryConfig) -> float:
    """Seconds to wait before retry number ``attempt`` (0-based)."""
    ceiling = min(config.base_delay_ms * config.exponential_base ** attempt, config.max_delay_ms)
    if config.jitter:
        ceiling = random.uniform(0, ceiling)
    return ceiling / 1000


async def retry_async(
    fn: Callable[[], Awaitable[T]],
    config: Optional[RetryConfig] = None,
) -> T:
    """
    Await ``fn()`` until it succeeds or the attempts run out.

    Raises:
        The error of the final attempt, or any non-retryable error as
        soon as it occurs
    """
    config = config or RetryConfig()
    failures = 0
    while True:
        try:
            return await fn()
        except config.retryable_errors as exc:
            failures += 1
            if failures >= config.max_attempts:
                raise
            delay = calculate_delay(failures - 1, config)
            _logger.debug(
                "Transient RPC failure; retrying",
                extra={"attempt": failures, "delay_s": round(delay, 3), "error": str(exc)},
            )
            await asyncio.sleep(delay)


def with_retry(
    config: Optional[RetryConfig] = None,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """
    Decorate an idempotent coroutine function with ``retry_async``.

    Example:
        >>> @with_retry(RetryConfig(max_attempts=5))
        ... async def head(client: Client) -> int:
        ...     return await client.block_number()
    """

    def decorator(fn: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @wraps(fn)
        async def wrapper(*args: object, **kwargs: object) -> T:
            return await retry_async(lambda: fn(*args, **kwargs), config)

        return wrapper

    return decorator
