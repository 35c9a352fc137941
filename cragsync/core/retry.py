"""Retry and backoff utilities for Kaya requests.

Transport errors and 5xx/429 responses from the Kaya GraphQL endpoint are
retried with exponential backoff. A server that says how long to wait
(``Retry-After``) is honoured through ``RetryConfig.delay_hint``, still
capped at ``backoff_max``.
"""

import asyncio
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TypeVar

from cragsync.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_attempts: int = 3
    backoff_base: float = 1.0
    backoff_max: float = 30.0
    jitter: bool = True
    retryable_exceptions: tuple[type[Exception], ...] = field(default_factory=lambda: (Exception,))
    # Server-provided wait for an exception, or None to use backoff
    delay_hint: Callable[[Exception], float | None] | None = None

    def delay_for(self, attempt: int, error: Exception | None = None) -> float:
        """Seconds to wait after the given zero-based failed attempt."""
        if error is not None and self.delay_hint is not None:
            hinted = self.delay_hint(error)
            if hinted is not None:
                return min(max(hinted, 0.0), self.backoff_max)

        delay = min(self.backoff_base * (2**attempt), self.backoff_max)
        if self.jitter:
            delay *= 0.5 + random.random()
        return delay


async def retry_with_backoff(
    fn: Callable[[], Awaitable[T]],
    config: RetryConfig | None = None,
    operation_name: str = "operation",
) -> T:
    """
    Execute async function with exponential backoff retry.

    Each retry waits for min(backoff_base * 2^attempt, backoff_max) seconds
    (jittered if enabled) unless ``delay_hint`` supplies a wait. Exceptions
    not listed in ``retryable_exceptions`` propagate immediately.

    Args:
        fn: Async function to execute (no arguments)
        config: Retry configuration, uses defaults if not provided
        operation_name: Name for logging purposes

    Returns:
        Result of fn()

    Raises:
        Exception: The last exception if all attempts are exhausted

    Example:
        ```python
        config = RetryConfig(max_attempts=3, retryable_exceptions=(httpx.TransportError,))
        data = await retry_with_backoff(
            lambda: self._post(payload),
            config=config,
            operation_name="kaya:webLocation",
        )
        ```
    """
    config = config or RetryConfig()
    if config.max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    attempt = 0
    while True:
        try:
            return await fn()
        except config.retryable_exceptions as e:
            attempt += 1
            log = logger.bind(operation=operation_name, attempt=attempt, error=str(e))

            if attempt >= config.max_attempts:
                log.bind(max_attempts=config.max_attempts).error("retry_exhausted")
                raise

            delay = config.delay_for(attempt - 1, e)
            log.bind(delay_seconds=round(delay, 2)).warning("retry_attempt")
            await asyncio.sleep(delay)
