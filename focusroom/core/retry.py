"""Retry and backoff utilities for contended store operations.

Used where a constraint conflict means "someone else got there first" and the
operation should be re-evaluated against the new state rather than failed.
"""

import asyncio
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from focusroom.core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_attempts: int = 3
    backoff_base: float = 0.01
    backoff_max: float = 0.5
    jitter: bool = True
    retryable_exceptions: tuple[type[Exception], ...] = field(default_factory=lambda: (Exception,))


async def retry_with_backoff[T](
    fn: Callable[[], Awaitable[T]],
    config: RetryConfig | None = None,
    operation_name: str = "operation",
) -> T:
    """
    Execute async function with exponential backoff retry.

    Each retry waits for: min(backoff_base * 2^attempt, backoff_max) seconds,
    with random jitter applied if enabled.

    Args:
        fn: Async function to execute (no arguments)
        config: Retry configuration, uses defaults if not provided
        operation_name: Name for logging purposes

    Returns:
        Result of fn()

    Raises:
        Exception: The last exception if all retries are exhausted

    Example:
        ```python
        config = RetryConfig(max_attempts=3, retryable_exceptions=(ToggleConflict,))
        result = await retry_with_backoff(
            lambda: switch.flip(),
            config=config,
            operation_name="toggle_like",
        )
        ```
    """
    config = config or RetryConfig()
    last_exception: Exception | None = None

    for attempt in range(config.max_attempts):
        try:
            return await fn()
        except config.retryable_exceptions as e:
            last_exception = e

            if attempt + 1 == config.max_attempts:
                logger.bind(
                    operation=operation_name,
                    attempts=config.max_attempts,
                    error=str(e),
                ).error("retry_exhausted")
                raise

            delay = min(config.backoff_base * (2**attempt), config.backoff_max)
            if config.jitter:
                delay *= 0.5 + random.random()

            logger.bind(
                operation=operation_name,
                attempt=attempt + 1,
                max_attempts=config.max_attempts,
                delay_seconds=round(delay, 3),
                error=str(e),
            ).warning("retry_attempt")
            await asyncio.sleep(delay)

    # Unreachable: the loop either returns or re-raises
    if last_exception is not None:
        raise last_exception
    raise RuntimeError("Unexpected state in retry_with_backoff")
