"""
Retry mechanism for idempotent remote reads.

Only lookups (range reads, child lookups, node metadata) are wrapped.
Creates, moves and writes must not be: their failures are reported back to
the caller as partial progress.
"""

import asyncio
import functools
import random
from typing import Any, Optional, Callable, Awaitable

from shared.logging import get_logger


class RetryConfig:
    """Configuration for retry behavior."""

    def __init__(self,
                 max_attempts: int = 3,
                 base_delay: float = 0.5,
                 max_delay: float = 10.0,
                 exponential_base: float = 2.0,
                 jitter: bool = True,
                 backoff_strategy: str = "exponential"):
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base
        self.jitter = jitter
        self.backoff_strategy = backoff_strategy


def retry_on_exception(exceptions: tuple = (Exception,),
                       config: Optional[RetryConfig] = None,
                       sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep) -> Callable:
    """Decorator for retrying async functions on exceptions.

    The last exception is re-raised unchanged once attempts are exhausted, so
    callers keep handling the remote store's own error type.
    """

    if config is None:
        config = RetryConfig()

    def decorator(func: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Any]]:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            logger = get_logger(f"workspace.retry.{func.__name__}")

            for attempt in range(1, config.max_attempts + 1):
                try:
                    result = await func(*args, **kwargs)
                    if attempt > 1:
                        logger.info("Retry succeeded", attempt=attempt, function=func.__name__)
                    return result

                except exceptions as e:
                    if attempt == config.max_attempts:
                        logger.error(
                            "All retry attempts exhausted",
                            attempt=attempt,
                            max_attempts=config.max_attempts,
                            function=func.__name__,
                            error=str(e)
                        )
                        raise

                    delay = calculate_delay(attempt, config)
                    logger.warning(
                        "Retry attempt failed, waiting before next attempt",
                        attempt=attempt,
                        delay=delay,
                        function=func.__name__,
                        error=str(e)
                    )
                    await sleep(delay)

        return wrapper

    return decorator


def calculate_delay(attempt: int, config: RetryConfig) -> float:
    """Calculate delay between retry attempts."""
    if config.backoff_strategy == "exponential":
        delay = config.base_delay * (config.exponential_base ** (attempt - 1))
    elif config.backoff_strategy == "linear":
        delay = config.base_delay * attempt
    else:
        delay = config.base_delay

    delay = min(delay, config.max_delay)

    if config.jitter:
        jitter_amount = delay * 0.1  # 10% jitter
        delay += random.uniform(-jitter_amount, jitter_amount)

    return max(0.0, delay)
