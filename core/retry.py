"""
Retry utilities for I/O-facing operations (sheet calls, browser launches).
"""

import asyncio
import functools
import logging
from typing import Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')


def async_retry(
    max_attempts: int = 3,
    delay: float = 1.0,
    backoff: float = 2.0,
    exceptions: tuple = (Exception,),
    label: Optional[str] = None,
    on_retry: Callable = None
):
    """
    Decorator for async functions with bounded retry and exponential backoff.

    Args:
        max_attempts: Total attempts including the first one
        delay: Delay before the second attempt (seconds)
        backoff: Multiplier for delay after each failed attempt
        exceptions: Tuple of exceptions to catch and retry
        label: Name used in log lines (defaults to the function name)
        on_retry: Optional callback(attempt, max_attempts, error)
    """
    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        name = label or func.__name__

        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> T:
            current_delay = delay
            last_exception = None

            for attempt in range(1, max_attempts + 1):
                try:
                    return await func(*args, **kwargs)
                except exceptions as e:
                    last_exception = e
                    if attempt >= max_attempts:
                        break
                    logger.warning(
                        f"{name} attempt {attempt}/{max_attempts} failed: {e}. "
                        f"Retrying in {current_delay:.1f}s"
                    )
                    if on_retry:
                        on_retry(attempt, max_attempts, e)
                    await asyncio.sleep(current_delay)
                    current_delay *= backoff

            logger.error(f"{name} failed after {max_attempts} attempts: {last_exception}")
            raise last_exception

        return wrapper
    return decorator


async def with_retry(
    func: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    delay: float = 1.0,
    backoff: float = 2.0,
    exceptions: tuple = (Exception,),
    label: Optional[str] = None,
) -> T:
    """Run a zero-argument coroutine factory under async_retry."""
    wrapped = async_retry(
        max_attempts=max_attempts,
        delay=delay,
        backoff=backoff,
        exceptions=exceptions,
        label=label or getattr(func, "__name__", "operation"),
    )(func)
    return await wrapped()
