"""
Decorators Module
Retry and timing decorators
"""

import asyncio
import functools
import time
from typing import Callable, Tuple, Type
from .logger import logger


def retry(
    max_attempts: int = 1,
    initial_delay: float = 1.0,
    backoff_multiplier: float = 2.0,
    max_delay: float = 60.0,
    exceptions: Tuple[Type[Exception], ...] = (Exception,)
):
    """
    Retry an async callable with exponential backoff

    Args:
        max_attempts: Total attempts, 1 disables retrying
        initial_delay: Delay before the second attempt in seconds
        backoff_multiplier: Factor applied to the delay after each failure
        max_delay: Upper bound for the delay
        exceptions: Exception types that trigger another attempt
    """
    def decorator(func: Callable):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            delay = initial_delay
            attempts = max(1, max_attempts)

            for attempt in range(1, attempts + 1):
                try:
                    return await func(*args, **kwargs)
                except exceptions as e:
                    if attempt == attempts:
                        if attempts > 1:
                            logger.error(f"All {attempts} attempts failed for {func.__name__}: {e}")
                        raise
                    logger.warning(
                        f"Attempt {attempt}/{attempts} failed for {func.__name__}: {e}. "
                        f"Retrying in {delay:.1f}s..."
                    )
                    await asyncio.sleep(delay)
                    delay = min(delay * backoff_multiplier, max_delay)

        return wrapper

    return decorator


def timed(func: Callable):
    """
    Log execution time of a function
    """
    @functools.wraps(func)
    async def async_wrapper(*args, **kwargs):
        start_time = time.perf_counter()
        try:
            return await func(*args, **kwargs)
        finally:
            logger.debug(f"{func.__name__} executed in {time.perf_counter() - start_time:.3f}s")

    @functools.wraps(func)
    def sync_wrapper(*args, **kwargs):
        start_time = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            logger.debug(f"{func.__name__} executed in {time.perf_counter() - start_time:.3f}s")

    if asyncio.iscoroutinefunction(func):
        return async_wrapper
    return sync_wrapper
