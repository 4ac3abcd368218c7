"""Retry logic with exponential backoff for blocking SDK calls."""

import random
import time
from functools import wraps
from typing import Callable, TypeVar, ParamSpec

from mixsource.constants import (
    RETRY_MAX_ATTEMPTS,
    RETRY_BASE_DELAY_SEC,
    RETRY_MAX_DELAY_SEC,
    get_logger,
)

logger = get_logger("retry")

P = ParamSpec("P")
T = TypeVar("T")


def retry_with_backoff(
    max_attempts: int = RETRY_MAX_ATTEMPTS,
    base_delay: float = RETRY_BASE_DELAY_SEC,
    max_delay: float = RETRY_MAX_DELAY_SEC,
    exceptions: tuple = (Exception,),
) -> Callable[[Callable[P, T]], Callable[P, T]]:
    """
    Decorator for retrying a function with exponential backoff.

    The last failure is re-raised, so callers see the provider's own error.

    Args:
        max_attempts: Maximum number of attempts
        base_delay: Initial delay between retries in seconds
        max_delay: Maximum delay between retries in seconds
        exceptions: Tuple of exception types to catch and retry
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    def decorator(func: Callable[P, T]) -> Callable[P, T]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            for attempt in range(1, max_attempts + 1):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if attempt == max_attempts:
                        logger.warning(
                            f"{func.__name__} не удалось после {max_attempts} попыток: {e}"
                        )
                        raise

                    # Exponential backoff with jitter
                    delay = min(base_delay * (2 ** (attempt - 1)), max_delay)
                    delay = delay * (0.5 + random.random())

                    logger.debug(
                        f"{func.__name__}: попытка {attempt} не удалась: {e}. "
                        f"Повтор через {delay:.1f}с..."
                    )
                    time.sleep(delay)

            raise AssertionError("unreachable")

        return wrapper

    return decorator
