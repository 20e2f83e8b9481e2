"""Retry with exponential backoff for provider calls."""

import functools
import random
import time
from typing import Any, Callable, Optional, TypeVar

from methodassist.core.logging import StructuredLogger, get_logger

T = TypeVar("T")

logger = get_logger("methodassist.retry")


def retry_with_exponential_backoff(
    max_retries: int = 0,
    initial_delay: float = 1.0,
    max_delay: float = 30.0,
    exponential_base: float = 2.0,
    jitter: bool = True,
    retryable_exceptions: tuple[type[Exception], ...] = (Exception,),
    logger_instance: Optional[StructuredLogger] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Decorator for retrying function calls with exponential backoff.

    The wrapped function receives the 1-based attempt number as the
    ``attempt`` keyword argument.

    Args:
        max_retries: Retries after the first attempt (0 means a single attempt)
        initial_delay: Initial delay in seconds before first retry
        max_delay: Maximum delay in seconds between retries
        exponential_base: Base for exponential backoff calculation
        jitter: If True, add random jitter to delay to prevent thundering herd
        retryable_exceptions: Tuple of exception types that should trigger retry
        logger_instance: Optional logger instance for logging retries
        sleep: Sleep function, replaceable in tests

    Returns:
        Decorator function
    """
    if logger_instance is None:
        logger_instance = logger

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            delay = initial_delay
            last_exception: Optional[Exception] = None

            for attempt in range(1, max_retries + 2):
                try:
                    return func(*args, attempt=attempt, **kwargs)
                except retryable_exceptions as e:
                    last_exception = e
                    if attempt > max_retries:
                        break

                    actual_delay = delay + (delay * 0.1 * random.random() if jitter else 0.0)
                    logger_instance.warning(
                        f"Attempt {attempt}/{max_retries + 1} failed: {e}. "
                        f"Retrying in {actual_delay:.2f}s...",
                        context={
                            "function": func.__name__,
                            "attempt": attempt,
                            "max_retries": max_retries,
                            "delay": actual_delay,
                        },
                    )
                    sleep(actual_delay)
                    delay = min(delay * exponential_base, max_delay)

            if max_retries:
                logger_instance.error(
                    f"All {max_retries + 1} attempts failed for {func.__name__}",
                    context={
                        "function": func.__name__,
                        "max_retries": max_retries,
                        "error": str(last_exception),
                    },
                )
            raise last_exception

        return wrapper

    return decorator
