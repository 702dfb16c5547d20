"""
PURPOSE: Execution timing decorator for compiler entry points.
"""

import functools
import time
from typing import Any, Callable

from pinegraph.utils.logger import get_logger

logger = get_logger(__name__)


def timed(event: str = "executed") -> Callable:
    """
    PURPOSE: Timing decorator that logs function execution time in milliseconds.

    The log line is emitted at debug level so per-compile timings stay out of
    normal output.

    Args:
        event: Suffix for the logged event name (default "executed").

    Returns:
        Callable: Decorated function with execution timing.
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            start_time = time.perf_counter()
            try:
                return func(*args, **kwargs)
            finally:
                elapsed_ms = (time.perf_counter() - start_time) * 1000
                logger.debug(
                    f"{func.__name__}_{event}",
                    function=func.__qualname__,
                    elapsed_ms=f"{elapsed_ms:.3f}",
                )

        return wrapper

    return decorator
