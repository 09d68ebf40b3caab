"""Retry helpers for transient storage failures.

Only the SQL stores retry; the reconciler and rule engine see a store
failure once the store has given up.
"""

import logging
import random
import time
from functools import wraps
from typing import Any, Callable, List, Optional, Type

from .exceptions import RuleflowError, StorageError, TransientError
from .logging import get_logger, log_with_context


logger = get_logger(__name__)


class RetryConfig:
    """Configuration for retry behavior."""

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 0.1,
        max_delay: float = 5.0,
        exponential_base: float = 2.0,
        jitter: bool = True,
        retryable_exceptions: Optional[List[Type[Exception]]] = None
    ):
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base
        self.jitter = jitter
        self.retryable_exceptions = retryable_exceptions or [TransientError, StorageError]

    def should_retry(self, exception: Exception, attempt: int) -> bool:
        """Determine if an exception should be retried."""
        if attempt >= self.max_attempts:
            return False

        if isinstance(exception, RuleflowError):
            return exception.recoverable

        return any(isinstance(exception, exc_type) for exc_type in self.retryable_exceptions)

    def get_delay(self, attempt: int) -> float:
        """Calculate delay for the given attempt."""
        delay = self.base_delay * (self.exponential_base ** (attempt - 1))
        delay = min(delay, self.max_delay)

        if self.jitter:
            delay *= (0.5 + random.random() * 0.5)

        return delay


def with_retry(config: Optional[RetryConfig] = None):
    """Decorator to add retry logic to functions.

    A method on an object exposing a ``retry_config`` attribute uses that
    configuration instead of the decorator default.
    """
    if config is None:
        config = RetryConfig()

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            effective = config
            if args and isinstance(getattr(args[0], "retry_config", None), RetryConfig):
                effective = args[0].retry_config
            return _execute_with_retry(func, effective, *args, **kwargs)
        return wrapper

    return decorator


def _execute_with_retry(func: Callable, config: RetryConfig, *args, **kwargs) -> Any:
    """Execute function with retry logic."""
    for attempt in range(1, config.max_attempts + 1):
        try:
            return func(*args, **kwargs)
        except Exception as e:
            if not config.should_retry(e, attempt):
                log_with_context(
                    logger, logging.ERROR,
                    f"Giving up on {func.__name__} after {attempt} attempts",
                    operation=func.__name__,
                    error_type=type(e).__name__,
                    error_message=str(e),
                    attempts_used=attempt
                )
                raise

            log_with_context(
                logger, logging.WARNING,
                f"Retry attempt {attempt}/{config.max_attempts} for {func.__name__}",
                operation=func.__name__,
                error_type=type(e).__name__,
                error_message=str(e),
                attempt=attempt,
                max_attempts=config.max_attempts
            )
            time.sleep(config.get_delay(attempt))
