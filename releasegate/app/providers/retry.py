"""Retry with exponential backoff for GitHub GETs.

Transient failures (5xx, dropped connections, timeouts) are retried; a
numeric ``Retry-After`` on a 5xx answer replaces the computed backoff.
"""

import asyncio
import functools
from dataclasses import dataclass
from typing import Any, Callable, Optional, Tuple, Type, TypeVar

import httpx

from releasegate.app.core.logging import get_logger

logger = get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


def _retry_after_seconds(response: Any) -> Optional[float]:
    """Parse a numeric ``Retry-After`` header, or None when absent or a date."""
    headers = getattr(response, "headers", None)
    if not headers:
        return None
    value = headers.get("retry-after")
    if not isinstance(value, str):
        return None
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return None
    return max(0.0, seconds)


@dataclass
class RetryPolicy:
    """Configuration for retry behavior with exponential backoff.

    Attributes:
        max_retries: Maximum number of retry attempts (default: 2)
        base_delay: Initial delay between retries in seconds (default: 0.5)
        max_delay: Maximum delay between retries in seconds (default: 4.0)
        exponential_base: Base for exponential calculation (default: 2.0)
        retryable_exceptions: Tuple of exception types that trigger a retry

    Example:
        >>> policy = RetryPolicy(max_retries=3, base_delay=1.0)
        >>> delay = policy.calculate_delay(attempt=2)  # Returns 4.0
    """

    max_retries: int = 2
    base_delay: float = 0.5
    max_delay: float = 4.0
    exponential_base: float = 2.0
    retryable_exceptions: Tuple[Type[Exception], ...] = (
        httpx.HTTPStatusError,
        httpx.NetworkError,
        httpx.TimeoutException,
    )

    def calculate_delay(self, attempt: int) -> float:
        """Delay before retry ``attempt`` (0-indexed), capped at max_delay."""
        delay = self.base_delay * (self.exponential_base**attempt)
        return min(delay, self.max_delay)

    def delay_for(self, attempt: int, exception: Exception) -> float:
        """Delay before retry ``attempt``, preferring the server's Retry-After.

        GitHub sends ``Retry-After`` in seconds on some 5xx answers; the
        value is still capped at max_delay.
        """
        if isinstance(exception, httpx.HTTPStatusError):
            retry_after = _retry_after_seconds(exception.response)
            if retry_after is not None:
                return min(retry_after, self.max_delay)
        return self.calculate_delay(attempt)

    def is_retryable(self, exception: Exception) -> bool:
        """Check if an exception should trigger a retry.

        For HTTPStatusError, only 5xx status codes are considered retryable;
        GitHub answers 4xx for bad refs and permissions, which do not heal.
        """
        if isinstance(exception, httpx.HTTPStatusError):
            return exception.response.status_code >= 500

        return isinstance(exception, self.retryable_exceptions)


def with_retry(policy: Optional[RetryPolicy] = None) -> Callable[[F], F]:
    """Decorator that adds retry logic with exponential backoff.

    Example:
        >>> @with_retry(policy=RetryPolicy(max_retries=3))
        ... async def fetch(self, path):
        ...     return await self._get(path)
    """
    retry_policy = policy or RetryPolicy()

    def decorator(func: F) -> F:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            for attempt in range(retry_policy.max_retries + 1):
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    if not retry_policy.is_retryable(e):
                        logger.debug(
                            f"Non-retryable exception in {func.__name__}: {type(e).__name__}: {e}"
                        )
                        raise

                    if attempt >= retry_policy.max_retries:
                        logger.warning(
                            f"Max retries ({retry_policy.max_retries}) exceeded for {func.__name__}: "
                            f"{type(e).__name__}: {e}"
                        )
                        raise

                    delay = retry_policy.delay_for(attempt, e)
                    logger.warning(
                        f"Retry {attempt + 1}/{retry_policy.max_retries} for {func.__name__} "
                        f"after {type(e).__name__}: {e}. Waiting {delay:.2f}s..."
                    )
                    await asyncio.sleep(delay)

        return wrapper  # type: ignore

    return decorator
