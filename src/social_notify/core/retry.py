"""
Social Notify Retry Logic

Retry with exponential backoff for transient delivery failures:
- Retries on 429 (rate limited) and 5xx responses
- Retries on network errors
- Never retries other 4xx responses
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from functools import wraps
from typing import Any, TypeVar

import httpx
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from .logging import get_logger

logger = get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Awaitable[Any]])

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_MIN_WAIT = 0.5  # seconds
DEFAULT_MAX_WAIT = 8  # seconds

# HTTP status codes that should trigger retry
RETRYABLE_STATUS_CODES = {
    429,  # Too Many Requests
    500,  # Internal Server Error
    502,  # Bad Gateway
    503,  # Service Unavailable
    504,  # Gateway Timeout
}


def is_retryable_status(status_code: int) -> bool:
    return status_code in RETRYABLE_STATUS_CODES


def _should_retry_exception(exc: BaseException) -> bool:
    """
    Determine if an exception should trigger a retry.

    Args:
        exc: The exception to check

    Returns:
        True if the request should be retried
    """
    if isinstance(exc, httpx.HTTPStatusError):
        return is_retryable_status(exc.response.status_code)
    if isinstance(exc, httpx.RequestError):
        return True  # Network errors are retryable
    return False


def delivery_retry(
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    min_wait: float = DEFAULT_MIN_WAIT,
    max_wait: float = DEFAULT_MAX_WAIT,
) -> Callable[[F], F]:
    """
    Decorator for async HTTP sends with retry logic.

    Each retry is logged at WARNING. The last exception is re-raised once
    attempts are exhausted.

    Usage:
        @delivery_retry(max_attempts=5)
        async def post(client, url, body):
            response = await client.post(url, json=body)
            response.raise_for_status()
    """

    def decorator(func: F) -> F:
        @retry(
            stop=stop_after_attempt(max_attempts),
            wait=wait_exponential_jitter(
                initial=min_wait,
                max=max_wait,
                jitter=max_wait * 0.1,
            ),
            retry=retry_if_exception(_should_retry_exception),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            return await func(*args, **kwargs)

        return wrapper  # type: ignore[return-value]

    return decorator
