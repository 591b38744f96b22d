"""
Resilience policy for calls to rate-limited, fallible network services.

Transient failures (timeouts, dropped connections, rate limiting, server
errors) are retried a bounded number of times with exponential backoff.
Permanent failures (authorization, malformed requests) propagate on the
first attempt.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

import httpx
import openai
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from incremental_rag.models.exceptions import BaseError

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSIENT_STATUS_CODES = frozenset({408, 425, 429, 500, 502, 503, 504})


def is_transient_status(status_code: int | None) -> bool:
    """Check whether an HTTP status code indicates a retryable condition."""
    return status_code in TRANSIENT_STATUS_CODES


def is_transient_error(exc: BaseException) -> bool:
    """
    Classify an exception as transient (worth retrying) or permanent.

    Args:
        exc: Exception raised by a service call

    Returns:
        True if the call may succeed when retried
    """
    if isinstance(exc, BaseError):
        return exc.transient
    if isinstance(exc, TimeoutError | ConnectionError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return is_transient_status(exc.response.status_code)
    if isinstance(exc, httpx.TimeoutException | httpx.TransportError):
        return True
    if isinstance(exc, openai.APIConnectionError | openai.RateLimitError | openai.InternalServerError):
        return True
    return False


def build_retrying(config, operation: str = "service call") -> AsyncRetrying:
    """
    Build a tenacity retry controller for one service call.

    Args:
        config: RAGConfig carrying the retry bounds
        operation: Name of the call, for logging

    Returns:
        Configured AsyncRetrying instance
    """
    logger.debug(
        "Retry policy for %s: %d attempts, backoff %.2fs..%.2fs",
        operation,
        config.retry_max_attempts,
        config.retry_initial_backoff_seconds,
        config.retry_max_backoff_seconds,
    )
    return AsyncRetrying(
        stop=stop_after_attempt(config.retry_max_attempts),
        wait=wait_exponential(
            multiplier=config.retry_initial_backoff_seconds,
            max=config.retry_max_backoff_seconds,
        ),
        retry=retry_if_exception(is_transient_error),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )


async def with_resilience(config, operation: str, func: Callable[..., Awaitable[T]], *args, **kwargs) -> T:
    """
    Run an async service call under the retry policy.

    Args:
        config: RAGConfig carrying the retry bounds
        operation: Name of the call, for logging
        func: Coroutine function to invoke
        *args: Positional arguments for ``func``
        **kwargs: Keyword arguments for ``func``

    Returns:
        Result of the first successful attempt

    Raises:
        Exception: The last error once retries are exhausted, or the first
            permanent error
    """
    async for attempt in build_retrying(config, operation):
        with attempt:
            if attempt.retry_state.attempt_number > 1:
                logger.info("Retrying %s (attempt %d)", operation, attempt.retry_state.attempt_number)
            return await func(*args, **kwargs)
    raise AssertionError("retry loop exited without a result")  # pragma: no cover


class ResiliencePolicy:
    """Bounded retry with backoff, bound to one configuration."""

    def __init__(self, config):
        self.config = config

    async def run(self, operation: str, func: Callable[..., Awaitable[T]], *args, **kwargs) -> T:
        """Run ``func`` under the retry policy; see ``with_resilience``."""
        return await with_resilience(self.config, operation, func, *args, **kwargs)
