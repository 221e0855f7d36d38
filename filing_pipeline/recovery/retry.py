"""
Retry-with-backoff and fallback chains for parsing operations.

Only errors that look transient are retried. A ParserError is retryable when
its recovery is RETRY or its category is in the configured set; any other
exception is retryable when its message mentions a timeout or connection
failure. Everything else propagates on the first failure.

Usage:
    options = RetryOptions(max_retries=3, initial_delay=0.5, max_elapsed=20)
    sections = with_retry(lambda: parse_pdf(data), options)
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Optional, Sequence, TypeVar

from pydantic import BaseModel, Field

from .errors import (
    ParserError,
    ParserErrorCategory,
    ParserErrorSeverity,
    RecoveryStrategy,
    create_error_from_exception,
    create_parser_error,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSIENT_KEYWORDS = ("timeout", "timed out", "network", "connection", "econnrefused", "econnreset")


class RetryOptions(BaseModel):
    """Retry behaviour for with_retry / with_retry_async."""

    max_retries: int = 3              # Additional attempts after the first
    initial_delay: float = 1.0        # Seconds
    max_delay: float = 30.0           # Seconds
    retry_factor: float = 2.0
    retryable_categories: set[ParserErrorCategory] = Field(
        default_factory=lambda: {
            ParserErrorCategory.NETWORK,
            ParserErrorCategory.RESOURCE,
            ParserErrorCategory.PARSING,
        }
    )
    max_elapsed: Optional[float] = None  # Overall bound in seconds, None = unbounded
    on_retry: Optional[Callable[[Exception, int, float], None]] = None


def is_retryable_error(error: BaseException, options: Optional[RetryOptions] = None) -> bool:
    """Decide whether an error is worth another attempt."""
    options = options or RetryOptions()

    if isinstance(error, ParserError):
        return error.should_retry() or error.category in options.retryable_categories

    if isinstance(error, (ConnectionError, TimeoutError)):
        return True

    error_string = f"{type(error).__name__}: {error}".lower()
    return any(keyword in error_string for keyword in TRANSIENT_KEYWORDS)


def calculate_backoff(attempt: int, options: Optional[RetryOptions] = None) -> float:
    """
    Delay before retry number ``attempt`` (1-based).

    initial_delay * retry_factor^(attempt - 1), capped at max_delay.
    """
    options = options or RetryOptions()
    delay = options.initial_delay * (options.retry_factor ** (attempt - 1))
    return min(delay, options.max_delay)


def _next_delay(
    error: Exception,
    attempt: int,
    options: RetryOptions,
    started: float,
) -> Optional[float]:
    """Delay before the next attempt, or None when the error should propagate."""
    if attempt > options.max_retries or not is_retryable_error(error, options):
        return None

    delay = calculate_backoff(attempt, options)
    if options.max_elapsed is not None:
        remaining = options.max_elapsed - (time.monotonic() - started)
        if delay >= remaining:
            logger.warning(
                f"Retry budget of {options.max_elapsed}s exhausted after {attempt} attempt(s)"
            )
            return None

    if options.on_retry is not None:
        options.on_retry(error, attempt, delay)
    logger.warning(
        f"Attempt {attempt} failed ({error}), retrying in {delay:.2f}s "
        f"({attempt}/{options.max_retries})"
    )
    return delay


def with_retry(
    fn: Callable[[], T],
    options: Optional[RetryOptions] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Run fn, retrying transient failures with exponential backoff.

    Args:
        fn: Operation to run
        options: Retry settings (defaults to RetryOptions())
        sleep: Sleep function, injectable for tests

    Returns:
        Result of the first successful call

    Raises:
        The last error when it is not retryable or attempts are exhausted
    """
    options = options or RetryOptions()
    started = time.monotonic()
    attempt = 0

    while True:
        try:
            return fn()
        except Exception as e:
            attempt += 1
            delay = _next_delay(e, attempt, options, started)
            if delay is None:
                raise
            sleep(delay)


async def with_retry_async(
    fn: Callable[[], Awaitable[T]],
    options: Optional[RetryOptions] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Async variant of with_retry. Cancelling the task interrupts the backoff sleep."""
    options = options or RetryOptions()
    started = time.monotonic()
    attempt = 0

    while True:
        try:
            return await fn()
        except Exception as e:
            attempt += 1
            delay = _next_delay(e, attempt, options, started)
            if delay is None:
                raise
            await sleep(delay)


def with_fallbacks(
    primary: Callable[[], T],
    fallbacks: Sequence[Callable[[], T]],
    stop_on_success: bool = True,
    combine_results: bool = False,
    context: Optional[dict[str, Any]] = None,
) -> Any:
    """
    Run primary, then each fallback in order.

    Args:
        primary: First method to try
        fallbacks: Alternative methods, tried in order
        stop_on_success: Return the first success without running the rest
        combine_results: When running all, return every success as a list
        context: Extra context for the aggregate error

    Returns:
        First successful result, or the list of all results when
        stop_on_success is False and combine_results is True

    Raises:
        ParserError: INTERNAL/FATAL/ABORT when every method fails
    """
    results: list[T] = []
    errors: list[ParserError] = []

    for index, method in enumerate([primary, *fallbacks]):
        try:
            result = method()
        except Exception as e:
            parser_error = create_error_from_exception(e)
            errors.append(parser_error)
            logger.warning(f"Parsing method {index} failed: {parser_error}")
            continue

        if index > 0:
            logger.info(f"Fallback method {index} succeeded")
        results.append(result)
        if stop_on_success:
            return result

    if results:
        return results if combine_results else results[0]

    raise create_parser_error(
        ParserErrorCategory.INTERNAL,
        f"All parsing methods failed: {'; '.join(str(e) for e in errors)}",
        severity=ParserErrorSeverity.FATAL,
        recovery=RecoveryStrategy.ABORT,
        context={**(context or {}), "errors": [e.info.to_dict() for e in errors]},
    )
