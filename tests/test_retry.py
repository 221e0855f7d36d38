"""
Tests for retry-with-backoff and fallback chains.

Tests cover:
1. Retryability decisions
2. Backoff calculation
3. with_retry / with_retry_async attempt counts and delays
4. with_fallbacks ordering, combination and aggregate failure
"""

import asyncio

import pytest

from filing_pipeline.recovery.errors import (
    ParserError,
    ParserErrorCategory,
    RecoveryStrategy,
    create_parser_error,
)
from filing_pipeline.recovery.retry import (
    RetryOptions,
    calculate_backoff,
    is_retryable_error,
    with_fallbacks,
    with_retry,
    with_retry_async,
)


def _flaky(failures: int, error_factory):
    """Callable failing ``failures`` times before returning 'ok'."""
    calls = {"count": 0}

    def fn():
        calls["count"] += 1
        if calls["count"] <= failures:
            raise error_factory()
        return "ok"

    return fn, calls


def _network_error():
    return create_parser_error(
        ParserErrorCategory.NETWORK, "Gateway timeout", recovery=RecoveryStrategy.RETRY
    )


class TestRetryability:
    """Tests for is_retryable_error."""

    def test_parser_error_by_recovery(self):
        """Test that RETRY recovery is always retryable."""
        error = create_parser_error(ParserErrorCategory.HTML, "x", recovery=RecoveryStrategy.RETRY)
        assert is_retryable_error(error) is True

    def test_parser_error_by_category(self):
        """Test the configured retryable categories."""
        assert is_retryable_error(create_parser_error(ParserErrorCategory.PARSING, "x")) is True
        assert is_retryable_error(create_parser_error(ParserErrorCategory.HTML, "x")) is False

    def test_custom_categories(self):
        """Test that categories can be narrowed."""
        options = RetryOptions(retryable_categories={ParserErrorCategory.NETWORK})
        assert is_retryable_error(create_parser_error(ParserErrorCategory.PARSING, "x"), options) is False

    def test_plain_exceptions(self):
        """Test keyword and type based decisions for other exceptions."""
        assert is_retryable_error(TimeoutError()) is True
        assert is_retryable_error(RuntimeError("Connection reset by peer")) is True
        assert is_retryable_error(ValueError("bad value")) is False


class TestBackoff:
    """Tests for calculate_backoff."""

    def test_exponential(self):
        """Test initial_delay * factor^(attempt - 1)."""
        options = RetryOptions(initial_delay=0.5, retry_factor=3.0)
        assert calculate_backoff(1, options) == 0.5
        assert calculate_backoff(2, options) == 1.5
        assert calculate_backoff(3, options) == 4.5

    def test_capped(self):
        """Test the max_delay cap."""
        assert calculate_backoff(10) == 30.0


class TestWithRetry:
    """Tests for with_retry."""

    def test_retries_until_success(self):
        """Test two transient failures followed by success."""
        fn, calls = _flaky(2, _network_error)
        delays = []

        result = with_retry(fn, RetryOptions(max_retries=3), sleep=delays.append)

        assert result == "ok"
        assert calls["count"] == 3
        assert delays == [1.0, 2.0]

    def test_non_retryable_propagates(self):
        """Test that a non-transient error is raised immediately."""
        fn, calls = _flaky(5, lambda: ValueError("bad value"))

        with pytest.raises(ValueError):
            with_retry(fn, RetryOptions(max_retries=3), sleep=lambda delay: None)
        assert calls["count"] == 1

    def test_attempts_exhausted(self):
        """Test that the last error is raised after max_retries."""
        fn, calls = _flaky(10, lambda: ConnectionError("refused"))

        with pytest.raises(ConnectionError):
            with_retry(fn, RetryOptions(max_retries=2), sleep=lambda delay: None)
        assert calls["count"] == 3

    def test_on_retry_callback(self):
        """Test that on_retry sees the error, attempt and delay."""
        seen = []
        fn, _ = _flaky(1, _network_error)
        options = RetryOptions(on_retry=lambda error, attempt, delay: seen.append((str(error), attempt, delay)))

        with_retry(fn, options, sleep=lambda delay: None)
        assert seen == [("Gateway timeout", 1, 1.0)]

    def test_elapsed_budget(self):
        """Test that a delay beyond max_elapsed stops retrying."""
        fn, calls = _flaky(3, _network_error)

        with pytest.raises(ParserError):
            with_retry(fn, RetryOptions(initial_delay=1.0, max_elapsed=0.5), sleep=lambda delay: None)
        assert calls["count"] == 1

    def test_async(self):
        """Test the async variant with an injected sleep."""
        calls = {"count": 0}
        delays = []

        async def fn():
            calls["count"] += 1
            if calls["count"] < 3:
                raise _network_error()
            return "ok"

        async def fake_sleep(delay):
            delays.append(delay)

        result = asyncio.run(with_retry_async(fn, RetryOptions(max_retries=3), sleep=fake_sleep))

        assert result == "ok"
        assert delays == [1.0, 2.0]


class TestWithFallbacks:
    """Tests for with_fallbacks."""

    @staticmethod
    def _fail(message):
        def method():
            raise ValueError(message)
        return method

    def test_primary_wins(self):
        """Test that fallbacks are not run after a primary success."""
        ran = []
        result = with_fallbacks(lambda: "primary", [lambda: ran.append(1)])

        assert result == "primary"
        assert ran == []

    def test_second_fallback_wins(self):
        """Test that methods are tried in order."""
        result = with_fallbacks(self._fail("a"), [self._fail("b"), lambda: "third"])
        assert result == "third"

    def test_combine_results(self):
        """Test collecting every success."""
        result = with_fallbacks(
            lambda: 1,
            [self._fail("b"), lambda: 2],
            stop_on_success=False,
            combine_results=True,
        )
        assert result == [1, 2]

    def test_run_all_returns_first(self):
        """Test run-all without combination."""
        result = with_fallbacks(lambda: 1, [lambda: 2], stop_on_success=False)
        assert result == 1

    def test_all_fail(self):
        """Test the aggregate error."""
        with pytest.raises(ParserError) as exc_info:
            with_fallbacks(self._fail("a"), [self._fail("b")], context={"file": "x.pdf"})

        error = exc_info.value
        assert error.category == ParserErrorCategory.INTERNAL
        assert error.recovery == RecoveryStrategy.ABORT
        assert str(error) == "All parsing methods failed: a; b"
        assert len(error.context["errors"]) == 2
        assert error.context["file"] == "x.pdf"
