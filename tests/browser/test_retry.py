"""Tests for the browser operation retry wrapper."""

from __future__ import annotations

from collections.abc import Iterator
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from tether.browser.retry import (
    RetryOptions,
    create_retry_wrapper,
    is_connection_error,
    is_non_retryable_operation,
    is_retryable_error,
    with_browser_retry,
)
from tether.config.browser import RetryConfig

pytestmark = pytest.mark.unit


@pytest.fixture
def mock_sleep() -> Iterator[AsyncMock]:
    with patch("tether.browser.retry.asyncio.sleep", new_callable=AsyncMock) as sleep:
        yield sleep


@pytest.fixture
def no_jitter() -> Iterator[MagicMock]:
    with patch("tether.browser.retry.random.random", return_value=0.0) as rand:
        yield rand


def _sleep_seconds(mock_sleep: AsyncMock) -> list[float]:
    return [c.args[0] for c in mock_sleep.await_args_list]


# ---------------------------------------------------------------------------
# Error classification
# ---------------------------------------------------------------------------


class TestErrorClassification:
    @pytest.mark.parametrize(
        "message",
        [
            "Target closed",
            "Session closed. Most likely the page has been closed.",
            "Browser closed unexpectedly",
            "browser disconnected",
            "WebSocket is not open",
            "Connection refused",
            "Protocol error: disconnected",
            "net::ERR_CONNECTION_RESET at https://example.com",
            "Navigation timeout of 30000 ms exceeded",
            "Execution context was destroyed, most likely because of a navigation",
        ],
    )
    def test_retryable(self, message: str) -> None:
        assert is_retryable_error(RuntimeError(message)) is True

    @pytest.mark.parametrize(
        "message",
        ["Element not found", "Invalid selector", "Permission denied", ""],
    )
    def test_not_retryable(self, message: str) -> None:
        assert is_retryable_error(RuntimeError(message)) is False

    def test_retryable_accepts_plain_values(self) -> None:
        assert is_retryable_error("TIMEOUT while waiting") is True
        assert is_retryable_error(None) is False

    def test_connection_error(self) -> None:
        assert is_connection_error(ConnectionError("WebSocket closed")) is True
        assert is_connection_error(RuntimeError("Browser closed")) is True
        assert is_connection_error(RuntimeError("Target closed")) is False
        assert is_connection_error(RuntimeError("timeout exceeded")) is False

    def test_connection_error_requires_exception(self) -> None:
        assert is_connection_error("connection refused") is False

    def test_non_retryable_operation(self) -> None:
        assert is_non_retryable_operation("setInputFiles") is True
        assert is_non_retryable_operation("page.setinputfiles") is True
        assert is_non_retryable_operation("FILLFORM:checkout") is True
        assert is_non_retryable_operation("click") is False
        assert is_non_retryable_operation("fill") is False


# ---------------------------------------------------------------------------
# with_browser_retry
# ---------------------------------------------------------------------------


class TestWithBrowserRetry:
    @pytest.mark.asyncio
    async def test_success_first_try(self, mock_sleep: AsyncMock) -> None:
        operation = AsyncMock(return_value="ok")

        assert await with_browser_retry(operation) == "ok"
        operation.assert_awaited_once()
        mock_sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_connection_errors_clear_cache_then_succeed(
        self, mock_sleep: AsyncMock, no_jitter: MagicMock
    ) -> None:
        clear_cache = MagicMock()
        operation = AsyncMock(
            side_effect=[
                ConnectionError("WebSocket connection closed"),
                ConnectionError("WebSocket connection closed"),
                "ok",
            ]
        )
        options = RetryOptions(max_retries=3, clear_browser_cache=clear_cache)

        assert await with_browser_retry(operation, options) == "ok"
        assert operation.await_count == 3
        assert clear_cache.call_count == 2
        assert _sleep_seconds(mock_sleep) == [0.5, 1.0]

    @pytest.mark.asyncio
    async def test_cache_not_cleared_when_disabled(
        self, mock_sleep: AsyncMock, no_jitter: MagicMock
    ) -> None:
        clear_cache = MagicMock()
        operation = AsyncMock(side_effect=[ConnectionError("connection reset"), "ok"])
        options = RetryOptions(
            clear_cache_on_connection_error=False, clear_browser_cache=clear_cache
        )

        assert await with_browser_retry(operation, options) == "ok"
        clear_cache.assert_not_called()

    @pytest.mark.asyncio
    async def test_cache_not_cleared_for_non_connection_errors(
        self, mock_sleep: AsyncMock, no_jitter: MagicMock
    ) -> None:
        clear_cache = MagicMock()
        operation = AsyncMock(side_effect=[RuntimeError("Target closed"), "ok"])
        options = RetryOptions(clear_browser_cache=clear_cache)

        assert await with_browser_retry(operation, options) == "ok"
        clear_cache.assert_not_called()

    @pytest.mark.asyncio
    async def test_non_idempotent_operation_runs_once(self, mock_sleep: AsyncMock) -> None:
        operation = AsyncMock(side_effect=ConnectionError("WebSocket connection closed"))
        options = RetryOptions(max_retries=5, operation_name="setInputFiles")

        with pytest.raises(ConnectionError, match="WebSocket connection closed"):
            await with_browser_retry(operation, options)

        operation.assert_awaited_once()
        mock_sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_non_retryable_error_raised_immediately(self, mock_sleep: AsyncMock) -> None:
        operation = AsyncMock(side_effect=ValueError("Element not found: #submit"))

        with pytest.raises(ValueError, match="Element not found"):
            await with_browser_retry(operation, RetryOptions(max_retries=3))

        operation.assert_awaited_once()
        mock_sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_exhaustion_reraises_last_error(
        self, mock_sleep: AsyncMock, no_jitter: MagicMock
    ) -> None:
        errors = [RuntimeError(f"Target closed ({i})") for i in range(3)]
        operation = AsyncMock(side_effect=errors)

        with pytest.raises(RuntimeError) as exc_info:
            await with_browser_retry(operation, RetryOptions(max_retries=2))

        assert exc_info.value is errors[-1]
        assert operation.await_count == 3
        assert mock_sleep.await_count == 2

    @pytest.mark.asyncio
    async def test_zero_retries_single_attempt(self, mock_sleep: AsyncMock) -> None:
        operation = AsyncMock(side_effect=RuntimeError("Target closed"))

        with pytest.raises(RuntimeError):
            await with_browser_retry(operation, RetryOptions(max_retries=0))

        operation.assert_awaited_once()
        mock_sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_backoff_doubles_and_caps(
        self, mock_sleep: AsyncMock, no_jitter: MagicMock
    ) -> None:
        operation = AsyncMock(side_effect=RuntimeError("Navigation timeout"))
        options = RetryOptions(max_retries=5, initial_delay_ms=500, max_delay_ms=1200)

        with pytest.raises(RuntimeError):
            await with_browser_retry(operation, options)

        assert _sleep_seconds(mock_sleep) == [0.5, 1.0, 1.2, 1.2, 1.2]

    @pytest.mark.asyncio
    async def test_jitter_bounded_by_thirty_percent(self, mock_sleep: AsyncMock) -> None:
        operation = AsyncMock(side_effect=[RuntimeError("Target closed"), "ok"])

        with patch("tether.browser.retry.random.random", return_value=1.0):
            await with_browser_retry(operation, RetryOptions(initial_delay_ms=1000))

        assert _sleep_seconds(mock_sleep) == [pytest.approx(1.3)]

    @pytest.mark.asyncio
    async def test_negative_max_retries_rejected(self) -> None:
        operation = AsyncMock(return_value="ok")

        with pytest.raises(ValueError, match="max_retries"):
            await with_browser_retry(operation, RetryOptions(max_retries=-1))

        operation.assert_not_awaited()


class TestRetryOptions:
    def test_from_config(self) -> None:
        clear_cache = MagicMock()
        config = RetryConfig(max_retries=1, initial_delay_ms=10, max_delay_ms=20)

        options = RetryOptions.from_config(config, clear_browser_cache=clear_cache)

        assert options.max_retries == 1
        assert options.initial_delay_ms == 10
        assert options.max_delay_ms == 20
        assert options.clear_cache_on_connection_error is True
        assert options.clear_browser_cache is clear_cache
        assert options.operation_name is None


# ---------------------------------------------------------------------------
# create_retry_wrapper
# ---------------------------------------------------------------------------


class TestCreateRetryWrapper:
    @pytest.mark.asyncio
    async def test_wrapper_applies_options(
        self, mock_sleep: AsyncMock, no_jitter: MagicMock
    ) -> None:
        retry = create_retry_wrapper(RetryOptions(max_retries=1, initial_delay_ms=200))
        operation = AsyncMock(side_effect=RuntimeError("Target closed"))

        with pytest.raises(RuntimeError):
            await retry(operation, "click")

        assert operation.await_count == 2
        assert _sleep_seconds(mock_sleep) == [0.2]

    @pytest.mark.asyncio
    async def test_wrapper_honours_operation_name(self, mock_sleep: AsyncMock) -> None:
        retry = create_retry_wrapper(RetryOptions(max_retries=3))
        operation = AsyncMock(side_effect=RuntimeError("Target closed"))

        with pytest.raises(RuntimeError):
            await retry(operation, "fillForm")

        operation.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_wrapper_does_not_mutate_options(self, mock_sleep: AsyncMock) -> None:
        options = RetryOptions()
        retry = create_retry_wrapper(options)

        assert await retry(AsyncMock(return_value=1), "setInputFiles") == 1
        assert options.operation_name is None
