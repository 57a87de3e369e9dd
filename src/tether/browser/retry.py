"""
Retry wrapper for browser operations.

Retries an async operation with exponential backoff and jitter when it
fails with a transient control-channel error. Operations that may have
partially completed (file uploads, bulk form fills) are never retried.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from typing import TypeVar

from tether.config.browser import RetryConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Substrings (lowercase) of transient failure messages
RETRYABLE_ERROR_PATTERNS = (
    "target closed",
    "session closed",
    "browser closed",
    "browser disconnected",
    "websocket",
    "connection",
    "disconnected",
    "net::err",
    "timeout",
    "execution context was destroyed",
)

CONNECTION_ERROR_PATTERNS = (
    "websocket",
    "connection",
    "disconnected",
    "browser closed",
)

# Operations whose partial completion cannot be safely repeated
NON_RETRYABLE_OPERATIONS = (
    "setInputFiles",
    "fillForm",
)


def is_retryable_error(err: object) -> bool:
    """Check if an error indicates a retryable transient failure."""
    msg = str(err).lower()
    return any(pattern in msg for pattern in RETRYABLE_ERROR_PATTERNS)


def is_connection_error(err: object) -> bool:
    """Check if an exception indicates a broken connection to the browser."""
    if not isinstance(err, BaseException):
        return False
    msg = str(err).lower()
    return any(pattern in msg for pattern in CONNECTION_ERROR_PATTERNS)


def is_non_retryable_operation(operation_name: str) -> bool:
    """Check if an operation must run at most once."""
    lower = operation_name.lower()
    return any(op.lower() in lower for op in NON_RETRYABLE_OPERATIONS)


@dataclass
class RetryOptions:
    """Options for with_browser_retry."""

    max_retries: int = 3
    initial_delay_ms: int = 500
    max_delay_ms: int = 10000
    clear_cache_on_connection_error: bool = True
    operation_name: str | None = None
    # Drops the cached browser connection so the next attempt reconnects
    clear_browser_cache: Callable[[], None] | None = None

    @classmethod
    def from_config(
        cls,
        config: RetryConfig,
        clear_browser_cache: Callable[[], None] | None = None,
    ) -> RetryOptions:
        return cls(
            max_retries=config.max_retries,
            initial_delay_ms=config.initial_delay_ms,
            max_delay_ms=config.max_delay_ms,
            clear_cache_on_connection_error=config.clear_cache_on_connection_error,
            clear_browser_cache=clear_browser_cache,
        )


async def with_browser_retry(
    operation: Callable[[], Awaitable[T]],
    options: RetryOptions | None = None,
) -> T:
    """
    Execute a browser operation with automatic retry on transient failures.

    Up to max_retries + 1 attempts are made. Errors that do not look
    transient are re-raised immediately. Between attempts the delay doubles
    (capped at max_delay_ms) with up to 30% random jitter added.

    Args:
        operation: Zero-argument coroutine function to run
        options: Retry options (defaults used if None)

    Returns:
        The operation's result

    Raises:
        Exception: The last error raised by the operation
    """
    opts = options or RetryOptions()

    if opts.operation_name and is_non_retryable_operation(opts.operation_name):
        return await operation()

    label = opts.operation_name or "operation"
    delay = opts.initial_delay_ms
    for attempt in range(opts.max_retries + 1):
        try:
            return await operation()
        except Exception as e:
            if not is_retryable_error(e):
                raise

            if (
                opts.clear_cache_on_connection_error
                and opts.clear_browser_cache is not None
                and is_connection_error(e)
            ):
                logger.debug(f"Connection error in {label}, clearing browser cache")
                opts.clear_browser_cache()

            if attempt == opts.max_retries:
                logger.error(f"{label} failed after {opts.max_retries + 1} attempts: {e}")
                raise

            jitter = delay * 0.3 * random.random()  # nosec B311
            wait_ms = delay + jitter
            logger.warning(
                f"{label} failed (attempt {attempt + 1}/{opts.max_retries + 1}), "
                f"retrying in {wait_ms:.0f}ms: {e}"
            )
            await asyncio.sleep(wait_ms / 1000)

            delay = min(delay * 2, opts.max_delay_ms)

    # max_retries < 0 leaves no attempts to make
    raise ValueError("max_retries must be >= 0")


def create_retry_wrapper(
    options: RetryOptions,
) -> Callable[..., Awaitable[T]]:
    """
    Create a retry wrapper with pre-configured options.

    The returned coroutine function takes (operation, operation_name=None).
    """

    async def wrapper(
        operation: Callable[[], Awaitable[T]], operation_name: str | None = None
    ) -> T:
        return await with_browser_retry(operation, replace(options, operation_name=operation_name))

    return wrapper
