"""
CDP control channel keep-alive.

- detector: reachability probe against /json/version
- executables / launcher: find, launch and terminate a browser
- watchdog: periodic checks with reconnect and restart callbacks
- recovery: page state snapshot and restore scripts
- retry: backoff wrapper for individual browser operations
"""

from tether.browser.detector import ReachabilityInfo, normalize_cdp_ws_url, probe_cdp
from tether.browser.executables import BrowserExecutable, find_browser_executable
from tether.browser.launcher import (
    BrowserProcess,
    LaunchError,
    build_launch_args,
    ensure_browser,
    launch_with_cdp,
    terminate_browser,
)
from tether.browser.recovery import (
    DEFAULT_TIMEOUT_CONFIG,
    ScrollPosition,
    SessionSnapshot,
    SessionStateRecovery,
    create_session_state_recovery,
)
from tether.browser.retry import (
    RetryOptions,
    create_retry_wrapper,
    is_connection_error,
    is_non_retryable_operation,
    is_retryable_error,
    with_browser_retry,
)
from tether.browser.watchdog import ConnectionWatchdog, create_watchdog

__all__ = [
    "DEFAULT_TIMEOUT_CONFIG",
    "BrowserExecutable",
    "BrowserProcess",
    "ConnectionWatchdog",
    "LaunchError",
    "ReachabilityInfo",
    "RetryOptions",
    "ScrollPosition",
    "SessionSnapshot",
    "SessionStateRecovery",
    "build_launch_args",
    "create_retry_wrapper",
    "create_session_state_recovery",
    "create_watchdog",
    "ensure_browser",
    "find_browser_executable",
    "is_connection_error",
    "is_non_retryable_operation",
    "is_retryable_error",
    "launch_with_cdp",
    "normalize_cdp_ws_url",
    "probe_cdp",
    "terminate_browser",
    "with_browser_retry",
]
