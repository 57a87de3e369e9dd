"""
Configuration package for Tether.

This package provides Pydantic config models for all settings.

Module structure:
- app.py: TetherConfig, file loading, overrides and saving
- browser.py: CDP, watchdog, timeout, recovery and retry configs
- logging.py: LoggingSettings
"""

from tether.config.app import (
    ConfigError,
    TetherConfig,
    apply_overrides,
    load_browser_config,
    load_config,
    read_config_file,
    save_config,
)
from tether.config.browser import (
    BrowserConfig,
    CdpConfig,
    RecoveryConfig,
    RetryConfig,
    TimeoutConfig,
    WatchdogConfig,
    resolve_cdp_config,
)
from tether.config.logging import LoggingSettings

__all__ = [
    "BrowserConfig",
    "CdpConfig",
    "ConfigError",
    "LoggingSettings",
    "RecoveryConfig",
    "RetryConfig",
    "TetherConfig",
    "TimeoutConfig",
    "WatchdogConfig",
    "apply_overrides",
    "load_browser_config",
    "load_config",
    "read_config_file",
    "resolve_cdp_config",
    "save_config",
]
