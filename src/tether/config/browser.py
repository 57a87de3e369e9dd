"""
Browser configuration module.

Contains Pydantic config models for the CDP control channel:
- CdpConfig: Port, auto-launch and profile directory
- WatchdogConfig: Connection watchdog polling and restart policy
- TimeoutConfig: Connect, operation and idle timeouts
- RecoveryConfig: Session snapshot staleness and restore toggles
- RetryConfig: Backoff settings for retried browser operations
- BrowserConfig: Top-level browser section tying the above together

Every field has a default, so any subset may be supplied in the config file.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field, field_validator

__all__ = [
    "DEFAULT_CDP_PORT",
    "DEFAULT_PROFILE_NAME",
    "BrowserConfig",
    "CdpConfig",
    "RecoveryConfig",
    "RetryConfig",
    "TimeoutConfig",
    "WatchdogConfig",
    "default_profile_dir",
    "resolve_cdp_config",
]

DEFAULT_CDP_PORT = 9222
DEFAULT_PROFILE_NAME = "tether"


def default_profile_dir() -> str:
    """Default persistent user-data directory for launched browsers."""
    return str(Path("~/.tether/browser").expanduser() / DEFAULT_PROFILE_NAME / "user-data")


def _validate_port(v: int) -> int:
    if not (1 <= v <= 65535):
        raise ValueError("Port must be between 1 and 65535")
    return v


class CdpConfig(BaseModel):
    """CDP (Chrome DevTools Protocol) control channel configuration."""

    port: int = Field(
        default=DEFAULT_CDP_PORT,
        description="Remote debugging port",
    )
    auto_launch: bool = Field(
        default=True,
        description="Launch a browser with CDP enabled if none is reachable",
    )
    profile_dir: str | None = Field(
        default=None,
        description="Browser profile directory (persistent login state). "
        "Defaults to ~/.tether/browser/tether/user-data",
    )

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate port number is in valid range."""
        return _validate_port(v)


class WatchdogConfig(BaseModel):
    """Configuration for the CDP connection watchdog."""

    enabled: bool = Field(
        default=True,
        description="Enable connection watchdog for auto-reconnect",
    )
    check_interval_ms: int = Field(
        default=5000,
        ge=10,
        description="Milliseconds between connection checks",
    )
    max_retries: int = Field(
        default=3,
        ge=1,
        description="Consecutive failures before restarting the browser",
    )
    auto_restart: bool = Field(
        default=True,
        description="Restart the browser once max_retries is reached",
    )


class TimeoutConfig(BaseModel):
    """Timeout configuration for browser operations."""

    connect_ms: int = Field(
        default=60000,
        gt=0,
        description="Connection timeout in milliseconds",
    )
    operation_ms: int = Field(
        default=30000,
        gt=0,
        description="Single operation timeout in milliseconds",
    )
    idle_ms: int = Field(
        default=300000,
        gt=0,
        description="Idle timeout before disconnecting, in milliseconds",
    )


class RecoveryConfig(BaseModel):
    """Session state recovery options."""

    max_snapshot_age_ms: int = Field(
        default=60000,
        gt=0,
        description="Age after which a saved snapshot is considered stale",
    )
    restore_scroll_position: bool = Field(
        default=True,
        description="Restore scroll position after reconnect",
    )
    restore_form_data: bool = Field(
        default=True,
        description="Restore non-sensitive form field values after reconnect",
    )


class RetryConfig(BaseModel):
    """Backoff settings for retried browser operations."""

    max_retries: int = Field(
        default=3,
        ge=0,
        description="Retry attempts after the first failure",
    )
    initial_delay_ms: int = Field(
        default=500,
        ge=0,
        description="Delay before the first retry",
    )
    max_delay_ms: int = Field(
        default=10000,
        ge=0,
        description="Upper bound for the exponential backoff delay",
    )
    clear_cache_on_connection_error: bool = Field(
        default=True,
        description="Drop the cached browser connection on connection errors",
    )


class BrowserConfig(BaseModel):
    """Browser control channel configuration."""

    enabled: bool = Field(
        default=True,
        description="Enable browser automation",
    )
    executable_path: str | None = Field(
        default=None,
        description="Override the browser executable path (all platforms)",
    )
    headless: bool = Field(
        default=False,
        description="Start the browser headless",
    )
    no_sandbox: bool = Field(
        default=False,
        description="Pass --no-sandbox to the browser (Linux containers)",
    )
    remote_cdp_timeout_ms: int = Field(
        default=1500,
        gt=0,
        description="HTTP timeout for the CDP reachability probe",
    )
    cdp: CdpConfig = Field(
        default_factory=CdpConfig,
        description="CDP control channel configuration",
    )
    watchdog: WatchdogConfig = Field(
        default_factory=WatchdogConfig,
        description="Connection watchdog configuration",
    )
    timeouts: TimeoutConfig = Field(
        default_factory=TimeoutConfig,
        description="Browser operation timeouts",
    )
    recovery: RecoveryConfig = Field(
        default_factory=RecoveryConfig,
        description="Session state recovery options",
    )
    retry: RetryConfig = Field(
        default_factory=RetryConfig,
        description="Operation retry backoff settings",
    )


def resolve_cdp_config(config: CdpConfig | None = None) -> CdpConfig:
    """
    Get the CDP config with defaults applied.

    Args:
        config: Partially specified CDP config, or None for all defaults

    Returns:
        CdpConfig with profile_dir filled in
    """
    config = config or CdpConfig()
    profile_dir = config.profile_dir or default_profile_dir()
    return config.model_copy(update={"profile_dir": str(Path(profile_dir).expanduser())})
