"""
Configuration loading for Tether.

A config file holds a `logging` and a `browser` section; values resolve
with priority overrides > file > defaults. load_browser_config returns the
browser section ready to hand to ensure_browser, ConnectionWatchdog,
SessionStateRecovery and RetryOptions.from_config.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError

from tether.config.browser import BrowserConfig, resolve_cdp_config
from tether.config.logging import LoggingSettings

DEFAULT_CONFIG_FILE = "~/.tether/config.yaml"
CONFIG_SUFFIXES = (".yaml", ".yml", ".json")


class ConfigError(ValueError):
    """A config file could not be read or failed validation."""

    def __init__(self, message: str, config_file: str, errors: list[str] | None = None):
        super().__init__(message)
        self.config_file = config_file
        self.errors = errors or []


class TetherConfig(BaseModel):
    """Top-level configuration file layout."""

    logging: LoggingSettings = Field(
        default_factory=LoggingSettings,
        description="Logging configuration",
    )
    browser: BrowserConfig = Field(
        default_factory=BrowserConfig,
        description="Browser control channel configuration",
    )


def read_config_file(config_file: str) -> dict[str, Any]:
    """
    Read a YAML or JSON config file into a dict.

    Args:
        config_file: Path to a .yaml, .yml or .json file

    Returns:
        Parsed mapping, empty if the file is missing or empty

    Raises:
        ConfigError: If the suffix is unsupported, the content does not
            parse, or the top level is not a mapping
    """
    path = Path(config_file).expanduser()
    if not path.exists():
        return {}

    if path.suffix.lower() not in CONFIG_SUFFIXES:
        raise ConfigError(
            f"Unsupported config file type {path.suffix!r} for {path} "
            f"(expected one of {', '.join(CONFIG_SUFFIXES)})",
            str(path),
        )

    try:
        # JSON documents are valid YAML
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError as e:
        raise ConfigError(f"Cannot parse config file {path}: {e}", str(path)) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(
            f"Config file {path} must contain a mapping, got {type(data).__name__}",
            str(path),
        )
    return data


def apply_overrides(
    config_dict: dict[str, Any],
    overrides: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Apply overrides to a config dictionary in place.

    Keys may be dotted (e.g. "browser.watchdog.max_retries") to reach
    into nested sections; missing intermediate sections are created.

    Args:
        config_dict: Configuration dictionary
        overrides: Dictionary of overrides

    Returns:
        Configuration dictionary with overrides applied
    """
    for key, value in (overrides or {}).items():
        *parents, leaf = key.split(".")
        current = config_dict
        for part in parents:
            if not isinstance(current.get(part), dict):
                current[part] = {}
            current = current[part]
        current[leaf] = value

    return config_dict


def _describe_errors(error: ValidationError) -> list[str]:
    return [
        f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in error.errors()
    ]


def load_config(
    config_file: str | None = None,
    overrides: dict[str, Any] | None = None,
    create_default: bool = False,
) -> TetherConfig:
    """
    Load and validate the full configuration.

    Args:
        config_file: Path to the config file (default: ~/.tether/config.yaml)
        overrides: Dotted-key overrides applied on top of the file
        create_default: Write a default config file if none exists

    Returns:
        Validated TetherConfig

    Raises:
        ConfigError: If the file is unreadable or a section is invalid.
            The message lists each failing field by dotted path, e.g.
            "browser.cdp.port: Value error, Port must be between 1 and 65535".
    """
    config_file = config_file or DEFAULT_CONFIG_FILE

    if create_default and not Path(config_file).expanduser().exists():
        save_config(TetherConfig(), config_file)

    config_dict = apply_overrides(read_config_file(config_file), overrides)

    try:
        return TetherConfig.model_validate(config_dict)
    except ValidationError as e:
        errors = _describe_errors(e)
        raise ConfigError(
            f"Invalid configuration in {config_file}:\n  " + "\n  ".join(errors),
            config_file,
            errors,
        ) from e


def load_browser_config(
    config_file: str | None = None,
    overrides: dict[str, Any] | None = None,
) -> BrowserConfig:
    """
    Load the browser section with the CDP profile directory resolved.

    Args:
        config_file: Path to the config file (default: ~/.tether/config.yaml)
        overrides: Dotted-key overrides relative to the browser section,
            e.g. {"watchdog.check_interval_ms": 1000}

    Returns:
        BrowserConfig whose cdp.profile_dir is an absolute path

    Raises:
        ConfigError: If the file is unreadable or invalid
    """
    prefixed = {f"browser.{key}": value for key, value in (overrides or {}).items()}
    browser = load_config(config_file, prefixed).browser
    return browser.model_copy(update={"cdp": resolve_cdp_config(browser.cdp)})


def save_config(config: TetherConfig, config_file: str | None = None) -> Path:
    """
    Write configuration as YAML, readable only by the owner.

    Unset optional fields (executable_path, cdp.profile_dir) are omitted.

    Args:
        config: Configuration to save
        config_file: Destination (default: ~/.tether/config.yaml)

    Returns:
        Path of the written file
    """
    path = Path(config_file or DEFAULT_CONFIG_FILE).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w") as f:
        yaml.safe_dump(
            config.model_dump(mode="json", exclude_none=True),
            f,
            default_flow_style=False,
            sort_keys=False,
        )

    path.chmod(0o600)
    return path
