"""Logging setup helpers."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from tether.config.logging import LoggingSettings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _log_level(settings: LoggingSettings) -> int:
    level: int = getattr(logging, settings.level.upper())
    return level


def setup_logging(settings: LoggingSettings | None = None, verbose: bool = False) -> None:
    """
    Configure console logging from LoggingSettings.

    The httpx and httpcore loggers are held at WARNING or above.

    Args:
        settings: Logging settings (defaults used if None)
        verbose: Force DEBUG regardless of settings.level
    """
    settings = settings or LoggingSettings()
    log_level = logging.DEBUG if verbose else _log_level(settings)
    logging.basicConfig(level=log_level, format=LOG_FORMAT, datefmt=DATE_FORMAT)

    for name in ("httpx", "httpcore"):
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))


def setup_file_logging(settings: LoggingSettings | None = None) -> logging.Logger:
    """
    Attach a rotating file handler to the "tether" logger.

    Safe to call repeatedly: a logger that already has a file handler
    for the same path is returned unchanged.

    Args:
        settings: Logging settings (defaults used if None)

    Returns:
        The configured "tether" logger
    """
    settings = settings or LoggingSettings()
    logger = logging.getLogger("tether")
    logger.setLevel(_log_level(settings))

    log_file_path = Path(settings.file).expanduser()
    for handler in logger.handlers:
        if isinstance(handler, RotatingFileHandler) and Path(
            handler.baseFilename
        ) == log_file_path.resolve():
            return logger

    log_file_path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = RotatingFileHandler(
        log_file_path,
        maxBytes=settings.max_size_mb * 1024 * 1024,
        backupCount=settings.backup_count,
    )
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(file_handler)

    return logger
