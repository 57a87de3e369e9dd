"""Browser executable discovery."""

from __future__ import annotations

import logging
import os
import shutil
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from tether.config.browser import BrowserConfig

logger = logging.getLogger(__name__)

BrowserKind = Literal["chrome", "brave", "edge", "chromium", "canary", "custom"]


@dataclass(frozen=True)
class BrowserExecutable:
    """A supported browser binary found on this machine."""

    kind: BrowserKind
    path: str


def _mac_candidates() -> list[tuple[BrowserKind, str]]:
    home = str(Path.home())
    candidates: list[tuple[BrowserKind, str]] = []
    for kind, app, binary in [
        ("chrome", "Google Chrome.app", "Google Chrome"),
        ("brave", "Brave Browser.app", "Brave Browser"),
        ("edge", "Microsoft Edge.app", "Microsoft Edge"),
        ("chromium", "Chromium.app", "Chromium"),
        ("canary", "Google Chrome Canary.app", "Google Chrome Canary"),
    ]:
        candidates.append((kind, f"/Applications/{app}/Contents/MacOS/{binary}"))
        candidates.append((kind, f"{home}/Applications/{app}/Contents/MacOS/{binary}"))
    return candidates


def _linux_candidates() -> list[tuple[BrowserKind, str]]:
    candidates: list[tuple[BrowserKind, str]] = []
    for kind, cmd in [
        ("chrome", "google-chrome"),
        ("chrome", "google-chrome-stable"),
        ("brave", "brave-browser"),
        ("brave", "brave-browser-stable"),
        ("edge", "microsoft-edge"),
        ("edge", "microsoft-edge-stable"),
        ("chromium", "chromium"),
        ("chromium", "chromium-browser"),
    ]:
        path = shutil.which(cmd)
        if path:
            candidates.append((kind, path))
    # Snap builds ignore --user-data-dir outside $HOME, keep them last
    candidates.append(("chromium", "/snap/bin/chromium"))
    return candidates


def _windows_candidates() -> list[tuple[BrowserKind, str]]:
    local = os.environ.get("LOCALAPPDATA", "")
    program_files = os.environ.get("ProgramFiles", r"C:\Program Files")
    program_files_x86 = os.environ.get("ProgramFiles(x86)", r"C:\Program Files (x86)")

    candidates: list[tuple[BrowserKind, str]] = []
    for kind, rel in [
        ("chrome", r"Google\Chrome\Application\chrome.exe"),
        ("brave", r"BraveSoftware\Brave-Browser\Application\brave.exe"),
        ("edge", r"Microsoft\Edge\Application\msedge.exe"),
        ("chromium", r"Chromium\Application\chrome.exe"),
        ("canary", r"Google\Chrome SxS\Application\chrome.exe"),
    ]:
        for base in (local, program_files, program_files_x86):
            if base:
                candidates.append((kind, str(Path(base) / rel)))
    return candidates


def browser_candidates(platform: str = sys.platform) -> list[tuple[BrowserKind, str]]:
    """
    Ordered (kind, path) candidates for a platform.

    Args:
        platform: A sys.platform value

    Returns:
        Candidates in search order; empty for unsupported platforms
    """
    if platform == "darwin":
        return _mac_candidates()
    if platform.startswith("linux"):
        return _linux_candidates()
    if platform == "win32":
        return _windows_candidates()
    return []


def find_browser_executable(
    config: BrowserConfig | None = None,
    platform: str = sys.platform,
) -> BrowserExecutable | None:
    """
    Find a supported browser executable.

    An explicit executable_path in config wins when it exists. Otherwise the
    first installed candidate for the platform is returned.

    Args:
        config: Browser configuration (optional)
        platform: A sys.platform value (defaults to the running platform)

    Returns:
        BrowserExecutable, or None if no supported browser was found
    """
    if config and config.executable_path:
        explicit = Path(config.executable_path).expanduser()
        if explicit.is_file():
            return BrowserExecutable(kind="custom", path=str(explicit))
        logger.warning(f"Configured browser executable not found: {explicit}")

    for kind, candidate in browser_candidates(platform):
        if Path(candidate).is_file():
            return BrowserExecutable(kind=kind, path=candidate)

    return None
