"""
Browser launcher.

Launches a Chromium-family browser with CDP enabled, waits for the control
channel to come up, and terminates launched browsers. Whoever holds the
returned BrowserProcess owns its termination.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from tether.browser.detector import ReachabilityInfo, probe_cdp
from tether.browser.executables import BrowserExecutable, find_browser_executable
from tether.config.browser import (
    DEFAULT_CDP_PORT,
    BrowserConfig,
    default_profile_dir,
    resolve_cdp_config,
)

logger = logging.getLogger(__name__)

READY_TIMEOUT = 30.0
READY_POLL_INTERVAL = 0.2
TERMINATE_POLL_INTERVAL = 0.1


class LaunchError(RuntimeError):
    """Raised when a browser could not be launched with a reachable CDP port."""

    def __init__(self, message: str, port: int, exit_code: int | None = None):
        super().__init__(message)
        self.port = port
        self.exit_code = exit_code


@dataclass
class BrowserProcess:
    """A running browser process started by the launcher."""

    proc: Any  # asyncio.subprocess.Process
    pid: int
    cdp_port: int
    user_data_dir: str
    executable: BrowserExecutable
    started_at: int  # epoch milliseconds

    @property
    def exit_code(self) -> int | None:
        return self.proc.returncode


def build_launch_args(
    port: int,
    profile_dir: str,
    starting_url: str = "about:blank",
    headless: bool = False,
    no_sandbox: bool = False,
    platform: str = sys.platform,
) -> list[str]:
    """
    Build the browser command-line flags for an automation session.

    Args:
        port: Remote debugging port
        profile_dir: Persistent user-data directory
        starting_url: First page to open
        headless: Run without a window
        no_sandbox: Disable the sandbox (containers)
        platform: A sys.platform value

    Returns:
        List of arguments, excluding the executable itself
    """
    args = [
        f"--remote-debugging-port={port}",
        f"--user-data-dir={profile_dir}",
        "--no-first-run",
        "--no-default-browser-check",
        "--disable-sync",
        "--disable-background-networking",
        "--disable-component-update",
        "--disable-features=Translate,MediaRouter",
        "--disable-session-crashed-bubble",
        "--hide-crash-restore-bubble",
        "--password-store=basic",
        # Hide navigator.webdriver from automation detection
        "--disable-blink-features=AutomationControlled",
        starting_url,
    ]

    if headless:
        args.extend(["--headless=new", "--disable-gpu"])

    if no_sandbox:
        args.extend(["--no-sandbox", "--disable-setuid-sandbox"])

    if platform.startswith("linux"):
        args.append("--disable-dev-shm-usage")

    return args


async def _kill_orphan(proc: Any) -> None:
    with contextlib.suppress(ProcessLookupError):
        proc.kill()
    with contextlib.suppress(asyncio.TimeoutError):
        await asyncio.wait_for(proc.wait(), timeout=5.0)


async def launch_with_cdp(
    port: int = DEFAULT_CDP_PORT,
    profile_dir: str | None = None,
    starting_url: str = "about:blank",
    headless: bool = False,
    no_sandbox: bool = False,
    config: BrowserConfig | None = None,
    ready_timeout: float = READY_TIMEOUT,
) -> BrowserProcess:
    """
    Launch a browser with CDP enabled and wait until it is reachable.

    Args:
        port: Remote debugging port
        profile_dir: User-data directory (default: ~/.tether/browser/tether/user-data)
        starting_url: First page to open
        headless: Run without a window
        no_sandbox: Disable the sandbox
        config: Browser config, consulted for executable_path
        ready_timeout: Seconds to wait for the CDP endpoint

    Returns:
        BrowserProcess for the launched browser

    Raises:
        LaunchError: If no browser is installed, the process exits early,
            or the endpoint does not come up within ready_timeout
    """
    exe = find_browser_executable(config)
    if exe is None:
        raise LaunchError(
            "No supported browser found (Chrome/Brave/Edge/Chromium on macOS, Linux, or Windows).",
            port=port,
        )

    profile_dir = str(Path(profile_dir or default_profile_dir()).expanduser())
    try:
        Path(profile_dir).mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise LaunchError(
            f"Cannot create browser profile directory {profile_dir}: {e}", port=port
        ) from e

    args = build_launch_args(
        port,
        profile_dir,
        starting_url=starting_url,
        headless=headless,
        no_sandbox=no_sandbox,
    )

    logger.info(f"Launching {exe.kind} with CDP on port {port}")

    try:
        proc = await asyncio.create_subprocess_exec(
            exe.path,
            *args,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL,
            env={**os.environ, "HOME": str(Path.home())},
        )
    except OSError as e:
        raise LaunchError(f"Failed to spawn {exe.path}: {e}", port=port) from e

    started_at = int(time.time() * 1000)
    process = BrowserProcess(
        proc=proc,
        pid=proc.pid,
        cdp_port=port,
        user_data_dir=profile_dir,
        executable=exe,
        started_at=started_at,
    )

    loop = asyncio.get_running_loop()
    deadline = loop.time() + ready_timeout
    while loop.time() < deadline:
        info = await probe_cdp(port)
        if info.reachable:
            logger.info(f"Browser ready on port {port} (PID {proc.pid})")
            return process
        if proc.returncode is not None:
            raise LaunchError(
                f"Browser exited unexpectedly with code {proc.returncode}",
                port=port,
                exit_code=proc.returncode,
            )
        await asyncio.sleep(READY_POLL_INTERVAL)

    if proc.returncode is not None:
        raise LaunchError(
            f"Browser exited unexpectedly with code {proc.returncode}",
            port=port,
            exit_code=proc.returncode,
        )

    info = await probe_cdp(port)
    if info.reachable:
        logger.info(f"Browser ready on port {port} (PID {proc.pid})")
        return process

    logger.error(
        f"Browser on port {port} not reachable after {ready_timeout}s, killing PID {proc.pid}"
    )
    await _kill_orphan(proc)
    raise LaunchError("Browser failed to start within timeout", port=port)


async def terminate_browser(process: BrowserProcess, timeout: float = 5.0) -> None:
    """
    Gracefully terminate a browser process, force-killing it after timeout.

    Args:
        process: Process to terminate
        timeout: Seconds to wait after SIGTERM before SIGKILL
    """
    proc = process.proc
    if proc.returncode is not None:
        return

    try:
        proc.terminate()
    except ProcessLookupError:
        return

    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        if proc.returncode is not None:
            return
        await asyncio.sleep(TERMINATE_POLL_INTERVAL)

    if proc.returncode is None:
        logger.warning(f"Browser did not exit gracefully, force killing PID {process.pid}")
        with contextlib.suppress(ProcessLookupError):
            proc.kill()


async def ensure_browser(
    config: BrowserConfig | None = None,
) -> tuple[ReachabilityInfo, BrowserProcess | None]:
    """
    Attach to a browser already listening on the CDP port, or launch one.

    Args:
        config: Browser configuration (defaults used if None)

    Returns:
        Tuple of (reachability info, launched process). The process is None
        when an existing browser was found or auto_launch is disabled.

    Raises:
        LaunchError: If auto-launch was attempted and failed
    """
    config = config or BrowserConfig()
    cdp = resolve_cdp_config(config.cdp)
    probe_timeout = config.remote_cdp_timeout_ms / 1000

    info = await probe_cdp(cdp.port, timeout=probe_timeout)
    if info.reachable:
        logger.info(f"Attached to existing browser on port {cdp.port} ({info.browser_version})")
        return info, None

    if not cdp.auto_launch:
        logger.info(f"No browser on port {cdp.port} and auto_launch is disabled")
        return info, None

    process = await launch_with_cdp(
        port=cdp.port,
        profile_dir=cdp.profile_dir,
        headless=config.headless,
        no_sandbox=config.no_sandbox,
        config=config,
    )
    info = await probe_cdp(cdp.port, timeout=probe_timeout)
    return info, process
