"""
Connection watchdog.

Monitors the CDP control channel at a fixed interval, asks the owner to
reconnect when it drops, and asks for a full browser restart after
repeated failures. The watchdog never launches or kills a browser itself;
reconnect and restart behaviour is injected through callbacks.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from tether.browser.detector import probe_cdp
from tether.browser.launcher import BrowserProcess
from tether.config.browser import WatchdogConfig

logger = logging.getLogger(__name__)

ReconnectCallback = Callable[[], Awaitable[bool]]
RestartCallback = Callable[[], Awaitable[BrowserProcess | None]]
StatusChangeCallback = Callable[[bool], None]


def _merge_config(
    base: WatchdogConfig, overrides: WatchdogConfig | dict[str, Any] | None
) -> WatchdogConfig:
    if overrides is None:
        return base
    if isinstance(overrides, WatchdogConfig):
        return overrides
    return WatchdogConfig.model_validate({**base.model_dump(), **overrides})


class ConnectionWatchdog:
    """
    Connection watchdog for one CDP port.

    States:
    - Stopped: no timer (initial state, and after stop() or a failed restart)
    - Running: timer fires a check every check_interval_ms

    While running, is_reconnecting marks a reconnect or restart in flight.
    A check that fires while it is set, or while an earlier check is still
    probing, is skipped rather than queued.
    """

    def __init__(
        self,
        cdp_port: int,
        config: WatchdogConfig | dict[str, Any] | None = None,
    ):
        self.cdp_port = cdp_port
        self.config = _merge_config(WatchdogConfig(), config)

        # State tracking
        self.consecutive_failures = 0
        self.is_reconnecting = False
        self.last_connected_state = True

        self._check_in_flight = False
        self._timer_task: asyncio.Task[None] | None = None
        self._check_tasks: set[asyncio.Task[None]] = set()

        self._reconnect_callback: ReconnectCallback | None = None
        self._restart_callback: RestartCallback | None = None
        self._status_change_callback: StatusChangeCallback | None = None
        self._browser_process: BrowserProcess | None = None

    def on_reconnect(self, callback: ReconnectCallback) -> None:
        """Set the callback invoked when the connection drops."""
        self._reconnect_callback = callback

    def on_restart(self, callback: RestartCallback) -> None:
        """Set the callback invoked once max_retries consecutive checks fail."""
        self._restart_callback = callback

    def on_status_change(self, callback: StatusChangeCallback) -> None:
        """Set the callback invoked on connected <-> disconnected transitions."""
        self._status_change_callback = callback

    def set_browser_process(self, process: BrowserProcess | None) -> None:
        """Track the managed browser process (bookkeeping only)."""
        self._browser_process = process

    def get_browser_process(self) -> BrowserProcess | None:
        return self._browser_process

    def start(self) -> None:
        """
        Start monitoring.

        Runs one check immediately, then one every check_interval_ms.
        Must be called from a running event loop.
        """
        if not self.config.enabled:
            logger.info("Watchdog disabled, not starting")
            return

        if self._timer_task is not None:
            logger.warning("Watchdog already running")
            return

        logger.info(
            f"Starting watchdog: port={self.cdp_port}, "
            f"interval={self.config.check_interval_ms}ms, "
            f"max_retries={self.config.max_retries}"
        )
        self.consecutive_failures = 0
        self.last_connected_state = True

        self._schedule_check()
        self._timer_task = self._create_timer()

    def stop(self) -> None:
        """
        Stop monitoring.

        A reconnect or restart already in flight is left to finish.
        """
        if self._timer_task is None:
            return

        self._timer_task.cancel()
        self._timer_task = None
        logger.info(f"Watchdog stopped (port={self.cdp_port})")

    def is_running(self) -> bool:
        return self._timer_task is not None

    async def is_connected(self) -> bool:
        """Probe the CDP port now, outside the regular schedule."""
        info = await probe_cdp(self.cdp_port)
        return info.reachable

    def get_consecutive_failures(self) -> int:
        return self.consecutive_failures

    def reset_failures(self) -> None:
        self.consecutive_failures = 0

    def update_config(self, config: dict[str, Any]) -> None:
        """
        Merge a partial config update.

        If check_interval_ms changes while running, the timer is recreated
        with the new interval. No extra check is fired and the failure
        counter is left alone.

        Args:
            config: Fields of WatchdogConfig to replace

        Raises:
            pydantic.ValidationError: If the merged config is invalid
        """
        old_interval = self.config.check_interval_ms
        self.config = _merge_config(self.config, config)

        if self.config.check_interval_ms != old_interval and self._timer_task is not None:
            self._timer_task.cancel()
            self._timer_task = self._create_timer()

    def get_config(self) -> WatchdogConfig:
        return self.config.model_copy()

    def _create_timer(self) -> asyncio.Task[None]:
        return asyncio.get_running_loop().create_task(
            self._timer_loop(self.config.check_interval_ms / 1000),
            name=f"cdp-watchdog-{self.cdp_port}",
        )

    async def _timer_loop(self, interval: float) -> None:
        """Fire a check every interval seconds, independent of check duration."""
        loop = asyncio.get_running_loop()
        next_fire = loop.time() + interval
        while True:
            await asyncio.sleep(max(0.0, next_fire - loop.time()))
            self._schedule_check()
            next_fire += interval

    def _schedule_check(self) -> None:
        task = asyncio.get_running_loop().create_task(self._run_check())
        # Keep a reference until done so the task is not garbage collected
        self._check_tasks.add(task)
        task.add_done_callback(self._check_tasks.discard)

    async def _run_check(self) -> None:
        try:
            await self._check_connection()
        except Exception as e:
            logger.error(f"Connection check failed (port={self.cdp_port}): {e}")

    async def _check_connection(self) -> None:
        """Perform one watchdog tick, skipping it if another tick is active."""
        if self.is_reconnecting or self._check_in_flight:
            return

        self._check_in_flight = True
        try:
            await self._probe_and_act()
        finally:
            self._check_in_flight = False

    async def _probe_and_act(self) -> None:
        info = await probe_cdp(self.cdp_port)
        connected = info.reachable

        if connected != self.last_connected_state:
            self.last_connected_state = connected
            if self._status_change_callback:
                self._status_change_callback(connected)

        if connected:
            self.consecutive_failures = 0
            return

        self.consecutive_failures += 1
        logger.warning(
            f"Connection lost (port={self.cdp_port}, "
            f"failures={self.consecutive_failures}/{self.config.max_retries})"
        )

        if self.consecutive_failures >= self.config.max_retries:
            logger.error(
                f"Max retries ({self.config.max_retries}) reached, attempting browser restart"
            )
            if self.config.auto_restart:
                await self._restart_browser()
            else:
                logger.warning("Auto-restart disabled, giving up")
                self.stop()
            return

        await self._reconnect()

    async def _reconnect(self) -> None:
        if self._reconnect_callback is None:
            logger.warning("No reconnect callback configured")
            return

        self.is_reconnecting = True
        try:
            logger.info(
                f"Attempting reconnect ({self.consecutive_failures}/{self.config.max_retries})"
            )
            if await self._reconnect_callback():
                logger.info("Reconnect successful")
                self.consecutive_failures = 0
            else:
                logger.warning("Reconnect failed")
        except Exception as e:
            logger.error(f"Reconnect error: {e}")
        finally:
            self.is_reconnecting = False

    async def _restart_browser(self) -> None:
        if self._restart_callback is None:
            logger.error("No restart callback configured, stopping watchdog")
            self.stop()
            return

        self.is_reconnecting = True
        try:
            logger.info(f"Restarting browser (port={self.cdp_port})")
            process = await self._restart_callback()

            if process:
                self._browser_process = process
                self.consecutive_failures = 0
                logger.info(f"Browser restarted successfully (PID {process.pid})")
            else:
                logger.error("Browser restart failed, stopping watchdog")
                self.stop()
        except Exception as e:
            logger.error(f"Browser restart error: {e}")
            self.stop()
        finally:
            self.is_reconnecting = False


def create_watchdog(
    cdp_port: int,
    config: WatchdogConfig | dict[str, Any] | None = None,
) -> ConnectionWatchdog:
    """Create a watchdog for a CDP port."""
    return ConnectionWatchdog(cdp_port, config)
