"""
Session state recovery.

Holds one snapshot of user-visible page state (URL, title, scroll offset,
non-password form values) so a page can be resumed after the control
channel reconnects. The scripts produced here are evaluated in the page
by the caller; this module never talks to the browser.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any

from tether.config.browser import RecoveryConfig

logger = logging.getLogger(__name__)

# Timeouts for browser operations, in milliseconds
DEFAULT_TIMEOUT_CONFIG: dict[str, int] = {
    "connect": 60000,
    "operation": 30000,
    "idle": 300000,
}

PAGE_STATE_SCRIPT = """
(function() {
  const formData = {};
  document.querySelectorAll('input, textarea, select').forEach(el => {
    const name = el.name || el.id;
    if (name && el.type !== 'password') {
      formData[name] = el.value;
    }
  });
  return {
    url: window.location.href,
    title: document.title,
    scrollX: window.scrollX,
    scrollY: window.scrollY,
    formData: formData
  };
})()
"""

_RESTORE_FORM_TEMPLATE = """
  const formData = %s;
  Object.entries(formData).forEach(([name, value]) => {
    const el = document.querySelector('[name="' + CSS.escape(name) + '"]')
      || document.getElementById(name);
    if (el && el.type !== 'password') {
      el.value = value;
    }
  });
"""


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class ScrollPosition:
    x: int = 0
    y: int = 0


@dataclass
class SessionSnapshot:
    """Page state captured for recovery."""

    active_tab_url: str
    active_tab_title: str
    scroll_position: ScrollPosition = field(default_factory=ScrollPosition)
    form_data: dict[str, str] = field(default_factory=dict)
    captured_at: int = 0  # epoch milliseconds, set by SessionStateRecovery


def _merge_options(
    base: RecoveryConfig, overrides: RecoveryConfig | dict[str, Any] | None
) -> RecoveryConfig:
    if overrides is None:
        return base
    if isinstance(overrides, RecoveryConfig):
        return overrides
    return RecoveryConfig.model_validate({**base.model_dump(), **overrides})


class SessionStateRecovery:
    """
    Snapshot store for resuming a page after reconnection.

    At most one snapshot is held; saving replaces it. A snapshot older than
    max_snapshot_age_ms is treated exactly like a missing one.
    """

    def __init__(self, options: RecoveryConfig | dict[str, Any] | None = None):
        self._snapshot: SessionSnapshot | None = None
        self._options = _merge_options(RecoveryConfig(), options)

    def save_snapshot(self, snapshot: SessionSnapshot) -> None:
        """Store a copy of snapshot, stamped with the current time."""
        self._snapshot = replace(
            snapshot,
            scroll_position=replace(snapshot.scroll_position),
            form_data=dict(snapshot.form_data),
            captured_at=_now_ms(),
        )
        logger.info(f"Snapshot saved: {snapshot.active_tab_url[:50]}")

    def get_snapshot(self) -> SessionSnapshot | None:
        """Return the stored snapshot regardless of age."""
        return self._snapshot

    def is_snapshot_valid(self) -> bool:
        if self._snapshot is None:
            return False
        age = _now_ms() - self._snapshot.captured_at
        return age < self._options.max_snapshot_age_ms

    def clear_snapshot(self) -> None:
        self._snapshot = None
        logger.info("Snapshot cleared")

    def get_recovery_data(self) -> SessionSnapshot | None:
        """Return the snapshot if it is still fresh, else None."""
        if not self.is_snapshot_valid():
            logger.warning("Snapshot is stale or missing")
            return None
        return self._snapshot

    def get_restore_script(self) -> str | None:
        """
        Restore script for the current snapshot, honouring the restore options.

        Returns:
            Script text, or None if there is no fresh snapshot
        """
        snapshot = self.get_recovery_data()
        if snapshot is None:
            return None
        return self.get_restore_state_script(
            snapshot,
            restore_scroll_position=self._options.restore_scroll_position,
            restore_form_data=self._options.restore_form_data,
        )

    def update_options(self, options: dict[str, Any]) -> None:
        self._options = _merge_options(self._options, options)

    def get_options(self) -> RecoveryConfig:
        return self._options.model_copy()

    @staticmethod
    def create_snapshot_from_page_state(page_state: Mapping[str, Any]) -> SessionSnapshot:
        """
        Build a snapshot from the result of get_page_state_script().

        Args:
            page_state: Mapping with url, title, scrollX, scrollY and formData

        Returns:
            SessionSnapshot stamped with the current time
        """
        return SessionSnapshot(
            active_tab_url=page_state["url"],
            active_tab_title=page_state.get("title") or "",
            scroll_position=ScrollPosition(
                x=round(page_state.get("scrollX") or 0),
                y=round(page_state.get("scrollY") or 0),
            ),
            form_data={str(k): str(v) for k, v in (page_state.get("formData") or {}).items()},
            captured_at=_now_ms(),
        )

    @staticmethod
    def get_page_state_script() -> str:
        """JavaScript that returns the current page state when evaluated."""
        return PAGE_STATE_SCRIPT

    @staticmethod
    def get_restore_state_script(
        snapshot: SessionSnapshot,
        restore_scroll_position: bool = True,
        restore_form_data: bool = True,
    ) -> str:
        """
        JavaScript that restores scroll position and form values.

        Form values are only included when the snapshot has any. Values are
        embedded as JSON, so they cannot break out of the script.

        Args:
            snapshot: Snapshot to restore
            restore_scroll_position: Include the scrollTo call
            restore_form_data: Include form field population

        Returns:
            Script text
        """
        scroll_script = ""
        if restore_scroll_position:
            x = int(snapshot.scroll_position.x)
            y = int(snapshot.scroll_position.y)
            scroll_script = f"window.scrollTo({x}, {y});"

        form_script = ""
        if restore_form_data and snapshot.form_data:
            form_script = _RESTORE_FORM_TEMPLATE % json.dumps(snapshot.form_data)

        return f"(function() {{ {scroll_script} {form_script} }})()"


def create_session_state_recovery(
    options: RecoveryConfig | dict[str, Any] | None = None,
) -> SessionStateRecovery:
    """Create a session state recovery store."""
    return SessionStateRecovery(options)
