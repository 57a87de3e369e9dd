"""Tether - keep a CDP-controlled browser reachable.

Detects and launches a remote-debugging browser, watches the control
channel with automatic reconnect and restart, snapshots page state for
recovery, and retries transient browser operations with backoff.
"""

__version__ = "0.1.0"
