"""
CDP reachability detector.

Probes the /json/version metadata endpoint of a remote-debugging port.
An unreachable endpoint is a normal result, so probe_cdp never raises.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlsplit, urlunsplit

import httpx

from tether.config.browser import DEFAULT_CDP_PORT

logger = logging.getLogger(__name__)

DEFAULT_PROBE_TIMEOUT = 1.5

_LOOPBACK_HOSTS = {"localhost", "127.0.0.1", "::1"}
_WILDCARD_HOSTS = {"0.0.0.0", "::"}


@dataclass
class ReachabilityInfo:
    """CDP information for a browser port."""

    reachable: bool
    port: int
    web_socket_url: str | None = None
    browser_version: str | None = None
    user_agent: str | None = None


def normalize_cdp_ws_url(ws_url: str, cdp_url: str) -> str:
    """
    Rewrite a websocket debugger URL against the host that was actually queried.

    Browsers report loopback or wildcard hosts in webSocketDebuggerUrl even
    when reached through another interface. A wildcard host is never
    connectable and always takes the queried host. A loopback host is
    replaced (host and port) only when the queried host is remote.

    Args:
        ws_url: URL from the webSocketDebuggerUrl field
        cdp_url: Base HTTP(S) URL the version endpoint was fetched from

    Returns:
        Normalized websocket URL
    """
    ws = urlsplit(ws_url)
    cdp = urlsplit(cdp_url)

    scheme = ws.scheme
    if cdp.scheme == "https" and scheme == "ws":
        scheme = "wss"

    ws_host = ws.hostname or ""
    cdp_host = cdp.hostname or ""
    netloc = ws.netloc
    if cdp_host and ws_host in _WILDCARD_HOSTS:
        netloc = _join_host_port(cdp_host, ws.port)
    elif cdp_host and ws_host in _LOOPBACK_HOSTS and cdp_host not in _LOOPBACK_HOSTS:
        netloc = _join_host_port(cdp_host, cdp.port or ws.port)

    return urlunsplit((scheme, netloc, ws.path, ws.query, ws.fragment))


def _join_host_port(host: str, port: int | None) -> str:
    if ":" in host:
        host = f"[{host}]"
    return f"{host}:{port}" if port else host


async def probe_cdp(
    port: int = DEFAULT_CDP_PORT,
    host: str = "127.0.0.1",
    timeout: float = DEFAULT_PROBE_TIMEOUT,
) -> ReachabilityInfo:
    """
    Detect whether a browser is listening with CDP enabled on a port.

    Args:
        port: Remote debugging port
        host: Host to query
        timeout: Request timeout in seconds

    Returns:
        ReachabilityInfo; reachable is True only for a 2xx response whose
        body is a JSON object
    """
    cdp_url = f"http://{_join_host_port(host, port)}"
    info = ReachabilityInfo(reachable=False, port=port)

    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            resp = await client.get(
                f"{cdp_url}/json/version",
                headers={"User-Agent": "tether"},
            )
        if not resp.is_success:
            logger.debug(f"CDP probe on port {port} returned status {resp.status_code}")
            return info

        data: Any = resp.json()
    except httpx.HTTPError as e:
        logger.debug(f"CDP probe on port {port} failed: {e}")
        return info
    except ValueError as e:
        logger.debug(f"CDP probe on port {port} returned malformed body: {e}")
        return info
    except Exception as e:
        logger.warning(f"CDP probe on port {port} failed unexpectedly: {e}")
        return info

    if not isinstance(data, dict):
        return info

    info.reachable = True
    browser = data.get("Browser")
    user_agent = data.get("User-Agent")
    ws_url = data.get("webSocketDebuggerUrl")
    info.browser_version = browser if isinstance(browser, str) else None
    info.user_agent = user_agent if isinstance(user_agent, str) else None
    if isinstance(ws_url, str) and ws_url:
        info.web_socket_url = normalize_cdp_ws_url(ws_url, cdp_url)

    return info
