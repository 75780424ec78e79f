"""HTTP helpers for talking to a running figbridge daemon."""

from __future__ import annotations

from typing import Any

import httpx

from figbridge.config.schema import Config
from figbridge.utils.exceptions import FigbridgeError, TransportError

HEALTH_TIMEOUT = 1.0
EXEC_TIMEOUT = 60.0


def get_daemon_base_url(config: Config) -> str:
    """Build daemon base URL from local config."""
    host = config.daemon.host
    if host in {"0.0.0.0", "::"}:
        host = "127.0.0.1"
    return f"http://{host}:{config.daemon.port}"


def daemon_is_running(config: Config, *, transport: httpx.BaseTransport | None = None) -> bool:
    """True when GET /health answers 200 within a second."""
    try:
        with httpx.Client(timeout=HEALTH_TIMEOUT, transport=transport) as client:
            resp = client.get(f"{get_daemon_base_url(config)}/health")
    except httpx.HTTPError:
        return False
    return resp.status_code == 200


def daemon_exec(
    config: Config,
    action: str,
    payload: dict[str, Any] | None = None,
    *,
    transport: httpx.BaseTransport | None = None,
) -> Any:
    """POST one action to /exec and return its result.

    Raises TransportError when the daemon cannot be reached, and
    FigbridgeError carrying the daemon's code when it answers with an error.
    """
    url = f"{get_daemon_base_url(config)}/exec"
    try:
        with httpx.Client(timeout=EXEC_TIMEOUT, transport=transport) as client:
            resp = client.post(url, json={"action": action, **(payload or {})})
        body = resp.json()
    except httpx.HTTPError as exc:
        raise TransportError(f"Daemon unavailable: {exc}", url=url) from exc
    except ValueError as exc:
        raise TransportError(f"Daemon sent a non-JSON reply ({resp.status_code})", url=url) from exc
    if not isinstance(body, dict):
        raise TransportError("Daemon reply is not a JSON object", url=url)
    if "error" in body:
        raise FigbridgeError(
            str(body["error"]),
            code=str(body.get("code") or "DAEMON_ERROR"),
            details={"status_code": resp.status_code},
        )
    return body.get("result")
