"""DevTools protocol connection: request/response correlation over one websocket.

One Connection owns an id counter and a map of pending futures. Every request
frame carries a fresh id; a single reader task matches reply frames back to
their futures by id, so any number of callers can await replies concurrently
and in any arrival order.
"""

from __future__ import annotations

import asyncio
import json
import time
from contextlib import suppress
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

import httpx
import websockets
from loguru import logger
from websockets.exceptions import WebSocketException

from figbridge.cdp.discovery import TargetInfo, TargetSelector, find_target
from figbridge.config.schema import DebugConfig
from figbridge.utils.exceptions import (
    ConnectTimeout,
    NotConnected,
    RemoteFault,
    RequestTimeout,
    TransportError,
)

TransportFactory = Callable[[str], Awaitable[Any]]

EVALUATE_METHOD = "Runtime.evaluate"
DEFAULT_FAULT_MESSAGE = "Evaluation error"

_UNSET: Any = object()


async def open_websocket(url: str) -> Any:
    """Default transport: a websocket client with no frame size limit."""
    return await websockets.connect(url, max_size=None, ping_interval=None)


@dataclass
class PendingRequest:
    request_id: int
    method: str
    future: asyncio.Future[dict[str, Any]]
    created_at: float = field(default_factory=time.monotonic)


def extract_fault_message(details: dict[str, Any]) -> str:
    """Pick the most specific diagnostic from an exceptionDetails object."""
    exception = details.get("exception")
    if not isinstance(exception, dict):
        exception = {}
    for candidate in (exception.get("value"), exception.get("description"), details.get("text")):
        if candidate is None or candidate == "":
            continue
        return candidate if isinstance(candidate, str) else json.dumps(candidate)
    return DEFAULT_FAULT_MESSAGE


class Connection:
    """A single DevTools session to one page."""

    def __init__(
        self,
        debug: DebugConfig | None = None,
        *,
        transport_factory: TransportFactory | None = None,
    ):
        self.debug = debug or DebugConfig()
        self._transport_factory = transport_factory or open_websocket
        self._ws: Any = None
        self._reader: asyncio.Task | None = None
        self._next_id = 0
        self._pending: dict[int, PendingRequest] = {}
        self.url: str | None = None
        self.target: TargetInfo | None = None

    @property
    def connected(self) -> bool:
        return self._ws is not None

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def connect(
        self,
        selector: TargetSelector | None = None,
        *,
        listing_transport: httpx.AsyncBaseTransport | None = None,
    ) -> "Connection":
        """Discover a matching page and open a session to it."""
        selector = selector or TargetSelector(url_filters=list(self.debug.url_filters))
        target = await find_target(selector, self.debug, transport=listing_transport)
        await self.open(target.web_socket_debugger_url)
        self.target = target
        return self

    async def open(self, url: str) -> "Connection":
        """Open the transport to a known websocket URL."""
        if self._ws is not None:
            raise TransportError("Connection is already open", url=self.url)
        timeout = self.debug.connect_timeout
        try:
            ws = await asyncio.wait_for(self._transport_factory(url), timeout=timeout)
        except asyncio.TimeoutError as exc:
            raise ConnectTimeout(url, timeout) from exc
        except (OSError, WebSocketException) as exc:
            raise TransportError(f"Failed to connect to {url}: {exc}", url=url) from exc
        self._ws = ws
        self.url = url
        self._reader = asyncio.create_task(self._read_loop(ws))
        logger.info(f"Connected to {url}")
        return self

    async def send(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        *,
        timeout: float | None = _UNSET,
    ) -> dict[str, Any]:
        """Send one request and wait for the reply carrying the same id."""
        ws = self._ws
        if ws is None:
            raise NotConnected()
        self._next_id += 1
        request_id = self._next_id
        fut: asyncio.Future[dict[str, Any]] = asyncio.get_running_loop().create_future()
        self._pending[request_id] = PendingRequest(request_id=request_id, method=method, future=fut)
        frame = json.dumps({"id": request_id, "method": method, "params": params or {}})
        wait = self.debug.request_timeout if timeout is _UNSET else timeout
        try:
            try:
                await ws.send(frame)
            except (OSError, WebSocketException) as exc:
                raise TransportError(f"Failed to send {method}: {exc}", url=self.url) from exc
            logger.debug(f"-> #{request_id} {method}")
            if wait is None:
                reply = await fut
            else:
                reply = await asyncio.wait_for(fut, timeout=wait)
        except asyncio.TimeoutError as exc:
            raise RequestTimeout(request_id, method, wait) from exc
        finally:
            self._pending.pop(request_id, None)

        error = reply.get("error")
        if isinstance(error, dict):
            raise TransportError(
                f"Protocol error {error.get('code', '?')} on {method}: {error.get('message', 'unknown')}",
                url=self.url,
            )
        result = reply.get("result")
        return result if isinstance(result, dict) else {}

    async def evaluate(self, script: str, *, timeout: float | None = _UNSET) -> Any:
        """Run a script in the page and return its JSON value.

        Raises RemoteFault when the script throws or its promise rejects.
        """
        result = await self.send(
            EVALUATE_METHOD,
            {"expression": script, "returnByValue": True, "awaitPromise": True},
            timeout=timeout,
        )
        details = result.get("exceptionDetails")
        if details:
            raw = details if isinstance(details, dict) else {"text": str(details)}
            raise RemoteFault(extract_fault_message(raw), raw=raw)
        value = result.get("result")
        if not isinstance(value, dict):
            return None
        return value.get("value")

    async def close(self) -> None:
        """Close the session. Safe to call more than once."""
        ws, self._ws = self._ws, None
        reader, self._reader = self._reader, None
        if reader is not None and reader is not asyncio.current_task():
            reader.cancel()
            with suppress(asyncio.CancelledError):
                await reader
        self._fail_pending(NotConnected("Connection closed"))
        if ws is None:
            return
        try:
            await ws.close()
        except (OSError, WebSocketException) as e:
            logger.debug(f"Error closing transport: {e}")
        logger.info(f"Closed connection to {self.url}")

    async def __aenter__(self) -> "Connection":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def _read_loop(self, ws: Any) -> None:
        """Demultiplex inbound frames until the transport ends."""
        error: Exception
        try:
            async for raw in ws:
                self._dispatch(raw)
        except asyncio.CancelledError:
            raise
        except (OSError, WebSocketException) as e:
            logger.warning(f"Transport failed: {e}")
            error = TransportError(f"Transport failed: {e}", url=self.url)
        else:
            error = TransportError("Connection closed by remote host", url=self.url)
        if self._ws is ws:
            self._ws = None
            self._reader = None
            self._fail_pending(error)

    def _dispatch(self, raw: Any) -> None:
        try:
            msg = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning(f"Invalid JSON frame: {str(raw)[:100]}")
            return
        if not isinstance(msg, dict):
            return
        msg_id = msg.get("id")
        if not isinstance(msg_id, int) or isinstance(msg_id, bool):
            # Protocol events carry no id.
            return
        pending = self._pending.pop(msg_id, None)
        if pending is None:
            logger.debug(f"Dropping reply #{msg_id}: no pending request")
            return
        logger.debug(f"<- #{msg_id} {pending.method} ({time.monotonic() - pending.created_at:.3f}s)")
        if not pending.future.done():
            pending.future.set_result(msg)

    def _fail_pending(self, error: Exception) -> None:
        doomed = list(self._pending.values())
        self._pending.clear()
        for pending in doomed:
            if not pending.future.done():
                pending.future.set_exception(error)


async def connect(
    selector: TargetSelector | None = None,
    debug: DebugConfig | None = None,
    *,
    transport_factory: TransportFactory | None = None,
    listing_transport: httpx.AsyncBaseTransport | None = None,
) -> Connection:
    """Discover a page and return an open Connection to it."""
    conn = Connection(debug, transport_factory=transport_factory)
    return await conn.connect(selector, listing_transport=listing_transport)
