"""Local daemon keeping one Figma connection warm (loopback only).

POST /exec runs {"action": "eval" | "render" | "render-batch", ...} against a
lazily created client; GET /health reports whether a client is connected.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger

from figbridge.client import FigmaClient
from figbridge.config.schema import Config
from figbridge.utils.exceptions import CompileError, FigbridgeError, classify_exception

ClientFactory = Callable[[], Awaitable[FigmaClient]]


class ClientHolder:
    """Single shared client; concurrent first requests share one connect."""

    def __init__(self, factory: ClientFactory):
        self._factory = factory
        self._client: FigmaClient | None = None
        self._lock = asyncio.Lock()

    @property
    def connected(self) -> bool:
        return self._client is not None and self._client.connection.connected

    async def get(self) -> FigmaClient:
        if self.connected:
            return self._client
        async with self._lock:
            if self.connected:
                return self._client
            if self._client is not None:
                await self._client.close()
            self._client = await self._factory()
            logger.info("Daemon connected to Figma")
            return self._client

    async def close(self) -> None:
        async with self._lock:
            if self._client is not None:
                await self._client.close()
                self._client = None


def create_daemon_app(
    config: Config | None = None,
    *,
    client_factory: ClientFactory | None = None,
) -> FastAPI:
    """Create the daemon FastAPI app."""
    config = config or Config()

    async def _default_factory() -> FigmaClient:
        return await FigmaClient(config=config).connect()

    holder = ClientHolder(client_factory or _default_factory)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        logger.info("Daemon shutting down")
        await holder.close()

    app = FastAPI(title="figbridge daemon", lifespan=lifespan)
    app.state.holder = holder

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok", "connected": holder.connected}

    @app.post("/exec")
    async def execute(request: Request) -> Any:
        try:
            body = await request.json()
        except ValueError:
            return JSONResponse({"error": "body must be JSON"}, status_code=400)
        if not isinstance(body, dict):
            return JSONResponse({"error": "body must be a JSON object"}, status_code=400)
        action = str(body.get("action") or "").strip()
        if action not in {"eval", "render", "render-batch"}:
            return JSONResponse({"error": f"Unknown action: {action}"}, status_code=400)
        items = body.get("jsxArray")
        gap = body.get("gap", 40)
        if action == "render-batch":
            if not isinstance(items, list):
                return JSONResponse({"error": "jsxArray must be a list"}, status_code=400)
            if isinstance(gap, bool) or not isinstance(gap, (int, float)):
                return JSONResponse({"error": "gap must be a number"}, status_code=400)

        try:
            client = await holder.get()
            if action == "eval":
                result = await client.eval(str(body.get("code") or ""))
            elif action == "render":
                result = await client.render(str(body.get("jsx") or ""))
            else:
                result = await client.render_batch([str(item) for item in items], gap=gap)
        except CompileError as e:
            return JSONResponse({"error": e.message, "code": e.code}, status_code=400)
        except FigbridgeError as e:
            logger.warning(f"exec {action} failed: {e}")
            return JSONResponse({"error": e.message, "code": e.code}, status_code=500)
        except Exception as e:
            code, _, _ = classify_exception(e)
            logger.exception(f"exec {action} crashed [{code}]")
            return JSONResponse({"error": str(e), "code": code}, status_code=500)
        return {"result": result}

    return app
