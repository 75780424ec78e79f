"""Page discovery over the DevTools HTTP listing (GET /json)."""

from __future__ import annotations

from typing import Any

import httpx
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from figbridge.config.schema import DESIGN_URL_FILTERS, DebugConfig
from figbridge.utils.exceptions import NoTargetFound, TransportError


class TargetInfo(BaseModel):
    """One debuggable page as reported by the listing."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = ""
    title: str = ""
    url: str = ""
    type: str = "page"
    web_socket_debugger_url: str = Field(default="", alias="webSocketDebuggerUrl")


class TargetSelector(BaseModel):
    """Which page to attach to: URL substring filters plus optional title match."""

    url_filters: list[str] = Field(default_factory=lambda: list(DESIGN_URL_FILTERS))
    title: str | None = None

    def matches(self, target: TargetInfo) -> bool:
        if target.type != "page" or not target.web_socket_debugger_url:
            return False
        if not any(f in target.url for f in self.url_filters):
            return False
        if self.title and self.title not in target.title:
            return False
        return True

    def describe(self) -> str:
        label = "|".join(self.url_filters)
        return f"{label} title~{self.title!r}" if self.title else label


async def fetch_targets(
    listing_url: str,
    *,
    timeout: float = 5.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> list[TargetInfo]:
    """Fetch and parse the raw target listing."""
    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            resp = await client.get(listing_url)
            resp.raise_for_status()
            body: Any = resp.json()
    except httpx.HTTPError as exc:
        raise TransportError(f"DevTools listing unavailable: {exc}", url=listing_url) from exc
    except ValueError as exc:
        raise TransportError(f"DevTools listing is not JSON: {exc}", url=listing_url) from exc
    if not isinstance(body, list):
        raise TransportError("DevTools listing is not a JSON array", url=listing_url)
    return [TargetInfo.model_validate(item) for item in body if isinstance(item, dict)]


async def list_pages(
    debug: DebugConfig | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> list[TargetInfo]:
    """List every Figma page (any figma.com URL), including feed/home tabs."""
    debug = debug or DebugConfig()
    targets = await fetch_targets(debug.listing_url, transport=transport)
    return [t for t in targets if "figma.com" in t.url]


async def is_available(
    debug: DebugConfig | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> bool:
    """True when Figma is reachable on the debug port with at least one page."""
    try:
        return bool(await list_pages(debug, transport=transport))
    except TransportError:
        return False


async def find_target(
    selector: TargetSelector,
    debug: DebugConfig | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> TargetInfo:
    """Return the first target the selector accepts, or raise NoTargetFound."""
    debug = debug or DebugConfig()
    targets = await fetch_targets(debug.listing_url, transport=transport)
    for target in targets:
        if selector.matches(target):
            logger.debug(f"Selected target {target.id} ({target.title})")
            return target
    raise NoTargetFound(selector.describe())
