"""Configuration schema using Pydantic.

Single data model and defaults, persisted to ~/.figbridge/config.json.
"""

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Path prefixes of open design files; "figma.com/files/recent" and other home
# tabs must not match.
DESIGN_URL_FILTERS = ("figma.com/design/", "figma.com/file/")


class DebugConfig(BaseModel):
    """Remote debugging endpoint of Figma Desktop."""
    host: str = "localhost"
    port: int = 9222
    # A page is eligible when its URL contains any of these.
    url_filters: list[str] = Field(
        default_factory=lambda: list(DESIGN_URL_FILTERS)
    )
    connect_timeout: float = 10.0
    request_timeout: float | None = 30.0  # None waits forever

    @property
    def listing_url(self) -> str:
        return f"http://{self.host}:{self.port}/json"


class RenderConfig(BaseModel):
    """Markup compiler defaults."""
    clearance: float = 100.0  # Gap left of the rightmost sibling for smart positioning
    font_family: str = "Inter"


class DaemonConfig(BaseModel):
    """Local HTTP daemon that keeps one connection warm."""
    host: str = "127.0.0.1"
    port: int = 3456


class Config(BaseSettings):
    """Root configuration for figbridge."""
    debug: DebugConfig = Field(default_factory=DebugConfig)
    render: RenderConfig = Field(default_factory=RenderConfig)
    daemon: DaemonConfig = Field(default_factory=DaemonConfig)

    model_config = SettingsConfigDict(
        env_prefix="FIGBRIDGE_",
        env_nested_delimiter="__",
    )
