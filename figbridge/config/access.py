"""Process-wide config shared by the CLI commands and the daemon.

Only the default file (~/.figbridge/config.json) is cached; callers that
need another file use load_config(path) directly.
"""

from __future__ import annotations

import threading

from figbridge.config.loader import load_config
from figbridge.config.schema import Config

_lock = threading.Lock()
_config: Config | None = None


def get_config(*, force_reload: bool = False) -> Config:
    """Return the cached config, loading it on first use or when forced."""
    global _config
    with _lock:
        if force_reload or _config is None:
            _config = load_config()
        return _config


def clear_config_cache() -> None:
    """Drop the cached config so the next get_config() reads the file again."""
    global _config
    with _lock:
        _config = None
