"""Configuration module for figbridge."""

from figbridge.config.loader import load_config, save_config, get_config_path
from figbridge.config.schema import Config, DebugConfig, RenderConfig, DaemonConfig
from figbridge.config.access import get_config, clear_config_cache

__all__ = [
    "Config",
    "DebugConfig",
    "RenderConfig",
    "DaemonConfig",
    "load_config",
    "save_config",
    "get_config_path",
    "get_config",
    "clear_config_cache",
]
