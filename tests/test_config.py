import json

import pytest

from figbridge.config import access, loader
from figbridge.config.loader import camel_to_snake, load_config, save_config, snake_to_camel
from figbridge.config.schema import Config


def test_defaults():
    config = Config()
    assert config.debug.port == 9222
    assert config.debug.listing_url == "http://localhost:9222/json"
    assert config.debug.request_timeout == 30.0
    assert config.render.clearance == 100.0
    assert config.render.font_family == "Inter"
    assert config.daemon.port == 3456


def test_env_overrides_nested_fields(monkeypatch):
    monkeypatch.setenv("FIGBRIDGE_DEBUG__PORT", "9333")
    monkeypatch.setenv("FIGBRIDGE_RENDER__CLEARANCE", "40")
    config = Config()
    assert config.debug.port == 9333
    assert config.render.clearance == 40.0


def test_save_writes_camel_case_and_load_round_trips(tmp_path):
    path = tmp_path / "config.json"
    config = Config()
    config.debug.request_timeout = 5.0
    config.render.font_family = "Roboto"
    save_config(config, path)

    data = json.loads(path.read_text())
    assert data["debug"]["requestTimeout"] == 5.0
    assert data["debug"]["urlFilters"] == ["figma.com/design/", "figma.com/file/"]
    assert data["render"]["fontFamily"] == "Roboto"

    loaded = load_config(path)
    assert loaded.debug.request_timeout == 5.0
    assert loaded.render.font_family == "Roboto"


def test_missing_file_gives_defaults(tmp_path):
    assert load_config(tmp_path / "absent.json").debug.port == 9222


def test_invalid_json_is_reported(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{not json")
    with pytest.raises(ValueError, match="Failed to load config"):
        load_config(path)


def test_key_case_helpers():
    assert camel_to_snake("requestTimeout") == "request_timeout"
    assert snake_to_camel("url_filters") == "urlFilters"


def test_get_config_uses_cache_and_force_reload(monkeypatch):
    calls = {"n": 0}

    def _fake_load_config(_path=None):
        calls["n"] += 1
        cfg = Config()
        cfg.daemon.port = 4000 + calls["n"]
        return cfg

    monkeypatch.setattr(access, "load_config", _fake_load_config)
    access.clear_config_cache()

    first = access.get_config()
    second = access.get_config()
    third = access.get_config(force_reload=True)

    assert first.daemon.port == second.daemon.port
    assert third.daemon.port != second.daemon.port
    assert calls["n"] == 2
    access.clear_config_cache()


def test_saving_default_file_refreshes_cached_config(monkeypatch, tmp_path):
    monkeypatch.setattr(loader, "get_config_path", lambda: tmp_path / "config.json")
    access.clear_config_cache()
    assert access.get_config().daemon.port == 3456

    config = Config()
    config.daemon.port = 4567
    save_config(config)

    assert access.get_config().daemon.port == 4567
    access.clear_config_cache()
