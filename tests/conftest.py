"""Pytest hooks and fixtures."""

import os

import pytest

from fakes import FakeTransport, open_fake_connection


def pytest_configure(config):
    """Register custom markers (also in pyproject.toml)."""
    config.addinivalue_line(
        "markers",
        "requires_figma: needs a running Figma Desktop with a debug port (skipped in CI)",
    )


def pytest_collection_modifyitems(config, items):
    """Skip requires_figma tests when running in CI."""
    if os.environ.get("CI") != "true":
        return
    skip = pytest.mark.skip(reason="Requires Figma Desktop (skipped in CI)")
    for item in items:
        if "requires_figma" in item.keywords:
            item.add_marker(skip)


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
async def connection(fake_transport):
    conn = await open_fake_connection(fake_transport)
    yield conn
    await conn.close()
