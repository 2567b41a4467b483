"""Shared fixtures: config isolation and the scripted fake backend."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

from gitnexus_bridge.config import reset_config

pytest_plugins = ("pytest_asyncio",)

FAKE_BACKEND = Path(__file__).parent / "fake_backend.py"


@pytest.fixture(autouse=True)
def isolated_config(tmp_path_factory, monkeypatch):
    """Keep the developer's own config and env overrides out of tests."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path_factory.mktemp("xdg")))
    monkeypatch.delenv("GNB_CMD", raising=False)
    monkeypatch.delenv("GNB_LOG", raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def fake_backend_cmd() -> list[str]:
    """Command vector that runs the fake gitnexus backend."""
    return [sys.executable, str(FAKE_BACKEND)]


@pytest.fixture
def indexed_dir(tmp_path) -> Path:
    """A project directory with a .gitnexus index marker."""
    (tmp_path / ".gitnexus").mkdir()
    return tmp_path
