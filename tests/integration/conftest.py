"""Integration test fixtures.

Provides a fully wired AppState built by the real composition root (file
cache in tmp_path, markdown-it renderer) and an httpx client talking to the
Starlette app in-process.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import pytest

from filewiki.config import Settings
from filewiki.server import build_state, create_app

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from pathlib import Path

    from filewiki.state import AppState


def make_settings(content_dir: Path, cache_dir: Path, *, debug: bool = True) -> Settings:
    return Settings(
        content={"root": str(content_dir)},
        cache={"dir": str(cache_dir), "cleanup_probability": 0.0},
        server={"debug": debug},
    )


@pytest.fixture()
def app_state(content_dir: Path, tmp_path: Path) -> AppState:
    """AppState with debug enabled so cache admin routes are reachable."""
    return build_state(make_settings(content_dir, tmp_path / "cache"))


@pytest.fixture()
def locked_state(content_dir: Path, tmp_path: Path) -> AppState:
    """AppState with debug disabled."""
    return build_state(make_settings(content_dir, tmp_path / "cache", debug=False))


@pytest.fixture()
async def client(app_state: AppState) -> AsyncIterator[httpx.AsyncClient]:
    transport = httpx.ASGITransport(app=create_app(state=app_state))
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        yield http


@pytest.fixture()
async def locked_client(locked_state: AppState) -> AsyncIterator[httpx.AsyncClient]:
    transport = httpx.ASGITransport(app=create_app(state=locked_state))
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        yield http
