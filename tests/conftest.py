"""Shared test fixtures for the filewiki test suite."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import pytest

from filewiki.cache import Cache, MemoryStore
from filewiki.config import RendererSettings
from filewiki.renderer import build_renderer
from filewiki.repository import WikiRepository

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from filewiki.renderer import MarkdownRenderer


PAGES: dict[str, str] = {
    "index.md": "# Welcome\n\nStart here and browse the guides.\n",
    "README.md": "Repository notes about the quick brown fox.\n",
    ".draft.md": "# Draft\n\nThe quick brown fox is hiding.\n",
    "guides/index.md": "# Guides\n\nAll guides live here.\n",
    "guides/setup.md": "# Setup Guide\n\n## Install\n\nRun pip install.\n\n### Verify\n",
    "foo/bar.md": "# Bar\n\nThe Quick brown fox jumps over the lazy dog.\n",
    "notes/my-page.md": "Just some text without a heading.\n",
    "api/v2/v2.md": "# API v2\n\nEndpoints overview.\n",
}


def write_tree(root: Path, files: dict[str, str]) -> Path:
    """Create ``files`` (relative path → text) below ``root``."""
    for relative, text in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    return root


class FakeClock:
    """Controllable clock for cache expiry tests."""

    def __init__(self) -> None:
        self.now = datetime(2026, 1, 1, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture()
def content_dir(tmp_path: Path) -> Path:
    """A small wiki: root index, nested categories, skipped files."""
    return write_tree(tmp_path / "content", PAGES)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture()
def cache(store: MemoryStore, clock: FakeClock) -> Cache:
    return Cache(store, default_ttl=3600, clock=clock)


@pytest.fixture()
def renderer() -> MarkdownRenderer:
    """The markdown-it backed renderer used in production."""
    return build_renderer(RendererSettings())


@pytest.fixture()
def repository(content_dir: Path, renderer: MarkdownRenderer, cache: Cache) -> WikiRepository:
    return WikiRepository(content_dir, renderer, cache)


@pytest.fixture()
def make_tree() -> Callable[[Path, dict[str, str]], Path]:
    return write_tree
