"""Markdown rendering.

``MarkdownRenderer`` wraps one of two strategies chosen by the composition
root: the markdown-it engine (CommonMark plus tables, strikethrough, task
lists and autolinks) or the self-contained fallback in ``filewiki.fallback``.
Whatever produced the HTML, every ``<h1>``–``<h6>`` leaves with an ``id``.
"""

from __future__ import annotations

import html
import re
from enum import StrEnum
from typing import TYPE_CHECKING

import structlog
from markdown_it import MarkdownIt
from mdit_py_plugins.tasklists import tasklists_plugin

from filewiki.fallback import render_fallback
from filewiki.parser import slugify

if TYPE_CHECKING:
    from filewiki.config import RendererSettings
    from filewiki.protocols import MarkdownEngine

log = structlog.get_logger()

# Headings without an id attribute; the lookahead stops at the end of the tag
_HEADING_WITHOUT_ID_RE = re.compile(
    r"<(h[1-6])(?![^>]*\sid=)([^>]*)>(.+?)</\1>", re.IGNORECASE | re.DOTALL
)
_TAG_RE = re.compile(r"<[^>]*>")


class RendererStrategy(StrEnum):
    FULL = "full"
    FALLBACK = "fallback"


def ensure_heading_ids(html_text: str) -> str:
    """Add a slug ``id`` to every heading that lacks one. Idempotent."""

    def replace(match: re.Match[str]) -> str:
        tag, attributes, content = match.group(1), match.group(2), match.group(3)
        text = html.unescape(_TAG_RE.sub("", content))
        return f'<{tag} id="{slugify(text)}"{attributes}>{content}</{tag}>'

    return _HEADING_WITHOUT_ID_RE.sub(replace, html_text)


class MarkdownItEngine:
    """MarkdownEngine adapter over markdown-it-py."""

    def __init__(self) -> None:
        self._md = (
            MarkdownIt("commonmark", {"html": True, "linkify": True})
            .enable(["table", "strikethrough", "linkify"])
            .use(tasklists_plugin)
        )

    def convert(self, text: str) -> str:
        return self._md.render(text)


class MarkdownRenderer:
    """Converts markdown to HTML with the configured strategy.

    With the full strategy, an engine error (or an empty result for
    non-empty input) falls back to the built-in converter for that call
    only. ``render`` never raises.
    """

    def __init__(
        self,
        strategy: RendererStrategy = RendererStrategy.FALLBACK,
        engine: MarkdownEngine | None = None,
    ) -> None:
        if strategy is RendererStrategy.FULL and engine is None:
            raise ValueError("The full rendering strategy needs a markdown engine")
        self.strategy = strategy
        self._engine = engine

    def render(self, text: str) -> str:
        if not text:
            return ""

        result = ""
        if self.strategy is RendererStrategy.FULL and self._engine is not None:
            try:
                result = self._engine.convert(text)
            except Exception:
                log.warning("renderer_engine_error", exc_info=True)

        if not result:
            log.debug("renderer_fallback", strategy=self.strategy)
            result = render_fallback(text)

        return ensure_heading_ids(result)


def build_renderer(settings: RendererSettings) -> MarkdownRenderer:
    """Resolve the rendering strategy once for the process lifetime."""
    strategy = RendererStrategy(settings.strategy)
    if strategy is RendererStrategy.FALLBACK:
        log.info("renderer_selected", strategy=strategy)
        return MarkdownRenderer(RendererStrategy.FALLBACK)

    try:
        engine = MarkdownItEngine()
    except Exception:
        log.warning("renderer_engine_unavailable", exc_info=True)
        return MarkdownRenderer(RendererStrategy.FALLBACK)

    log.info("renderer_selected", strategy=strategy)
    return MarkdownRenderer(RendererStrategy.FULL, engine)
