"""Content repository.

Maps URL-style page paths onto markdown files below the content root and
serves rendered HTML, raw text, the navigation tree, search results and
page metadata. Every accessor reports a missing page as ``None`` (or the
not-found title), never as an exception.

Untrusted input must go through ``sanitize_path`` before it reaches any
other method; ``is_valid_file`` is the second line of defence and rejects
anything that resolves outside the content root.
"""

from __future__ import annotations

import hashlib
import re
from collections.abc import Iterator
from datetime import UTC, datetime
from itertools import islice
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING

import structlog
from pydantic import ValidationError

from filewiki.cache import directory_mtime
from filewiki.models.cache import CacheStats
from filewiki.models.content import (
    Breadcrumb,
    NavigationCategory,
    NavigationNode,
    NavigationPage,
    NavigationTree,
    PageHeading,
    SearchResult,
    SearchResults,
)
from filewiki.parser import (
    create_search_snippet,
    extract_headings,
    extract_title,
    title_from_path,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from filewiki.config import Settings
    from filewiki.protocols import CacheProtocol
    from filewiki.renderer import MarkdownRenderer

log = structlog.get_logger()

HOME_TITLE = "Home"
NOT_FOUND_TITLE = "404 - Page Not Found"
INDEX_NAME = "index"

_TRAVERSAL_SEQUENCES = ("../", "..\\", "./")
_UNSAFE_PATH_CHARS = re.compile(r"[^a-zA-Z0-9\-_/.]")
_REPEATED_SLASHES = re.compile(r"/+")


def sanitize_path(raw: str) -> str:
    """Neutralise an untrusted page path.

    Steps (order matters):
      1. Remove ``../``, ``..\\`` and ``./`` until none are left
      2. Remove null bytes
      3. Drop every character outside ``[A-Za-z0-9_-./]``
      4. Collapse repeated slashes
      5. Trim leading/trailing slashes
    """
    path = raw
    previous = None
    while path != previous:
        previous = path
        for sequence in _TRAVERSAL_SEQUENCES:
            path = path.replace(sequence, "")
    path = path.replace("\0", "")
    path = _UNSAFE_PATH_CHARS.sub("", path)
    path = _REPEATED_SLASHES.sub("/", path)
    return path.strip("/")


def resolve_candidates(path: str) -> list[str]:
    """Page paths to try, in order, for a requested path.

    ``"guides/setup"`` → ``["guides/setup", "guides/setup/setup",
    "guides/setup/index"]``. The repeated-segment form covers a nested
    directory and a page sharing a name; single-segment paths only get
    ``index``. The empty path only maps to the root index.
    """
    if not path:
        return [""]
    candidates = [path]
    segments = path.split("/")
    if len(segments) >= 2 and segments[-1]:
        candidates.append(f"{path}/{segments[-1]}")
    candidates.append(f"{path}/{INDEX_NAME}")
    return list(dict.fromkeys(candidates))


def _should_skip(name: str) -> bool:
    return name.startswith(".") or name == "README.md"


def _join(relative: str, name: str) -> str:
    return f"{relative}/{name}" if relative else name


def _sorted_entries(directory: Path) -> list[Path]:
    """Directories first, then files, each case-insensitively by name."""
    try:
        entries = list(directory.iterdir())
    except OSError:
        return []
    return sorted(entries, key=lambda entry: (not entry.is_dir(), entry.name.lower(), entry.name))


def build_navigation_tree(
    directory: Path, allowed_extensions: Sequence[str], relative: str = ""
) -> list[NavigationNode]:
    """Walk ``directory`` and return its navigation nodes.

    A missing directory yields an empty list. ``index`` files never appear
    as pages; they are the content of their directory's own path.
    """
    if not directory.is_dir():
        log.debug("navigation_directory_missing", directory=str(directory))
        return []

    nodes: list[NavigationNode] = []
    for entry in _sorted_entries(directory):
        if _should_skip(entry.name):
            continue

        entry_path = _join(relative, entry.name)
        if entry.is_dir():
            children = build_navigation_tree(entry, allowed_extensions, entry_path)
            nodes.append(
                NavigationCategory(
                    name=title_from_path(entry.name),
                    path=entry_path,
                    children=tuple(children),
                )
            )
        elif entry.suffix[1:] in allowed_extensions and entry.stem != INDEX_NAME:
            nodes.append(
                NavigationPage(
                    name=title_from_path(entry.stem),
                    path=_join(relative, entry.stem),
                )
            )
    return nodes


def page_path_for_file(relative_file: str) -> str:
    """``"foo/bar.md"`` → ``"foo/bar"``; ``"foo/index.md"`` → ``"foo"``."""
    path = PurePosixPath(relative_file)
    if path.stem == INDEX_NAME:
        parent = str(path.parent)
        return "" if parent == "." else parent
    return str(path.with_suffix(""))


class WikiRepository:
    """File-backed wiki content.

    ``cache`` is optional; without it every call recomputes. With it, page
    HTML is keyed by the source file's mtime and the navigation tree and
    search results by the newest mtime under the content root.
    """

    def __init__(
        self,
        content_dir: Path,
        renderer: MarkdownRenderer,
        cache: CacheProtocol | None = None,
        *,
        allowed_extensions: Sequence[str] = ("md",),
        content_ttl: int = 1800,
        navigation_ttl: int = 7200,
        search_ttl: int = 600,
        min_query_length: int = 2,
        max_search_results: int = 50,
        snippet_length: int = 200,
    ) -> None:
        self.content_dir = content_dir
        self.renderer = renderer
        self.cache = cache
        self.allowed_extensions = tuple(allowed_extensions)
        self.content_ttl = content_ttl
        self.navigation_ttl = navigation_ttl
        self.search_ttl = search_ttl
        self.min_query_length = min_query_length
        self.max_search_results = max_search_results
        self.snippet_length = snippet_length
        # (content root mtime, tree built for it)
        self._navigation: tuple[int, list[NavigationNode]] | None = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        renderer: MarkdownRenderer,
        cache: CacheProtocol | None = None,
    ) -> WikiRepository:
        return cls(
            Path(settings.content.root).expanduser(),
            renderer,
            cache if settings.cache.enabled else None,
            allowed_extensions=settings.content.allowed_extensions,
            content_ttl=settings.cache.content_ttl_seconds,
            navigation_ttl=settings.cache.navigation_ttl_seconds,
            search_ttl=settings.cache.search_ttl_seconds,
            min_query_length=settings.search.min_query_length,
            max_search_results=settings.search.max_results,
            snippet_length=settings.search.snippet_length,
        )

    # ------------------------------------------------------------------
    # Path resolution
    # ------------------------------------------------------------------

    @staticmethod
    def current_path(raw: str) -> str:
        return sanitize_path(raw)

    def _file_paths(self, page_path: str) -> Iterator[Path]:
        stem = page_path or INDEX_NAME
        for extension in self.allowed_extensions:
            yield self.content_dir / f"{stem}.{extension}"

    def is_valid_file(self, file_path: Path) -> bool:
        """Existing, allowed extension, and really inside the content root."""
        if file_path.suffix[1:] not in self.allowed_extensions:
            return False
        try:
            real_file = file_path.resolve(strict=True)
            real_root = self.content_dir.resolve(strict=True)
        except OSError:
            return False
        if not real_file.is_file():
            return False
        return real_file.is_relative_to(real_root)

    def _resolve(self, path: str) -> tuple[str, Path] | None:
        candidates = resolve_candidates(path)
        for candidate in candidates:
            for file_path in self._file_paths(candidate):
                if self.is_valid_file(file_path):
                    log.debug("page_resolved", path=path, file=str(file_path))
                    return candidate, file_path
        log.debug("page_not_found", path=path, candidates=candidates)
        return None

    # ------------------------------------------------------------------
    # Page content
    # ------------------------------------------------------------------

    def get_page_content(self, path: str) -> str | None:
        """Rendered HTML for ``path``, or None when no file matches."""
        resolved = self._resolve(path)
        if resolved is None:
            return None
        candidate, file_path = resolved

        def render() -> str:
            return self.renderer.render(file_path.read_text(encoding="utf-8"))

        try:
            if self.cache is None:
                return render()
            key = "content_" + hashlib.md5(candidate.encode("utf-8")).hexdigest()
            return self.cache.remember_file(key, file_path, render, self.content_ttl)
        except (OSError, UnicodeDecodeError):
            log.warning("page_read_error", path=path, file=str(file_path), exc_info=True)
            return None

    def get_raw_page_content(self, path: str) -> str | None:
        """Markdown source for ``path``, uncached."""
        resolved = self._resolve(path)
        if resolved is None:
            return None
        _, file_path = resolved
        try:
            return file_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            log.warning("page_read_error", path=path, file=str(file_path), exc_info=True)
            return None

    def get_page_modified(self, path: str) -> datetime | None:
        resolved = self._resolve(path)
        if resolved is None:
            return None
        _, file_path = resolved
        try:
            return datetime.fromtimestamp(file_path.stat().st_mtime, tz=UTC)
        except OSError:
            return None

    def has_content(self) -> bool:
        if not self.content_dir.is_dir():
            return False
        return any(self.content_dir.iterdir())

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def get_navigation(self) -> list[NavigationNode]:
        """The navigation tree for the current state of the content root.

        The last tree is kept on the instance and reused until anything
        under the root changes.
        """
        mtime = directory_mtime(self.content_dir)
        if self._navigation is not None and self._navigation[0] == mtime:
            return self._navigation[1]

        tree = self._load_navigation()
        self._navigation = (mtime, tree)
        return tree

    def _load_navigation(self) -> list[NavigationNode]:
        def build() -> list:
            tree = build_navigation_tree(self.content_dir, self.allowed_extensions)
            return NavigationTree.dump_python(tree, mode="json")

        if self.cache is None:
            return build_navigation_tree(self.content_dir, self.allowed_extensions)

        data = self.cache.remember_directory(
            "navigation", self.content_dir, build, self.navigation_ttl
        )
        try:
            return NavigationTree.validate_python(data)
        except ValidationError:
            log.warning("navigation_cache_invalid", exc_info=True)
            return build_navigation_tree(self.content_dir, self.allowed_extensions)

        def build() -> list:
            tree = build_navigation_tree(self.content_dir, self.allowed_extensions)
            return NavigationTree.dump_python(tree, mode="json")

        if self.cache is None:
            self._navigation = build_navigation_tree(self.content_dir, self.allowed_extensions)
            return self._navigation

        data = self.cache.remember_directory(
            "navigation", self.content_dir, build, self.navigation_ttl
        )
        try:
            self._navigation = NavigationTree.validate_python(data)
        except ValidationError:
            log.warning("navigation_cache_invalid", exc_info=True)
            self._navigation = build_navigation_tree(self.content_dir, self.allowed_extensions)
        return self._navigation

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def search(self, query: str) -> list[SearchResult]:
        """Case-insensitive substring search over every page.

        Queries shorter than ``min_query_length`` return no results. One
        result per matching file, capped at ``max_search_results``.
        """
        if len(query) < self.min_query_length:
            return []

        def run() -> list:
            matches = self._iter_matches(self.content_dir, "", query)
            results = list(islice(matches, self.max_search_results))
            return SearchResults.dump_python(results, mode="json")

        if self.cache is None:
            return SearchResults.validate_python(run())

        key = "search_" + hashlib.md5(query.encode("utf-8")).hexdigest()
        data = self.cache.remember_directory(key, self.content_dir, run, self.search_ttl)
        try:
            return SearchResults.validate_python(data)
        except ValidationError:
            log.warning("search_cache_invalid", exc_info=True)
            return SearchResults.validate_python(run())

    def _iter_matches(self, directory: Path, relative: str, query: str) -> Iterator[SearchResult]:
        try:
            entries = sorted(directory.iterdir(), key=lambda entry: entry.name)
        except OSError:
            return

        for entry in entries:
            if _should_skip(entry.name):
                continue
            entry_path = _join(relative, entry.name)
            if entry.is_dir():
                yield from self._iter_matches(entry, entry_path, query)
            elif entry.suffix[1:] in self.allowed_extensions:
                result = self._match_file(entry, entry_path, query)
                if result is not None:
                    yield result

    def _match_file(self, file_path: Path, relative_file: str, query: str) -> SearchResult | None:
        try:
            content = file_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            log.warning("search_read_error", file=str(file_path), exc_info=True)
            return None

        if query.lower() not in content.lower():
            return None

        return SearchResult(
            title=extract_title(content) or title_from_path(file_path.stem),
            path=page_path_for_file(relative_file),
            snippet=create_search_snippet(content, query, self.snippet_length),
        )

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    def get_breadcrumbs(self, path: str) -> list[Breadcrumb]:
        """``"a/b"`` → ``[Home(""), A("a"), B("a/b")]``."""
        breadcrumbs = [Breadcrumb(name=HOME_TITLE, path="")]
        accumulated = ""
        for part in filter(None, path.split("/")):
            accumulated = _join(accumulated, part)
            breadcrumbs.append(Breadcrumb(name=title_from_path(part), path=accumulated))
        return breadcrumbs

    def get_page_title(self, path: str) -> str:
        """First H1 of the page, else a title made from the path.

        The root page falls back to ``"Home"``; any other missing page
        yields ``NOT_FOUND_TITLE``.
        """
        raw = self.get_raw_page_content(path)
        if not path:
            return (extract_title(raw) if raw else None) or HOME_TITLE
        if raw is None:
            return NOT_FOUND_TITLE
        return extract_title(raw) or title_from_path(path)

    def get_page_headings(self, path: str) -> list[PageHeading]:
        raw = self.get_raw_page_content(path)
        if raw is None:
            return []
        return extract_headings(raw)

    # ------------------------------------------------------------------
    # Cache administration
    # ------------------------------------------------------------------

    def is_cache_enabled(self) -> bool:
        return self.cache is not None

    def clear_cache(self) -> int:
        return self.cache.clear() if self.cache is not None else 0

    def cleanup_cache(self) -> int:
        return self.cache.cleanup() if self.cache is not None else 0

    def cache_stats(self) -> CacheStats:
        if self.cache is None:
            return CacheStats(enabled=False)
        return self.cache.stats()
