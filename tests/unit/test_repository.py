"""Unit tests for the content repository."""

from __future__ import annotations

import os
from datetime import datetime
from typing import TYPE_CHECKING

import pytest

from filewiki.cache import Cache, FileStore, MemoryStore
from filewiki.config import Settings
from filewiki.models.content import NavigationCategory, NavigationPage
from filewiki.repository import (
    NOT_FOUND_TITLE,
    WikiRepository,
    build_navigation_tree,
    page_path_for_file,
    resolve_candidates,
    sanitize_path,
)

if TYPE_CHECKING:
    from pathlib import Path

    from collections.abc import Callable

    from filewiki.renderer import MarkdownRenderer
    from tests.conftest import FakeClock

    TreeFactory = Callable[[Path, dict[str, str]], Path]


class CountingRenderer:
    """Wraps a renderer and counts render calls."""

    def __init__(self, inner: MarkdownRenderer) -> None:
        self.inner = inner
        self.calls = 0

    def render(self, text: str) -> str:
        self.calls += 1
        return self.inner.render(text)


def touch_later(path: Path, seconds: int = 5) -> None:
    stat = path.stat()
    os.utime(path, ns=(stat.st_atime_ns, stat.st_mtime_ns + seconds * 1_000_000_000))


# ---------------------------------------------------------------------------
# sanitize_path / resolve_candidates / page_path_for_file
# ---------------------------------------------------------------------------


class TestSanitizePath:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("guides/setup", "guides/setup"),
            ("/guides/setup/", "guides/setup"),
            ("../../etc/passwd", "etc/passwd"),
            ("..\\..\\secret", "secret"),
            ("./a/./b", "a/b"),
            ("a//b///c/", "a/b/c"),
            ("foo\0bar", "foobar"),
            ("a b<script>", "abscript"),
            ("", ""),
        ],
    )
    def test_cases(self, raw: str, expected: str) -> None:
        assert sanitize_path(raw) == expected

    @pytest.mark.parametrize("raw", ["....//etc", "..././..././x", ".../...//", "%2e%2e/x"])
    def test_no_traversal_survives(self, raw: str) -> None:
        result = sanitize_path(raw)
        assert "../" not in result
        assert not result.startswith("/")

    def test_idempotent(self) -> None:
        once = sanitize_path("..//a/../b//./c")
        assert sanitize_path(once) == once


class TestResolveCandidates:
    def test_root(self) -> None:
        assert resolve_candidates("") == [""]

    def test_single_segment(self) -> None:
        # The repeated-segment form needs at least two segments
        assert resolve_candidates("guides") == ["guides", "guides/index"]

    def test_nested(self) -> None:
        assert resolve_candidates("a/b") == ["a/b", "a/b/b", "a/b/index"]


class TestPagePathForFile:
    @pytest.mark.parametrize(
        ("relative", "expected"),
        [("foo/bar.md", "foo/bar"), ("foo/index.md", "foo"), ("index.md", ""), ("top.md", "top")],
    )
    def test_mapping(self, relative: str, expected: str) -> None:
        assert page_path_for_file(relative) == expected


# ---------------------------------------------------------------------------
# Page content
# ---------------------------------------------------------------------------


class TestPageContent:
    def test_root_index(self, repository: WikiRepository) -> None:
        html = repository.get_page_content("")
        assert html is not None
        assert '<h1 id="welcome">Welcome</h1>' in html

    def test_directory_index(self, repository: WikiRepository) -> None:
        html = repository.get_page_content("guides")
        assert html is not None
        assert "Guides" in html

    def test_same_name_page_in_nested_directory(self, repository: WikiRepository) -> None:
        html = repository.get_page_content("api/v2")
        assert html is not None
        assert '<h1 id="api-v2">API v2</h1>' in html

    def test_top_level_directory_without_index(self, repository: WikiRepository) -> None:
        assert repository.get_page_content("api") is None

    def test_missing_page(self, repository: WikiRepository) -> None:
        assert repository.get_page_content("missing") is None
        assert repository.get_raw_page_content("missing") is None

    def test_raw_content(self, repository: WikiRepository, content_dir: Path) -> None:
        raw = repository.get_raw_page_content("foo/bar")
        assert raw == (content_dir / "foo" / "bar.md").read_text()

    def test_symlink_escape_rejected(
        self, repository: WikiRepository, content_dir: Path, tmp_path: Path
    ) -> None:
        secret = tmp_path / "secret.md"
        secret.write_text("# Secret")
        (content_dir / "link.md").symlink_to(secret)

        assert repository.is_valid_file(content_dir / "link.md") is False
        assert repository.get_raw_page_content("link") is None

    def test_disallowed_extension(self, repository: WikiRepository, content_dir: Path) -> None:
        (content_dir / "notes.txt").write_text("plain")
        assert repository.is_valid_file(content_dir / "notes.txt") is False
        assert repository.get_raw_page_content("notes.txt") is None

    def test_directory_is_not_a_file(self, repository: WikiRepository, content_dir: Path) -> None:
        (content_dir / "folder.md").mkdir()
        assert repository.is_valid_file(content_dir / "folder.md") is False

    def test_traversal_after_sanitising(self, repository: WikiRepository) -> None:
        assert repository.get_page_content(sanitize_path("../secret")) is None

    def test_rendered_once_then_cached(
        self, content_dir: Path, renderer: MarkdownRenderer, cache: Cache
    ) -> None:
        counting = CountingRenderer(renderer)
        repository = WikiRepository(content_dir, counting, cache)  # type: ignore[arg-type]

        first = repository.get_page_content("foo/bar")
        second = repository.get_page_content("foo/bar")

        assert first == second
        assert counting.calls == 1

    def test_edit_invalidates_cached_html(
        self, repository: WikiRepository, content_dir: Path
    ) -> None:
        page = content_dir / "foo" / "bar.md"
        assert "Bar" in (repository.get_page_content("foo/bar") or "")

        page.write_text("# Baz\n")
        touch_later(page)

        html = repository.get_page_content("foo/bar")
        assert html is not None
        assert '<h1 id="baz">Baz</h1>' in html

    def test_works_without_cache(self, content_dir: Path, renderer: MarkdownRenderer) -> None:
        repository = WikiRepository(content_dir, renderer)
        assert '<h1 id="bar">Bar</h1>' in (repository.get_page_content("foo/bar") or "")
        assert repository.is_cache_enabled() is False

    def test_page_modified(self, repository: WikiRepository) -> None:
        assert isinstance(repository.get_page_modified("foo/bar"), datetime)
        assert repository.get_page_modified("missing") is None

    def test_has_content(
        self, repository: WikiRepository, tmp_path: Path, renderer: MarkdownRenderer
    ) -> None:
        assert repository.has_content() is True
        assert WikiRepository(tmp_path / "nothing", renderer).has_content() is False


# ---------------------------------------------------------------------------
# Navigation
# ---------------------------------------------------------------------------


class TestNavigation:
    def test_mixed_case_ordering(self, tmp_path: Path, make_tree: TreeFactory) -> None:
        root = make_tree(tmp_path / "wiki", {"a/x.md": "", "B/y.md": "", "z.md": "", "A.md": ""})

        tree = build_navigation_tree(root, ["md"])

        assert [node.path for node in tree] == ["a", "B", "A", "z"]
        assert [node.type for node in tree] == ["category", "category", "page", "page"]

    def test_tree_shape(self, repository: WikiRepository) -> None:
        tree = repository.get_navigation()

        assert [node.name for node in tree] == ["Api", "Foo", "Guides", "Notes"]
        guides = tree[2]
        assert isinstance(guides, NavigationCategory)
        assert guides.path == "guides"
        # index.md belongs to the category itself, not its children
        assert guides.children == (
            NavigationPage(name="Setup", path="guides/setup"),
        )
        notes = tree[3]
        assert isinstance(notes, NavigationCategory)
        assert notes.children[0].name == "My Page"

    def test_skips_hidden_readme_and_foreign_extensions(
        self, tmp_path: Path, make_tree: TreeFactory
    ) -> None:
        root = make_tree(
            tmp_path / "wiki",
            {".secret.md": "", "README.md": "", "image.png": "", "page.md": "", ".git/x.md": ""},
        )
        tree = build_navigation_tree(root, ["md"])
        assert tree == [NavigationPage(name="Page", path="page")]

    def test_missing_root(self, tmp_path: Path) -> None:
        assert build_navigation_tree(tmp_path / "nope", ["md"]) == []

    def test_empty_directory_kept_as_category(self, tmp_path: Path) -> None:
        (tmp_path / "wiki" / "empty").mkdir(parents=True)
        tree = build_navigation_tree(tmp_path / "wiki", ["md"])
        assert tree == [NavigationCategory(name="Empty", path="empty", children=())]

    def test_memoised_per_instance(self, repository: WikiRepository) -> None:
        assert repository.get_navigation() is repository.get_navigation()

    def test_same_instance_sees_new_page(
        self, repository: WikiRepository, content_dir: Path
    ) -> None:
        before = repository.get_navigation()

        page = content_dir / "zeta.md"
        page.write_text("# Zeta")
        touch_later(page, seconds=60)

        after = repository.get_navigation()
        assert after is not before
        assert after[-1] == NavigationPage(name="Zeta", path="zeta")

    def test_same_instance_sees_removed_page(
        self, repository: WikiRepository, content_dir: Path
    ) -> None:
        repository.get_navigation()

        (content_dir / "foo" / "bar.md").unlink()
        touch_later(content_dir / "foo", seconds=60)

        foo = repository.get_navigation()[1]
        assert isinstance(foo, NavigationCategory)
        assert foo.children == ()

    def test_cached_tree_round_trips(
        self, content_dir: Path, renderer: MarkdownRenderer, cache: Cache
    ) -> None:
        first = WikiRepository(content_dir, renderer, cache).get_navigation()
        second = WikiRepository(content_dir, renderer, cache).get_navigation()
        assert first == second

    def test_corrupted_cache_file_rebuilds_tree(
        self, content_dir: Path, renderer: MarkdownRenderer, tmp_path: Path
    ) -> None:
        cache = Cache(FileStore(tmp_path / "cache"))
        expected = WikiRepository(content_dir, renderer, cache).get_navigation()
        for entry in (tmp_path / "cache").glob("*.cache"):
            entry.write_bytes(b"\xff\xfe garbage")

        assert WikiRepository(content_dir, renderer, cache).get_navigation() == expected

    def test_new_page_invalidates_cached_tree(
        self, content_dir: Path, renderer: MarkdownRenderer, cache: Cache
    ) -> None:
        WikiRepository(content_dir, renderer, cache).get_navigation()

        page = content_dir / "zeta.md"
        page.write_text("# Zeta")
        touch_later(page, seconds=60)

        tree = WikiRepository(content_dir, renderer, cache).get_navigation()
        assert tree[-1] == NavigationPage(name="Zeta", path="zeta")


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


class TestSearch:
    @pytest.mark.parametrize("query", ["", "f"])
    def test_short_query(self, repository: WikiRepository, query: str) -> None:
        assert repository.search(query) == []

    def test_match_skips_hidden_and_readme(self, repository: WikiRepository) -> None:
        results = repository.search("fox")

        assert [r.path for r in results] == ["foo/bar"]
        assert results[0].title == "Bar"
        assert "<mark>fox</mark>" in results[0].snippet

    def test_case_insensitive_keeps_original_case(self, repository: WikiRepository) -> None:
        results = repository.search("QUICK")
        assert len(results) == 1
        assert "<mark>Quick</mark>" in results[0].snippet

    def test_index_files_map_to_directory_path(self, repository: WikiRepository) -> None:
        results = repository.search("guides")
        assert [r.path for r in results] == ["guides", ""]
        assert [r.title for r in results] == ["Guides", "Welcome"]

    def test_title_falls_back_to_filename(self, repository: WikiRepository) -> None:
        results = repository.search("without a heading")
        assert [(r.title, r.path) for r in results] == [("My Page", "notes/my-page")]

    def test_no_match(self, repository: WikiRepository) -> None:
        assert repository.search("xylophone") == []

    def test_markdown_punctuation_in_query_not_highlighted(
        self, repository: WikiRepository, content_dir: Path
    ) -> None:
        # Known quirk: the snippet strips #*`[]() before matching, so the
        # file matches but nothing in the snippet is marked
        (content_dir / "calls.md").write_text("Call run(fast) to start.")

        results = repository.search("(fast")

        assert [r.path for r in results] == ["calls"]
        assert "<mark>" not in results[0].snippet

    def test_capped_at_max_results(
        self, tmp_path: Path, renderer: MarkdownRenderer, make_tree: TreeFactory
    ) -> None:
        root = make_tree(tmp_path / "wiki", {f"p{i}.md": "common word" for i in range(5)})
        repository = WikiRepository(root, renderer, max_search_results=2)
        assert len(repository.search("common")) == 2

    def test_results_cached_until_content_changes(
        self, repository: WikiRepository, content_dir: Path
    ) -> None:
        assert repository.search("zebra") == []

        page = content_dir / "animals.md"
        page.write_text("# Animals\n\nA zebra.")
        touch_later(page, seconds=60)

        assert [r.path for r in repository.search("zebra")] == ["animals"]


# ---------------------------------------------------------------------------
# Titles, breadcrumbs, headings
# ---------------------------------------------------------------------------


class TestMetadata:
    def test_breadcrumbs(self, repository: WikiRepository) -> None:
        crumbs = repository.get_breadcrumbs("a/b-c/d_e")
        assert [(c.name, c.path) for c in crumbs] == [
            ("Home", ""),
            ("A", "a"),
            ("B C", "a/b-c"),
            ("D E", "a/b-c/d_e"),
        ]

    def test_breadcrumbs_root(self, repository: WikiRepository) -> None:
        assert [(c.name, c.path) for c in repository.get_breadcrumbs("")] == [("Home", "")]

    def test_title_from_h1(self, repository: WikiRepository) -> None:
        assert repository.get_page_title("foo/bar") == "Bar"

    def test_title_from_path(self, repository: WikiRepository) -> None:
        assert repository.get_page_title("notes/my-page") == "My Page"

    def test_title_missing_page(self, repository: WikiRepository) -> None:
        assert repository.get_page_title("missing") == NOT_FOUND_TITLE

    def test_root_title_uses_index_h1(self, repository: WikiRepository) -> None:
        assert repository.get_page_title("") == "Welcome"

    def test_root_title_without_index(self, tmp_path: Path, renderer: MarkdownRenderer) -> None:
        repository = WikiRepository(tmp_path, renderer)
        assert repository.get_page_title("") == "Home"

    def test_headings(self, repository: WikiRepository) -> None:
        headings = repository.get_page_headings("guides/setup")
        assert [(h.level, h.text, h.id) for h in headings] == [
            (1, "Setup Guide", "setup-guide"),
            (2, "Install", "install"),
            (3, "Verify", "verify"),
        ]

    def test_headings_missing_page(self, repository: WikiRepository) -> None:
        assert repository.get_page_headings("missing") == []


# ---------------------------------------------------------------------------
# Cache administration
# ---------------------------------------------------------------------------


class TestCacheAdmin:
    def test_without_cache(self, content_dir: Path, renderer: MarkdownRenderer) -> None:
        repository = WikiRepository(content_dir, renderer)

        assert repository.clear_cache() == 0
        assert repository.cleanup_cache() == 0
        assert repository.cache_stats().enabled is False

    def test_with_cache(self, repository: WikiRepository, clock: FakeClock) -> None:
        repository.get_page_content("foo/bar")
        repository.get_navigation()

        assert repository.cache_stats().total == 2

        clock.advance(7201)
        assert repository.cleanup_cache() == 2
        assert repository.clear_cache() == 0

    def test_from_settings_drops_cache_when_disabled(
        self, content_dir: Path, renderer: MarkdownRenderer
    ) -> None:
        settings = Settings(content={"root": str(content_dir)}, cache={"enabled": False})
        repository = WikiRepository.from_settings(settings, renderer, Cache(MemoryStore()))
        assert repository.is_cache_enabled() is False
