"""Page metadata extraction.

Derives titles, heading outlines, anchor slugs and search snippets from raw
markdown. Heading detection is a single pass over the lines that skips fenced
code blocks, so ``# comment`` lines inside code never reach the outline.
"""

from __future__ import annotations

import html
import re
from collections.abc import Iterator
from pathlib import PurePosixPath

from filewiki.models.content import PageHeading

_HEADING_RE = re.compile(r"^(#{1,6})\s+(.+)$")
_TAG_RE = re.compile(r"<[^>]*>")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")
_MARKDOWN_PUNCT_RE = re.compile(r"[#*`\[\]()]")
_WHITESPACE_RE = re.compile(r"\s+")

SLUG_FALLBACK = "header"


def slugify(text: str) -> str:
    """Turn heading text into an anchor id.

    Steps (order matters):
      1. Strip HTML tags
      2. Lowercase
      3. Replace every run outside ``[a-z0-9]`` with one hyphen
      4. Trim hyphens; an empty result becomes ``"header"``

    Duplicate headings produce duplicate slugs; no suffix is added.
    """
    slug = _TAG_RE.sub("", text).lower()
    slug = _NON_ALNUM_RE.sub("-", slug).strip("-")
    return slug or SLUG_FALLBACK


def title_from_path(path: str) -> str:
    """``"guides/getting-started.md"`` → ``"Getting Started"``."""
    name = PurePosixPath(path).name
    name = re.sub(r"\.[^.]+$", "", name)
    name = name.replace("-", " ").replace("_", " ")
    # ucwords semantics: only the first letter of each word changes
    return " ".join(word[:1].upper() + word[1:] for word in name.split(" "))


def _iter_heading_lines(content: str) -> Iterator[tuple[int, str]]:
    in_code_block = False
    fence: str | None = None

    for line in content.splitlines():
        stripped = line.strip()

        if stripped.startswith("```") or stripped.startswith("~~~"):
            current_fence = stripped[:3]
            if not in_code_block:
                in_code_block = True
                fence = current_fence
            elif current_fence == fence:
                in_code_block = False
                fence = None
            continue

        if in_code_block:
            continue

        match = _HEADING_RE.match(line)
        if match:
            yield len(match.group(1)), match.group(2).strip()


def extract_headings(content: str) -> list[PageHeading]:
    """Return the ATX heading outline (H1–H6) of a markdown document."""
    if not content:
        return []
    return [
        PageHeading(level=level, text=text, id=slugify(text))
        for level, text in _iter_heading_lines(content)
    ]


def extract_title(content: str) -> str | None:
    """Return the text of the first H1, or None."""
    if not content:
        return None
    for level, text in _iter_heading_lines(content):
        if level == 1:
            return text
    return None


def create_search_snippet(content: str, query: str, length: int = 200) -> str:
    """Build an HTML-safe excerpt centred on the first match of ``query``.

    Markdown punctuation is stripped and whitespace collapsed before the
    window is cut. Every case-insensitive occurrence inside the window is
    wrapped in ``<mark>``, keeping the original casing of the text.
    """
    clean = _MARKDOWN_PUNCT_RE.sub("", content)
    clean = _WHITESPACE_RE.sub(" ", clean).strip()

    match = re.search(re.escape(query), clean, re.IGNORECASE) if query else None
    if match is None:
        return html.escape(clean[:length]) + "..."

    start = max(0, match.start() - length // 2)
    window = clean[start : start + length]

    snippet = re.sub(
        re.escape(html.escape(query)),
        lambda m: f"<mark>{m.group(0)}</mark>",
        html.escape(window),
        flags=re.IGNORECASE,
    )

    prefix = "..." if start > 0 else ""
    suffix = "..." if start + length < len(clean) else ""
    return f"{prefix}{snippet}{suffix}"
