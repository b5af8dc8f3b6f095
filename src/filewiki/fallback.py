"""Self-contained markdown-to-HTML converter.

Used when the full engine is disabled or fails. It is a fixed sequence of
regex/line passes, each applied to the output of the previous one:

  fenced code → headings → rules → blockquotes → tables → task items →
  list items → inline code → links → images → strikethrough → bold →
  italic → autolinks → paragraphs

The order is part of the behaviour. Known quirks that follow from it:
- Lines inside a fenced block that look like headings, rules or list items
  are still converted by the later block passes.
- Links run before images, so ``![alt](src)`` with a non-empty alt becomes
  ``!<a href="src">alt</a>``; only ``![](src)`` reaches the image pass.
- Numbered items become ``<li>`` and are wrapped in ``<ul>`` like bullets.
"""

from __future__ import annotations

import html
import re

from filewiki.parser import slugify

_FENCE_RE = re.compile(r"^```(\w+)?\s*\n(.*?)\n```$", re.MULTILINE | re.DOTALL)
_HEADER_RE = re.compile(r"^(#{1,6})\s+(.+)$", re.MULTILINE)
_RULE_RE = re.compile(r"^[ \t]*(-{3,}|\*{3,}|_{3,})[ \t]*$", re.MULTILINE)
_BLOCKQUOTE_RE = re.compile(r"^>\s?(.+)$", re.MULTILINE)
_TABLE_SEPARATOR_RE = re.compile(r"^\|?\s*:?-+:?\s*(\|\s*:?-+:?\s*)*\|?\s*$")
_TASK_RE = re.compile(r"^[-*+]\s+\[([ xX])\]\s+(.+)$", re.MULTILINE)
_BULLET_RE = re.compile(r"^[-*+]\s+(.+)$", re.MULTILINE)
_NUMBERED_RE = re.compile(r"^\d+\.\s+(.+)$", re.MULTILINE)
_INLINE_CODE_RE = re.compile(r"`([^`]+)`")
_LINK_RE = re.compile(r"\[([^\]]+)\]\(([^)]+)\)")
_IMAGE_RE = re.compile(r"!\[([^\]]*)\]\(([^)]+)\)")
_STRIKE_RE = re.compile(r"~~([^~]+)~~")
_BOLD_STAR_RE = re.compile(r"\*\*([^*]+)\*\*")
_BOLD_UNDERSCORE_RE = re.compile(r"__([^_]+)__")
_ITALIC_STAR_RE = re.compile(r"(?<!\*)\*([^*]+)\*(?!\*)")
_ITALIC_UNDERSCORE_RE = re.compile(r"(?<!_)_([^_]+)_(?!_)")
# Bare URLs only: skip ones already sitting in an attribute or anchor text
_AUTOLINK_RE = re.compile(r"(?<![=\"'>/])\b(https?://[^\s<>\"`{}\[\]\\]+)", re.IGNORECASE)
_BLOCK_TAG_RE = re.compile(r"^<(?:h[1-6]|ul|ol|li|table|pre|blockquote|hr|div|p)\b")


def render_fallback(text: str) -> str:
    """Convert markdown to HTML without any third-party engine."""
    if not text:
        return ""

    text = text.replace("\r\n", "\n").replace("\r", "\n")

    text = _parse_fenced_code(text)
    text = _parse_headers(text)
    text = _RULE_RE.sub("<hr>", text)
    text = _BLOCKQUOTE_RE.sub(r"<blockquote><p>\1</p></blockquote>", text)
    text = _parse_tables(text)
    text = _parse_task_lists(text)
    text = _parse_lists(text)
    text = _INLINE_CODE_RE.sub(r"<code>\1</code>", text)
    text = _LINK_RE.sub(r'<a href="\2">\1</a>', text)
    text = _IMAGE_RE.sub(r'<img src="\2" alt="\1">', text)
    text = _STRIKE_RE.sub(r"<del>\1</del>", text)
    text = _BOLD_STAR_RE.sub(r"<strong>\1</strong>", text)
    text = _BOLD_UNDERSCORE_RE.sub(r"<strong>\1</strong>", text)
    text = _ITALIC_STAR_RE.sub(r"<em>\1</em>", text)
    text = _ITALIC_UNDERSCORE_RE.sub(r"<em>\1</em>", text)
    text = _parse_autolinks(text)
    return _parse_paragraphs(text)


def _parse_fenced_code(text: str) -> str:
    def replace(match: re.Match[str]) -> str:
        language = match.group(1) or ""
        code = html.escape(match.group(2))
        lang_class = f' class="language-{html.escape(language)}"' if language else ""
        return f"<pre><code{lang_class}>{code}</code></pre>"

    return _FENCE_RE.sub(replace, text)


def _parse_headers(text: str) -> str:
    def replace(match: re.Match[str]) -> str:
        level = len(match.group(1))
        title = match.group(2).strip()
        return f'<h{level} id="{slugify(title)}">{title}</h{level}>'

    return _HEADER_RE.sub(replace, text)


def _parse_tables(text: str) -> str:
    result: list[str] = []
    rows: list[str] = []
    in_table = False

    for line in text.split("\n"):
        if "|" in line and line.strip():
            in_table = True
            if _TABLE_SEPARATOR_RE.match(line.strip()):
                continue
            rows.append(line)
            continue

        if in_table:
            result.append(_render_table(rows))
            in_table = False
            rows = []
        result.append(line)

    if in_table and rows:
        result.append(_render_table(rows))

    return "\n".join(result)


def _render_table(rows: list[str]) -> str:
    if not rows:
        return ""

    header, *body = rows
    parts = ["<table><thead><tr>"]
    parts.extend(f"<th>{html.escape(cell)}</th>" for cell in _split_cells(header))
    parts.append("</tr></thead><tbody>")
    for row in body:
        parts.append("<tr>")
        parts.extend(f"<td>{html.escape(cell)}</td>" for cell in _split_cells(row))
        parts.append("</tr>")
    parts.append("</tbody></table>")
    return "".join(parts)


def _split_cells(row: str) -> list[str]:
    cells = (cell.strip() for cell in row.strip("| ").split("|"))
    return [cell for cell in cells if cell]


def _parse_task_lists(text: str) -> str:
    def replace(match: re.Match[str]) -> str:
        checked = " checked" if match.group(1).lower() == "x" else ""
        content = html.escape(match.group(2))
        return f'<li class="task-list-item"><input type="checkbox"{checked} disabled> {content}</li>'

    return _TASK_RE.sub(replace, text)


def _parse_lists(text: str) -> str:
    text = _BULLET_RE.sub(r"<li>\1</li>", text)
    text = _NUMBERED_RE.sub(r"<li>\1</li>", text)

    # Wrap every contiguous run of item lines in a single <ul>
    result: list[str] = []
    run: list[str] = []
    for line in text.split("\n"):
        if line.startswith("<li") and line.endswith("</li>"):
            run.append(line)
            continue
        if run:
            result.append("<ul>" + "\n".join(run) + "</ul>")
            run = []
        result.append(line)
    if run:
        result.append("<ul>" + "\n".join(run) + "</ul>")
    return "\n".join(result)


def _parse_autolinks(text: str) -> str:
    def replace(match: re.Match[str]) -> str:
        url = html.escape(match.group(1))
        return f'<a href="{url}">{url}</a>'

    return _AUTOLINK_RE.sub(replace, text)


def _parse_paragraphs(text: str) -> str:
    blocks: list[str] = []
    for block in text.split("\n\n"):
        block = block.strip()
        if not block:
            continue
        if _BLOCK_TAG_RE.match(block):
            blocks.append(block)
        else:
            blocks.append(f"<p>{block}</p>")
    return "\n\n".join(blocks)
