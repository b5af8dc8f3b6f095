"""Handler for page requests.

Receives AppState, sanitises the requested path, and returns the rendered
page with its title, outline and breadcrumbs. No Starlette imports:
server.py handles the HTTP wiring.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

from filewiki.errors import ErrorCode, WikiError
from filewiki.maintenance import maybe_cleanup
from filewiki.models.tools import PageInput, PageOutput

if TYPE_CHECKING:
    from filewiki.state import AppState


async def handle(path: str, state: AppState) -> dict:
    """Handle a page request."""
    log = structlog.get_logger().bind(tool="get_page", raw_path=path)
    log.info("handler_called")

    try:
        validated = PageInput(path=path)
    except ValueError as exc:
        raise WikiError(
            code=ErrorCode.INVALID_INPUT,
            message=str(exc),
            suggestion="Provide a page path of at most 1024 characters.",
            recoverable=False,
        ) from exc

    page_path = state.repository.current_path(validated.path)

    # Rendering and file reads run off the event loop
    output = await asyncio.to_thread(_build_page, state, page_path)
    if output is None:
        log.info("page_not_found", path=page_path)
        raise WikiError(
            code=ErrorCode.PAGE_NOT_FOUND,
            message=f"Page not found: {page_path or '/'}",
            suggestion="Check the path in the navigation, or go back to the home page (path='').",
            recoverable=False,
        )

    log.info("page_served", path=page_path, html_length=len(output.html))
    return output.model_dump(mode="json")


def _build_page(state: AppState, page_path: str) -> PageOutput | None:
    maybe_cleanup(state.cache, state.settings.cache.cleanup_probability)

    repository = state.repository
    html = repository.get_page_content(page_path)
    if html is None:
        return None

    return PageOutput(
        path=page_path,
        title=repository.get_page_title(page_path),
        html=html,
        headings=repository.get_page_headings(page_path),
        breadcrumbs=repository.get_breadcrumbs(page_path),
        modified=repository.get_page_modified(page_path),
    )
