"""Handler for the live-search endpoint.

Same matching as ``WikiRepository.search`` (it is the same call), with the
result list truncated to the smaller API limit.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

from filewiki.errors import ErrorCode, WikiError
from filewiki.models.tools import SearchInput, SearchOutput

if TYPE_CHECKING:
    from filewiki.state import AppState

QUERY_TOO_SHORT = "Query too short"


async def handle(query: str, state: AppState) -> dict:
    """Handle a search request."""
    log = structlog.get_logger().bind(tool="search", query=query)
    log.info("handler_called")

    try:
        validated = SearchInput(query=query)
    except ValueError as exc:
        raise WikiError(
            code=ErrorCode.INVALID_INPUT,
            message=str(exc),
            suggestion="Provide a search query of at most 500 characters.",
            recoverable=False,
        ) from exc

    term = validated.query.strip()
    if len(term) < state.settings.search.min_query_length:
        output = SearchOutput(results=[], query=term, total=0, message=QUERY_TOO_SHORT)
        return output.model_dump(mode="json")

    results = await asyncio.to_thread(state.repository.search, term)
    results = results[: state.settings.search.api_max_results]
    log.info("search_complete", result_count=len(results))

    output = SearchOutput(results=results, query=term, total=len(results))
    return output.model_dump(mode="json")
