"""Cache administration handlers.

Only available with ``server.debug`` enabled; otherwise every call raises
FORBIDDEN.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

from filewiki.errors import ErrorCode, WikiError

if TYPE_CHECKING:
    from filewiki.state import AppState


def _require_debug(state: AppState, action: str) -> None:
    if not state.settings.server.debug:
        raise WikiError(
            code=ErrorCode.FORBIDDEN,
            message=f"Cache action '{action}' is disabled",
            suggestion="Enable server.debug (FILEWIKI__SERVER__DEBUG=true) to manage the cache.",
            recoverable=False,
        )


async def handle_stats(state: AppState) -> dict:
    _require_debug(state, "stats")
    stats = await asyncio.to_thread(state.repository.cache_stats)
    return stats.model_dump(mode="json")


async def handle_clear(state: AppState) -> dict:
    _require_debug(state, "clear")
    cleared = await asyncio.to_thread(state.repository.clear_cache)
    structlog.get_logger().info("cache_clear_requested", cleared=cleared)
    return {"cleared": cleared, "enabled": state.repository.is_cache_enabled()}


async def handle_cleanup(state: AppState) -> dict:
    _require_debug(state, "cleanup")
    cleaned = await asyncio.to_thread(state.repository.cleanup_cache)
    structlog.get_logger().info("cache_cleanup_requested", cleaned=cleaned)
    return {"cleaned": cleaned, "enabled": state.repository.is_cache_enabled()}
