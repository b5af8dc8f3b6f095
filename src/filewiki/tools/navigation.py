"""Handler for the navigation tree."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

from filewiki.models.tools import NavigationOutput

if TYPE_CHECKING:
    from filewiki.state import AppState


async def handle(state: AppState) -> dict:
    log = structlog.get_logger().bind(tool="navigation")
    log.info("handler_called")

    items = await asyncio.to_thread(state.repository.get_navigation)
    output = NavigationOutput(title=state.settings.wiki.title, items=items)
    return output.model_dump(mode="json")
