"""Application state container.

AppState is created once at server startup (inside the Starlette lifespan)
and handed to every API handler. Nothing in it is mutated per request
except the repository's memoised navigation tree.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from filewiki.config import Settings
    from filewiki.protocols import CacheProtocol
    from filewiki.renderer import MarkdownRenderer
    from filewiki.repository import WikiRepository


@dataclass
class AppState:
    """Holds all shared runtime state. Passed to every handler."""

    settings: Settings
    renderer: MarkdownRenderer
    repository: WikiRepository
    cache: CacheProtocol | None = None
