from __future__ import annotations

from filewiki.models.cache import CacheEntry, CacheStats
from filewiki.models.content import (
    Breadcrumb,
    NavigationCategory,
    NavigationNode,
    NavigationPage,
    PageHeading,
    SearchResult,
)
from filewiki.models.tools import (
    NavigationOutput,
    PageInput,
    PageOutput,
    SearchInput,
    SearchOutput,
)

__all__ = [
    # content
    "NavigationPage",
    "NavigationCategory",
    "NavigationNode",
    "PageHeading",
    "Breadcrumb",
    "SearchResult",
    # cache
    "CacheEntry",
    "CacheStats",
    # tools
    "PageInput",
    "PageOutput",
    "SearchInput",
    "SearchOutput",
    "NavigationOutput",
]
