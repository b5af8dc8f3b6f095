"""Opportunistic cache maintenance.

There is no background scheduler: request handlers call ``maybe_cleanup``
and roughly one request in ``1 / probability`` pays for a sweep of expired
entries. Concurrent sweeps are harmless since deleting a missing entry is
a no-op.
"""

from __future__ import annotations

import random
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from collections.abc import Callable

    from filewiki.protocols import CacheProtocol

log = structlog.get_logger()


def maybe_cleanup(
    cache: CacheProtocol | None,
    probability: float,
    *,
    rng: Callable[[], float] = random.random,
) -> int:
    """Sweep expired entries with the given probability.

    Returns the number of entries removed, 0 when the sweep was skipped.
    """
    if cache is None or probability <= 0:
        return 0
    if rng() >= probability:
        return 0
    log.debug("cache_cleanup_triggered", probability=probability)
    return cache.cleanup()
