from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel


class CacheEntry(BaseModel):
    """One persisted cache record. Replaced wholesale, never patched."""

    data: Any  # JSON-compatible payload chosen by the caller
    created_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


class CacheStats(BaseModel):
    """Advisory numbers for the cache admin endpoint."""

    total: int = 0
    size: int = 0  # Bytes on disk (or in memory for MemoryStore)
    size_human: str = "0 B"
    expired: int = 0
    valid: int = 0
    enabled: bool = True
