"""Flat-file content cache with TTL expiry and mtime-keyed invalidation.

All cache operations catch storage errors internally and degrade
gracefully: read failures return ``None`` (treated as cache miss by callers),
write failures are logged and reported as ``False`` (computed content is
still returned). Infrastructure errors never cross the Cache class boundary.

``remember_file`` and ``remember_directory`` fold the source modification
time into the key, so an edit makes the old entry unreachable rather than
deleting it. Orphaned entries expire and are swept by ``cleanup``.
"""

from __future__ import annotations

import contextlib
import hashlib
import json
import os
import re
import tempfile
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError
from pydantic_core import PydanticSerializationError

from filewiki.models.cache import CacheEntry, CacheStats

if TYPE_CHECKING:
    from collections.abc import Callable

    from filewiki.protocols import CacheStore

log = structlog.get_logger()

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9_-]")
ENTRY_SUFFIX = ".cache"


def sanitize_key(key: str) -> str:
    """Map a caller key onto a filesystem-safe storage name."""
    return _UNSAFE_KEY_CHARS.sub("_", key)


def directory_mtime(directory: Path) -> int:
    """Newest modification time (ns) of ``directory`` or anything below it.

    Returns 0 for a missing directory.
    """
    if not directory.is_dir():
        return 0

    newest = directory.stat().st_mtime_ns
    for root, dirs, files in os.walk(directory):
        for name in (*dirs, *files):
            try:
                mtime = os.stat(os.path.join(root, name)).st_mtime_ns
            except OSError:
                # Removed between listing and stat
                continue
            newest = max(newest, mtime)
    return newest


def format_bytes(size: float) -> str:
    units = ["B", "KB", "MB", "GB"]
    index = 0
    while size >= 1024 and index < len(units) - 1:
        size /= 1024
        index += 1
    return f"{round(size, 2):g} {units[index]}"


# ----------------------------------------------------------------------
# Stores
# ----------------------------------------------------------------------


class FileStore:
    """One ``<name>.cache`` file per entry, written via temp file + rename."""

    def __init__(self, directory: Path) -> None:
        self.directory = directory
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, name: str) -> Path:
        return self.directory / f"{name}{ENTRY_SUFFIX}"

    def read(self, name: str) -> str | None:
        try:
            return self._path(name).read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def write(self, name: str, payload: str) -> None:
        fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f".{name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
            os.replace(tmp_name, self._path(name))
        except BaseException:
            with contextlib.suppress(OSError):
                os.unlink(tmp_name)
            raise

    def delete(self, name: str) -> bool:
        try:
            self._path(name).unlink()
        except FileNotFoundError:
            return False
        return True

    def names(self) -> list[str]:
        if not self.directory.is_dir():
            return []
        return sorted(
            path.name.removesuffix(ENTRY_SUFFIX)
            for path in self.directory.glob(f"*{ENTRY_SUFFIX}")
        )

    def size(self, name: str) -> int:
        try:
            return self._path(name).stat().st_size
        except FileNotFoundError:
            return 0


class MemoryStore:
    """Dict-backed store for tests and cache-less deployments."""

    def __init__(self) -> None:
        self._entries: dict[str, str] = {}

    def read(self, name: str) -> str | None:
        return self._entries.get(name)

    def write(self, name: str, payload: str) -> None:
        self._entries[name] = payload

    def delete(self, name: str) -> bool:
        return self._entries.pop(name, None) is not None

    def names(self) -> list[str]:
        return sorted(self._entries)

    def size(self, name: str) -> int:
        return len(self._entries.get(name, "").encode("utf-8"))


# ----------------------------------------------------------------------
# Cache
# ----------------------------------------------------------------------


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Cache:
    """TTL cache over a CacheStore, implementing CacheProtocol."""

    def __init__(
        self,
        store: CacheStore,
        default_ttl: int = 3600,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self.default_ttl = default_ttl
        self._clock = clock

    @staticmethod
    def generate_key(*params: Any) -> str:
        """Stable key for a combination of parameters."""
        raw = json.dumps(params, sort_keys=True, default=str)
        return hashlib.md5(raw.encode("utf-8")).hexdigest()

    def _load(self, name: str) -> CacheEntry | None:
        """Read and decode one stored entry. ``None`` on miss or failure."""
        try:
            payload = self._store.read(name)
        except OSError:
            log.warning("cache_read_error", key=name, exc_info=True)
            return None
        except UnicodeDecodeError:
            log.warning("cache_decode_error", key=name, exc_info=True)
            return None
        if payload is None:
            return None
        try:
            return CacheEntry.model_validate_json(payload)
        except ValidationError:
            log.warning("cache_decode_error", key=name)
            return None

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    def get(self, key: str) -> Any | None:
        """Return the stored value, or ``None`` when missing or expired.

        Expired entries are deleted on the way out.
        """
        name = sanitize_key(key)
        entry = self._load(name)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            log.debug("cache_expired", key=name)
            self.delete(key)
            return None
        return entry.data

    def set(self, key: str, value: Any, ttl: int | None = None) -> bool:
        """Store ``value`` for ``ttl`` seconds. Returns False on failure."""
        name = sanitize_key(key)
        now = self._clock()
        entry = CacheEntry(
            data=value,
            created_at=now,
            expires_at=now + timedelta(seconds=self.default_ttl if ttl is None else ttl),
        )
        try:
            self._store.write(name, entry.model_dump_json())
        except (OSError, PydanticSerializationError):
            log.warning("cache_write_error", key=name, exc_info=True)
            return False
        return True

    def has(self, key: str) -> bool:
        return self.get(key) is not None

    def delete(self, key: str) -> bool:
        """Remove an entry. Deleting a missing entry is not an error."""
        try:
            self._store.delete(sanitize_key(key))
        except OSError:
            log.warning("cache_delete_error", key=key, exc_info=True)
            return False
        return True

    # ------------------------------------------------------------------
    # Compute-if-missing
    # ------------------------------------------------------------------

    def remember(self, key: str, compute: Callable[[], Any], ttl: int | None = None) -> Any:
        """Return the cached value, or compute, store and return it.

        Exceptions from ``compute`` propagate and nothing is stored.
        """
        value = self.get(key)
        if value is not None:
            log.debug("cache_hit", key=key)
            return value

        log.debug("cache_miss", key=key)
        value = compute()
        self.set(key, value, ttl)
        return value

    def remember_file(
        self, key: str, source: Path, compute: Callable[[], Any], ttl: int | None = None
    ) -> Any:
        """``remember`` keyed by the source file's modification time.

        A missing source bypasses the cache entirely.
        """
        try:
            mtime = source.stat().st_mtime_ns
        except OSError:
            return compute()
        return self.remember(f"{key}_{mtime}", compute, ttl)

    def remember_directory(
        self, key: str, source: Path, compute: Callable[[], Any], ttl: int | None = None
    ) -> Any:
        """``remember`` keyed by the newest modification time under ``source``."""
        return self.remember(f"{key}_{directory_mtime(source)}", compute, ttl)

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def _names(self) -> list[str]:
        try:
            return self._store.names()
        except OSError:
            log.warning("cache_list_error", exc_info=True)
            return []

    def clear(self) -> int:
        """Delete every entry. Returns the number removed."""
        cleared = 0
        for name in self._names():
            try:
                if self._store.delete(name):
                    cleared += 1
            except OSError:
                log.warning("cache_delete_error", key=name, exc_info=True)
        log.info("cache_cleared", cleared=cleared)
        return cleared

    def cleanup(self) -> int:
        """Delete expired or unreadable entries. Returns the number removed."""
        now = self._clock()
        cleaned = 0
        for name in self._names():
            entry = self._load(name)
            if entry is not None and not entry.is_expired(now):
                continue
            try:
                if self._store.delete(name):
                    cleaned += 1
            except OSError:
                log.warning("cache_delete_error", key=name, exc_info=True)
        log.info("cache_cleanup_complete", cleaned=cleaned)
        return cleaned

    def stats(self) -> CacheStats:
        now = self._clock()
        names = self._names()
        size = 0
        expired = 0
        for name in names:
            try:
                size += self._store.size(name)
            except OSError:
                log.warning("cache_stat_error", key=name, exc_info=True)
            entry = self._load(name)
            if entry is None or entry.is_expired(now):
                expired += 1

        return CacheStats(
            total=len(names),
            size=size,
            size_human=format_bytes(size),
            expired=expired,
            valid=len(names) - expired,
        )
