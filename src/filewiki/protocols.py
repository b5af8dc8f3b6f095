"""Protocol interfaces for swappable components.

The repository and renderer reference these protocols, not the concrete
implementations. This allows:
- Tests to use lightweight in-memory implementations
- Other markdown engines or storage backends to be swapped in without
  touching the core
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from filewiki.models.cache import CacheStats


class MarkdownEngine(Protocol):
    """Full-featured markdown engine wrapped by the renderer."""

    def convert(self, text: str) -> str: ...


class CacheStore(Protocol):
    """Flat key/value storage behind the cache.

    ``write`` must be atomic: a concurrent ``read`` sees either the old
    payload or the new one, never a partial write. I/O failures raise
    ``OSError``; the cache decides what to do with them.
    """

    def read(self, name: str) -> str | None: ...

    def write(self, name: str, payload: str) -> None: ...

    def delete(self, name: str) -> bool: ...

    def names(self) -> list[str]: ...

    def size(self, name: str) -> int: ...


class CacheProtocol(Protocol):
    """Interface for the content cache used by the repository."""

    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any, ttl: int | None = None) -> bool: ...

    def delete(self, key: str) -> bool: ...

    def remember(self, key: str, compute: Callable[[], Any], ttl: int | None = None) -> Any: ...

    def remember_file(
        self, key: str, source: Path, compute: Callable[[], Any], ttl: int | None = None
    ) -> Any: ...

    def remember_directory(
        self, key: str, source: Path, compute: Callable[[], Any], ttl: int | None = None
    ) -> Any: ...

    def clear(self) -> int: ...

    def cleanup(self) -> int: ...

    def stats(self) -> CacheStats: ...
