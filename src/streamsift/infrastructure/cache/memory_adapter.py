"""In-memory cache adapter - process-lifetime cachetools TLRU cache."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Optional

import structlog
from cachetools import TLRUCache

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    """Stored value and the TTL it was written with (seconds)."""

    value: Any
    ttl: float


def _entry_expiry(_key: str, entry: CacheEntry, now: float) -> float:
    return now + entry.ttl


class InMemoryCacheAdapter:
    """Async ``CachePort`` over a ``cachetools.TLRUCache``.

    - Each entry expires ``ttl`` seconds after its write; per-call TTLs
      are carried on the stored ``CacheEntry``.
    - Each operation is a single cache access with no ``await`` in between,
      so concurrent writers to one key resolve as last-writer-wins.
    - Values are stored by reference; callers store immutable values.

    Args:
        ttl_seconds: Default TTL for `set()` without explicit value.
        max_entries: Size bound before least-recently-used eviction.
        clock: Monotonic seconds source (injectable for tests).
    """

    def __init__(
        self,
        ttl_seconds: int = 1800,
        *,
        max_entries: int = 100_000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.default_ttl = ttl_seconds
        self._cache: TLRUCache = TLRUCache(
            maxsize=max_entries, ttu=_entry_expiry, timer=clock
        )

        log.info("memory_cache_init", default_ttl=ttl_seconds, max_entries=max_entries)

    # --- Context Manager ---
    async def __aenter__(self) -> InMemoryCacheAdapter:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        size = len(self._cache)
        self._cache.clear()
        log.info("memory_cache_closed", entries=size)

    # --- CachePort implementation ---
    async def get(self, key: str) -> Optional[Any]:
        """Value for *key*, or None when missing or older than its TTL."""
        entry = self._cache.get(key)
        log.debug("cache_get", key=key, hit=entry is not None)
        return entry.value if entry is not None else None

    async def set(self, key: str, value: Any, *, ttl: int | None = None) -> None:
        """Store *value* (default TTL: self.default_ttl)."""
        expire = ttl if ttl is not None else self.default_ttl
        # TLRUCache skips already-expired items, so drop any older entry first.
        self._cache.pop(key, None)
        self._cache[key] = CacheEntry(value=value, ttl=expire)
        log.debug("cache_set", key=key, ttl=expire)

    async def delete(self, key: str) -> bool:
        deleted = self._cache.pop(key, None) is not None
        log.debug("cache_delete", key=key, deleted=deleted)
        return deleted

    async def exists(self, key: str) -> bool:
        return key in self._cache

    async def clear(self) -> None:
        self._cache.clear()
        log.warning("cache_cleared")

    def __len__(self) -> int:
        self._cache.expire()
        return len(self._cache)
