"""Cache Infrastructure - in-memory result cache."""

from .memory_adapter import CacheEntry, InMemoryCacheAdapter

__all__ = [
    "CacheEntry",
    "InMemoryCacheAdapter",
]
