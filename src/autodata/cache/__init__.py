"""Vehicle record cache.

Components:
- CacheStore: merge-on-write store with per-entry freshness
- ParquetBackend / MemoryBackend: key-value persistence
- KeyedLocks: per-registration asyncio locks
"""

from autodata.cache.backends import CacheBackend, MemoryBackend, ParquetBackend
from autodata.cache.locks import KeyedLocks
from autodata.cache.store import DEFAULT_TTL, CacheEntry, CacheStore

__all__ = [
    "CacheBackend",
    "CacheEntry",
    "CacheStore",
    "DEFAULT_TTL",
    "KeyedLocks",
    "MemoryBackend",
    "ParquetBackend",
]
