"""Local caching for course and material collections.

Key components:
- CacheStore: key/value persistence with per-key write timestamps
- CachedEntry: value plus the time it was stored
- validation: staleness arithmetic
"""

from coursesync.cache.store import (
    CachedEntry,
    CacheError,
    CacheLockError,
    CacheSerializationError,
    CacheStore,
)

__all__ = [
    "CacheStore",
    "CachedEntry",
    "CacheError",
    "CacheLockError",
    "CacheSerializationError",
]
