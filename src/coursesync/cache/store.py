"""Cache store: key/value persistence with per-key write timestamps."""

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Generic, Optional, TypeVar, Union

import orjson
from filelock import FileLock, Timeout

from coursesync.cache import validation
from coursesync.config import DEFAULT_CACHE_DIR
from coursesync.errors import LocalStorageError
from coursesync.storage.backend import StorageBackend, StorageError
from coursesync.utils import KNOWN_CACHE_KEYS, parse_iso, to_iso, utc_now

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CacheError(LocalStorageError):
    """Base exception for cache-related errors."""

    pass


class CacheSerializationError(CacheError):
    """Raised when a value cannot be serialized or a stored blob decoded."""

    pass


class CacheLockError(CacheError):
    """Raised when unable to acquire a cache key lock."""

    pass


@dataclass(frozen=True)
class CachedEntry(Generic[T]):
    """A cached value together with the time it was written."""

    value: T
    stored_at: datetime


class CacheStore:
    """Generic key/value cache with write timestamps.

    Each entry is persisted as a single blob holding both the value and its
    write time, so no reader ever observes a value paired with another
    write's timestamp. Blobs that fail to decode are purged and reported as
    a miss.

    Reads and writes are synchronous and run on the calling thread, including
    the wait for a key lock (bounded by ``lock_timeout``). Entries are small
    local blobs; the remote source is the only component that offloads its
    blocking calls to worker threads.

    Examples:
        >>> store = CacheStore(StorageBackend('/tmp/coursesync'))
        >>> store.put('user_preferences', {'theme': 'dark'})
        True
        >>> store.get('user_preferences')
        {'theme': 'dark'}
    """

    def __init__(
        self,
        backend: StorageBackend,
        default_ttl: Optional[int] = 3600,
        lock_dir: Optional[Union[str, Path]] = None,
        lock_timeout: int = 30,
    ):
        """Initialize the cache store.

        Args:
            backend: Substrate holding the serialized blobs
            default_ttl: Expiry window used by is_expired() when none is given
            lock_dir: Directory for per-key lock files. Defaults to
                '<root>/.locks' for local roots.
            lock_timeout: Seconds to wait for a key lock
        """
        self.backend = backend
        self.default_ttl = default_ttl
        self.lock_timeout = lock_timeout

        if lock_dir is None:
            root = DEFAULT_CACHE_DIR if backend.is_cloud else Path(backend.root)
            lock_dir = root / ".locks"
        self.lock_dir = Path(lock_dir)
        try:
            self.lock_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CacheError(
                f"Cannot create cache lock directory at {self.lock_dir}: {e}"
            ) from e

        self._stats = {"cache_hits": 0, "cache_misses": 0, "purged": 0, "write_failures": 0}

    def _lock(self, key: str) -> FileLock:
        return FileLock(
            self.lock_dir / f"{StorageBackend.normalize_key(key)}.lock",
            timeout=self.lock_timeout,
        )

    # =========================================================================
    # Writes
    # =========================================================================

    def put(self, key: str, value: Any) -> bool:
        """Store ``value`` under ``key`` stamped with the current time.

        Overwrites any prior entry. Failures are logged and reported through
        the return value rather than raised.

        Args:
            key: Cache key
            value: JSON-serializable value

        Returns:
            True if the entry was written
        """
        try:
            self.put_or_raise(key, value)
            return True
        except CacheError as e:
            self._stats["write_failures"] += 1
            logger.error(f"Failed to cache object for key {key}: {e}")
            return False

    def put_or_raise(self, key: str, value: Any) -> datetime:
        """Like put(), but raises on failure.

        Returns:
            The timestamp the entry was stored with

        Raises:
            CacheSerializationError: If the value is not serializable
            CacheLockError: If the key lock cannot be acquired
            CacheError: If the substrate write fails
        """
        stored_at = utc_now()
        try:
            blob = orjson.dumps({"value": value, "stored_at": to_iso(stored_at)})
        except TypeError as e:
            raise CacheSerializationError(f"Cannot serialize value for {key}: {e}") from e

        try:
            with self._lock(key):
                self.backend.write_bytes(key, blob)
        except Timeout as e:
            raise CacheLockError(
                f"Timeout acquiring lock for {key} after {self.lock_timeout} seconds"
            ) from e
        except StorageError as e:
            raise CacheError(str(e)) from e

        logger.debug(f"Cached {key} ({len(blob)} bytes)")
        return stored_at

    def remove(self, key: str) -> None:
        """Remove the entry (value and timestamp) for ``key``."""
        try:
            with self._lock(key):
                self.backend.delete(key)
        except Timeout:
            logger.error(f"Timeout acquiring lock to remove {key}")
        except StorageError as e:
            logger.error(f"Failed to remove cached key {key}: {e}")

    def clear(self) -> None:
        """Remove the fixed set of known namespaced keys.

        This is not a wildcard sweep: per-course keys and any key outside
        the known set are left in place.
        """
        for key in KNOWN_CACHE_KEYS:
            self.remove(key)

    # =========================================================================
    # Reads
    # =========================================================================

    def get_entry(
        self, key: str, decode: Optional[Callable[[Any], T]] = None
    ) -> Optional[CachedEntry[T]]:
        """Read the entry for ``key``.

        Args:
            key: Cache key
            decode: Optional conversion applied to the raw stored value. A
                ``AttributeError``, ``KeyError``, ``TypeError`` or ``ValueError``
                raised by it marks the entry as corrupt.

        Returns:
            CachedEntry, or None when absent or corrupt (corrupt entries are purged)
        """
        try:
            raw = self.backend.read_bytes(key)
        except StorageError as e:
            logger.warning(f"Could not read cached key {key}: {e}")
            self._stats["cache_misses"] += 1
            return None

        if raw is None:
            self._stats["cache_misses"] += 1
            return None

        try:
            payload = orjson.loads(raw)
            stored_at = parse_iso(payload["stored_at"])
            value = payload["value"]
            if decode is not None:
                value = decode(value)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Failed to decode cached object for key {key}: {e}")
            self._purge(key)
            self._stats["cache_misses"] += 1
            return None

        self._stats["cache_hits"] += 1
        return CachedEntry(value=value, stored_at=stored_at)

    def get(self, key: str, decode: Optional[Callable[[Any], T]] = None) -> Optional[T]:
        """Return the value stored under ``key``, or None."""
        entry = self.get_entry(key, decode)
        return entry.value if entry is not None else None

    def timestamp_of(self, key: str) -> Optional[datetime]:
        """Return when ``key`` was last written, or None."""
        entry = self.get_entry(key)
        return entry.stored_at if entry is not None else None

    def is_expired(self, key: str, max_age: Optional[float] = None) -> bool:
        """Check whether ``key`` is missing or older than ``max_age`` seconds.

        Args:
            key: Cache key
            max_age: Expiry window; defaults to the store's default_ttl
        """
        if max_age is None:
            max_age = self.default_ttl
        return validation.is_expired(self.timestamp_of(key), max_age)

    def ttl_remaining(self, key: str, max_age: Optional[float] = None) -> Optional[int]:
        """Seconds until ``key`` goes stale (0 if absent or expired)."""
        if max_age is None:
            max_age = self.default_ttl
        stored_at = self.timestamp_of(key)
        if stored_at is None:
            return 0
        return validation.get_ttl_remaining(stored_at, max_age)

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics.

        Returns:
            Statistics dict including hit rate
        """
        stats = dict(self._stats)
        stats["root"] = str(self.backend.root)
        stats["keys"] = self.backend.list_keys()
        total_requests = stats["cache_hits"] + stats["cache_misses"]
        stats["cache_hit_rate"] = (
            stats["cache_hits"] / total_requests if total_requests > 0 else 0.0
        )
        return stats

    def _purge(self, key: str) -> None:
        self._stats["purged"] += 1
        self.remove(key)
