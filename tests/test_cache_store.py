"""Tests for CacheStore: entries, timestamps, expiry, corruption and clear()."""

from datetime import datetime, timedelta, timezone

import orjson
import pytest

from coursesync.cache.store import CacheError, CacheSerializationError, CacheStore
from coursesync.models import Course
from coursesync.storage.backend import StorageBackend
from coursesync.utils import (
    COURSES_KEY,
    LAST_GLOBAL_SYNC_KEY,
    MATERIALS_INDEX_KEY,
    USER_PREFERENCES_KEY,
    materials_key,
    to_iso,
)


def write_raw(cache: CacheStore, key: str, payload) -> None:
    cache.backend.write_bytes(key, orjson.dumps(payload))


class TestPutAndGet:
    """Test basic writes and reads."""

    def test_roundtrip_value(self, cache):
        """Test that a stored value is returned unchanged."""
        assert cache.put("user_preferences", {"theme": "dark", "size": 3}) is True
        assert cache.get("user_preferences") == {"theme": "dark", "size": 3}

    def test_missing_key_is_absent(self, cache):
        """Test that unknown keys read as None with no timestamp."""
        assert cache.get("nothing_here") is None
        assert cache.get_entry("nothing_here") is None
        assert cache.timestamp_of("nothing_here") is None

    def test_put_records_timestamp(self, cache):
        """Test that put stamps the entry with the current time."""
        before = datetime.now(timezone.utc)
        cache.put(COURSES_KEY, [])
        after = datetime.now(timezone.utc)

        stamp = cache.timestamp_of(COURSES_KEY)
        assert stamp is not None
        assert before <= stamp <= after

    def test_overwrite_replaces_value_and_timestamp(self, cache):
        """Test that a second put wins for both value and timestamp."""
        first = cache.put_or_raise("k", 1)
        second = cache.put_or_raise("k", 2)

        entry = cache.get_entry("k")
        assert entry.value == 2
        assert entry.stored_at == second
        assert second >= first

    def test_value_and_timestamp_in_one_blob(self, cache):
        """Test that the entry is persisted as a single blob."""
        stored_at = cache.put_or_raise("k", [1, 2])
        raw = orjson.loads(cache.backend.read_bytes("k"))
        assert raw == {"value": [1, 2], "stored_at": to_iso(stored_at)}

    def test_decode_applied(self, cache):
        """Test that the decode callable converts the stored value."""
        cache.put("numbers", [1, 2, 3])
        assert cache.get("numbers", lambda raw: sum(raw)) == 6

    def test_unserializable_value(self, cache):
        """Test that unserializable values are rejected without writing."""
        with pytest.raises(CacheSerializationError):
            cache.put_or_raise("bad", object())
        assert cache.put("bad", object()) is False
        assert cache.get("bad") is None
        assert cache.get_stats()["write_failures"] == 1

    def test_write_failure_reported_not_raised(self, tmp_path):
        """Test that a substrate failure makes put return False."""
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        store = CacheStore(StorageBackend(blocker / "cache"), lock_dir=tmp_path / "locks")

        assert store.put("k", 1) is False
        with pytest.raises(CacheError):
            store.put_or_raise("k", 1)


class TestRemoveAndClear:
    """Test removal and the fixed-set clear."""

    def test_remove_drops_value_and_timestamp(self, cache):
        """Test that remove clears both halves of the entry."""
        cache.put("k", "v")
        cache.remove("k")
        assert cache.get("k") is None
        assert cache.timestamp_of("k") is None

    def test_remove_missing_key_is_noop(self, cache):
        """Test removing a key that was never written."""
        cache.remove("never_written")
        assert cache.get("never_written") is None

    def test_clear_removes_known_keys_only(self, cache):
        """Test that clear is not a wildcard sweep."""
        for key in (COURSES_KEY, MATERIALS_INDEX_KEY, USER_PREFERENCES_KEY):
            cache.put(key, [])
        cache.put(materials_key("c1"), [])
        cache.put(LAST_GLOBAL_SYNC_KEY, "2024-01-01T00:00:00+00:00")
        cache.put("unrelated", 1)

        cache.clear()

        assert cache.get(COURSES_KEY) is None
        assert cache.get(MATERIALS_INDEX_KEY) is None
        assert cache.get(USER_PREFERENCES_KEY) is None
        assert cache.get(materials_key("c1")) == []
        assert cache.get(LAST_GLOBAL_SYNC_KEY) is not None
        assert cache.get("unrelated") == 1


class TestExpiry:
    """Test staleness queries."""

    def test_absent_key_is_expired(self, cache):
        """Test that a key with no entry is always expired."""
        assert cache.is_expired("missing", 10_000) is True

    def test_fresh_entry_not_expired(self, cache):
        """Test that a just-written entry is within its window."""
        cache.put("k", 1)
        assert cache.is_expired("k", 60) is False

    def test_old_entry_expired(self, cache):
        """Test that an entry older than max_age is expired."""
        old = datetime.now(timezone.utc) - timedelta(hours=2)
        write_raw(cache, "k", {"value": 1, "stored_at": to_iso(old)})

        assert cache.is_expired("k", 3600) is True
        assert cache.is_expired("k", 3 * 3600) is False

    def test_default_ttl_used(self, tmp_path):
        """Test that is_expired falls back to the store's default TTL."""
        store = CacheStore(StorageBackend(tmp_path / "c"), default_ttl=60)
        old = datetime.now(timezone.utc) - timedelta(minutes=5)
        write_raw(store, "k", {"value": 1, "stored_at": to_iso(old)})

        assert store.is_expired("k") is True

    def test_ttl_remaining(self, cache):
        """Test TTL remaining for present, absent and expired entries."""
        cache.put("k", 1)
        remaining = cache.ttl_remaining("k", 600)
        assert 0 < remaining <= 600
        assert cache.ttl_remaining("missing", 600) == 0

        old = datetime.now(timezone.utc) - timedelta(hours=2)
        write_raw(cache, "old", {"value": 1, "stored_at": to_iso(old)})
        assert cache.ttl_remaining("old", 600) == 0


class TestCorruption:
    """Test that undecodable entries are purged and read as absent."""

    def test_garbage_bytes_purged(self, cache):
        """Test that non-JSON blobs are treated as a miss and deleted."""
        cache.backend.write_bytes(COURSES_KEY, b"\x00not json")

        assert cache.get(COURSES_KEY) is None
        assert cache.backend.exists(COURSES_KEY) is False
        assert cache.get_stats()["purged"] == 1

    def test_missing_timestamp_purged(self, cache):
        """Test that a blob without stored_at is corrupt."""
        write_raw(cache, "k", {"value": 1})
        assert cache.get_entry("k") is None
        assert cache.backend.exists("k") is False

    def test_numeric_timestamp_purged(self, cache):
        """Test that a stored_at that is not a string is corrupt."""
        write_raw(cache, USER_PREFERENCES_KEY, {"value": 1, "stored_at": 5})

        assert cache.get(USER_PREFERENCES_KEY) is None
        assert cache.backend.exists(USER_PREFERENCES_KEY) is False

    def test_malformed_item_purged(self, cache):
        """Test that a decoder failing on a non-object item is a miss."""
        cache.put(COURSES_KEY, ["not-a-course"])

        def decode(raw):
            return [Course.from_dict(item) for item in raw]

        assert cache.get(COURSES_KEY, decode) is None
        assert cache.backend.exists(COURSES_KEY) is False

    def test_decode_failure_purged(self, cache):
        """Test that a value the decoder rejects is purged."""
        cache.put(COURSES_KEY, [{"id": "c1"}])

        def decode(raw):
            return [Course.from_dict(item) for item in raw]

        assert cache.get(COURSES_KEY, decode) is None
        assert cache.get(COURSES_KEY) is None


class TestStats:
    """Test cache statistics."""

    def test_hits_and_misses(self, cache):
        """Test hit rate accounting."""
        cache.put("k", 1)
        cache.get("k")
        cache.get("missing")

        stats = cache.get_stats()
        assert stats["cache_hits"] == 1
        assert stats["cache_misses"] == 1
        assert stats["cache_hit_rate"] == 0.5
        assert stats["keys"] == ["k"]

    def test_lock_dir_created_under_root(self, tmp_path):
        """Test that local roots keep their lock files beside the blobs."""
        store = CacheStore(StorageBackend(tmp_path / "root"))
        assert store.lock_dir == tmp_path / "root" / ".locks"
        assert store.lock_dir.is_dir()
