"""Unit tests for cache validation module."""

from datetime import datetime, timedelta, timezone

from coursesync.cache.validation import entry_age, get_ttl_remaining, is_expired


class TestExpiry:
    """Test expiry checks."""

    def test_valid_within_window(self):
        """Test that an entry is fresh within its window."""
        stored_at = datetime.now(timezone.utc)
        assert is_expired(stored_at, 1800) is False

    def test_expired_after_window(self):
        """Test that an entry expires after its window."""
        stored_at = datetime.now(timezone.utc) - timedelta(hours=2)
        assert is_expired(stored_at, 1800) is True

    def test_missing_timestamp_is_expired(self):
        """Test that no timestamp means expired, whatever the window."""
        assert is_expired(None, 10**9) is True
        assert is_expired(None, None) is True

    def test_none_max_age_never_expires(self):
        """Test that max_age=None means never expire."""
        ancient = datetime.now(timezone.utc) - timedelta(days=365)
        assert is_expired(ancient, None) is False

    def test_exact_boundary_not_expired(self):
        """Test that an entry exactly max_age old is still fresh."""
        now = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
        stored_at = now - timedelta(seconds=1800)
        assert is_expired(stored_at, 1800, now=now) is False
        assert is_expired(stored_at, 1799, now=now) is True

    def test_accepts_iso_strings(self):
        """Test that ISO strings (including 'Z') are accepted."""
        now = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
        assert is_expired("2024-01-01T11:00:00Z", 600, now=now) is True
        assert is_expired("2024-01-01T11:55:00+00:00", 600, now=now) is False

    def test_naive_timestamp_treated_as_utc(self):
        """Test that naive datetimes are read as UTC."""
        now = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
        assert entry_age(datetime(2024, 1, 1, 11, 0), now=now) == 3600


class TestTTLRemaining:
    """Test TTL remaining calculation."""

    def test_remaining_within_window(self):
        """Test remaining seconds for a fresh entry."""
        now = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
        stored_at = now - timedelta(seconds=100)
        assert get_ttl_remaining(stored_at, 1800, now=now) == 1700

    def test_remaining_expired(self):
        """Test that expired entries report zero."""
        stored_at = datetime.now(timezone.utc) - timedelta(hours=2)
        assert get_ttl_remaining(stored_at, 1800) == 0

    def test_remaining_none(self):
        """Test that TTL=None reports None."""
        assert get_ttl_remaining(datetime.now(timezone.utc), None) is None
