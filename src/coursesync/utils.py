"""Utility functions for coursesync."""

from datetime import datetime, timezone
from typing import Any, Optional

from typing_extensions import TypedDict

# Cache key namespace
COURSES_KEY = "cached_courses"
MATERIALS_INDEX_KEY = "cached_materials"  # Course ids with cached materials
USER_PREFERENCES_KEY = "user_preferences"
LAST_GLOBAL_SYNC_KEY = "last_global_sync_time"
MATERIALS_KEY_PREFIX = "materials_"

# Keys removed by CacheStore.clear(); per-course keys are not swept
KNOWN_CACHE_KEYS = (COURSES_KEY, MATERIALS_INDEX_KEY, USER_PREFERENCES_KEY)

# Scope under which the single global course list is managed
GLOBAL_SCOPE = "courses"

CLOUD_PREFIXES = ("gs://", "s3://", "file://", "https://", "http://")


# TypedDicts for server payloads
class ScheduleDict(TypedDict, total=False):
    """Weekly class slot as sent by the server."""

    day_of_week: int  # 0 = Sunday ... 6 = Saturday
    start_time: str  # '09:00'
    end_time: str  # '10:30'
    weeks: Optional[list[int]]


class CourseDict(TypedDict, total=False):
    """Course payload."""

    id: str
    course_code: str
    name: str
    professor: Optional[str]
    semester: Optional[str]
    classroom: Optional[str]
    schedule: Optional[ScheduleDict]
    color: Optional[str]
    created_at: str
    updated_at: str


class AttachmentDict(TypedDict, total=False):
    """Attachment payload."""

    id: str
    content_id: str
    filename: str
    file_size: int
    mime_type: Optional[str]
    storage_path: str
    checksum: Optional[str]
    created_at: str


class MaterialDict(TypedDict, total=False):
    """Material payload."""

    id: str
    course_id: str
    title: str
    content: Optional[str]
    author: Optional[str]
    posted_at: str
    is_important: bool
    version: int
    replaced_by: Optional[str]
    metadata: Optional[dict[str, Any]]
    attachments: list[AttachmentDict]
    created_at: str
    updated_at: str


class CrawlResultDict(TypedDict, total=False):
    """Server-side discovery summary returned by a material refresh."""

    materials_added: int
    attachments_processed: int
    processing_time: float


def utc_now() -> datetime:
    """Return the current time as a UTC-aware datetime."""
    return datetime.now(timezone.utc)


def to_iso(value: datetime) -> str:
    """Serialize a datetime to an ISO 8601 string in UTC.

    Naive datetimes are assumed to already be UTC.

    Examples:
        >>> to_iso(datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc))
        '2024-01-15T10:30:00+00:00'
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def parse_iso(value: str) -> datetime:
    """Parse an ISO 8601 string into a UTC-aware datetime.

    Accepts the trailing ``Z`` form the server emits.

    Raises:
        TypeError: If the value is not a string
        ValueError: If the string is not a valid timestamp
    """
    if not isinstance(value, str):
        raise TypeError(f"Expected ISO timestamp string, got {type(value).__name__}")
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def materials_key(course_id: str) -> str:
    """Cache key holding the material set of one course.

    Examples:
        >>> materials_key('c-101')
        'materials_c-101'
    """
    return f"{MATERIALS_KEY_PREFIX}{course_id}"


def is_cloud_path(path: Any) -> bool:
    """Check whether a path points at cloud storage.

    Examples:
        >>> is_cloud_path('gs://bucket/cache')
        True
        >>> is_cloud_path('/home/user/.coursesync_cache')
        False
    """
    return str(path).startswith(CLOUD_PREFIXES)


def format_duration(seconds: Optional[float]) -> str:
    """Format a duration as ``m:ss``.

    Examples:
        >>> format_duration(75.4)
        '1:15'
        >>> format_duration(None)
        '-'
    """
    if seconds is None:
        return "-"
    total = max(0, int(seconds))
    minutes, secs = divmod(total, 60)
    return f"{minutes}:{secs:02d}"
