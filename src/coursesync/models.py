"""Entity models exchanged with the server and stored in the cache.

Every model round-trips through ``to_dict()`` / ``from_dict()`` using the
server's snake_case field names, so the same shape is used on the wire and in
cached blobs. ``from_dict`` raises ``KeyError``, ``TypeError``, ``ValueError``
or ``AttributeError`` (for a non-object payload) on malformed input; callers
treat that as an invalid response or a corrupt cache entry.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from coursesync.utils import (
    AttachmentDict,
    CourseDict,
    CrawlResultDict,
    MaterialDict,
    ScheduleDict,
    parse_iso,
    to_iso,
)

_DAY_NAMES = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")


@dataclass(frozen=True)
class Schedule:
    """Weekly time slot of a course."""

    day_of_week: int
    start_time: str
    end_time: str
    weeks: Optional[List[int]] = field(default=None, hash=False)

    @classmethod
    def from_dict(cls, data: ScheduleDict) -> "Schedule":
        if not isinstance(data, dict):
            raise TypeError(f"Expected schedule object, got {type(data).__name__}")
        weeks = data.get("weeks")
        return cls(
            day_of_week=int(data["day_of_week"]),
            start_time=str(data["start_time"]),
            end_time=str(data["end_time"]),
            weeks=list(weeks) if weeks is not None else None,
        )

    @property
    def day_name(self) -> str:
        return _DAY_NAMES[self.day_of_week % 7]

    @property
    def display(self) -> str:
        """E.g. 'Mon 09:00-10:30'."""
        return f"{self.day_name} {self.start_time}-{self.end_time}"

    def to_dict(self) -> ScheduleDict:
        return {
            "day_of_week": self.day_of_week,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "weeks": self.weeks,
        }


@dataclass(frozen=True)
class Course:
    """A course the user is enrolled in.

    Courses are never patched field by field; a refresh replaces the whole list.
    """

    id: str
    course_code: str
    name: str
    created_at: datetime
    updated_at: datetime
    professor: Optional[str] = None
    semester: Optional[str] = None
    classroom: Optional[str] = None
    schedule: Optional[Schedule] = None
    color: Optional[str] = None

    @classmethod
    def from_dict(cls, data: CourseDict) -> "Course":
        schedule = data.get("schedule")
        return cls(
            id=str(data["id"]),
            course_code=str(data["course_code"]),
            name=str(data["name"]),
            created_at=parse_iso(data["created_at"]),
            updated_at=parse_iso(data["updated_at"]),
            professor=data.get("professor"),
            semester=data.get("semester"),
            classroom=data.get("classroom"),
            schedule=Schedule.from_dict(schedule) if schedule else None,
            color=data.get("color"),
        )

    def to_dict(self) -> CourseDict:
        return {
            "id": self.id,
            "course_code": self.course_code,
            "name": self.name,
            "professor": self.professor,
            "semester": self.semester,
            "classroom": self.classroom,
            "schedule": self.schedule.to_dict() if self.schedule else None,
            "color": self.color,
            "created_at": to_iso(self.created_at),
            "updated_at": to_iso(self.updated_at),
        }


@dataclass(frozen=True)
class Attachment:
    """A file attached to a material.

    ``storage_path`` is the server-side download reference.
    """

    id: str
    content_id: str
    filename: str
    file_size: int
    storage_path: str
    created_at: datetime
    mime_type: Optional[str] = None
    checksum: Optional[str] = None

    @classmethod
    def from_dict(cls, data: AttachmentDict) -> "Attachment":
        return cls(
            id=str(data["id"]),
            content_id=str(data["content_id"]),
            filename=str(data["filename"]),
            file_size=int(data["file_size"]),
            storage_path=str(data["storage_path"]),
            created_at=parse_iso(data["created_at"]),
            mime_type=data.get("mime_type"),
            checksum=data.get("checksum"),
        )

    def to_dict(self) -> AttachmentDict:
        return {
            "id": self.id,
            "content_id": self.content_id,
            "filename": self.filename,
            "file_size": self.file_size,
            "mime_type": self.mime_type,
            "storage_path": self.storage_path,
            "checksum": self.checksum,
            "created_at": to_iso(self.created_at),
        }


@dataclass(frozen=True)
class Material:
    """A posting belonging to exactly one course.

    Materials are versioned: a newer posting points back through
    ``replaced_by`` on the older one.
    """

    id: str
    course_id: str
    title: str
    posted_at: datetime
    created_at: datetime
    updated_at: datetime
    content: Optional[str] = None
    author: Optional[str] = None
    is_important: bool = False
    version: int = 1
    replaced_by: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = field(default=None, hash=False)
    attachments: tuple = field(default_factory=tuple)

    @property
    def is_superseded(self) -> bool:
        """True when a newer version of this material exists."""
        return self.replaced_by is not None

    @classmethod
    def from_dict(cls, data: MaterialDict) -> "Material":
        return cls(
            id=str(data["id"]),
            course_id=str(data["course_id"]),
            title=str(data["title"]),
            posted_at=parse_iso(data["posted_at"]),
            created_at=parse_iso(data["created_at"]),
            updated_at=parse_iso(data["updated_at"]),
            content=data.get("content"),
            author=data.get("author"),
            is_important=bool(data.get("is_important", False)),
            version=int(data.get("version", 1)),
            replaced_by=data.get("replaced_by"),
            metadata=data.get("metadata"),
            attachments=tuple(
                Attachment.from_dict(a) for a in data.get("attachments") or []
            ),
        )

    def to_dict(self) -> MaterialDict:
        return {
            "id": self.id,
            "course_id": self.course_id,
            "title": self.title,
            "content": self.content,
            "author": self.author,
            "posted_at": to_iso(self.posted_at),
            "is_important": self.is_important,
            "version": self.version,
            "replaced_by": self.replaced_by,
            "metadata": self.metadata,
            "attachments": [a.to_dict() for a in self.attachments],
            "created_at": to_iso(self.created_at),
            "updated_at": to_iso(self.updated_at),
        }


@dataclass(frozen=True)
class CrawlResult:
    """What the server discovered while refreshing a course."""

    materials_added: int = 0
    attachments_processed: int = 0
    processing_time: float = 0.0

    @classmethod
    def from_dict(cls, data: CrawlResultDict) -> "CrawlResult":
        return cls(
            materials_added=int(data.get("materials_added", 0)),
            attachments_processed=int(data.get("attachments_processed", 0)),
            processing_time=float(data.get("processing_time", 0.0)),
        )


@dataclass(frozen=True)
class RefreshOutcome:
    """Result of an explicit "refresh now" request.

    Attributes:
        items: The fresh entity set for the scope
        total: Server-reported total
        message: Server-reported summary message
        crawl_result: Discovery metadata, when the server ran a crawl
    """

    items: tuple
    total: int = 0
    message: str = ""
    crawl_result: Optional[CrawlResult] = None

    @property
    def new_items(self) -> int:
        """Number of newly discovered items (0 when unknown)."""
        return self.crawl_result.materials_added if self.crawl_result else 0

    @classmethod
    def from_materials_payload(cls, data: Dict[str, Any]) -> "RefreshOutcome":
        """Build from a ``POST .../materials/refresh`` response body."""
        crawl = data.get("crawl_result")
        materials = tuple(Material.from_dict(m) for m in data["materials"])
        return cls(
            items=materials,
            total=int(data.get("total", len(materials))),
            message=str(data.get("message", "")),
            crawl_result=CrawlResult.from_dict(crawl) if crawl else None,
        )


@dataclass(frozen=True)
class User:
    """The authenticated account."""

    id: str
    email: str
    eclass_username: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "User":
        return cls(
            id=str(data["id"]),
            email=str(data["email"]),
            eclass_username=str(data["eclass_username"]),
        )


@dataclass(frozen=True)
class AuthSession:
    """Token and user returned by a successful login."""

    access_token: str
    user: User
    token_type: str = "bearer"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AuthSession":
        return cls(
            access_token=str(data["access_token"]),
            user=User.from_dict(data["user"]),
            token_type=str(data.get("token_type", "bearer")),
        )
