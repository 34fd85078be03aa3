"""Per-course sync state records."""

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Optional

from coursesync.errors import ErrorKind


class SyncPhase(str, Enum):
    PENDING = "pending"
    SYNCING = "syncing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class SyncStatus:
    """Status of one course within a sync attempt.

    ``reason`` is only set for failures and holds a user-facing message.
    """

    phase: SyncPhase
    reason: Optional[str] = None

    @classmethod
    def pending(cls) -> "SyncStatus":
        return cls(SyncPhase.PENDING)

    @classmethod
    def syncing(cls) -> "SyncStatus":
        return cls(SyncPhase.SYNCING)

    @classmethod
    def completed(cls) -> "SyncStatus":
        return cls(SyncPhase.COMPLETED)

    @classmethod
    def failed(cls, reason: str) -> "SyncStatus":
        return cls(SyncPhase.FAILED, reason)

    @property
    def is_completed(self) -> bool:
        return self.phase is SyncPhase.COMPLETED

    @property
    def is_failed(self) -> bool:
        return self.phase is SyncPhase.FAILED

    @property
    def is_terminal(self) -> bool:
        return self.phase in (SyncPhase.COMPLETED, SyncPhase.FAILED)

    @property
    def display_name(self) -> str:
        if self.phase is SyncPhase.PENDING:
            return "Pending"
        if self.phase is SyncPhase.SYNCING:
            return "Syncing"
        if self.phase is SyncPhase.COMPLETED:
            return "Completed"
        return f"Failed: {self.reason}"


@dataclass(frozen=True)
class CourseSyncState:
    """Outcome record for one course in one sync attempt.

    Records are immutable; every status transition produces a new record,
    so holders of an old record must re-read the orchestrator's map to see
    the current state. ``course_name`` is a display snapshot only.
    """

    course_id: str
    course_name: str
    status: SyncStatus
    start_time: datetime
    completion_time: Optional[datetime] = None
    error_kind: Optional[ErrorKind] = None

    @property
    def duration(self) -> Optional[float]:
        """Seconds from start to completion, None while still running."""
        if self.completion_time is None:
            return None
        return (self.completion_time - self.start_time).total_seconds()

    def completed(self, at: datetime) -> "CourseSyncState":
        """New record in the completed state."""
        return replace(self, status=SyncStatus.completed(), completion_time=at)

    def failed(
        self, reason: str, at: datetime, kind: Optional[ErrorKind] = None
    ) -> "CourseSyncState":
        """New record in the failed state; completion time is always recorded."""
        return replace(
            self, status=SyncStatus.failed(reason), completion_time=at, error_kind=kind
        )
