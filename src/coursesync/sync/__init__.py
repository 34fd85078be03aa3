"""Sync orchestration and per-course sync state."""

from coursesync.sync.orchestrator import IDLE_STATUS, SyncOrchestrator
from coursesync.sync.state import CourseSyncState, SyncPhase, SyncStatus

__all__ = [
    "SyncOrchestrator",
    "CourseSyncState",
    "SyncStatus",
    "SyncPhase",
    "IDLE_STATUS",
]
