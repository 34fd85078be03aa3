"""coursesync: Offline-first sync and cache core for course materials."""

__version__ = "0.1.0"

from coursesync.app import CourseSyncApp
from coursesync.config import SyncConfig

__all__ = ["CourseSyncApp", "SyncConfig", "__version__"]
