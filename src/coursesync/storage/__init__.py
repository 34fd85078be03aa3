"""Persistent key/value storage.

This module provides the byte-blob substrate underneath the cache store,
supporting both local directories and cloud storage.
"""

from coursesync.storage.backend import (
    StorageBackend,
    StorageDiskFullError,
    StorageError,
    StoragePermissionError,
)

__all__ = [
    "StorageBackend",
    "StorageError",
    "StorageDiskFullError",
    "StoragePermissionError",
]
