"""Persistent key/value substrate.

This module stores opaque byte blobs by string key, surviving process
restarts. Local roots are plain directories; cloud roots ('gs://', 's3://',
'file://') go through cloudfiles.
"""

import errno
import logging
import os
import re
from pathlib import Path
from typing import List, Optional, Union

from coursesync.errors import LocalStorageError
from coursesync.utils import is_cloud_path

logger = logging.getLogger(__name__)

BLOB_SUFFIX = ".json"


class StorageError(LocalStorageError):
    """Base exception for key/value substrate failures."""

    pass


class StorageDiskFullError(StorageError):
    """Raised when the disk is full and a blob cannot be written."""

    pass


class StoragePermissionError(StorageError):
    """Raised when the storage root is not writable."""

    pass


class StorageBackend:
    """Stores byte blobs under string keys (local or cloud).

    Each key maps to exactly one file ``<root>/<key>.json``. Local writes go
    to a temp file first and are renamed into place, so a reader sees either
    the previous blob or the new one, never a partial write.

    Examples:
        >>> storage = StorageBackend('/tmp/coursesync')
        >>> storage.write_bytes('cached_courses', b'[]')
        >>> storage.read_bytes('cached_courses')
        b'[]'
    """

    def __init__(self, root: Union[str, Path]):
        """Initialize the backend.

        Args:
            root: Directory or cloud URL under which blobs are stored
        """
        self.is_cloud = is_cloud_path(root)
        self.root = str(root).rstrip("/") if self.is_cloud else Path(root)
        self._cf = None

    @staticmethod
    def normalize_key(key: str) -> str:
        """Convert a cache key to a filesystem-safe name.

        Examples:
            >>> StorageBackend.normalize_key('materials_c/101')
            'materials_c_101'
        """
        normalized = re.sub(r"[^A-Za-z0-9._-]", "_", key).strip("_")
        if not normalized:
            raise ValueError(f"Invalid storage key: {key!r}")
        return normalized

    def _filename(self, key: str) -> str:
        return self.normalize_key(key) + BLOB_SUFFIX

    def path_for(self, key: str) -> Union[str, Path]:
        """Full location of the blob for ``key``."""
        if self.is_cloud:
            return f"{self.root}/{self._filename(key)}"
        return self.root / self._filename(key)

    def _cloudfiles(self):
        if self._cf is None:
            from cloudfiles import CloudFiles

            self._cf = CloudFiles(self.root)
        return self._cf

    # =========================================================================
    # Blob I/O
    # =========================================================================

    def exists(self, key: str) -> bool:
        """Check whether a blob exists for ``key``."""
        if self.is_cloud:
            return bool(self._cloudfiles().exists(self._filename(key)))
        return Path(self.path_for(key)).exists()

    def read_bytes(self, key: str) -> Optional[bytes]:
        """Read the blob stored under ``key``.

        Returns:
            The stored bytes, or None if nothing is stored

        Raises:
            StorageError: If the blob exists but cannot be read
        """
        if self.is_cloud:
            try:
                return self._cloudfiles().get(self._filename(key))
            except Exception as e:
                raise StorageError(f"Cannot read {key} from {self.root}: {e}") from e

        path = Path(self.path_for(key))
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(f"Cannot read cache file {path}: {e}") from e

    def write_bytes(self, key: str, data: bytes) -> None:
        """Store ``data`` under ``key``, replacing any previous blob.

        Raises:
            StoragePermissionError: If the root is not writable
            StorageDiskFullError: If the disk is full
            StorageError: On any other write failure
        """
        if self.is_cloud:
            try:
                self._cloudfiles().put(self._filename(key), data)
            except Exception as e:
                raise StorageError(f"Cannot write {key} to {self.root}: {e}") from e
            return

        path = Path(self.path_for(key))
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except PermissionError as e:
            raise StoragePermissionError(
                f"Cannot create cache directory {path.parent}: {e}"
            ) from e
        except OSError as e:
            raise StorageError(f"Cannot create cache directory: {e}") from e

        temp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            with open(temp_path, "wb") as f:
                f.write(data)
            os.replace(temp_path, path)
        except PermissionError as e:
            self._discard(temp_path)
            raise StoragePermissionError(f"Cannot write cache file {path}: {e}") from e
        except OSError as e:
            self._discard(temp_path)
            if e.errno == errno.ENOSPC:
                raise StorageDiskFullError(f"Disk full while writing {key}") from e
            logger.error(f"OS error writing cache file: {e}")
            raise StorageError(f"Cannot write cache file: {e}") from e

    def delete(self, key: str) -> None:
        """Remove the blob for ``key``; missing blobs are ignored."""
        if self.is_cloud:
            try:
                self._cloudfiles().delete(self._filename(key))
            except Exception as e:
                raise StorageError(f"Cannot delete {key} from {self.root}: {e}") from e
            return

        path = Path(self.path_for(key))
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise StorageError(f"Cannot delete cache file {path}: {e}") from e

    def list_keys(self) -> List[str]:
        """List the (normalized) keys currently stored."""
        if self.is_cloud:
            names = self._cloudfiles().list()
        elif Path(self.root).exists():
            names = [p.name for p in Path(self.root).iterdir() if p.is_file()]
        else:
            names = []
        return sorted(n[: -len(BLOB_SUFFIX)] for n in names if n.endswith(BLOB_SUFFIX))

    @staticmethod
    def _discard(temp_path: Path) -> None:
        try:
            if temp_path.exists():
                temp_path.unlink()
        except OSError as e:
            logger.warning(f"Failed to clean up temp file {temp_path}: {e}")
