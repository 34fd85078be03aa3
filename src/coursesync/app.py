"""Application root.

Builds exactly one instance of each collaborator and wires them together.
Nothing else in the package constructs managers or the orchestrator, so the
whole object graph has a single owner.
"""

import logging
import tempfile
from pathlib import Path
from typing import Optional, Union

from coursesync.auth import AuthenticationManager, CredentialStore, KeyringCredentialStore
from coursesync.cache.store import CacheStore
from coursesync.config import SyncConfig
from coursesync.managers.course_manager import CourseManager
from coursesync.managers.material_manager import MaterialManager
from coursesync.remote.base import RemoteDataSource
from coursesync.remote.http import HttpRemoteSource
from coursesync.repositories import CourseRepository, MaterialRepository
from coursesync.storage.backend import StorageBackend
from coursesync.sync.orchestrator import SyncOrchestrator
from coursesync.utils import LAST_GLOBAL_SYNC_KEY

logger = logging.getLogger(__name__)


class CourseSyncApp:
    """Owner of the cache, managers, orchestrator and authentication state.

    Args:
        config: Client configuration
        remote: Remote data source; defaults to the HTTP source for
            ``config.api_base_url``
        credentials: Credential store; defaults to the system keyring

    Examples:
        >>> app = CourseSyncApp.from_config_file()
        >>> asyncio.run(app.orchestrator.sync_all())
        True
        >>> app.course_manager.courses
        [Course(id='c1', ...)]
    """

    def __init__(
        self,
        config: Optional[SyncConfig] = None,
        remote: Optional[RemoteDataSource] = None,
        credentials: Optional[CredentialStore] = None,
    ):
        self.config = config or SyncConfig()

        self.backend = StorageBackend(self.config.cache_dir)
        self.cache = CacheStore(
            self.backend,
            default_ttl=self.config.default_ttl,
            lock_timeout=self.config.lock_timeout,
        )

        self.credentials = credentials or KeyringCredentialStore(self.config.keyring_service)
        self.remote = remote or HttpRemoteSource(
            self.config.api_base_url,
            token_provider=self.credentials.auth_token,
            timeout=self.config.request_timeout,
            download_dir=self.download_dir,
        )

        self.course_repository = CourseRepository(self.remote, self.cache)
        self.material_repository = MaterialRepository(self.remote, self.cache)
        self.course_manager = CourseManager(self.course_repository)
        self.material_manager = MaterialManager(self.material_repository)
        self.orchestrator = SyncOrchestrator(
            self.course_manager,
            self.material_manager,
            self.cache,
            status_revert_delay=self.config.status_revert_delay,
            progress_delay=self.config.progress_delay,
        )
        self.auth = AuthenticationManager(
            self.remote, self.credentials, on_logout=self.clear_cached_data
        )

    @classmethod
    def from_config_file(cls, config_path: Optional[Union[str, Path]] = None) -> "CourseSyncApp":
        """Build the application from a config file plus environment overrides."""
        path = Path(config_path) if config_path is not None else None
        return cls(SyncConfig.resolve(path))

    @property
    def download_dir(self) -> Path:
        """Directory that downloaded attachments are written to."""
        if self.backend.is_cloud:
            return Path(tempfile.gettempdir()) / "coursesync_downloads"
        return Path(self.backend.root) / "downloads"

    def clear_cached_data(self) -> None:
        """Drop every cached entity and all in-memory state derived from it."""
        self.course_manager.evict_all(clear_memory=True)
        self.material_manager.evict_all(clear_memory=True)
        self.material_manager.select_material(None)
        self.cache.clear()
        self.cache.remove(LAST_GLOBAL_SYNC_KEY)
        self.orchestrator.last_global_sync_time = None
        self.orchestrator.course_sync_states = {}
        logger.info("Cleared cached course data")
