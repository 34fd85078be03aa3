"""Client configuration management."""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

from coursesync.utils import is_cloud_path

logger = logging.getLogger(__name__)

DEFAULT_CACHE_DIR = Path.home() / ".coursesync_cache"


@dataclass
class SyncConfig:
    """Configuration for the sync/cache core.

    Attributes:
        api_base_url: Base URL of the course server
        cache_dir: Root of the persistent key/value store. Local path or a cloud
            URL ('gs://bucket/prefix') handled through cloudfiles.
        default_ttl: Staleness window in seconds (1 hour)
        request_timeout: Timeout in seconds handed to each HTTP request
        status_revert_delay: Seconds the "complete" status stays visible before
            reverting to idle
        progress_delay: Pause in seconds after each progress update so
            observers can render intermediate steps
        lock_timeout: Seconds to wait for a cache key lock
        keyring_service: Service name used for the system credential store
    """

    api_base_url: str = "https://api.autolms.com"
    cache_dir: Union[Path, str] = DEFAULT_CACHE_DIR
    default_ttl: int = 3600
    request_timeout: int = 30
    status_revert_delay: float = 2.0
    progress_delay: float = 0.1
    lock_timeout: int = 30
    keyring_service: str = "coursesync"

    def __post_init__(self):
        """Normalize cache_dir to a Path unless it is a cloud URL."""
        if self.cache_dir is None:
            self.cache_dir = DEFAULT_CACHE_DIR
        elif not is_cloud_path(self.cache_dir):
            self.cache_dir = Path(self.cache_dir).expanduser()
        self.api_base_url = self.api_base_url.rstrip("/")

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "SyncConfig":
        """Load configuration from a JSON file.

        Args:
            config_path: Path to config file. If None, uses default location.

        Returns:
            SyncConfig instance (defaults when the file does not exist)
        """
        if config_path is None:
            config_path = DEFAULT_CACHE_DIR / "config.json"

        config_path = Path(config_path)
        if not config_path.exists():
            return cls()

        with open(config_path, "r") as f:
            data = json.load(f)

        known = set(cls.__dataclass_fields__)
        unknown = set(data) - known
        if unknown:
            logger.warning(f"Ignoring unknown config keys: {sorted(unknown)}")

        return cls(**{k: v for k, v in data.items() if k in known})

    def save(self, config_path: Optional[Path] = None) -> None:
        """Save configuration to a JSON file.

        Args:
            config_path: Path to config file. If None, writes next to the cache.
        """
        if config_path is None:
            if is_cloud_path(self.cache_dir):
                config_path = DEFAULT_CACHE_DIR / "config.json"
            else:
                config_path = Path(self.cache_dir) / "config.json"

        config_path = Path(config_path)
        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, "w") as f:
            json.dump(self.to_dict(), f, indent=2)

    def to_dict(self) -> Dict[str, Any]:
        """Return a JSON-compatible representation."""
        return {
            "api_base_url": self.api_base_url,
            "cache_dir": str(self.cache_dir),
            "default_ttl": self.default_ttl,
            "request_timeout": self.request_timeout,
            "status_revert_delay": self.status_revert_delay,
            "progress_delay": self.progress_delay,
            "lock_timeout": self.lock_timeout,
            "keyring_service": self.keyring_service,
        }

    @classmethod
    def from_env(cls, base: Optional["SyncConfig"] = None) -> "SyncConfig":
        """Create configuration from environment variables.

        Environment variables:
            COURSESYNC_API_URL: Server base URL
            COURSESYNC_CACHE_DIR: Cache directory path or cloud URL
            COURSESYNC_CACHE_TTL: Staleness window in seconds
            COURSESYNC_REQUEST_TIMEOUT: HTTP timeout in seconds
            COURSESYNC_STATUS_REVERT_DELAY: Seconds before "complete" reverts to idle
            COURSESYNC_PROGRESS_DELAY: Pause after each progress step
            COURSESYNC_KEYRING_SERVICE: Credential store service name

        Args:
            base: Configuration to overlay; defaults when None

        Returns:
            SyncConfig instance
        """
        config = base or cls()

        if os.getenv("COURSESYNC_API_URL"):
            config.api_base_url = os.getenv("COURSESYNC_API_URL", "").rstrip("/")

        if os.getenv("COURSESYNC_CACHE_DIR"):
            raw = os.getenv("COURSESYNC_CACHE_DIR", "")
            config.cache_dir = raw if is_cloud_path(raw) else Path(raw).expanduser()

        if os.getenv("COURSESYNC_CACHE_TTL"):
            config.default_ttl = int(os.getenv("COURSESYNC_CACHE_TTL"))

        if os.getenv("COURSESYNC_REQUEST_TIMEOUT"):
            config.request_timeout = int(os.getenv("COURSESYNC_REQUEST_TIMEOUT"))

        if os.getenv("COURSESYNC_STATUS_REVERT_DELAY"):
            config.status_revert_delay = float(
                os.getenv("COURSESYNC_STATUS_REVERT_DELAY")
            )

        if os.getenv("COURSESYNC_PROGRESS_DELAY"):
            config.progress_delay = float(os.getenv("COURSESYNC_PROGRESS_DELAY"))

        if os.getenv("COURSESYNC_KEYRING_SERVICE"):
            config.keyring_service = os.getenv("COURSESYNC_KEYRING_SERVICE")

        return config

    @classmethod
    def resolve(cls, config_path: Optional[Path] = None) -> "SyncConfig":
        """Load from file, then overlay environment variables.

        A malformed config file falls back to defaults plus environment.
        """
        try:
            base = cls.load(config_path)
        except (OSError, ValueError, TypeError) as e:
            logger.warning(f"Could not read config file, using defaults: {e}")
            base = cls()
        return cls.from_env(base)
