"""Entity manager base: authoritative in-memory collections per scope."""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar

from coursesync.errors import ErrorKind, classify, describe_error
from coursesync.models import RefreshOutcome
from coursesync.observable import ObservableState, Published
from coursesync.repositories import EntityRepository
from coursesync.utils import utc_now

logger = logging.getLogger(__name__)

T = TypeVar("T")


class EntityManager(ObservableState, Generic[T]):
    """Owns the in-memory collections of one entity type, keyed by scope.

    Every per-scope map is replaced wholesale on change, never mutated in
    place, so observers always receive a complete new mapping. Scopes with
    no entry read as idle: not loading, no error, no items, never synced.

    Failures from the repository are classified into ``errors[scope]`` and
    never raised to the caller.
    """

    error_context = "sync"

    items = Published(default_factory=dict)  # scope -> tuple of entities
    loading = Published(default_factory=dict)  # scope -> True while fetching
    errors = Published(default_factory=dict)  # scope -> user-facing message
    error_kinds = Published(default_factory=dict)  # scope -> ErrorKind
    last_sync_times = Published(default_factory=dict)  # scope -> datetime

    def __init__(
        self,
        repository: EntityRepository[T],
        clock: Callable[[], datetime] = utc_now,
    ):
        super().__init__()
        self.repository = repository
        self._clock = clock

    def _put(self, field: str, scope: str, value: Any) -> None:
        current: Dict[str, Any] = dict(getattr(self, field))
        if value is None:
            if scope not in current:
                return
            current.pop(scope)
        else:
            current[scope] = value
        setattr(self, field, current)

    # =========================================================================
    # Loading
    # =========================================================================

    def restore_cached(self, scope: str) -> bool:
        """Populate ``scope`` from the cache without touching the network.

        Returns:
            True if a non-empty cached set was installed
        """
        entry = self.repository.cached_entry(scope)
        if entry is None or not entry.value:
            return False
        self._put("items", scope, tuple(entry.value))
        self._put("last_sync_times", scope, entry.stored_at)
        return True

    async def load(self, scope: str, force_refresh: bool = False) -> None:
        """Load ``scope``, serving held items when possible.

        When items are already held and ``force_refresh`` is False this is a
        no-op. Otherwise cached data is shown first, then a refresh runs.
        """
        if not force_refresh and self.items.get(scope):
            logger.debug(f"{scope}: using {len(self.items[scope])} held items")
            return

        self.restore_cached(scope)
        await self.refresh(scope)

    async def refresh(self, scope: str) -> bool:
        """Fetch ``scope`` fresh, falling back to cache when nothing is held.

        Returns:
            True if the fetch succeeded
        """
        self._put("loading", scope, True)
        self._clear_error(scope)
        try:
            try:
                fetched = await self.repository.fetch_fresh(scope)
            except Exception as e:
                self._record_error(scope, e)
                if not self.items.get(scope):
                    cached = self.repository.cached(scope)
                    if cached:
                        logger.info(f"{scope}: serving {len(cached)} cached items")
                        self._put("items", scope, tuple(cached))
                return False

            self._put("items", scope, tuple(fetched))
            self._put("last_sync_times", scope, self._clock())
            return True
        finally:
            self._put("loading", scope, False)

    async def refresh_with_status(self, scope: str) -> Optional[RefreshOutcome]:
        """Run an explicit server refresh and return its outcome.

        Unlike refresh(), a failure does not fall back to cached data; the
        held items are left untouched.

        Returns:
            RefreshOutcome on success, None on failure
        """
        self._put("loading", scope, True)
        self._clear_error(scope)
        try:
            outcome = await self.repository.fetch_and_record_refresh(scope)
        except Exception as e:
            self._record_error(scope, e)
            return None
        else:
            self._put("items", scope, tuple(outcome.items))
            self._put("last_sync_times", scope, self._clock())
            return outcome
        finally:
            self._put("loading", scope, False)

    # =========================================================================
    # Read accessors (no I/O)
    # =========================================================================

    def get(self, scope: str) -> List[T]:
        """Items held for ``scope``."""
        return list(self.items.get(scope, ()))

    def get_by_id(self, scope: str, item_id: str) -> Optional[T]:
        """Find an item by id within ``scope``."""
        for item in self.items.get(scope, ()):
            if getattr(item, "id", None) == item_id:
                return item
        return None

    def is_loading(self, scope: str) -> bool:
        return bool(self.loading.get(scope, False))

    def error_for(self, scope: str) -> Optional[str]:
        return self.errors.get(scope)

    def error_kind_for(self, scope: str) -> Optional[ErrorKind]:
        return self.error_kinds.get(scope)

    def last_sync_time(self, scope: str) -> Optional[datetime]:
        return self.last_sync_times.get(scope)

    def is_stale(self, scope: str, max_age: Optional[float] = None) -> bool:
        """True when the cached copy of ``scope`` is missing or too old."""
        return self.repository.is_stale(scope, max_age)

    # =========================================================================
    # Errors and cache maintenance
    # =========================================================================

    def clear_error(self, scope: str) -> None:
        self._clear_error(scope)

    def _clear_error(self, scope: str) -> None:
        self._put("errors", scope, None)
        self._put("error_kinds", scope, None)

    def _record_error(self, scope: str, error: Exception) -> None:
        message = describe_error(error, self.error_context)
        logger.warning(f"Refresh of {scope} failed ({classify(error).value}): {error}")
        self._put("errors", scope, message)
        self._put("error_kinds", scope, classify(error))

    def evict(self, scope: str) -> None:
        """Invalidate the cached copy of ``scope``; held items stay."""
        self.repository.evict(scope)

    def evict_all(self, clear_memory: bool = False) -> None:
        """Invalidate every cached set, optionally dropping held state too."""
        self.repository.evict_all()
        if clear_memory:
            self.items = {}
            self.errors = {}
            self.error_kinds = {}
            self.last_sync_times = {}
