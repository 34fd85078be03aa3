"""Cache-first repositories between the managers and the network.

A repository is the only path from a manager to the remote source and the
cache store. Fetch failures propagate to the caller untouched; choosing to
fall back to cached data is the manager's decision.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Generic, List, Optional, TypeVar

from coursesync.cache.store import CachedEntry, CacheStore
from coursesync.models import Course, Material, RefreshOutcome
from coursesync.remote.base import RemoteDataSource
from coursesync.utils import (
    COURSES_KEY,
    GLOBAL_SCOPE,
    MATERIALS_INDEX_KEY,
    materials_key,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class EntityRepository(ABC, Generic[T]):
    """Read-through accessor for one entity collection.

    Subclasses define how a scope maps to a cache key, how to fetch the
    collection remotely, and how to decode cached items.
    """

    entity_name = "entities"

    def __init__(self, remote: RemoteDataSource, cache: CacheStore):
        self.remote = remote
        self.cache = cache

    @abstractmethod
    def cache_key(self, scope: str) -> str:
        """Cache key under which ``scope`` is stored."""

    @abstractmethod
    async def _fetch(self, scope: str) -> List[T]:
        """Fetch the collection for ``scope`` from the remote source."""

    @abstractmethod
    async def _fetch_refresh(self, scope: str) -> RefreshOutcome:
        """Run an explicit remote refresh for ``scope``."""

    @abstractmethod
    def _decode_item(self, raw: Any) -> T:
        """Rebuild one entity from its cached form."""

    # =========================================================================
    # Remote reads
    # =========================================================================

    async def fetch_fresh(self, scope: str) -> List[T]:
        """Fetch ``scope`` remotely and write the result through to the cache.

        Raises:
            CourseSyncError: Any remote failure, unchanged
        """
        items = list(await self._fetch(scope))
        self.write_through(scope, items)
        logger.debug(f"Fetched {len(items)} {self.entity_name} for {scope}")
        return items

    async def fetch_and_record_refresh(self, scope: str) -> RefreshOutcome:
        """Run an explicit refresh and write the fresh set through.

        Returns:
            RefreshOutcome with the new set and server discovery metadata

        Raises:
            CourseSyncError: Any remote failure, unchanged
        """
        outcome = await self._fetch_refresh(scope)
        self.write_through(scope, list(outcome.items))
        return outcome

    # =========================================================================
    # Cache access
    # =========================================================================

    def write_through(self, scope: str, items: List[T]) -> bool:
        """Replace the cached set for ``scope``."""
        return self.cache.put(self.cache_key(scope), [item.to_dict() for item in items])

    def _decode_list(self, raw: Any) -> List[T]:
        if not isinstance(raw, list):
            raise TypeError(f"Expected a list of {self.entity_name}, got {type(raw).__name__}")
        return [self._decode_item(item) for item in raw]

    def cached_entry(self, scope: str) -> Optional[CachedEntry[List[T]]]:
        """Cached set and its write time, or None."""
        return self.cache.get_entry(self.cache_key(scope), self._decode_list)

    def cached(self, scope: str) -> List[T]:
        """Last cached set for ``scope``; empty when nothing usable is cached."""
        entry = self.cached_entry(scope)
        return entry.value if entry is not None else []

    def cache_timestamp(self, scope: str) -> Optional[datetime]:
        """When ``scope`` was last written to the cache."""
        return self.cache.timestamp_of(self.cache_key(scope))

    def is_stale(self, scope: str, max_age: Optional[float] = None) -> bool:
        """True when ``scope`` has no cache entry or it is older than max_age."""
        return self.cache.is_expired(self.cache_key(scope), max_age)

    def evict(self, scope: str) -> None:
        """Drop the cached set for ``scope``."""
        self.cache.remove(self.cache_key(scope))

    @abstractmethod
    def evict_all(self) -> None:
        """Drop every cached set this repository owns."""


class CourseRepository(EntityRepository[Course]):
    """The global course list. Every scope maps to the same key."""

    entity_name = "courses"

    def cache_key(self, scope: str = GLOBAL_SCOPE) -> str:
        return COURSES_KEY

    async def _fetch(self, scope: str) -> List[Course]:
        return await self.remote.list_courses()

    async def _fetch_refresh(self, scope: str) -> RefreshOutcome:
        courses = await self.remote.list_courses()
        return RefreshOutcome(items=tuple(courses), total=len(courses))

    def _decode_item(self, raw: Any) -> Course:
        return Course.from_dict(raw)

    def evict_all(self) -> None:
        self.evict(GLOBAL_SCOPE)


class MaterialRepository(EntityRepository[Material]):
    """Per-course material sets, keyed by course id.

    The ids of all cached courses are kept in an index entry so that
    evict_all() can find every per-course key.
    """

    entity_name = "materials"

    def cache_key(self, scope: str) -> str:
        return materials_key(scope)

    async def _fetch(self, scope: str) -> List[Material]:
        return await self.remote.list_materials(scope)

    async def _fetch_refresh(self, scope: str) -> RefreshOutcome:
        return await self.remote.refresh_materials(scope)

    def _decode_item(self, raw: Any) -> Material:
        return Material.from_dict(raw)

    def cached_scopes(self) -> List[str]:
        """Course ids that currently have cached materials."""
        index = self.cache.get(MATERIALS_INDEX_KEY)
        if not isinstance(index, list):
            return []
        return [str(scope) for scope in index]

    def write_through(self, scope: str, items: List[Material]) -> bool:
        written = super().write_through(scope, items)
        if written:
            scopes = self.cached_scopes()
            if scope not in scopes:
                self.cache.put(MATERIALS_INDEX_KEY, scopes + [scope])
        return written

    def evict(self, scope: str) -> None:
        super().evict(scope)
        scopes = self.cached_scopes()
        if scope in scopes:
            scopes.remove(scope)
            self.cache.put(MATERIALS_INDEX_KEY, scopes)

    def evict_all(self) -> None:
        for scope in self.cached_scopes():
            self.cache.remove(self.cache_key(scope))
        self.cache.remove(MATERIALS_INDEX_KEY)
        logger.info("Evicted all cached materials")
