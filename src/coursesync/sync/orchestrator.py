"""Sync orchestrator: full-system synchronization with per-course isolation.

All state lives on one event loop. A run refreshes the course list, then
each course's materials one at a time; a course failure is recorded on that
course only and never stops the loop.
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional

from coursesync.cache.store import CacheStore
from coursesync.errors import NoCoursesToSync, classify, describe_error
from coursesync.managers.course_manager import CourseManager
from coursesync.managers.material_manager import MaterialManager
from coursesync.observable import ObservableState, Published
from coursesync.sync.state import CourseSyncState, SyncStatus
from coursesync.utils import GLOBAL_SCOPE, LAST_GLOBAL_SYNC_KEY, parse_iso, to_iso, utc_now

logger = logging.getLogger(__name__)

IDLE_STATUS = "Idle"
COURSE_LIST_SHARE = 0.2  # Portion of progress taken by the course list refresh


class SyncOrchestrator(ObservableState):
    """Drives sync runs across the course and material managers.

    Args:
        course_manager: Owner of the course list
        material_manager: Owner of per-course material sets
        cache: Store used to persist the last global sync time
        status_revert_delay: Seconds the completion message stays before
            reverting to idle
        progress_delay: Pause after each progress update
        clock: Source of the current time
    """

    is_syncing = Published(False)
    progress = Published(0.0)
    status_message = Published(IDLE_STATUS)
    last_global_sync_time = Published(None)
    error_message = Published(None)
    error_kind = Published(None)
    course_sync_states = Published(default_factory=dict)  # course id -> CourseSyncState
    active_sync_tasks = Published(default_factory=frozenset)  # course ids in flight

    def __init__(
        self,
        course_manager: CourseManager,
        material_manager: MaterialManager,
        cache: CacheStore,
        status_revert_delay: float = 2.0,
        progress_delay: float = 0.0,
        clock: Callable[[], datetime] = utc_now,
    ):
        super().__init__()
        self.course_manager = course_manager
        self.material_manager = material_manager
        self.cache = cache
        self.status_revert_delay = status_revert_delay
        self.progress_delay = progress_delay
        self._clock = clock
        self._revert_handle: Optional[asyncio.TimerHandle] = None
        self._inflight: Dict[str, asyncio.Event] = {}

        self._load_last_sync_time()

    # =========================================================================
    # Full run
    # =========================================================================

    async def sync_all(self) -> bool:
        """Synchronize the course list and every course's materials.

        Returns:
            False if rejected because a run is already active, True otherwise
        """
        if self.is_syncing:
            logger.info("Sync already in progress; request ignored")
            return False

        self._cancel_status_revert()
        self.is_syncing = True
        self.progress = 0.0
        self.error_message = None
        self.error_kind = None
        self.status_message = "Syncing course list..."
        logger.info("Starting full sync")

        try:
            course_list_ok = await self.course_manager.refresh_courses()
            if not course_list_ok:
                self.error_message = self.course_manager.error_message
                self.error_kind = self.course_manager.error_kind_for(GLOBAL_SCOPE)

            courses = self.course_manager.courses
            if course_list_ok:
                self._prune_states({course.id for course in courses})

            if not courses:
                if course_list_ok:
                    self._fail_run(NoCoursesToSync("No courses to sync"))
                else:
                    self.status_message = "Sync failed"
                logger.warning("Sync aborted: no courses available")
                return True

            await self._update_progress(COURSE_LIST_SHARE, "Syncing course materials...")

            total = len(courses)
            for index, course in enumerate(courses):
                share = COURSE_LIST_SHARE + (1 - COURSE_LIST_SHARE) * index / total
                await self._update_progress(share, f"Syncing {course.name}...")
                await self._sync_course_in_run(course.id, course.name)

            if course_list_ok:
                await self._update_progress(1.0, "Sync complete")
                self.last_global_sync_time = self._clock()
                self._save_last_sync_time()
            else:
                await self._update_progress(1.0, "Sync finished with errors")
            self._schedule_status_revert()

            failed = sum(1 for c in courses if self._is_failed(c.id))
            logger.info(f"Full sync finished: {total - failed} ok, {failed} failed")
            return True
        finally:
            self.is_syncing = False

    async def _sync_course_in_run(self, course_id: str, course_name: str) -> None:
        pending = self._inflight.get(course_id)
        if pending is not None:
            # An ad hoc sync of this course is running; adopt its outcome
            logger.debug(f"{course_id}: waiting for in-flight sync")
            await pending.wait()
            return

        self._begin(course_id)
        try:
            await self._refresh_course(course_id, course_name)
        finally:
            self._finish(course_id)

    # =========================================================================
    # Single course
    # =========================================================================

    async def sync_one(self, course_id: str, course_name: Optional[str] = None) -> bool:
        """Synchronize one course's materials outside a full run.

        Returns:
            False if rejected because this course is already syncing
        """
        if course_id in self.active_sync_tasks:
            logger.info(f"{course_id}: sync already in flight; request ignored")
            return False

        if course_name is None:
            course = self.course_manager.get_course(course_id)
            course_name = course.name if course is not None else course_id

        self._begin(course_id)
        try:
            await self._refresh_course(course_id, course_name)
        finally:
            self._finish(course_id)
        return True

    async def _refresh_course(self, course_id: str, course_name: str) -> None:
        state = CourseSyncState(
            course_id=course_id,
            course_name=course_name,
            status=SyncStatus.syncing(),
            start_time=self._clock(),
        )
        self._set_state(state)

        try:
            ok = await self.material_manager.refresh_materials(course_id)
        except Exception as e:
            ok = False
            reason = describe_error(e, "materials")
            kind = classify(e)
        else:
            reason = self.material_manager.error_for(course_id) or "Unknown error"
            kind = self.material_manager.error_kind_for(course_id)

        if ok:
            self._set_state(state.completed(self._clock()))
            logger.info(f"{course_id}: materials synced")
        else:
            self._set_state(state.failed(reason, self._clock(), kind))
            logger.warning(f"{course_id}: sync failed: {reason}")

    # =========================================================================
    # Accessors
    # =========================================================================

    def clear_error(self) -> None:
        self.error_message = None
        self.error_kind = None

    def get_course_sync(self, course_id: str) -> Optional[CourseSyncState]:
        return self.course_sync_states.get(course_id)

    def is_course_syncing(self, course_id: str) -> bool:
        return course_id in self.active_sync_tasks

    def course_states(self) -> List[CourseSyncState]:
        """All course records, oldest start first."""
        return sorted(self.course_sync_states.values(), key=lambda s: s.start_time)

    # =========================================================================
    # Internals
    # =========================================================================

    def _begin(self, course_id: str) -> None:
        self._inflight[course_id] = asyncio.Event()
        self.active_sync_tasks = self.active_sync_tasks | {course_id}

    def _finish(self, course_id: str) -> None:
        self.active_sync_tasks = self.active_sync_tasks - {course_id}
        event = self._inflight.pop(course_id, None)
        if event is not None:
            event.set()

    def _set_state(self, state: CourseSyncState) -> None:
        self.course_sync_states = {**self.course_sync_states, state.course_id: state}

    def _prune_states(self, keep: set) -> None:
        stale = [
            cid
            for cid in self.course_sync_states
            if cid not in keep and cid not in self.active_sync_tasks
        ]
        if stale:
            self.course_sync_states = {
                cid: s for cid, s in self.course_sync_states.items() if cid not in stale
            }

    def _is_failed(self, course_id: str) -> bool:
        state = self.course_sync_states.get(course_id)
        return state is not None and state.status.is_failed

    def _fail_run(self, error: Exception) -> None:
        self.error_message = describe_error(error, "sync")
        self.error_kind = classify(error)
        self.status_message = "Sync failed"

    async def _update_progress(self, progress: float, status: str) -> None:
        self.progress = progress
        self.status_message = status
        logger.debug(f"Sync progress {progress:.0%}: {status}")
        if self.progress_delay > 0:
            await asyncio.sleep(self.progress_delay)

    def _schedule_status_revert(self) -> None:
        self._cancel_status_revert()
        loop = asyncio.get_running_loop()
        self._revert_handle = loop.call_later(self.status_revert_delay, self._revert_status)

    def _cancel_status_revert(self) -> None:
        if self._revert_handle is not None:
            self._revert_handle.cancel()
            self._revert_handle = None

    def _revert_status(self) -> None:
        self._revert_handle = None
        if self.is_syncing:
            logger.debug("Status revert skipped: a new sync is running")
            return
        self.status_message = IDLE_STATUS

    def _load_last_sync_time(self) -> None:
        self.last_global_sync_time = self.cache.get(LAST_GLOBAL_SYNC_KEY, parse_iso)

    def _save_last_sync_time(self) -> None:
        if self.last_global_sync_time is not None:
            self.cache.put(LAST_GLOBAL_SYNC_KEY, to_iso(self.last_global_sync_time))
