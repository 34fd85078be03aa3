"""Course manager: the global course list."""

from datetime import datetime
from typing import Callable, List, Optional

from coursesync.managers.base import EntityManager
from coursesync.models import Course
from coursesync.repositories import CourseRepository
from coursesync.utils import GLOBAL_SCOPE, utc_now


class CourseManager(EntityManager[Course]):
    """Holds the single course list under the global scope.

    The last cached list and its timestamp are restored on construction so
    the course list is available offline from the start.
    """

    error_context = "courses"

    def __init__(
        self,
        repository: CourseRepository,
        clock: Callable[[], datetime] = utc_now,
        restore_cache: bool = True,
    ):
        super().__init__(repository, clock=clock)
        if restore_cache:
            self.restore_cached(GLOBAL_SCOPE)

    @property
    def courses(self) -> List[Course]:
        return self.get(GLOBAL_SCOPE)

    @property
    def error_message(self) -> Optional[str]:
        return self.error_for(GLOBAL_SCOPE)

    @property
    def is_loading_courses(self) -> bool:
        return self.is_loading(GLOBAL_SCOPE)

    @property
    def last_courses_sync(self) -> Optional[datetime]:
        return self.last_sync_time(GLOBAL_SCOPE)

    async def load_courses(self, force_refresh: bool = False) -> None:
        await self.load(GLOBAL_SCOPE, force_refresh=force_refresh)

    async def refresh_courses(self) -> bool:
        return await self.refresh(GLOBAL_SCOPE)

    def get_course(self, course_id: str) -> Optional[Course]:
        return self.get_by_id(GLOBAL_SCOPE, course_id)
