"""Tests for CourseManager and the shared EntityManager behavior."""

import asyncio

from conftest import make_course
from coursesync.errors import ErrorKind, NetworkUnavailable, ServerError, Unauthenticated
from coursesync.managers.course_manager import CourseManager
from coursesync.utils import COURSES_KEY, GLOBAL_SCOPE


class TestRestore:
    """Test construction-time cache restore."""

    def test_restores_cached_list(self, remote, course_repository):
        """Test that a new manager starts with the cached list."""
        remote.courses = [make_course("c1")]
        asyncio.run(course_repository.fetch_fresh(GLOBAL_SCOPE))

        manager = CourseManager(course_repository)

        assert [c.id for c in manager.courses] == ["c1"]
        assert manager.last_courses_sync == course_repository.cache_timestamp(GLOBAL_SCOPE)
        assert remote.calls["list_courses"] == 1

    def test_empty_cache(self, course_manager):
        """Test defaults for a scope that was never loaded."""
        assert course_manager.courses == []
        assert course_manager.error_message is None
        assert course_manager.is_loading_courses is False
        assert course_manager.last_courses_sync is None

    def test_corrupt_cached_course_ignored(self, course_repository):
        """Test that a cached course with a null timestamp does not block startup."""
        payload = make_course("c1").to_dict()
        payload["created_at"] = None
        course_repository.cache.put(COURSES_KEY, [payload])

        assert course_repository.cached(GLOBAL_SCOPE) == []
        manager = CourseManager(course_repository)

        assert manager.courses == []
        assert course_repository.cache.backend.exists(COURSES_KEY) is False


class TestRefresh:
    """Test refresh outcomes."""

    def test_success(self, remote, course_manager):
        """Test that a refresh installs the list and records the sync time."""
        remote.courses = [make_course("c1"), make_course("c2")]

        assert asyncio.run(course_manager.refresh_courses()) is True

        assert [c.id for c in course_manager.courses] == ["c1", "c2"]
        assert course_manager.last_courses_sync is not None
        assert course_manager.get_course("c2").name == "Course c2"
        assert course_manager.get_course("zz") is None

    def test_failure_keeps_held_items(self, remote, course_manager):
        """Test that a failed refresh keeps the previous list and records the error."""
        remote.courses = [make_course("c1")]
        asyncio.run(course_manager.refresh_courses())
        synced_at = course_manager.last_courses_sync

        remote.course_error = ServerError(503)
        assert asyncio.run(course_manager.refresh_courses()) is False

        assert [c.id for c in course_manager.courses] == ["c1"]
        assert course_manager.error_message == "Server error (code: 503)"
        assert course_manager.error_kind_for(GLOBAL_SCOPE) is ErrorKind.SERVER_ERROR
        assert course_manager.last_courses_sync == synced_at
        assert course_manager.is_loading_courses is False

    def test_failure_falls_back_to_cache(self, remote, course_repository):
        """Test that an empty manager serves the cache after a failure."""
        remote.courses = [make_course("c1")]
        asyncio.run(course_repository.fetch_fresh(GLOBAL_SCOPE))
        manager = CourseManager(course_repository, restore_cache=False)

        remote.course_error = NetworkUnavailable()
        asyncio.run(manager.refresh_courses())

        assert [c.id for c in manager.courses] == ["c1"]
        assert manager.error_message == "Network unavailable. Showing saved data."

    def test_unauthenticated(self, remote, course_manager):
        """Test that a rejected token is surfaced as a login prompt."""
        remote.course_error = Unauthenticated()
        asyncio.run(course_manager.refresh_courses())
        assert course_manager.error_message == "Please log in."

    def test_error_cleared_on_next_refresh(self, remote, course_manager):
        """Test that a successful refresh clears the previous error."""
        remote.course_error = ServerError(500)
        asyncio.run(course_manager.refresh_courses())
        remote.course_error = None
        asyncio.run(course_manager.refresh_courses())
        assert course_manager.error_message is None

    def test_loading_flag_observed(self, remote, course_manager):
        """Test that observers see loading go true then false."""
        seen = []
        course_manager.subscribe(
            lambda name, value: seen.append(value.get(GLOBAL_SCOPE)) if name == "loading" else None
        )
        asyncio.run(course_manager.refresh_courses())
        assert seen == [True, False]


class TestLoad:
    """Test load() semantics."""

    def test_load_skips_when_held(self, remote, course_manager):
        """Test that load is a no-op while items are held."""
        remote.courses = [make_course("c1")]
        asyncio.run(course_manager.load_courses())
        asyncio.run(course_manager.load_courses())
        assert remote.calls["list_courses"] == 1

    def test_force_refresh(self, remote, course_manager):
        """Test that force_refresh always fetches."""
        remote.courses = [make_course("c1")]
        asyncio.run(course_manager.load_courses())
        asyncio.run(course_manager.load_courses(force_refresh=True))
        assert remote.calls["list_courses"] == 2


class TestEviction:
    """Test cache maintenance through the manager."""

    def test_evict_all_clear_memory(self, remote, course_manager):
        """Test that evict_all can also drop held state."""
        remote.courses = [make_course("c1")]
        asyncio.run(course_manager.refresh_courses())

        course_manager.evict_all(clear_memory=True)

        assert course_manager.courses == []
        assert course_manager.is_stale(GLOBAL_SCOPE) is True

    def test_evict_keeps_memory(self, remote, course_manager):
        """Test that evict only touches the cache."""
        remote.courses = [make_course("c1")]
        asyncio.run(course_manager.refresh_courses())

        course_manager.evict(GLOBAL_SCOPE)

        assert [c.id for c in course_manager.courses] == ["c1"]
        assert course_manager.is_stale(GLOBAL_SCOPE) is True
