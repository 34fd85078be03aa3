"""Shared fixtures: an in-test remote source, a tmp_path-backed cache and
sample entities."""

import asyncio
from collections import Counter
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from coursesync.auth import CredentialStore
from coursesync.cache.store import CacheStore
from coursesync.managers.course_manager import CourseManager
from coursesync.managers.material_manager import MaterialManager
from coursesync.models import (
    Attachment,
    AuthSession,
    Course,
    CrawlResult,
    Material,
    RefreshOutcome,
    User,
)
from coursesync.remote.base import RemoteDataSource
from coursesync.repositories import CourseRepository, MaterialRepository
from coursesync.storage.backend import StorageBackend
from coursesync.sync.orchestrator import SyncOrchestrator

BASE_TIME = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


def make_course(course_id: str, name: Optional[str] = None, **kwargs) -> Course:
    return Course(
        id=course_id,
        course_code=kwargs.pop("course_code", course_id.upper()),
        name=name or f"Course {course_id}",
        created_at=BASE_TIME,
        updated_at=BASE_TIME,
        **kwargs,
    )


def make_material(
    material_id: str,
    course_id: str = "c1",
    title: Optional[str] = None,
    days: int = 0,
    **kwargs,
) -> Material:
    posted = BASE_TIME + timedelta(days=days)
    return Material(
        id=material_id,
        course_id=course_id,
        title=title or f"Material {material_id}",
        posted_at=posted,
        created_at=posted,
        updated_at=posted,
        **kwargs,
    )


def make_attachment(attachment_id: str, filename: str = "notes.pdf", size: int = 2048) -> Attachment:
    return Attachment(
        id=attachment_id,
        content_id="m1",
        filename=filename,
        file_size=size,
        storage_path=f"files/{attachment_id}",
        created_at=BASE_TIME,
    )


class FakeRemoteSource(RemoteDataSource):
    """Scripted remote source.

    Results and errors are set per test; ``gates`` holds an asyncio.Event per
    course id that list_materials waits on, so tests can interleave calls.
    """

    def __init__(self):
        self.courses: List[Course] = []
        self.course_error: Optional[Exception] = None
        self.materials: Dict[str, List[Material]] = {}
        self.material_errors: Dict[str, Exception] = {}
        self.gates: Dict[str, asyncio.Event] = {}
        self.entered: List[str] = []
        self.calls = Counter()
        self.user = User(id="u1", email="student@example.edu", eclass_username="student")
        self.token = "token-abc"
        self.login_error: Optional[Exception] = None
        self.user_error: Optional[Exception] = None
        self.crawl = CrawlResult(materials_added=1, attachments_processed=0, processing_time=0.5)
        self.download_root: Optional[Path] = None

    async def login(self, user_id: str, secret: str) -> AuthSession:
        self.calls["login"] += 1
        if self.login_error is not None:
            raise self.login_error
        return AuthSession(access_token=self.token, user=self.user)

    async def current_user(self) -> User:
        self.calls["current_user"] += 1
        if self.user_error is not None:
            raise self.user_error
        return self.user

    async def list_courses(self) -> List[Course]:
        self.calls["list_courses"] += 1
        if self.course_error is not None:
            raise self.course_error
        return list(self.courses)

    async def list_materials(self, course_id: str) -> List[Material]:
        self.calls[f"list_materials:{course_id}"] += 1
        self.entered.append(course_id)
        gate = self.gates.get(course_id)
        if gate is not None:
            await gate.wait()
        if course_id in self.material_errors:
            raise self.material_errors[course_id]
        return list(self.materials.get(course_id, []))

    async def refresh_materials(self, course_id: str) -> RefreshOutcome:
        self.calls[f"refresh_materials:{course_id}"] += 1
        if course_id in self.material_errors:
            raise self.material_errors[course_id]
        items = tuple(self.materials.get(course_id, []))
        return RefreshOutcome(items=items, total=len(items), message="ok", crawl_result=self.crawl)

    async def download_attachment(self, attachment_id: str) -> Path:
        self.calls["download"] += 1
        if attachment_id in self.material_errors:
            raise self.material_errors[attachment_id]
        self.download_root.mkdir(parents=True, exist_ok=True)
        path = self.download_root / attachment_id
        path.write_bytes(b"%PDF-1.4")
        return path

    def material_calls(self, course_id: str) -> int:
        return self.calls[f"list_materials:{course_id}"]


class InMemoryCredentialStore(CredentialStore):
    """Credential store backed by a dict."""

    def __init__(self, fail_writes: bool = False):
        self.data: Dict[str, bytes] = {}
        self.fail_writes = fail_writes

    def save(self, key: str, data: bytes) -> bool:
        if self.fail_writes:
            return False
        self.data[key] = data
        return True

    def load(self, key: str) -> Optional[bytes]:
        return self.data.get(key)

    def delete(self, key: str) -> bool:
        self.data.pop(key, None)
        return True


@pytest.fixture
def remote(tmp_path):
    """Create a scripted remote source."""
    source = FakeRemoteSource()
    source.download_root = tmp_path / "remote_downloads"
    return source


@pytest.fixture
def cache(tmp_path):
    """Create a CacheStore rooted in a temporary directory."""
    return CacheStore(StorageBackend(tmp_path / "cache"))


@pytest.fixture
def course_repository(remote, cache):
    return CourseRepository(remote, cache)


@pytest.fixture
def material_repository(remote, cache):
    return MaterialRepository(remote, cache)


@pytest.fixture
def course_manager(course_repository):
    return CourseManager(course_repository)


@pytest.fixture
def material_manager(material_repository):
    return MaterialManager(material_repository)


@pytest.fixture
def orchestrator(course_manager, material_manager, cache):
    return SyncOrchestrator(
        course_manager,
        material_manager,
        cache,
        status_revert_delay=0.05,
        progress_delay=0.0,
    )


@pytest.fixture
def credentials():
    return InMemoryCredentialStore()
