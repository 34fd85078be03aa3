"""Contract for the remote data source consumed by the repositories."""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import List

from coursesync.models import AuthSession, Course, Material, RefreshOutcome, User


class RemoteDataSource(ABC):
    """Abstract course server.

    Every call except ``login`` needs a session token; implementations raise
    ``Unauthenticated(token_missing=True)`` when none is available, and
    ``Unauthenticated`` when the server rejects the token. Other failures
    use the kinds in :mod:`coursesync.errors`.
    """

    @abstractmethod
    async def login(self, user_id: str, secret: str) -> AuthSession:
        """Exchange credentials for a session token and user."""

    @abstractmethod
    async def current_user(self) -> User:
        """Fetch the user the current token belongs to."""

    @abstractmethod
    async def list_courses(self) -> List[Course]:
        """Fetch all courses of the current user."""

    @abstractmethod
    async def list_materials(self, course_id: str) -> List[Material]:
        """Fetch the full material set of one course."""

    @abstractmethod
    async def refresh_materials(self, course_id: str) -> RefreshOutcome:
        """Ask the server to re-crawl a course and return the fresh set."""

    @abstractmethod
    async def download_attachment(self, attachment_id: str) -> Path:
        """Download an attachment to a local file and return its path."""
