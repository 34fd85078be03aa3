"""HTTP implementation of the remote data source (requests)."""

import asyncio
import logging
import tempfile
import uuid
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import requests

from coursesync.errors import (
    InvalidResponse,
    NetworkUnavailable,
    NotFound,
    ServerError,
    Unauthenticated,
)
from coursesync.models import AuthSession, Course, Material, RefreshOutcome, User
from coursesync.remote.base import RemoteDataSource

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


class HttpRemoteSource(RemoteDataSource):
    """Talks to the course server over HTTP.

    Blocking ``requests`` calls run in a worker thread so the event loop that
    owns the sync state is never blocked.

    Args:
        base_url: Server root, e.g. 'https://api.autolms.com'
        token_provider: Returns the current session token, or None
        timeout: Per-request timeout in seconds
        session: Optional preconfigured requests.Session
        download_dir: Where downloaded attachments are written
    """

    def __init__(
        self,
        base_url: str,
        token_provider: Callable[[], Optional[str]],
        timeout: int = 30,
        session: Optional[requests.Session] = None,
        download_dir: Optional[Path] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token_provider = token_provider
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})
        self.download_dir = Path(download_dir or tempfile.gettempdir())

    # =========================================================================
    # Request plumbing
    # =========================================================================

    def _auth_headers(self) -> Dict[str, str]:
        token = self.token_provider()
        if not token:
            raise Unauthenticated("No session token available", token_missing=True)
        return {"Authorization": f"Bearer {token}"}

    def _request(
        self,
        endpoint: str,
        method: str = "GET",
        body: Optional[Dict[str, Any]] = None,
        authenticated: bool = True,
    ) -> requests.Response:
        headers = self._auth_headers() if authenticated else {}
        url = f"{self.base_url}{API_PREFIX}{endpoint}"

        try:
            response = self.session.request(
                method=method,
                url=url,
                json=body,
                headers=headers,
                timeout=self.timeout,
            )
        except (requests.ConnectionError, requests.Timeout) as e:
            raise NetworkUnavailable(f"Cannot reach {self.base_url}: {e}") from e
        except requests.RequestException as e:
            raise InvalidResponse(f"Request to {url} failed: {e}") from e

        self.validate_response(response)
        return response

    @staticmethod
    def validate_response(response: requests.Response) -> None:
        """Map the HTTP status to the error taxonomy.

        Raises:
            Unauthenticated: On 401
            NotFound: On 404
            ServerError: On any other non-2xx status
        """
        status = response.status_code
        if 200 <= status < 300:
            return
        if status == 401:
            raise Unauthenticated("Server rejected the session token")
        if status == 404:
            raise NotFound(f"Resource not found: {response.url}")
        raise ServerError(status)

    @staticmethod
    def _json(response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise InvalidResponse(f"Response is not valid JSON: {e}") from e

    def _decode(self, response: requests.Response, build: Callable[[Any], Any]) -> Any:
        data = self._json(response)
        try:
            return build(data)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise InvalidResponse(f"Unexpected response shape: {e}") from e

    async def _call(self, fn: Callable, *args, **kwargs) -> Any:
        return await asyncio.to_thread(fn, *args, **kwargs)

    # =========================================================================
    # Endpoints
    # =========================================================================

    def _login(self, user_id: str, secret: str) -> AuthSession:
        response = self._request(
            "/auth/login",
            method="POST",
            body={"username": user_id, "password": secret},
            authenticated=False,
        )
        return self._decode(response, AuthSession.from_dict)

    async def login(self, user_id: str, secret: str) -> AuthSession:
        return await self._call(self._login, user_id, secret)

    def _current_user(self) -> User:
        return self._decode(self._request("/auth/me"), User.from_dict)

    async def current_user(self) -> User:
        return await self._call(self._current_user)

    def _list_courses(self) -> List[Course]:
        response = self._request("/courses")
        return self._decode(
            response, lambda data: [Course.from_dict(c) for c in data["courses"]]
        )

    async def list_courses(self) -> List[Course]:
        return await self._call(self._list_courses)

    def _list_materials(self, course_id: str) -> List[Material]:
        response = self._request(f"/courses/{course_id}/materials")
        return self._decode(
            response, lambda data: [Material.from_dict(m) for m in data["materials"]]
        )

    async def list_materials(self, course_id: str) -> List[Material]:
        return await self._call(self._list_materials, course_id)

    def _refresh_materials(self, course_id: str) -> RefreshOutcome:
        response = self._request(f"/courses/{course_id}/materials/refresh", method="POST")
        outcome = self._decode(response, RefreshOutcome.from_materials_payload)
        logger.info(
            f"Server refresh of {course_id}: {outcome.new_items} new, "
            f"{len(outcome.items)} total"
        )
        return outcome

    async def refresh_materials(self, course_id: str) -> RefreshOutcome:
        return await self._call(self._refresh_materials, course_id)

    def _download_attachment(self, attachment_id: str) -> Path:
        response = self._request(f"/attachments/{attachment_id}/download")
        self.download_dir.mkdir(parents=True, exist_ok=True)
        target = self.download_dir / uuid.uuid4().hex
        target.write_bytes(response.content)
        logger.debug(f"Downloaded attachment {attachment_id} to {target}")
        return target

    async def download_attachment(self, attachment_id: str) -> Path:
        return await self._call(self._download_attachment, attachment_id)
