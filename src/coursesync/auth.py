"""Authentication and credential storage.

The sync core never reads credentials itself; the HTTP source asks the
credential store for the session token, and the authentication manager is
the only writer.
"""

import base64
import binascii
import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from coursesync.errors import (
    ErrorKind,
    LocalStorageError,
    Unauthenticated,
    classify,
    describe_error,
)
from coursesync.models import User
from coursesync.observable import ObservableState, Published
from coursesync.remote.base import RemoteDataSource

logger = logging.getLogger(__name__)

AUTH_TOKEN_KEY = "auth_token"
USER_ID_KEY = "user_id"


class CredentialStore(ABC):
    """Opaque secure storage of small secrets."""

    @abstractmethod
    def save(self, key: str, data: bytes) -> bool:
        """Store ``data`` under ``key``. Returns True on success."""

    @abstractmethod
    def load(self, key: str) -> Optional[bytes]:
        """Return the bytes stored under ``key``, or None."""

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove ``key``. Returns True if it is gone afterwards."""

    # Convenience accessors for the values the client keeps

    def save_auth_token(self, token: str) -> bool:
        return self.save(AUTH_TOKEN_KEY, token.encode("utf-8"))

    def auth_token(self) -> Optional[str]:
        data = self.load(AUTH_TOKEN_KEY)
        return data.decode("utf-8") if data is not None else None

    def save_user_id(self, user_id: str) -> bool:
        return self.save(USER_ID_KEY, user_id.encode("utf-8"))

    def user_id(self) -> Optional[str]:
        data = self.load(USER_ID_KEY)
        return data.decode("utf-8") if data is not None else None

    def clear_all(self) -> bool:
        token_deleted = self.delete(AUTH_TOKEN_KEY)
        user_deleted = self.delete(USER_ID_KEY)
        return token_deleted and user_deleted


class KeyringCredentialStore(CredentialStore):
    """Credential store backed by the system keyring.

    Values are base64-encoded since keyring stores text.

    Args:
        service: Keyring service name
    """

    def __init__(self, service: str = "coursesync"):
        self.service = service

    def save(self, key: str, data: bytes) -> bool:
        try:
            keyring.set_password(self.service, key, base64.b64encode(data).decode("ascii"))
            return True
        except KeyringError as e:
            logger.error(f"Could not save {key} to keyring: {e}")
            return False

    def load(self, key: str) -> Optional[bytes]:
        try:
            encoded = keyring.get_password(self.service, key)
        except KeyringError as e:
            logger.warning(f"Could not read {key} from keyring: {e}")
            return None
        if encoded is None:
            return None
        try:
            return base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError):
            logger.warning(f"Discarding malformed keyring entry {key}")
            self.delete(key)
            return None

    def delete(self, key: str) -> bool:
        try:
            keyring.delete_password(self.service, key)
        except PasswordDeleteError:
            # Not stored; already in the desired state
            return True
        except KeyringError as e:
            logger.error(f"Could not delete {key} from keyring: {e}")
            return False
        return True


class AuthenticationManager(ObservableState):
    """Login state of the client.

    Args:
        remote: Remote data source used for login and user lookup
        credentials: Where the session token and user id are persisted
        on_logout: Called after credentials are cleared (cache eviction)
    """

    is_authenticated = Published(False)
    current_user = Published(None)
    is_loading = Published(False)
    error_message = Published(None)
    error_kind = Published(None)

    def __init__(
        self,
        remote: RemoteDataSource,
        credentials: CredentialStore,
        on_logout: Optional[Callable[[], None]] = None,
    ):
        super().__init__()
        self.remote = remote
        self.credentials = credentials
        self.on_logout = on_logout
        self.is_authenticated = self.has_stored_session()

    def has_stored_session(self) -> bool:
        return (
            self.credentials.auth_token() is not None
            and self.credentials.user_id() is not None
        )

    async def login(self, user_id: str, secret: str) -> bool:
        """Log in and persist the session.

        Returns:
            True on success; on failure ``error_message`` is set
        """
        self.is_loading = True
        self.error_message = None
        self.error_kind = None
        try:
            session = await self.remote.login(user_id, secret)
            token_saved = self.credentials.save_auth_token(session.access_token)
            user_saved = self.credentials.save_user_id(session.user.id)
            if not (token_saved and user_saved):
                raise LocalStorageError("Could not persist session credentials")
        except Exception as e:
            self._record_error(e)
            return False
        else:
            self.current_user = session.user
            self.is_authenticated = True
            logger.info(f"Logged in as {session.user.eclass_username}")
            return True
        finally:
            self.is_loading = False

    def logout(self) -> None:
        """Forget the session and run the logout hook."""
        self.is_loading = True
        try:
            if not self.credentials.clear_all():
                logger.warning("Credential store could not be fully cleared")
            self.current_user = None
            self.is_authenticated = False
            self.error_message = None
            self.error_kind = None
            if self.on_logout is not None:
                self.on_logout()
        finally:
            self.is_loading = False

    async def refresh_user(self) -> Optional[User]:
        """Re-fetch the current user; logs out when the token is rejected."""
        if not self.is_authenticated:
            return None
        try:
            user = await self.remote.current_user()
        except Unauthenticated as e:
            self._record_error(e)
            self.logout()
            return None
        except Exception as e:
            self._record_error(e)
            return None
        self.current_user = user
        return user

    def _record_error(self, error: Exception) -> None:
        kind: ErrorKind = classify(error)
        logger.warning(f"Authentication failed ({kind.value}): {error}")
        self.error_message = describe_error(error, "auth")
        self.error_kind = kind
