"""Tests for credential stores and AuthenticationManager."""

import asyncio
from unittest.mock import patch

from keyring.errors import KeyringError, PasswordDeleteError

from conftest import InMemoryCredentialStore
from coursesync.auth import (
    AUTH_TOKEN_KEY,
    USER_ID_KEY,
    AuthenticationManager,
    KeyringCredentialStore,
)
from coursesync.errors import ErrorKind, NetworkUnavailable, Unauthenticated


class TestKeyringCredentialStore:
    """Test the keyring-backed store with keyring calls patched."""

    def test_values_base64_encoded(self):
        """Test that bytes are stored as base64 text under the service."""
        store = KeyringCredentialStore("svc")
        with patch("coursesync.auth.keyring") as kr:
            assert store.save("auth_token", b"tok") is True
            kr.set_password.assert_called_once_with("svc", "auth_token", "dG9r")

            kr.get_password.return_value = "dG9r"
            assert store.load("auth_token") == b"tok"

    def test_missing_value(self):
        store = KeyringCredentialStore("svc")
        with patch("coursesync.auth.keyring") as kr:
            kr.get_password.return_value = None
            assert store.load("auth_token") is None
            assert store.auth_token() is None

    def test_backend_failure(self):
        """Test that keyring errors are reported, not raised."""
        store = KeyringCredentialStore("svc")
        with patch("coursesync.auth.keyring") as kr:
            kr.set_password.side_effect = KeyringError("locked")
            kr.get_password.side_effect = KeyringError("locked")
            assert store.save("k", b"v") is False
            assert store.load("k") is None

    def test_delete_missing_is_success(self):
        store = KeyringCredentialStore("svc")
        with patch("coursesync.auth.keyring") as kr:
            kr.delete_password.side_effect = PasswordDeleteError("not found")
            assert store.delete("k") is True


class TestAuthenticationManager:
    """Test login state transitions."""

    def test_login_persists_session(self, remote, credentials):
        """Test that a successful login stores token and user id."""
        auth = AuthenticationManager(remote, credentials)
        assert auth.is_authenticated is False

        assert asyncio.run(auth.login("student", "pw")) is True

        assert auth.is_authenticated is True
        assert auth.current_user == remote.user
        assert credentials.auth_token() == "token-abc"
        assert credentials.user_id() == "u1"
        assert auth.is_loading is False

    def test_stored_session_restored(self, remote, credentials):
        """Test that an existing session counts as logged in."""
        credentials.save_auth_token("t")
        credentials.save_user_id("u1")
        assert AuthenticationManager(remote, credentials).is_authenticated is True

    def test_bad_credentials(self, remote, credentials):
        """Test that a rejected login sets a message and stores nothing."""
        remote.login_error = Unauthenticated()
        auth = AuthenticationManager(remote, credentials)

        assert asyncio.run(auth.login("student", "wrong")) is False

        assert auth.error_message == "The login details are incorrect."
        assert auth.is_authenticated is False
        assert credentials.data == {}

    def test_credential_store_failure(self, remote):
        """Test that failing to persist the session is a storage error."""
        auth = AuthenticationManager(remote, InMemoryCredentialStore(fail_writes=True))

        assert asyncio.run(auth.login("student", "pw")) is False
        assert auth.error_kind is ErrorKind.LOCAL_STORAGE_ERROR
        assert auth.error_message == "The secure credential store is not accessible."

    def test_logout_clears_and_calls_hook(self, remote, credentials):
        """Test that logout forgets credentials and runs the hook."""
        calls = []
        auth = AuthenticationManager(remote, credentials, on_logout=lambda: calls.append(1))
        asyncio.run(auth.login("student", "pw"))

        auth.logout()

        assert auth.is_authenticated is False
        assert auth.current_user is None
        assert credentials.auth_token() is None
        assert calls == [1]

    def test_refresh_user_rejected_logs_out(self, remote, credentials):
        """Test that an expired token ends the session."""
        auth = AuthenticationManager(remote, credentials)
        asyncio.run(auth.login("student", "pw"))
        remote.user_error = Unauthenticated()

        assert asyncio.run(auth.refresh_user()) is None
        assert auth.is_authenticated is False
        assert credentials.data == {}

    def test_refresh_user_offline_keeps_session(self, remote, credentials):
        """Test that a network failure does not log out."""
        auth = AuthenticationManager(remote, credentials)
        asyncio.run(auth.login("student", "pw"))
        remote.user_error = NetworkUnavailable()

        assert asyncio.run(auth.refresh_user()) is None
        assert auth.is_authenticated is True
        assert credentials.data[AUTH_TOKEN_KEY] == b"token-abc"
        assert USER_ID_KEY in credentials.data

    def test_refresh_user_when_logged_out(self, remote, credentials):
        auth = AuthenticationManager(remote, credentials)
        assert asyncio.run(auth.refresh_user()) is None
        assert remote.calls["current_user"] == 0
