"""Error taxonomy for the sync/cache core.

Remote and storage failures are raised as typed exceptions up to the managers,
which turn them into short user-facing messages via :func:`describe_error`.
The underlying kind stays available through :func:`classify`.
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Kind of failure, independent of how it is presented."""

    UNAUTHENTICATED = "unauthenticated"
    SERVER_ERROR = "server_error"
    INVALID_RESPONSE = "invalid_response"
    NOT_FOUND = "not_found"
    NO_COURSES_TO_SYNC = "no_courses_to_sync"
    NETWORK_UNAVAILABLE = "network_unavailable"
    LOCAL_STORAGE_ERROR = "local_storage_error"
    UNCLASSIFIED = "unclassified"


class CourseSyncError(Exception):
    """Base exception for all coursesync failures."""

    kind = ErrorKind.UNCLASSIFIED


class Unauthenticated(CourseSyncError):
    """Raised when no session token exists or the server rejects it."""

    kind = ErrorKind.UNAUTHENTICATED

    def __init__(self, message: str = "Not authenticated", token_missing: bool = False):
        super().__init__(message)
        self.token_missing = token_missing


class ServerError(CourseSyncError):
    """Raised when the server answers with a non-success status code."""

    kind = ErrorKind.SERVER_ERROR

    def __init__(self, code: int, message: Optional[str] = None):
        super().__init__(message or f"Server error: {code}")
        self.code = code


class InvalidResponse(CourseSyncError):
    """Raised when a response cannot be decoded."""

    kind = ErrorKind.INVALID_RESPONSE


class NotFound(CourseSyncError):
    """Raised when the requested resource does not exist."""

    kind = ErrorKind.NOT_FOUND


class NoCoursesToSync(CourseSyncError):
    """Raised when a sync run finds an empty course list."""

    kind = ErrorKind.NO_COURSES_TO_SYNC


class NetworkUnavailable(CourseSyncError):
    """Raised when the server cannot be reached."""

    kind = ErrorKind.NETWORK_UNAVAILABLE


class LocalStorageError(CourseSyncError):
    """Raised on cache write or credential store failures."""

    kind = ErrorKind.LOCAL_STORAGE_ERROR


class Unclassified(CourseSyncError):
    """Wraps any failure that fits no other kind."""

    kind = ErrorKind.UNCLASSIFIED

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


def classify(error: BaseException) -> ErrorKind:
    """Return the taxonomy kind of an exception.

    Examples:
        >>> classify(ServerError(503))
        <ErrorKind.SERVER_ERROR: 'server_error'>
        >>> classify(KeyError('x'))
        <ErrorKind.UNCLASSIFIED: 'unclassified'>
    """
    if isinstance(error, CourseSyncError):
        return error.kind
    return ErrorKind.UNCLASSIFIED


# Fallback wording per context for unclassified failures
_CONTEXT_FALLBACK = {
    "courses": "Could not load the course list",
    "materials": "Could not load course materials",
    "sync": "An error occurred during sync",
    "auth": "An unknown error occurred",
}


def describe_error(error: BaseException, context: str = "sync") -> str:
    """Turn an exception into a short user-facing message.

    Args:
        error: The failure to describe
        context: One of 'courses', 'materials', 'sync', 'auth'

    Returns:
        Message suitable for an ``error_message`` field

    Examples:
        >>> describe_error(ServerError(500), "courses")
        'Server error (code: 500)'
        >>> describe_error(NotFound(), "materials")
        'Course materials could not be found.'
    """
    kind = classify(error)

    if kind is ErrorKind.UNAUTHENTICATED:
        if context == "auth":
            return "The login details are incorrect."
        return "Please log in."
    if kind is ErrorKind.SERVER_ERROR:
        return f"Server error (code: {getattr(error, 'code', '?')})"
    if kind is ErrorKind.INVALID_RESPONSE:
        return "The server response could not be processed."
    if kind is ErrorKind.NOT_FOUND:
        if context == "materials":
            return "Course materials could not be found."
        return "The requested resource was not found."
    if kind is ErrorKind.NO_COURSES_TO_SYNC:
        return "There are no courses to sync."
    if kind is ErrorKind.NETWORK_UNAVAILABLE:
        return "Network unavailable. Showing saved data."
    if kind is ErrorKind.LOCAL_STORAGE_ERROR:
        if context == "auth":
            return "The secure credential store is not accessible."
        return "Local storage error."

    fallback = _CONTEXT_FALLBACK.get(context, _CONTEXT_FALLBACK["sync"])
    return f"{fallback}: {error}"
