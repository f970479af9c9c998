from __future__ import annotations


class SessionServiceError(Exception):
    """Base exception for all session-service errors."""

    code = "SESSION_ERROR"


class Unauthenticated(SessionServiceError):
    """No session (or no authenticated user in it) was presented."""

    code = "AUTH_UNAUTHORIZED"


class SessionInvalidated(SessionServiceError):
    """A session id was presented but is known to be dead.

    Raised on a ledger hit, a registry miss, or an expired registry record.
    Distinct from Unauthenticated so clients can show "logged out elsewhere".
    """

    code = "AUTH_SESSION_INVALIDATED"

    def __init__(self, message: str = "session expired or logged in on another device", *, reason: str = "") -> None:
        super().__init__(message)
        self.reason = reason


class InfraUnavailable(SessionServiceError):
    """Redis or MongoDB is unreachable or timed out."""

    code = "INFRA_UNAVAILABLE"

    def __init__(self, message: str, *, operation: str = "", session_id: str | None = None, user_id: str | None = None) -> None:
        super().__init__(message)
        self.operation = operation
        self.session_id = session_id
        self.user_id = user_id


class AlreadyAuthenticated(SessionServiceError):
    """Login attempted while the request already carries a live session."""

    code = "AUTH_ALREADY_LOGGED_IN"


class SessionNotFound(SessionServiceError):
    """The referenced session does not exist for this user."""

    code = "SESSION_NOT_FOUND"


class CurrentSessionDeletion(SessionServiceError):
    """The current session cannot be removed through the device endpoint."""

    code = "SESSION_CURRENT_NOT_DELETABLE"
