"""Exception types for the support inbox client library."""


class InboxError(Exception):
    """Base exception for all inbox client errors."""

    error_code = "INBOX_ERROR"
    retryable = False


class NetworkError(InboxError):
    """Transient network or server failure. Safe to retry with backoff."""

    error_code = "NETWORK_ERROR"
    retryable = True

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RequestTimeoutError(NetworkError):
    """Action did not complete within the client-side timeout."""

    error_code = "TIMEOUT"


class RateLimitError(NetworkError):
    """Request was rate limited by the server."""

    error_code = "RATE_LIMITED"

    def __init__(self, message: str, retry_after: int | None = None) -> None:
        super().__init__(message, status_code=429)
        self.retry_after = retry_after


class AlreadyAssignedError(InboxError):
    """Another agent claimed the session first."""

    error_code = "ALREADY_ASSIGNED"

    def __init__(self, session_id: str, assigned_agent_id: str | None = None) -> None:
        who = assigned_agent_id or "another agent"
        super().__init__(f"Session {session_id} was already taken by {who}")
        self.session_id = session_id
        self.assigned_agent_id = assigned_agent_id


class SessionClosedError(InboxError):
    """Mutation attempted on a session that has ended."""

    error_code = "SESSION_CLOSED"

    def __init__(self, session_id: str) -> None:
        super().__init__(f"This conversation has ended ({session_id})")
        self.session_id = session_id


class ValidationError(InboxError):
    """Malformed payload. ``fields`` maps field names to messages."""

    error_code = "VALIDATION_ERROR"

    def __init__(self, message: str, fields: dict[str, str] | None = None) -> None:
        super().__init__(message)
        self.fields = fields or {}


class ChannelDisconnectedError(InboxError):
    """Realtime transport is down."""

    error_code = "CHANNEL_DISCONNECTED"


class NotFoundError(InboxError):
    """Session or message does not exist (or is no longer visible)."""

    error_code = "NOT_FOUND"


class InvalidStateError(InboxError):
    """Action is not allowed from the session's current status."""

    error_code = "INVALID_STATE"

    def __init__(self, session_id: str, status: str, action: str) -> None:
        super().__init__(f"Cannot {action} session {session_id} while it is {status}")
        self.session_id = session_id
        self.status = status
        self.action = action
