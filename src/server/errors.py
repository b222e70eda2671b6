"""Custom exception types for the server."""
from typing import Any, Optional


class InboxApiError(Exception):
    status_code: int = 500
    error_code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class SessionNotFoundError(InboxApiError):
    status_code = 404
    error_code = "NOT_FOUND"

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session {session_id} not found")


class MessageNotFoundError(InboxApiError):
    status_code = 404
    error_code = "NOT_FOUND"

    def __init__(self, message_id: str) -> None:
        super().__init__(f"Message {message_id} not found")


class AlreadyAssignedError(InboxApiError):
    status_code = 409
    error_code = "ALREADY_ASSIGNED"

    def __init__(self, session_id: str, assigned_agent_id: Optional[str]) -> None:
        super().__init__(
            f"Session {session_id} is already assigned",
            {"assigned_agent_id": assigned_agent_id},
        )


class SessionClosedError(InboxApiError):
    status_code = 409
    error_code = "SESSION_CLOSED"

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session {session_id} has ended")


class InvalidTransitionError(InboxApiError):
    status_code = 409
    error_code = "INVALID_STATE"

    def __init__(self, session_id: str, status: str, action: str) -> None:
        super().__init__(f"Cannot {action} session {session_id} while {status}", {"status": status})

