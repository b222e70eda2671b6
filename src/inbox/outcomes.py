"""Result values returned by controller actions."""
from dataclasses import dataclass
from typing import Any, Optional

from src.client.exceptions import InboxError
from src.client.types import ActionType


@dataclass(frozen=True)
class ActionOutcome:
    """What happened when the agent triggered an action.

    Actions never raise into the presentation layer; they return one of
    these instead. ``value`` carries the confirmed record on success.
    """

    action: ActionType
    session_id: Optional[str]
    ok: bool
    value: Any = None
    error: Optional[InboxError] = None

    @classmethod
    def success(cls, action: ActionType, session_id: Optional[str], value: Any = None) -> "ActionOutcome":
        return cls(action=action, session_id=session_id, ok=True, value=value)

    @classmethod
    def failure(cls, action: ActionType, session_id: Optional[str], error: InboxError) -> "ActionOutcome":
        return cls(action=action, session_id=session_id, ok=False, error=error)

    @property
    def error_code(self) -> Optional[str]:
        return self.error.error_code if self.error else None

    @property
    def retryable(self) -> bool:
        return bool(self.error and self.error.retryable)

    def __bool__(self) -> bool:
        return self.ok
