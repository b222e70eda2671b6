"""Support session model."""
from dataclasses import dataclass, field, replace
from datetime import datetime
from types import MappingProxyType
from typing import Any, Mapping, Optional

from src.client.types import Priority, SessionStatus

UNRESOLVED_STATUSES = frozenset({SessionStatus.PENDING, SessionStatus.ACTIVE, SessionStatus.WAITING})
QUEUED_STATUSES = frozenset({SessionStatus.PENDING, SessionStatus.WAITING})


@dataclass(frozen=True)
class Customer:
    """The customer on the other side of a session."""

    name: str = ""
    email: str = ""
    phone: str = ""
    profile: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    @property
    def display_name(self) -> str:
        return self.name or self.email or self.phone or "Unknown customer"


@dataclass(frozen=True)
class LastMessage:
    """Preview of the newest message in a session."""

    preview: str
    sent_at: Optional[datetime] = None


@dataclass(frozen=True)
class WrapUp:
    """Wrap-up record captured when an agent ends a session.

    Attributes:
        category: Session category chosen by the agent (required).
        summary: Free-text summary of the conversation.
        resolution_type: How the session was resolved.
        tags: Outcome tags (e.g. sales, churn, feedback).
        ended_at: Server time the session ended.
    """

    category: str
    summary: str = ""
    resolution_type: str = "resolved"
    tags: frozenset[str] = frozenset()
    ended_at: Optional[datetime] = None


@dataclass(frozen=True)
class Session:
    """A conversation between a customer and the support organization.

    Attributes:
        id: Opaque session identifier.
        customer: Customer details.
        status: Lifecycle status (pending, active, waiting, ended).
        priority: Queue priority.
        category: Free-text category tag.
        assigned_agent_id: Agent currently owning the session.
        tags: Labels attached to the session.
        unread_count: Messages the agent has not viewed yet.
        last_message: Preview of the newest message.
        wait_time: Minutes spent waiting in the queue.
        satisfaction_rating: Customer rating 1-5, when given.
        internal_notes: Agent-only notes.
        last_activity_at: Server timestamp of the latest change; orders deltas.
        wrap_up: Wrap-up record, set once the session has ended.
    """

    id: str
    last_activity_at: datetime
    customer: Customer = field(default_factory=Customer)
    status: SessionStatus = SessionStatus.PENDING
    priority: Priority = Priority.MEDIUM
    category: str = "general"
    assigned_agent_id: Optional[str] = None
    tags: frozenset[str] = frozenset()
    unread_count: int = 0
    last_message: Optional[LastMessage] = None
    wait_time: int = 0
    satisfaction_rating: Optional[int] = None
    internal_notes: str = ""
    wrap_up: Optional[WrapUp] = None

    def __post_init__(self) -> None:
        """Validate invariants."""
        if not self.id:
            raise ValueError("id cannot be empty")
        if self.unread_count < 0:
            raise ValueError("unread_count cannot be negative")
        if self.wait_time < 0:
            raise ValueError("wait_time cannot be negative")
        if self.satisfaction_rating is not None and not 1 <= self.satisfaction_rating <= 5:
            raise ValueError("satisfaction_rating must be between 1 and 5")
        if self.status in (SessionStatus.ACTIVE, SessionStatus.WAITING) and not self.assigned_agent_id:
            raise ValueError(f"assigned_agent_id required while {self.status.value}")

    @property
    def is_ended(self) -> bool:
        return self.status == SessionStatus.ENDED

    @property
    def is_unresolved(self) -> bool:
        return self.status in UNRESOLVED_STATUSES

    def with_changes(self, **changes: Any) -> "Session":
        """Return a copy with the given fields replaced (validated again)."""
        return replace(self, **changes)
