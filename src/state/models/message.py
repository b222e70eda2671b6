"""Conversation message model."""
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Optional

from src.client.types import DeliveryState, SenderType


@dataclass(frozen=True)
class Message:
    """A single turn within a session.

    Attributes:
        id: Server id, or ``local-<correlation_id>`` while optimistic.
        session_id: Owning session.
        sender_type: customer, agent, bot, or system.
        body: Message text.
        created_at: Creation time; orders messages within a session.
        delivered_at: When the server confirmed delivery. Never reverts to None.
        is_read: Whether the message has been read. Never reverts to False.
        correlation_id: Client-generated id echoed back by the server.
        delivery_state: Local delivery tracking for agent-sent messages.
        attempts: Send attempts made for an optimistic message.
        sender_id: Agent or customer identifier, when known.
    """

    id: str
    session_id: str
    sender_type: SenderType
    body: str
    created_at: datetime
    delivered_at: Optional[datetime] = None
    is_read: bool = False
    correlation_id: Optional[str] = None
    delivery_state: DeliveryState = DeliveryState.DELIVERED
    attempts: int = 0
    sender_id: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate required fields."""
        if not self.id:
            raise ValueError("id cannot be empty")
        if not self.session_id:
            raise ValueError("session_id cannot be empty")

    @property
    def is_optimistic(self) -> bool:
        return self.delivery_state in (DeliveryState.PENDING, DeliveryState.FAILED)

    @property
    def sort_key(self) -> tuple[datetime, str]:
        return (self.created_at, self.id)

    def merged_with(self, newer: "Message") -> "Message":
        """Merge a newer copy of this message, keeping monotonic flags."""
        changes: dict[str, Any] = {
            "id": newer.id,
            "body": newer.body,
            "created_at": newer.created_at,
            "delivered_at": newer.delivered_at or self.delivered_at,
            "is_read": self.is_read or newer.is_read,
            "correlation_id": newer.correlation_id or self.correlation_id,
            "sender_id": newer.sender_id or self.sender_id,
            "attempts": self.attempts,
        }
        delivered = changes["delivered_at"] is not None
        changes["delivery_state"] = DeliveryState.DELIVERED if delivered else newer.delivery_state
        return replace(self, **changes)
