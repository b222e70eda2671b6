"""In-memory session and message state for the reference inbox API.

All mutations run synchronously on the event loop (no awaits inside), so
each one is atomic with respect to concurrent requests. That makes this
class the arbiter for assignment races: the first assign to reach it wins
and every later one gets ``AlreadyAssignedError``.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Optional
from uuid import uuid4

from src.client.types import SenderType, SessionStatus
from src.server.errors import (
    AlreadyAssignedError, InvalidTransitionError, MessageNotFoundError, SessionClosedError, SessionNotFoundError,
)
from src.server.events import EventBroadcaster
from src.state.models.common import format_timestamp, utcnow

logger = logging.getLogger(__name__)

_QUEUED = (SessionStatus.PENDING, SessionStatus.WAITING)
_OWNED = (SessionStatus.ACTIVE, SessionStatus.WAITING)
_PRIORITY_RANK = {"high": 0, "medium": 1, "low": 2}


@dataclass
class SessionRecord:
    id: str
    customer: dict[str, Any]
    created_at: datetime
    last_activity_at: datetime
    wait_started_at: datetime
    status: SessionStatus = SessionStatus.PENDING
    priority: str = "medium"
    category: str = "general"
    assigned_agent_id: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    unread_count: int = 0
    satisfaction_rating: Optional[int] = None
    internal_notes: str = ""
    last_message: Optional[dict[str, Any]] = None
    wrap_up: Optional[dict[str, Any]] = None

    def wait_minutes(self, now: datetime) -> int:
        if self.status not in _QUEUED:
            return 0
        return max(0, int((now - self.wait_started_at).total_seconds() // 60))

    def to_dict(self, now: Optional[datetime] = None) -> dict[str, Any]:
        return {
            "id": self.id,
            "customer": dict(self.customer),
            "status": self.status.value,
            "priority": self.priority,
            "category": self.category,
            "assigned_agent_id": self.assigned_agent_id,
            "tags": list(self.tags),
            "unread_count": self.unread_count,
            "last_message": self.last_message,
            "wait_time": self.wait_minutes(now or utcnow()),
            "satisfaction_rating": self.satisfaction_rating,
            "internal_notes": self.internal_notes,
            "created_at": format_timestamp(self.created_at),
            "last_activity_at": format_timestamp(self.last_activity_at),
            "wrap_up": self.wrap_up,
        }


@dataclass
class MessageRecord:
    id: str
    session_id: str
    sender_type: SenderType
    body: str
    created_at: datetime
    sender_id: Optional[str] = None
    correlation_id: Optional[str] = None
    delivered_at: Optional[datetime] = None
    is_read: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "sender_type": self.sender_type.value,
            "sender_id": self.sender_id,
            "body": self.body,
            "created_at": format_timestamp(self.created_at),
            "delivered_at": format_timestamp(self.delivered_at),
            "is_read": self.is_read,
            "correlation_id": self.correlation_id,
        }


class InboxState:
    """Sessions and messages for one organization, with change broadcasting."""

    def __init__(self, broadcaster: Optional[EventBroadcaster] = None) -> None:
        self.broadcaster = broadcaster or EventBroadcaster()
        self._sessions: dict[str, SessionRecord] = {}
        self._messages: dict[str, list[MessageRecord]] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    # -- reads ---------------------------------------------------------

    def get(self, session_id: str) -> SessionRecord:
        record = self._sessions.get(session_id)
        if record is None:
            raise SessionNotFoundError(session_id)
        return record

    def list_sessions(self, agent_id: Optional[str], view: str = "all", search: Optional[str] = None,
                      status: Optional[str] = None, priority: Optional[str] = None,
                      category: Optional[str] = None, page: int = 1,
                      per_page: int = 20) -> tuple[list[SessionRecord], int]:
        """Sessions visible to an agent: the shared queue plus their own.

        ``view`` narrows to ``active`` (owned, active or waiting) or
        ``pending`` (the queue). Returns one page and the total count.
        """
        needle = (search or "").strip().lower()
        matches = []
        for r in self._sessions.values():
            mine = agent_id is not None and r.assigned_agent_id == agent_id
            if view == "active" and not (mine and r.status in _OWNED):
                continue
            if view == "pending" and r.status != SessionStatus.PENDING:
                continue
            if view == "all" and not (r.status == SessionStatus.PENDING or mine):
                continue
            if status and r.status.value != status:
                continue
            if priority and r.priority != priority:
                continue
            if category and r.category != category:
                continue
            if needle and needle not in r.customer.get("name", "").lower() \
                    and needle not in r.customer.get("email", "").lower():
                continue
            matches.append(r)
        matches.sort(key=lambda r: (r.status == SessionStatus.ENDED, -r.last_activity_at.timestamp(), r.id))
        start = (page - 1) * per_page
        return matches[start:start + per_page], len(matches)

    def list_messages(self, session_id: str, page: int = 1, per_page: int = 50) -> tuple[list[MessageRecord], int]:
        """Newest page first; messages within a page are oldest first."""
        self.get(session_id)
        messages = self._messages.get(session_id, [])
        end = len(messages) - (page - 1) * per_page
        start = max(0, end - per_page)
        return (messages[start:end] if end > 0 else []), len(messages)

    def statistics(self, agent_id: Optional[str]) -> dict[str, Any]:
        now = utcnow()
        counts = {s.value: 0 for s in SessionStatus}
        waits, ratings = [], []
        mine = 0
        for r in self._sessions.values():
            counts[r.status.value] += 1
            if r.status == SessionStatus.PENDING:
                waits.append(r.wait_minutes(now))
            if r.satisfaction_rating is not None:
                ratings.append(r.satisfaction_rating)
            if agent_id and r.assigned_agent_id == agent_id and r.status in _OWNED:
                mine += 1
        return {
            "total": len(self._sessions),
            "by_status": counts,
            "my_active": mine,
            "queue_length": counts[SessionStatus.PENDING.value],
            "longest_wait": max(waits, default=0),
            "average_wait": round(sum(waits) / len(waits), 1) if waits else 0,
            "average_rating": round(sum(ratings) / len(ratings), 2) if ratings else None,
        }

    # -- customer side -------------------------------------------------

    def create_session(self, customer: dict[str, Any], category: str = "general", priority: str = "medium",
                       tags: Optional[list[str]] = None, first_message: Optional[str] = None,
                       waiting_since: Optional[datetime] = None) -> SessionRecord:
        now = utcnow()
        record = SessionRecord(
            id=str(uuid4()), customer=dict(customer), created_at=now, last_activity_at=now,
            wait_started_at=waiting_since or now, priority=priority, category=category, tags=list(tags or []),
        )
        self._sessions[record.id] = record
        self._messages[record.id] = []
        logger.info("Session created: %s (%s)", record.id, customer.get("email") or customer.get("name"))
        if first_message:
            self.add_customer_message(record.id, first_message)
        else:
            self._publish_session(record)
        return record

    def add_customer_message(self, session_id: str, body: str) -> MessageRecord:
        record = self._open(session_id)
        message = self._append(record, SenderType.CUSTOMER, body)
        record.unread_count += 1
        if record.status == SessionStatus.WAITING:
            record.status = SessionStatus.ACTIVE
        self._publish_session(record)
        return message

    def rate(self, session_id: str, rating: int) -> SessionRecord:
        record = self.get(session_id)
        record.satisfaction_rating = rating
        self._touch(record)
        self._publish_session(record)
        return record

    # -- agent side ----------------------------------------------------

    def assign(self, session_id: str, agent_id: str, expected_agent_id: Optional[str] = None) -> SessionRecord:
        """Give a queued session to ``agent_id``.

        Succeeds only when the session is pending and its current assignee
        equals ``expected_agent_id``. Re-assigning to the current owner is a
        no-op.
        """
        record = self._open(session_id)
        if record.assigned_agent_id == agent_id and record.status in _OWNED:
            return record
        if record.status != SessionStatus.PENDING or record.assigned_agent_id != expected_agent_id:
            logger.info("Assign conflict on %s: %s lost to %s", session_id, agent_id, record.assigned_agent_id)
            raise AlreadyAssignedError(session_id, record.assigned_agent_id)
        record.status = SessionStatus.ACTIVE
        record.assigned_agent_id = agent_id
        self._touch(record)
        logger.info("Session %s assigned to %s", session_id, agent_id)
        self._publish_session(record)
        return record

    def add_agent_message(self, session_id: str, agent_id: Optional[str], body: str,
                          correlation_id: Optional[str] = None) -> MessageRecord:
        record = self._open(session_id)
        if record.status not in _OWNED:
            raise InvalidTransitionError(session_id, record.status.value, "send on")
        if correlation_id:
            for existing in self._messages[session_id]:
                if existing.correlation_id == correlation_id:
                    return existing
        message = self._append(record, SenderType.AGENT, body, sender_id=agent_id, correlation_id=correlation_id)
        message.delivered_at = message.created_at
        self._publish_session(record)
        return message

    def set_status(self, session_id: str, status: SessionStatus) -> SessionRecord:
        record = self._open(session_id)
        if status not in _OWNED or record.status not in _OWNED:
            raise InvalidTransitionError(session_id, record.status.value, f"mark {status.value}")
        if record.status != status:
            record.status = status
            if status == SessionStatus.WAITING:
                record.wait_started_at = utcnow()
            self._touch(record)
            self._publish_session(record)
        return record

    def transfer(self, session_id: str, target_agent_id: Optional[str], reason: str, notes: str = "") -> SessionRecord:
        """Move an owned session to another agent, or back to the queue."""
        record = self._open(session_id)
        if record.status not in _OWNED:
            raise InvalidTransitionError(session_id, record.status.value, "transfer")
        previous = record.assigned_agent_id
        if target_agent_id:
            record.status = SessionStatus.ACTIVE
            record.assigned_agent_id = target_agent_id
        else:
            record.status = SessionStatus.PENDING
            record.assigned_agent_id = None
            record.wait_started_at = utcnow()
        if notes:
            record.internal_notes = f"{record.internal_notes}\n{notes}".strip()
        self._append(record, SenderType.SYSTEM, f"Transferred from {previous} to {target_agent_id or 'queue'}: {reason}")
        logger.info("Session %s transferred %s -> %s", session_id, previous, target_agent_id or "queue")
        self._publish_session(record)
        return record

    def end(self, session_id: str, category: str, resolution_type: str = "resolved", summary: str = "",
            tags: Optional[list[str]] = None) -> SessionRecord:
        record = self._open(session_id)
        if record.status not in _OWNED:
            raise InvalidTransitionError(session_id, record.status.value, "end")
        record.status = SessionStatus.ENDED
        record.category = category
        self._touch(record)
        record.wrap_up = {
            "category": category, "summary": summary, "resolution_type": resolution_type,
            "tags": sorted(set(tags or [])), "ended_at": format_timestamp(record.last_activity_at),
        }
        logger.info("Session %s ended (%s)", session_id, resolution_type)
        self._publish_session(record)
        return record

    def update_notes(self, session_id: str, notes: str) -> SessionRecord:
        record = self._open(session_id)
        record.internal_notes = notes
        self._touch(record)
        self._publish_session(record)
        return record

    def mark_read(self, session_id: str, message_id: str) -> SessionRecord:
        """Mark inbound messages up to and including ``message_id`` as read."""
        record = self.get(session_id)
        messages = self._messages[session_id]
        idx = next((i for i, m in enumerate(messages) if m.id == message_id), None)
        if idx is None:
            raise MessageNotFoundError(message_id)
        for m in messages[:idx + 1]:
            if m.sender_type != SenderType.AGENT and not m.is_read:
                m.is_read = True
                self.broadcaster.publish("message.updated", m.to_dict())
        record.unread_count = sum(1 for m in messages if m.sender_type == SenderType.CUSTOMER and not m.is_read)
        self._touch(record)
        self._publish_session(record)
        return record

    def typing(self, session_id: str, participant_id: str, participant_type: str, is_typing: bool) -> None:
        self._open(session_id)
        self.broadcaster.publish("typing", {
            "session_id": session_id, "participant_id": participant_id,
            "participant_type": participant_type, "is_typing": is_typing,
        })

    # -- internals -----------------------------------------------------

    def _open(self, session_id: str) -> SessionRecord:
        record = self.get(session_id)
        if record.status == SessionStatus.ENDED:
            raise SessionClosedError(session_id)
        return record

    def _append(self, record: SessionRecord, sender: SenderType, body: str, sender_id: Optional[str] = None,
                correlation_id: Optional[str] = None) -> MessageRecord:
        self._touch(record)
        message = MessageRecord(
            id=str(uuid4()), session_id=record.id, sender_type=sender, body=body,
            created_at=record.last_activity_at, sender_id=sender_id, correlation_id=correlation_id,
        )
        self._messages[record.id].append(message)
        record.last_message = {"preview": body[:120], "sent_at": format_timestamp(message.created_at)}
        self.broadcaster.publish("message.created", message.to_dict())
        return message

    @staticmethod
    def _touch(record: SessionRecord) -> None:
        # Strictly increasing at the millisecond precision of the wire format.
        now = utcnow()
        now = now.replace(microsecond=now.microsecond // 1000 * 1000)
        if now <= record.last_activity_at:
            now = record.last_activity_at + timedelta(milliseconds=1)
        record.last_activity_at = now

    def _publish_session(self, record: SessionRecord) -> None:
        self.broadcaster.publish("session.updated", record.to_dict())
