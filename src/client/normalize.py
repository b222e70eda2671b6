"""Normalize API payloads into canonical Session and Message records.

The inbox API has served several response shapes over time (``customer.name``
vs ``first_name``/``last_name`` vs ``customer_name``, ``content`` vs ``body``,
``is_active`` instead of ``status`` ...). Every variant is resolved here so
nothing downstream branches on response shape.
"""
import logging
from types import MappingProxyType
from typing import Any, Mapping, Optional

from src.client.exceptions import ValidationError
from src.client.types import DeliveryState, Priority, SenderType, SessionStatus
from src.state.models.common import parse_timestamp, utcnow
from src.state.models.message import Message
from src.state.models.session import Customer, LastMessage, Session, WrapUp

logger = logging.getLogger(__name__)

_STATUS_ALIASES = {
    "active": SessionStatus.ACTIVE,
    "assigned": SessionStatus.ACTIVE,
    "open": SessionStatus.ACTIVE,
    "waiting": SessionStatus.WAITING,
    "awaiting_customer": SessionStatus.WAITING,
    "pending": SessionStatus.PENDING,
    "queued": SessionStatus.PENDING,
    "transferred": SessionStatus.PENDING,
    "ended": SessionStatus.ENDED,
    "closed": SessionStatus.ENDED,
    "resolved": SessionStatus.ENDED,
}

_PRIORITY_ALIASES = {
    "urgent": Priority.HIGH,
    "high": Priority.HIGH,
    "normal": Priority.MEDIUM,
    "medium": Priority.MEDIUM,
    "low": Priority.LOW,
}

_SENDER_ALIASES = {
    "customer": SenderType.CUSTOMER,
    "user": SenderType.CUSTOMER,
    "contact": SenderType.CUSTOMER,
    "agent": SenderType.AGENT,
    "human_agent": SenderType.AGENT,
    "bot": SenderType.BOT,
    "ai": SenderType.BOT,
    "system": SenderType.SYSTEM,
}


def unwrap(body: Optional[Mapping[str, Any]]) -> Any:
    """Return the ``data`` member of an API envelope (or the body itself)."""
    if body is None:
        return None
    if "success" in body and "data" in body:
        return body["data"]
    return body


def normalize_customer(raw: Mapping[str, Any]) -> Customer:
    c = raw.get("customer") or {}
    if isinstance(c, str):
        c = {"name": c}
    full = " ".join(p for p in (c.get("first_name"), c.get("last_name")) if p)
    name = c.get("name") or full or raw.get("customer_name") or ""
    email = c.get("email") or raw.get("customer_email") or ""
    phone = c.get("phone") or raw.get("customer_phone") or ""
    profile = c.get("profile") or {}
    return Customer(name=name, email=email, phone=phone, profile=MappingProxyType(dict(profile)))


def normalize_status(raw: Mapping[str, Any]) -> SessionStatus:
    value = raw.get("status")
    if isinstance(value, str) and value.lower() in _STATUS_ALIASES:
        status = _STATUS_ALIASES[value.lower()]
    elif raw.get("is_active") is False or raw.get("ended_at"):
        status = SessionStatus.ENDED
    elif raw.get("is_active") is True:
        status = SessionStatus.ACTIVE
    else:
        status = SessionStatus.PENDING
    if status in (SessionStatus.ACTIVE, SessionStatus.WAITING) and not _agent_id(raw):
        # Unowned "active" sessions are still sitting in the queue.
        return SessionStatus.PENDING
    return status


def normalize_session(raw: Mapping[str, Any]) -> Session:
    """Build a Session from any known payload shape.

    Raises:
        ValidationError: If the payload has no id.
    """
    session_id = raw.get("id") or raw.get("session_id")
    if not session_id:
        raise ValidationError("Session payload without id", {"id": "required"})
    status = normalize_status(raw)
    last_activity = (
        parse_timestamp(raw.get("last_activity_at"))
        or parse_timestamp(raw.get("updated_at"))
        or parse_timestamp(raw.get("last_message_at"))
        or parse_timestamp(raw.get("created_at"))
        or utcnow()
    )
    rating = raw.get("satisfaction_rating")
    return Session(
        id=str(session_id),
        last_activity_at=last_activity,
        customer=normalize_customer(raw),
        status=status,
        priority=_PRIORITY_ALIASES.get(str(raw.get("priority") or "medium").lower(), Priority.MEDIUM),
        category=raw.get("category") or "general",
        assigned_agent_id=_agent_id(raw),
        tags=frozenset(raw.get("tags") or ()),
        unread_count=max(0, int(raw.get("unread_count") or 0)),
        last_message=_last_message(raw),
        wait_time=max(0, int(raw.get("wait_time") or raw.get("waiting_time") or 0)),
        satisfaction_rating=int(rating) if rating is not None else None,
        internal_notes=raw.get("internal_notes") or "",
        wrap_up=_wrap_up(raw) if status == SessionStatus.ENDED else None,
    )


def normalize_message(raw: Mapping[str, Any], session_id: Optional[str] = None) -> Message:
    """Build a Message from any known payload shape.

    Raises:
        ValidationError: If the payload has no id or no session.
    """
    message_id = raw.get("id") or raw.get("message_id")
    owner = raw.get("session_id") or raw.get("chat_session_id") or session_id
    if not message_id or not owner:
        raise ValidationError("Message payload without id or session", {"id": "required", "session_id": "required"})
    body = raw.get("body")
    if body is None:
        content = raw.get("content")
        body = content.get("text", "") if isinstance(content, Mapping) else content
    if body is None:
        body = raw.get("message_text") or raw.get("text") or ""
    sender = _SENDER_ALIASES.get(str(raw.get("sender_type") or "customer").lower(), SenderType.SYSTEM)
    delivered_at = parse_timestamp(raw.get("delivered_at"))
    state = DeliveryState.DELIVERED if delivered_at or sender != SenderType.AGENT else DeliveryState.SENT
    return Message(
        id=str(message_id),
        session_id=str(owner),
        sender_type=sender,
        body=str(body),
        created_at=parse_timestamp(raw.get("created_at")) or parse_timestamp(raw.get("sent_at")) or utcnow(),
        delivered_at=delivered_at,
        is_read=bool(raw.get("is_read", False)),
        correlation_id=raw.get("correlation_id") or (raw.get("metadata") or {}).get("correlation_id"),
        delivery_state=state,
        sender_id=raw.get("sender_id"),
    )


def _agent_id(raw: Mapping[str, Any]) -> Optional[str]:
    agent = raw.get("assigned_agent_id") or raw.get("agent_id")
    if agent is None and isinstance(raw.get("agent"), Mapping):
        agent = raw["agent"].get("id")
    return str(agent) if agent else None


def _last_message(raw: Mapping[str, Any]) -> Optional[LastMessage]:
    value = raw.get("last_message")
    if isinstance(value, Mapping):
        preview = value.get("preview") or value.get("body") or value.get("content") or ""
        return LastMessage(preview=str(preview), sent_at=parse_timestamp(value.get("sent_at") or value.get("created_at")))
    if isinstance(value, str):
        return LastMessage(preview=value, sent_at=parse_timestamp(raw.get("last_message_at")))
    return None


def _wrap_up(raw: Mapping[str, Any]) -> Optional[WrapUp]:
    w = raw.get("wrap_up")
    if isinstance(w, Mapping) and w.get("category"):
        return WrapUp(
            category=w["category"], summary=w.get("summary") or "",
            resolution_type=w.get("resolution_type") or "resolved",
            tags=frozenset(w.get("tags") or ()), ended_at=parse_timestamp(w.get("ended_at")),
        )
    if raw.get("resolution_type") or raw.get("resolution_notes"):
        return WrapUp(
            category=raw.get("category") or "general", summary=raw.get("resolution_notes") or "",
            resolution_type=raw.get("resolution_type") or "resolved",
            ended_at=parse_timestamp(raw.get("ended_at")),
        )
    return None
