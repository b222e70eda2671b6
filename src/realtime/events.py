"""Typed realtime events and decoding of wire event names."""
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

from src.client.exceptions import ValidationError
from src.client.normalize import normalize_message, normalize_session
from src.state.models.message import Message
from src.state.models.session import Session

logger = logging.getLogger(__name__)

SESSION_UPDATED = "session.updated"
SESSION_REMOVED = "session.removed"
MESSAGE_CREATED = "message.created"
MESSAGE_UPDATED = "message.updated"
TYPING = "typing"
CONNECTED = "connected"
KEEPALIVE = "keepalive"


@dataclass(frozen=True)
class SessionUpdate:
    """A session changed (``session`` set) or left the agent's view (``removed``)."""

    session_id: str
    session: Optional[Session] = None
    removed: bool = False


@dataclass(frozen=True)
class TypingEvent:
    session_id: str
    participant_id: str
    participant_type: str = "customer"
    is_typing: bool = True


RealtimeEvent = Union[SessionUpdate, Message, TypingEvent]


def decode_event(name: str, data: Mapping[str, Any]) -> Optional[RealtimeEvent]:
    """Turn a named wire event into a typed event.

    Control events (``connected``, ``keepalive``) and unknown names decode to
    None. Malformed payloads are logged and dropped.
    """
    try:
        if name == SESSION_UPDATED:
            session = normalize_session(data.get("session") or data)
            return SessionUpdate(session_id=session.id, session=session)
        if name == SESSION_REMOVED:
            session_id = data.get("session_id") or data.get("id")
            return SessionUpdate(session_id=str(session_id), removed=True) if session_id else None
        if name in (MESSAGE_CREATED, MESSAGE_UPDATED):
            return normalize_message(data.get("message") or data)
        if name == TYPING:
            session_id = data.get("session_id") or data.get("chat_session_id")
            participant = data.get("participant_id") or data.get("user_id") or data.get("agent_id")
            if not session_id or not participant:
                return None
            return TypingEvent(
                session_id=str(session_id), participant_id=str(participant),
                participant_type=data.get("participant_type") or "customer",
                is_typing=bool(data.get("is_typing", True)),
            )
    except (ValidationError, ValueError, TypeError) as e:
        logger.warning("Dropped malformed %s event: %s", name, e)
        return None
    if name not in (CONNECTED, KEEPALIVE):
        logger.debug("Ignored unknown event %s", name)
    return None
