"""Append-only per-session message log with optimistic send tracking."""
import logging
from dataclasses import replace
from typing import Optional

from src.client.types import DeliveryState, SenderType
from src.state.models.message import Message

logger = logging.getLogger(__name__)


class MessageLog:
    """Ordered messages per session.

    Messages are dropped only a whole session at a time, via ``forget``.
    An optimistic message is replaced in place by its server copy once a
    message with the same ``correlation_id`` arrives, so a send never shows
    up twice.
    """

    def __init__(self) -> None:
        self._by_session: dict[str, list[Message]] = {}

    def messages(self, session_id: str) -> tuple[Message, ...]:
        return tuple(self._by_session.get(session_id, ()))

    def get(self, session_id: str, message_id: str) -> Optional[Message]:
        return next((m for m in self._by_session.get(session_id, ()) if m.id == message_id), None)

    def find_by_correlation(self, session_id: str, correlation_id: str) -> Optional[Message]:
        return next(
            (m for m in self._by_session.get(session_id, ()) if m.correlation_id == correlation_id),
            None,
        )

    def add_optimistic(self, message: Message) -> Message:
        """Append a locally-created message awaiting server confirmation."""
        if not message.correlation_id:
            raise ValueError("optimistic messages need a correlation_id")
        entry = replace(message, delivery_state=DeliveryState.PENDING, delivered_at=None, attempts=max(message.attempts, 1))
        self._insert(entry)
        return entry

    def reconcile(self, message: Message) -> Message:
        """Merge a server-side message into the log.

        Matches an existing entry by correlation id first, then by id.
        Unmatched messages are inserted in order.
        """
        entries = self._by_session.setdefault(message.session_id, [])
        idx = self._index_of(entries, message)
        if idx is None:
            self._insert(message)
            return message
        merged = entries[idx].merged_with(message)
        entries[idx] = merged
        entries.sort(key=lambda m: m.sort_key)
        return merged

    def extend(self, messages: "list[Message] | tuple[Message, ...]") -> None:
        for message in messages:
            self.reconcile(message)

    def mark_failed(self, session_id: str, correlation_id: str) -> Optional[Message]:
        return self._update_optimistic(session_id, correlation_id, delivery_state=DeliveryState.FAILED)

    def mark_pending(self, session_id: str, correlation_id: str) -> Optional[Message]:
        """Flag a failed message as being retried and count the attempt."""
        current = self.find_by_correlation(session_id, correlation_id)
        if current is None:
            return None
        return self._update_optimistic(
            session_id, correlation_id,
            delivery_state=DeliveryState.PENDING, attempts=current.attempts + 1,
        )

    def mark_read(self, session_id: str) -> int:
        """Mark inbound messages of a session as read. Returns how many changed."""
        entries = self._by_session.get(session_id, [])
        changed = 0
        for i, m in enumerate(entries):
            if not m.is_read and m.sender_type != SenderType.AGENT:
                entries[i] = replace(m, is_read=True)
                changed += 1
        return changed

    def failed(self, session_id: str) -> tuple[Message, ...]:
        return tuple(m for m in self._by_session.get(session_id, ()) if m.delivery_state == DeliveryState.FAILED)

    def pending(self, session_id: str) -> tuple[Message, ...]:
        return tuple(m for m in self._by_session.get(session_id, ()) if m.delivery_state == DeliveryState.PENDING)

    def forget(self, session_id: str) -> int:
        """Drop the history of a session that left the inbox. Returns how many messages went."""
        return len(self._by_session.pop(session_id, ()))

    def _insert(self, message: Message) -> None:
        entries = self._by_session.setdefault(message.session_id, [])
        entries.append(message)
        entries.sort(key=lambda m: m.sort_key)

    def _update_optimistic(self, session_id: str, correlation_id: str, **changes) -> Optional[Message]:
        entries = self._by_session.get(session_id, [])
        for i, m in enumerate(entries):
            if m.correlation_id == correlation_id:
                if not m.is_optimistic:
                    logger.debug("Message %s already confirmed; ignoring %s", m.id, changes)
                    return m
                entries[i] = replace(m, **changes)
                return entries[i]
        return None

    @staticmethod
    def _index_of(entries: list[Message], message: Message) -> Optional[int]:
        if message.correlation_id:
            for i, m in enumerate(entries):
                if m.correlation_id == message.correlation_id:
                    return i
        for i, m in enumerate(entries):
            if m.id == message.id:
                return i
        return None
