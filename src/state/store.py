"""Canonical, de-duplicated session list for one agent.

The store is the single source of truth for the sessions an agent can see.
Records are merged last-write-wins keyed by ``last_activity_at``: anything
older than what is stored is rejected, so out-of-order deliveries cannot roll
state back. Optimistic local edits live in an overlay on top of the server
record until the action that made them settles.
"""
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Callable, Mapping, Optional

from src.client.types import SessionStatus
from src.state.models.filters import SessionFilter
from src.state.models.session import Session

logger = logging.getLogger(__name__)

StoreListener = Callable[[int], None]


@dataclass(frozen=True)
class SessionDelta:
    """Partial update for one session, ordered by its own timestamp."""

    session_id: str
    last_activity_at: datetime
    changes: Mapping[str, Any] = field(default_factory=dict)


def session_sort_key(session: Session) -> tuple[int, float, str]:
    """Unresolved first, newest activity first, then id for determinism."""
    bucket = 0 if session.is_unresolved else 1
    return (bucket, -session.last_activity_at.timestamp(), session.id)


class SessionStore:
    """Holds sessions keyed by id and serves filtered views."""

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}
        self._overlays: dict[str, dict[str, Any]] = {}
        self._listeners: list[StoreListener] = []
        self._version = 0

    @property
    def version(self) -> int:
        """Increases on every effective mutation."""
        return self._version

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def get(self, session_id: str) -> Optional[Session]:
        """Return the visible record (server state plus any optimistic overlay)."""
        base = self._sessions.get(session_id)
        if base is None:
            return None
        overlay = self._overlays.get(session_id)
        return replace(base, **overlay) if overlay else base

    def all(self) -> tuple[Session, ...]:
        return tuple(self.get(sid) for sid in self._sessions)  # type: ignore[misc]

    def upsert(self, session: Session) -> Session:
        """Insert or replace a session, rejecting stale records.

        Returns:
            The visible record after the merge (the stored one when rejected).
        """
        current = self._sessions.get(session.id)
        if current is not None and session.last_activity_at < current.last_activity_at:
            logger.debug(
                "Rejected stale update for session=%s (%s < %s)",
                session.id, session.last_activity_at, current.last_activity_at,
            )
            return self.get(session.id)  # type: ignore[return-value]
        if current is not None and current.is_ended and not session.is_ended:
            logger.debug("Ignored update reopening ended session=%s", session.id)
            return self.get(session.id)  # type: ignore[return-value]
        merged = self._hold_wait_time(current, session)
        if current is not None and current.wrap_up is not None and merged.wrap_up != current.wrap_up:
            # Wrap-up is written once.
            merged = replace(merged, wrap_up=current.wrap_up)
        if merged != current:
            self._sessions[session.id] = merged
            self._changed()
        return self.get(session.id)  # type: ignore[return-value]

    def apply_delta(self, delta: SessionDelta) -> Optional[Session]:
        """Merge a partial update field by field.

        Returns:
            The visible record, or None when the session is unknown.
        """
        current = self._sessions.get(delta.session_id)
        if current is None:
            logger.debug("Ignored delta for unknown session=%s", delta.session_id)
            return None
        changes = dict(delta.changes)
        changes["last_activity_at"] = delta.last_activity_at
        return self.upsert(replace(current, **changes))

    def remove(self, session_id: str) -> None:
        """Drop a session from the live set. Unknown ids are ignored."""
        self._overlays.pop(session_id, None)
        if self._sessions.pop(session_id, None) is not None:
            self._changed()

    def mark_read(self, session_id: str) -> None:
        """Reset the unread counter. Idempotent; unknown ids are ignored."""
        current = self._sessions.get(session_id)
        if current is None or current.unread_count == 0:
            return
        self._sessions[session_id] = replace(current, unread_count=0)
        self._changed()

    def query(self, session_filter: SessionFilter) -> tuple[Session, ...]:
        """Return matching sessions in display order. Pure."""
        visible = (self.get(sid) for sid in self._sessions)
        return tuple(sorted((s for s in visible if s is not None and session_filter.matches(s)), key=session_sort_key))

    def apply_optimistic(self, session_id: str, **changes: Any) -> Optional[Session]:
        """Layer local changes over the server record until settled.

        Pushed updates keep merging underneath; the overlay stays visible
        on top of them until ``settle`` or ``rollback``.
        """
        if session_id not in self._sessions:
            return None
        self._overlays.setdefault(session_id, {}).update(changes)
        self._changed()
        return self.get(session_id)

    def settle(self, session_id: str, confirmed: Optional[Session] = None) -> Optional[Session]:
        """Drop the overlay and merge the server-confirmed record, if any."""
        dropped = self._overlays.pop(session_id, None) is not None
        version = self._version
        if confirmed is not None:
            self.upsert(confirmed)
        if dropped and self._version == version:
            self._changed()
        return self.get(session_id)

    def rollback(self, session_id: str) -> Optional[Session]:
        return self.settle(session_id, None)

    def has_overlay(self, session_id: str) -> bool:
        return session_id in self._overlays

    def add_listener(self, listener: StoreListener) -> Callable[[], None]:
        """Register a change listener. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def clear(self) -> None:
        if self._sessions or self._overlays:
            self._sessions.clear()
            self._overlays.clear()
            self._changed()

    def _changed(self) -> None:
        self._version += 1
        for listener in list(self._listeners):
            listener(self._version)

    @staticmethod
    def _hold_wait_time(current: Optional[Session], incoming: Session) -> Session:
        """Keep wait_time non-decreasing while the session stays queued."""
        if (
            current is not None
            and current.status == SessionStatus.PENDING
            and incoming.status == SessionStatus.PENDING
            and incoming.wait_time < current.wait_time
        ):
            return replace(incoming, wait_time=current.wait_time)
        return incoming
