"""Ephemeral typing indicators with a time-to-live."""
import time
from typing import Callable, Optional

from src.realtime.events import TypingEvent


class TypingTracker:
    """Per-(session, participant) typing flags that expire after ``ttl`` seconds.

    A participant who stops sending typing signals (closed tab, dropped
    connection) stops showing as typing once the TTL passes.
    """

    def __init__(self, ttl: float = 6.0, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl = ttl
        self._clock = clock
        self._expires: dict[tuple[str, str], float] = {}

    def update(self, event: TypingEvent) -> bool:
        """Apply an event. Returns True when the visible state changed."""
        key = (event.session_id, event.participant_id)
        was = self._live(key)
        if event.is_typing:
            self._expires[key] = self._clock() + self._ttl
        else:
            self._expires.pop(key, None)
        return was != event.is_typing

    def is_typing(self, session_id: str, participant_id: str) -> bool:
        return self._live((session_id, participant_id))

    def typing_in(self, session_id: str) -> tuple[str, ...]:
        """Participants currently typing in a session, sorted."""
        return tuple(sorted(p for (s, p) in list(self._expires) if s == session_id and self._live((s, p))))

    def clear(self, session_id: Optional[str] = None) -> None:
        if session_id is None:
            self._expires.clear()
            return
        for key in [k for k in self._expires if k[0] == session_id]:
            del self._expires[key]

    def _live(self, key: tuple[str, str]) -> bool:
        expires = self._expires.get(key)
        if expires is None:
            return False
        if expires <= self._clock():
            del self._expires[key]
            return False
        return True
