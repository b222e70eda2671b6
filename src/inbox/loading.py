"""Per-action loading flags keyed by (session, action)."""
from contextlib import contextmanager
from typing import Iterator, Optional

from src.client.types import ActionType


class PendingActions:
    """Tracks which actions are in flight so each control can show its own spinner."""

    def __init__(self) -> None:
        self._active: dict[tuple[Optional[str], ActionType], int] = {}

    def is_pending(self, session_id: Optional[str], action: Optional[ActionType] = None) -> bool:
        if action is not None:
            return self._active.get((session_id, action), 0) > 0
        return any(sid == session_id for sid, _ in self._active)

    def in_flight(self) -> frozenset[tuple[Optional[str], ActionType]]:
        return frozenset(self._active)

    @contextmanager
    def track(self, session_id: Optional[str], action: ActionType) -> Iterator[None]:
        key = (session_id, action)
        self._active[key] = self._active.get(key, 0) + 1
        try:
            yield
        finally:
            self._active[key] -= 1
            if self._active[key] <= 0:
                del self._active[key]
