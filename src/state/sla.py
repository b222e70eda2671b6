"""SLA indicator policy for queued sessions."""
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from src.state.models.session import QUEUED_STATUSES, Session


class SlaLevel(Enum):
    """Visual priority of a waiting session."""

    SAFE = "safe"
    WARNING = "warning"
    DANGER = "danger"


@dataclass(frozen=True)
class SlaPolicy:
    """Wait-time thresholds, in minutes.

    ``safe`` below ``warning_after``, ``warning`` from ``warning_after`` up to
    and including ``danger_after``, ``danger`` beyond it.
    """

    warning_after: int = 15
    danger_after: int = 30

    def __post_init__(self) -> None:
        if self.warning_after < 0:
            raise ValueError("warning_after cannot be negative")
        if self.danger_after < self.warning_after:
            raise ValueError("danger_after must be >= warning_after")

    def classify(self, wait_time: int) -> SlaLevel:
        if wait_time > self.danger_after:
            return SlaLevel.DANGER
        if wait_time >= self.warning_after:
            return SlaLevel.WARNING
        return SlaLevel.SAFE

    def for_session(self, session: Session) -> Optional[SlaLevel]:
        """Classify a queued session; None for sessions not waiting on an agent."""
        if session.status not in QUEUED_STATUSES:
            return None
        return self.classify(session.wait_time)
