"""Agent-local filter state for the session list."""
from dataclasses import dataclass, replace
from typing import Any, Optional

from src.client.types import InboxTab, Priority, SessionStatus
from src.state.models.session import Session

_TAB_STATUSES = {
    InboxTab.ACTIVE: frozenset({SessionStatus.ACTIVE, SessionStatus.WAITING}),
    InboxTab.PENDING: frozenset({SessionStatus.PENDING}),
}


@dataclass(frozen=True)
class SessionFilter:
    """Predicates applied to the session list. ``None`` means "any"."""

    search: str = ""
    status: Optional[SessionStatus] = None
    priority: Optional[Priority] = None
    category: Optional[str] = None
    tag: Optional[str] = None
    tab: InboxTab = InboxTab.MY_QUEUE

    def updated(self, **changes: Any) -> "SessionFilter":
        return replace(self, **changes)

    def matches(self, session: Session) -> bool:
        """Return True when the session satisfies every predicate."""
        tab_statuses = _TAB_STATUSES.get(self.tab)
        if tab_statuses is not None and session.status not in tab_statuses:
            return False
        if self.status is not None and session.status != self.status:
            return False
        if self.priority is not None and session.priority != self.priority:
            return False
        if self.category and session.category != self.category:
            return False
        if self.tag and self.tag not in session.tags:
            return False
        needle = self.search.strip().lower()
        if needle:
            haystacks = (session.customer.name.lower(), session.customer.email.lower())
            if not any(needle in h for h in haystacks):
                return False
        return True
