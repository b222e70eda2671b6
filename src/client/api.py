"""Typed wrapper over the inbox REST API.

Every method returns canonical records from ``normalize`` and raises the
``InboxError`` subclass matching the server's status and ``error_code``.
"""
import logging
from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar

from src.client._constants import API_PREFIX
from src.client.exceptions import (
    AlreadyAssignedError, InboxError, InvalidStateError, NetworkError, NotFoundError,
    SessionClosedError, ValidationError,
)
from src.client.normalize import normalize_message, normalize_session, unwrap
from src.client.transport import Transport
from src.client.types import InboxTab
from src.state.models.message import Message
from src.state.models.session import Session, WrapUp

logger = logging.getLogger(__name__)

T = TypeVar("T")

_TAB_PATHS = {
    InboxTab.MY_QUEUE: "/sessions",
    InboxTab.ACTIVE: "/sessions/active",
    InboxTab.PENDING: "/sessions/pending",
}


@dataclass(frozen=True)
class Page(Generic[T]):
    items: tuple[T, ...]
    current_page: int = 1
    per_page: int = 20
    total: int = 0
    last_page: int = 1

    @property
    def has_more(self) -> bool:
        return self.current_page < self.last_page


class InboxApi:
    """REST client for the agent side of the inbox. Does not own the transport."""

    def __init__(self, transport: Transport) -> None:
        self._transport = transport

    @property
    def agent_id(self) -> str:
        return self._transport.identity.agent_id

    async def list_sessions(self, tab: InboxTab = InboxTab.MY_QUEUE, page: int = 1, per_page: int = 20,
                            search: str | None = None, status: str | None = None,
                            priority: str | None = None, category: str | None = None) -> Page[Session]:
        params = {"page": page, "per_page": per_page, "search": search, "status": status,
                  "priority": priority, "category": category}
        status_code, body = await self._transport.get(API_PREFIX + _TAB_PATHS[InboxTab(tab)], params)
        data = _check(status_code, body)
        return _page(body, [normalize_session(r) for r in _items(data)], page, per_page)

    async def get_session(self, session_id: str) -> Session:
        status, body = await self._transport.get(f"{API_PREFIX}/sessions/{session_id}")
        return normalize_session(_check(status, body, session_id, "load"))

    async def list_messages(self, session_id: str, page: int = 1, per_page: int = 50) -> Page[Message]:
        status, body = await self._transport.get(
            f"{API_PREFIX}/sessions/{session_id}/messages", {"page": page, "per_page": per_page})
        data = _check(status, body, session_id, "load")
        return _page(body, [normalize_message(r, session_id) for r in _items(data)], page, per_page)

    async def send_message(self, session_id: str, body: str, correlation_id: str | None = None) -> Message:
        status, resp = await self._transport.post(
            f"{API_PREFIX}/sessions/{session_id}/messages",
            {"body": body, "correlation_id": correlation_id, "sender_id": self.agent_id})
        return normalize_message(_check(status, resp, session_id, "send"), session_id)

    async def assign(self, session_id: str, expected_agent_id: str | None = None) -> Session:
        """Claim a session. The server compares ``expected_agent_id`` with the current owner."""
        status, body = await self._transport.post(
            f"{API_PREFIX}/sessions/{session_id}/assign",
            {"agent_id": self.agent_id, "expected_agent_id": expected_agent_id})
        return normalize_session(_check(status, body, session_id, "assign"))

    async def transfer(self, session_id: str, reason: str, target_agent_id: str | None = None,
                       notes: str = "") -> Session:
        status, body = await self._transport.post(
            f"{API_PREFIX}/sessions/{session_id}/transfer",
            {"agent_id": target_agent_id, "reason": reason, "notes": notes})
        return normalize_session(_check(status, body, session_id, "transfer"))

    async def end(self, session_id: str, wrap_up: WrapUp) -> Session:
        payload = {"category": wrap_up.category, "resolution_type": wrap_up.resolution_type,
                   "resolution_notes": wrap_up.summary, "tags": sorted(wrap_up.tags)}
        status, body = await self._transport.post(f"{API_PREFIX}/sessions/{session_id}/end", payload)
        return normalize_session(_check(status, body, session_id, "end"))

    async def update_notes(self, session_id: str, notes: str) -> Session:
        status, body = await self._transport.patch(
            f"{API_PREFIX}/sessions/{session_id}/notes", {"internal_notes": notes})
        return normalize_session(_check(status, body, session_id, "notes"))

    async def mark_message_read(self, session_id: str, message_id: str) -> None:
        status, body = await self._transport.post(
            f"{API_PREFIX}/sessions/{session_id}/messages/{message_id}/read", retry=True)
        _check(status, body, session_id, "read")

    async def send_typing(self, session_id: str, is_typing: bool) -> None:
        status, body = await self._transport.post(
            f"{API_PREFIX}/sessions/{session_id}/typing",
            {"agent_id": self.agent_id, "is_typing": is_typing})
        _check(status, body, session_id, "typing")

    async def statistics(self) -> dict[str, Any]:
        status, body = await self._transport.get(f"{API_PREFIX}/statistics")
        return _check(status, body) or {}


def _items(data: Any) -> list[dict]:
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        return data.get("data") or data.get("items") or []
    return []


def _page(body: dict | None, items: list, page: int, per_page: int) -> Page:
    meta = (body or {}).get("meta") or {}
    data = unwrap(body)
    if isinstance(data, dict) and "current_page" in data:
        meta = data
    total = int(meta.get("total", len(items)))
    return Page(items=tuple(items), current_page=int(meta.get("current_page", page)),
                per_page=int(meta.get("per_page", per_page)), total=total,
                last_page=max(1, int(meta.get("last_page", 1))))


def _check(status: int, body: dict | None, session_id: Optional[str] = None, action: str = "load") -> Any:
    """Return the envelope's data for 2xx responses, raise the mapped error otherwise."""
    if 200 <= status < 300:
        return unwrap(body)
    body = body or {}
    code = body.get("error_code")
    message = body.get("message") or f"HTTP {status}"
    details = body.get("data") if isinstance(body.get("data"), dict) else {}
    logger.debug("API error %d %s for session %s: %s", status, code, session_id, message)
    if status == 404:
        raise NotFoundError(message)
    if status == 409:
        if code == "ALREADY_ASSIGNED":
            raise AlreadyAssignedError(session_id or "", details.get("assigned_agent_id"))
        if code == "SESSION_CLOSED":
            raise SessionClosedError(session_id or "")
        raise InvalidStateError(session_id or "", details.get("status", "unknown"), action)
    if status in (400, 422):
        raise ValidationError(message, details.get("fields") or {})
    if status >= 500 or status == 408:
        raise NetworkError(message, status)
    raise InboxError(message)
