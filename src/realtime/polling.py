"""Polling fallback for environments where the event stream is unavailable."""
import asyncio
import logging
from datetime import datetime
from typing import Optional

from src.client.api import InboxApi
from src.client.types import InboxTab
from src.realtime.backoff import Backoff
from src.realtime.channel import RealtimeChannel
from src.realtime.events import SessionUpdate

logger = logging.getLogger(__name__)


class PollingChannel(RealtimeChannel):
    """Polls the session list (and the watched session's messages) on an interval.

    Only records that changed since the previous poll are delivered, so
    handlers see the same deltas a push channel would send.
    """

    def __init__(self, api: InboxApi, interval: float = 3.0, tab: InboxTab = InboxTab.MY_QUEUE,
                 per_page: int = 100, backoff: Optional[Backoff] = None, typing_ttl: float = 6.0) -> None:
        super().__init__(backoff, typing_ttl)
        self._api = api
        self._interval = interval
        self._tab = tab
        self._per_page = per_page
        self._watched: Optional[str] = None
        self._seen_sessions: dict[str, datetime] = {}
        self._seen_messages: dict[str, tuple] = {}

    def watch(self, session_id: Optional[str]) -> None:
        """Also poll messages of this session (None to stop)."""
        if session_id != self._watched:
            self._watched = session_id
            self._seen_messages.clear()

    async def poll_once(self) -> int:
        """Run a single poll cycle. Returns the number of events delivered."""
        delivered = 0
        page = await self._api.list_sessions(self._tab, per_page=self._per_page)
        current = {s.id: s for s in page.items}
        for session in page.items:
            if self._seen_sessions.get(session.id) != session.last_activity_at:
                self._seen_sessions[session.id] = session.last_activity_at
                await self._deliver(SessionUpdate(session_id=session.id, session=session))
                delivered += 1
        if not page.has_more:
            for gone in [sid for sid in self._seen_sessions if sid not in current]:
                del self._seen_sessions[gone]
                await self._deliver(SessionUpdate(session_id=gone, removed=True))
                delivered += 1
        if self._watched:
            messages = await self._api.list_messages(self._watched)
            for message in messages.items:
                fingerprint = (message.body, message.delivered_at, message.is_read)
                if self._seen_messages.get(message.id) != fingerprint:
                    self._seen_messages[message.id] = fingerprint
                    await self._deliver(message)
                    delivered += 1
        return delivered

    async def _listen(self) -> None:
        await self.poll_once()
        await self._mark_connected()
        while True:
            await asyncio.sleep(self._interval)
            await self.poll_once()

    async def _publish_typing(self, session_id: str, is_typing: bool) -> None:
        await self._api.send_typing(session_id, is_typing)
