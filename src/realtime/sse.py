"""Server-Sent Events transport for the realtime channel."""
import json
import logging
from dataclasses import dataclass
from typing import Optional

from src.client._constants import API_PREFIX
from src.client.api import InboxApi
from src.client.exceptions import ChannelDisconnectedError
from src.client.transport import Transport
from src.realtime.backoff import Backoff
from src.realtime.channel import RealtimeChannel
from src.realtime.events import CONNECTED, decode_event

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ServerSentEvent:
    event: str = "message"
    data: str = ""
    id: Optional[str] = None
    retry: Optional[int] = None


class SSEParser:
    """Incremental line parser for ``text/event-stream`` bodies.

    Feed one line at a time (without the trailing newline); a complete event
    is returned when the blank line that terminates it arrives.
    """

    def __init__(self) -> None:
        self._event = ""
        self._data: list[str] = []
        self._id: Optional[str] = None
        self._retry: Optional[int] = None
        self.last_event_id: Optional[str] = None

    def feed(self, line: str) -> Optional[ServerSentEvent]:
        line = line.rstrip("\r")
        if not line:
            return self._dispatch()
        if line.startswith(":"):
            return None
        name, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if name == "event":
            self._event = value
        elif name == "data":
            self._data.append(value)
        elif name == "id":
            self._id = value
        elif name == "retry" and value.isdigit():
            self._retry = int(value)
        return None

    def _dispatch(self) -> Optional[ServerSentEvent]:
        if not self._data and not self._event:
            return None
        ev = ServerSentEvent(event=self._event or "message", data="\n".join(self._data), id=self._id, retry=self._retry)
        if self._id is not None:
            self.last_event_id = self._id
        self._event, self._data, self._id, self._retry = "", [], None, None
        return ev


class SSEChannel(RealtimeChannel):
    """Push channel over ``GET /events``. Typing is sent over REST."""

    def __init__(self, transport: Transport, backoff: Optional[Backoff] = None, typing_ttl: float = 6.0) -> None:
        super().__init__(backoff, typing_ttl)
        self._transport = transport
        self._api = InboxApi(transport)

    async def _listen(self) -> None:
        params = {"agent_id": self._transport.identity.agent_id}
        async with self._transport.stream(f"{API_PREFIX}/events", params) as resp:
            if resp.status_code != 200:
                raise ChannelDisconnectedError(f"Event stream returned HTTP {resp.status_code}")
            await self._mark_connected()
            parser = SSEParser()
            async for line in resp.aiter_lines():
                ev = parser.feed(line)
                if ev is None or ev.event == CONNECTED:
                    continue
                try:
                    data = json.loads(ev.data) if ev.data else {}
                except ValueError:
                    logger.warning("Dropped %s event with invalid JSON", ev.event)
                    continue
                if not isinstance(data, dict):
                    continue
                await self._deliver(decode_event(ev.event, data))

    async def _publish_typing(self, session_id: str, is_typing: bool) -> None:
        await self._api.send_typing(session_id, is_typing)
