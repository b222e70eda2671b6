"""Realtime channel base: connection lifecycle, reconnect and handler fan-out.

Concrete transports implement ``_listen`` (run until the connection drops,
passing every decoded event to ``_deliver``) and ``_publish_typing``.
Everything else lives here: the single consumer loop, backoff between
attempts, status reporting and handler registration.
"""
import asyncio
import contextlib
import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Optional

from src.client.types import ConnectionStatus
from src.realtime.backoff import Backoff
from src.realtime.events import RealtimeEvent, SessionUpdate, TypingEvent
from src.realtime.presence import TypingTracker
from src.state.models.message import Message

logger = logging.getLogger(__name__)

Handler = Callable[[Any], Awaitable[None]]


class ConnectionHandle:
    """Returned by ``connect()``; lets the caller wait for or drop the connection."""

    def __init__(self, channel: "RealtimeChannel") -> None:
        self._channel = channel

    @property
    def status(self) -> ConnectionStatus:
        return self._channel.status

    async def wait_connected(self, timeout: Optional[float] = None) -> bool:
        """Wait until the channel reports connected. Returns False on timeout."""
        try:
            await asyncio.wait_for(self._channel._connected.wait(), timeout)
            return True
        except asyncio.TimeoutError:
            return False

    async def close(self) -> None:
        await self._channel.disconnect()


class RealtimeChannel(ABC):
    """Delivers session, message and typing deltas to registered handlers."""

    def __init__(self, backoff: Optional[Backoff] = None, typing_ttl: float = 6.0) -> None:
        self._backoff = backoff or Backoff()
        self._handlers: dict[str, list[Handler]] = {"message": [], "typing": [], "session": [], "status": []}
        self._status = ConnectionStatus.DISCONNECTED
        self._connected = asyncio.Event()
        self._task: Optional[asyncio.Task] = None
        self._typing_tasks: set[asyncio.Task] = set()
        self._handle = ConnectionHandle(self)
        self.typing = TypingTracker(typing_ttl)

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    def connect(self) -> ConnectionHandle:
        """Start the background connection loop. Idempotent."""
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self._run())
        return self._handle

    async def disconnect(self) -> None:
        """Stop reconnecting, drop the transport and every handler. Safe to repeat."""
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        for t in list(self._typing_tasks):
            t.cancel()
        self._typing_tasks.clear()
        for handlers in self._handlers.values():
            handlers.clear()
        self._connected.clear()
        self._status = ConnectionStatus.CLOSED
        self.typing.clear()

    def on_message(self, handler: Callable[[Message], Awaitable[None]]) -> Callable[[], None]:
        return self._register("message", handler)

    def on_typing(self, handler: Callable[[TypingEvent], Awaitable[None]]) -> Callable[[], None]:
        return self._register("typing", handler)

    def on_session_update(self, handler: Callable[[SessionUpdate], Awaitable[None]]) -> Callable[[], None]:
        return self._register("session", handler)

    def on_status(self, handler: Callable[[ConnectionStatus], Awaitable[None]]) -> Callable[[], None]:
        return self._register("status", handler)

    def send_typing(self, session_id: str, is_typing: bool) -> None:
        """Publish this agent's typing state. Best effort; never raises."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running loop; typing signal for %s dropped", session_id)
            return
        task = loop.create_task(self._send_typing_quietly(session_id, is_typing))
        self._typing_tasks.add(task)
        task.add_done_callback(self._typing_tasks.discard)

    @abstractmethod
    async def _listen(self) -> None:
        """Hold one connection open and feed events to ``_deliver`` until it drops."""

    @abstractmethod
    async def _publish_typing(self, session_id: str, is_typing: bool) -> None:
        """Send a typing signal over the transport."""

    async def _run(self) -> None:
        while True:
            await self._set_status(ConnectionStatus.CONNECTING)
            try:
                await self._listen()
                logger.info("%s connection closed by server", type(self).__name__)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning("%s connection failed: %s", type(self).__name__, e)
            await self._set_status(ConnectionStatus.DISCONNECTED)
            delay = self._backoff.next_delay()
            logger.info("Reconnecting in %.1fs (attempt %d)", delay, self._backoff.attempt)
            await asyncio.sleep(delay)

    async def _mark_connected(self) -> None:
        """Called by transports once the connection is confirmed."""
        self._backoff.reset()
        await self._set_status(ConnectionStatus.CONNECTED)

    async def _deliver(self, event: Optional[RealtimeEvent]) -> None:
        if event is None:
            return
        if isinstance(event, Message):
            await self._emit("message", event)
        elif isinstance(event, TypingEvent):
            self.typing.update(event)
            await self._emit("typing", event)
        elif isinstance(event, SessionUpdate):
            await self._emit("session", event)

    async def _set_status(self, status: ConnectionStatus) -> None:
        if status == self._status:
            return
        self._status = status
        if status == ConnectionStatus.CONNECTED:
            self._connected.set()
            logger.info("%s connected", type(self).__name__)
        else:
            self._connected.clear()
        await self._emit("status", status)

    async def _emit(self, kind: str, payload: Any) -> None:
        for handler in list(self._handlers[kind]):
            try:
                await handler(payload)
            except Exception:
                logger.exception("%s handler failed", kind)

    async def _send_typing_quietly(self, session_id: str, is_typing: bool) -> None:
        try:
            await self._publish_typing(session_id, is_typing)
        except Exception as e:
            logger.debug("Typing signal for %s dropped: %s", session_id, e)

    def _register(self, kind: str, handler: Handler) -> Callable[[], None]:
        self._handlers[kind].append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers[kind]:
                self._handlers[kind].remove(handler)
        return unsubscribe
