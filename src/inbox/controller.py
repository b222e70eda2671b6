"""Inbox controller: session lifecycle rules over the store, API and channel.

The controller is the only writer of the session store and message log.
The presentation layer reads views (``filtered_sessions``, ``messages_for``,
``sla_level``) and calls actions; actions return an ``ActionOutcome`` and
never raise ``InboxError`` to the caller.
"""
import asyncio
import logging
from dataclasses import replace
from typing import Any, Awaitable, Callable, Optional, TypeVar
from uuid import uuid4

from src.client.api import InboxApi, Page
from src.client.exceptions import (
    AlreadyAssignedError, ChannelDisconnectedError, InboxError, InvalidStateError, NotFoundError,
    RequestTimeoutError, SessionClosedError, ValidationError,
)
from src.client.transport import Transport
from src.client.types import ActionType, ConnectionStatus, DeliveryState, InboxTab, SenderType, SessionStatus
from src.inbox.config import InboxConfig, RealtimeConfig
from src.inbox.debounce import Debouncer, TypingDebouncer
from src.inbox.loading import PendingActions
from src.inbox.outcomes import ActionOutcome
from src.realtime.backoff import Backoff
from src.realtime.channel import RealtimeChannel
from src.realtime.events import SessionUpdate, TypingEvent
from src.realtime.polling import PollingChannel
from src.realtime.sse import SSEChannel
from src.state.messages import MessageLog
from src.state.models.common import utcnow
from src.state.models.filters import SessionFilter
from src.state.models.message import Message
from src.state.models.session import Session, WrapUp
from src.state.sla import SlaLevel
from src.state.store import SessionStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

_SENDABLE = frozenset({SessionStatus.ACTIVE})
_TRANSFERABLE = frozenset({SessionStatus.ACTIVE})
_ENDABLE = frozenset({SessionStatus.ACTIVE, SessionStatus.WAITING})
_EDITABLE = frozenset({SessionStatus.PENDING, SessionStatus.ACTIVE, SessionStatus.WAITING})


def create_channel(config: RealtimeConfig, transport: Transport, api: InboxApi) -> Optional[RealtimeChannel]:
    """Build the realtime channel selected by ``config.mode``."""
    backoff = Backoff(config.backoff_base, config.backoff_cap)
    if config.mode == "sse":
        return SSEChannel(transport, backoff=backoff, typing_ttl=config.typing_ttl)
    if config.mode == "polling":
        return PollingChannel(api, interval=config.poll_interval, backoff=backoff, typing_ttl=config.typing_ttl)
    return None


class InboxController:
    """Orchestrates one agent's inbox.

    Args:
        api: REST client acting as the agent.
        config: Timeouts, SLA policy and debounce delays.
        channel: Realtime channel; None runs without pushed updates.
        store: Session store (a fresh one by default).
        messages: Message log (a fresh one by default).
        navigate: Called with a session id to open it, or None to close the
            conversation view.
        id_factory: Produces correlation ids for outgoing messages.
    """

    def __init__(self, api: InboxApi, config: Optional[InboxConfig] = None,
                 channel: Optional[RealtimeChannel] = None, store: Optional[SessionStore] = None,
                 messages: Optional[MessageLog] = None,
                 navigate: Optional[Callable[[Optional[str]], None]] = None,
                 id_factory: Callable[[], str] = lambda: uuid4().hex) -> None:
        self._api = api
        self._config = config or InboxConfig()
        self._channel = channel
        self.store = store if store is not None else SessionStore()
        self.messages = messages if messages is not None else MessageLog()
        self._navigate = navigate or (lambda _sid: None)
        self._id_factory = id_factory
        self.pending = PendingActions()
        self._filter = SessionFilter()
        self._search_text = ""
        self._search = Debouncer(self._config.search_debounce, self._apply_search)
        self._typing = TypingDebouncer(self._send_typing, self._config.typing_stop_delay)
        self._selected: Optional[str] = None
        self._last_error: Optional[InboxError] = None
        self._connection = ConnectionStatus.DISCONNECTED
        self._was_connected = False
        self._memo: Optional[tuple[tuple[int, SessionFilter], tuple[Session, ...]]] = None
        self._pages: dict[InboxTab, Page] = {}
        self._message_pages: dict[str, Page] = {}
        self._transferred: set[str] = set()
        self._unsubscribe: list[Callable[[], None]] = []

    # -- views ---------------------------------------------------------

    @property
    def agent_id(self) -> str:
        return self._api.agent_id

    @property
    def filter(self) -> SessionFilter:
        return self._filter

    @property
    def selected_session_id(self) -> Optional[str]:
        return self._selected

    @property
    def last_error(self) -> Optional[InboxError]:
        return self._last_error

    @property
    def connection_status(self) -> ConnectionStatus:
        return self._connection

    @property
    def channel(self) -> Optional[RealtimeChannel]:
        return self._channel

    def page_info(self, tab: Optional[InboxTab] = None) -> Optional[Page]:
        return self._pages.get(tab or self._filter.tab)

    def filtered_sessions(self) -> tuple[Session, ...]:
        """Sessions matching the current filter, memoized on (store version, filter)."""
        key = (self.store.version, self._filter)
        if self._memo is None or self._memo[0] != key:
            self._memo = (key, self.store.query(self._filter))
        return self._memo[1]

    def messages_for(self, session_id: str) -> tuple[Message, ...]:
        return self.messages.messages(session_id)

    def sla_level(self, session: "Session | str") -> Optional[SlaLevel]:
        record = self.store.get(session) if isinstance(session, str) else session
        if record is None:
            return None
        return self._config.sla.for_session(record)

    def typing_participants(self, session_id: str) -> tuple[str, ...]:
        if self._channel is None:
            return ()
        return tuple(p for p in self._channel.typing.typing_in(session_id) if p != self.agent_id)

    def is_loading(self, session_id: Optional[str], action: Optional[ActionType] = None) -> bool:
        return self.pending.is_pending(session_id, action)

    def dismiss_error(self) -> None:
        self._last_error = None

    # -- lifecycle -----------------------------------------------------

    async def start(self) -> ActionOutcome:
        """Subscribe to the channel, connect it and load the first page."""
        if self._channel is not None and not self._unsubscribe:
            self._unsubscribe = [
                self._channel.on_session_update(self._on_session_update),
                self._channel.on_message(self._on_message),
                self._channel.on_typing(self._on_typing),
                self._channel.on_status(self._on_status),
            ]
            self._channel.connect()
        return await self.refresh_sessions()

    async def close(self) -> None:
        """Release timers and the channel. Safe to call twice."""
        self._typing.release()
        self._search.cancel()
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._unsubscribe = []
        if self._channel is not None:
            await self._channel.disconnect()

    async def __aenter__(self) -> "InboxController":
        await self.start()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    # -- filters -------------------------------------------------------

    def set_filter(self, **changes: Any) -> SessionFilter:
        if "tab" in changes:
            changes["tab"] = InboxTab(changes["tab"])
        self._filter = self._filter.updated(**changes)
        return self._filter

    def set_search(self, text: str) -> None:
        """Update the search box; the filter follows after the debounce delay."""
        self._search_text = text
        self._search.trigger()

    def flush_search(self) -> None:
        self._search.flush()

    def _apply_search(self) -> None:
        self._filter = self._filter.updated(search=self._search_text)

    # -- loading -------------------------------------------------------

    async def refresh_sessions(self, page: int = 1) -> ActionOutcome:
        """Fetch a page of the current tab and merge it into the store."""
        tab = self._filter.tab
        try:
            with self.pending.track(None, ActionType.LOAD):
                result = await self._call(self._api.list_sessions(
                    tab, page=page, per_page=self._config.page_size,
                    search=self._filter.search or None,
                    status=self._filter.status.value if self._filter.status else None,
                    priority=self._filter.priority.value if self._filter.priority else None,
                    category=self._filter.category,
                ))
        except InboxError as e:
            return self._fail(ActionType.LOAD, None, e)
        self._pages[tab] = result
        for session in result.items:
            self._merge_session(session)
        return ActionOutcome.success(ActionType.LOAD, None, result)

    async def load_more_sessions(self) -> ActionOutcome:
        current = self._pages.get(self._filter.tab)
        if current is not None and not current.has_more:
            return ActionOutcome.success(ActionType.LOAD, None, current)
        return await self.refresh_sessions((current.current_page + 1) if current else 1)

    async def load_session(self, session_id: str) -> ActionOutcome:
        """Fetch one session (e.g. opened from a link) into the store."""
        try:
            with self.pending.track(session_id, ActionType.LOAD):
                session = await self._call(self._api.get_session(session_id))
        except InboxError as e:
            return self._fail(ActionType.LOAD, session_id, e)
        self._merge_session(session)
        stored = self.store.get(session_id)
        if stored is None:
            return self._fail(ActionType.LOAD, session_id,
                              NotFoundError(f"Session {session_id} is handled by {session.assigned_agent_id}"))
        return ActionOutcome.success(ActionType.LOAD, session_id, stored)

    async def select_session(self, session_id: Optional[str]) -> ActionOutcome:
        """Open a session: move typing scope, mark read, load history."""
        if session_id == self._selected:
            return ActionOutcome.success(ActionType.LOAD, session_id, self.messages_for(session_id) if session_id else ())
        self._typing.release()
        self._selected = session_id
        if isinstance(self._channel, PollingChannel):
            self._channel.watch(session_id)
        if session_id is None:
            return ActionOutcome.success(ActionType.LOAD, None, ())
        outcome = await self.load_messages(session_id)
        if outcome.ok and self._config.mark_read_on_select:
            await self.mark_read(session_id)
        return outcome

    async def load_messages(self, session_id: str, page: int = 1) -> ActionOutcome:
        try:
            with self.pending.track(session_id, ActionType.LOAD):
                result = await self._call(self._api.list_messages(session_id, page=page))
        except InboxError as e:
            return self._fail(ActionType.LOAD, session_id, e)
        self.messages.extend(result.items)
        self._message_pages[session_id] = result
        return ActionOutcome.success(ActionType.LOAD, session_id, self.messages_for(session_id))

    async def load_older_messages(self, session_id: str) -> ActionOutcome:
        current = self._message_pages.get(session_id)
        if current is not None and not current.has_more:
            return ActionOutcome.success(ActionType.LOAD, session_id, self.messages_for(session_id))
        return await self.load_messages(session_id, (current.current_page + 1) if current else 1)

    async def mark_read(self, session_id: str) -> ActionOutcome:
        """Reset unread state locally and tell the server up to the newest inbound message."""
        inbound = [m for m in self.messages.messages(session_id)
                   if m.sender_type != SenderType.AGENT and not m.is_optimistic]
        unread = [m for m in inbound if not m.is_read]
        self.store.mark_read(session_id)
        self.messages.mark_read(session_id)
        if not unread:
            return ActionOutcome.success(ActionType.READ, session_id)
        try:
            await self._call(self._api.mark_message_read(session_id, unread[-1].id))
        except InboxError as e:
            return self._fail(ActionType.READ, session_id, e)
        return ActionOutcome.success(ActionType.READ, session_id)

    async def statistics(self) -> ActionOutcome:
        try:
            stats = await self._call(self._api.statistics())
        except InboxError as e:
            return self._fail(ActionType.LOAD, None, e)
        return ActionOutcome.success(ActionType.LOAD, None, stats)

    # -- actions -------------------------------------------------------

    async def assign(self, session_id: str) -> ActionOutcome:
        """Claim a pending session for this agent.

        The stored assignee is sent as ``expected_agent_id`` so the server
        can refuse when someone else claimed it first. A conflict reloads
        the session and returns an ``AlreadyAssignedError`` outcome.
        """
        try:
            session = self._require(session_id, "assign")
            # An in-flight assign's overlay already reads as ours.
            self._ensure_idle(session_id, ActionType.ASSIGN)
            if session.assigned_agent_id == self.agent_id and session.status != SessionStatus.PENDING:
                return ActionOutcome.success(ActionType.ASSIGN, session_id, session)
            if session.status != SessionStatus.PENDING:
                raise AlreadyAssignedError(session_id, session.assigned_agent_id)
        except InboxError as e:
            return self._fail(ActionType.ASSIGN, session_id, e)

        expected = session.assigned_agent_id
        self.store.apply_optimistic(session_id, status=SessionStatus.ACTIVE, assigned_agent_id=self.agent_id)
        try:
            with self.pending.track(session_id, ActionType.ASSIGN):
                confirmed = await self._call(self._api.assign(session_id, expected_agent_id=expected))
        except AlreadyAssignedError as e:
            self.store.rollback(session_id)
            await self._reload(session_id)
            return self._fail(ActionType.ASSIGN, session_id, e)
        except InboxError as e:
            self.store.rollback(session_id)
            return self._fail(ActionType.ASSIGN, session_id, e)
        self._transferred.discard(session_id)
        result = self.store.settle(session_id, confirmed)
        logger.info("Assigned session=%s to agent=%s", session_id, self.agent_id)
        self._navigate(session_id)
        return ActionOutcome.success(ActionType.ASSIGN, session_id, result)

    async def send_message(self, session_id: str, body: str) -> ActionOutcome:
        """Append an optimistic message and deliver it.

        A retryable failure is retried once; after that the message stays in
        the log as ``failed`` until ``retry_message`` is called.
        """
        try:
            self._require(session_id, "send", _SENDABLE)
            if not body or not body.strip():
                raise ValidationError("Message cannot be empty", {"body": "required"})
        except InboxError as e:
            return self._fail(ActionType.SEND, session_id, e)

        correlation_id = self._id_factory()
        self.messages.add_optimistic(Message(
            id=f"local-{correlation_id}", session_id=session_id, sender_type=SenderType.AGENT,
            body=body, created_at=utcnow(), correlation_id=correlation_id, sender_id=self.agent_id,
        ))
        self._typing.release()
        return await self._deliver(session_id, correlation_id, body, attempts=2)

    async def retry_message(self, session_id: str, correlation_id: str) -> ActionOutcome:
        """Resend a message that is marked failed."""
        try:
            self._require(session_id, "send", _SENDABLE)
            message = self.messages.find_by_correlation(session_id, correlation_id)
            if message is None:
                raise NotFoundError(f"No message {correlation_id} in session {session_id}")
        except InboxError as e:
            return self._fail(ActionType.SEND, session_id, e)
        if message.delivery_state != DeliveryState.FAILED:
            return ActionOutcome.success(ActionType.SEND, session_id, message)
        self.messages.mark_pending(session_id, correlation_id)
        return await self._deliver(session_id, correlation_id, message.body, attempts=1)

    async def transfer_session(self, session_id: str, target_agent_id: Optional[str], reason: str,
                               notes: str = "") -> ActionOutcome:
        """Hand the session to another agent (or back to the queue) and drop it locally."""
        try:
            self._require(session_id, "transfer", _TRANSFERABLE)
            if not reason or not reason.strip():
                raise ValidationError("Transfer reason is required", {"reason": "required"})
            if target_agent_id == self.agent_id:
                raise ValidationError("Cannot transfer a session to yourself", {"agent_id": "invalid"})
            self._ensure_idle(session_id, ActionType.TRANSFER)
            with self.pending.track(session_id, ActionType.TRANSFER):
                confirmed = await self._call(self._api.transfer(session_id, reason, target_agent_id, notes))
        except InboxError as e:
            return self._fail(ActionType.TRANSFER, session_id, e)
        self._transferred.add(session_id)
        self._drop(session_id)
        logger.info("Transferred session=%s to %s (%s)", session_id, target_agent_id or "queue", reason)
        self._leave(session_id)
        return ActionOutcome.success(ActionType.TRANSFER, session_id, confirmed)

    async def end_session(self, session_id: str, wrap_up: WrapUp) -> ActionOutcome:
        """Close the session with a wrap-up record. Terminal."""
        try:
            self._require(session_id, "end", _ENDABLE)
            if not wrap_up.category or not wrap_up.category.strip():
                raise ValidationError("Wrap-up category is required", {"category": "required"})
            self._ensure_idle(session_id, ActionType.END)
            with self.pending.track(session_id, ActionType.END):
                confirmed = await self._call(self._api.end(session_id, wrap_up))
        except InboxError as e:
            return self._fail(ActionType.END, session_id, e)
        if confirmed.wrap_up is None:
            confirmed = replace(confirmed, wrap_up=replace(wrap_up, ended_at=confirmed.last_activity_at))
        result = self.store.upsert(confirmed)
        logger.info("Ended session=%s (%s)", session_id, wrap_up.category)
        self._leave(session_id)
        return ActionOutcome.success(ActionType.END, session_id, result)

    async def update_internal_notes(self, session_id: str, notes: str) -> ActionOutcome:
        try:
            self._require(session_id, "edit notes of", _EDITABLE)
        except InboxError as e:
            return self._fail(ActionType.NOTES, session_id, e)
        self.store.apply_optimistic(session_id, internal_notes=notes)
        try:
            with self.pending.track(session_id, ActionType.NOTES):
                confirmed = await self._call(self._api.update_notes(session_id, notes))
        except InboxError as e:
            self.store.rollback(session_id)
            return self._fail(ActionType.NOTES, session_id, e)
        return ActionOutcome.success(ActionType.NOTES, session_id, self.store.settle(session_id, confirmed))

    def notify_typing(self, session_id: str) -> None:
        """Call on every keystroke in the composer."""
        if self._channel is None:
            return
        session = self.store.get(session_id)
        if session is None or session.status not in _SENDABLE:
            return
        self._typing.keystroke(session_id)

    # -- channel handlers ----------------------------------------------

    async def _on_session_update(self, update: SessionUpdate) -> None:
        if update.removed:
            self._transferred.discard(update.session_id)
            self._drop(update.session_id)
            if update.session_id == self._selected:
                self._leave(update.session_id)
            return
        if update.session is not None:
            self._merge_session(update.session)

    async def _on_message(self, message: Message) -> None:
        self.messages.reconcile(message)
        if message.session_id == self._selected and message.sender_type != SenderType.AGENT:
            self.store.mark_read(message.session_id)

    async def _on_typing(self, event: TypingEvent) -> None:
        logger.debug("Typing in session=%s by %s: %s", event.session_id, event.participant_id, event.is_typing)

    async def _on_status(self, status: ConnectionStatus) -> None:
        self._connection = status
        if status == ConnectionStatus.DISCONNECTED:
            self._last_error = ChannelDisconnectedError("Realtime connection lost, reconnecting")
        elif status == ConnectionStatus.CONNECTED:
            if isinstance(self._last_error, ChannelDisconnectedError):
                self._last_error = None
            if self._was_connected:
                # Catch up on anything missed while disconnected.
                await self.refresh_sessions()
            self._was_connected = True

    # -- internals -----------------------------------------------------

    def _merge_session(self, session: Session) -> None:
        """Upsert a server record, or drop it when it left this agent's view."""
        mine = session.assigned_agent_id == self.agent_id
        if session.id in self._transferred and not (mine and session.status != SessionStatus.PENDING):
            return
        if session.status == SessionStatus.PENDING or mine:
            self.store.upsert(session)
            return
        if session.id in self.store:
            logger.info("Session=%s now handled by %s; removing", session.id, session.assigned_agent_id)
            self._drop(session.id)
            if session.id == self._selected:
                self._leave(session.id)

    def _drop(self, session_id: str) -> None:
        """Forget a session that left this inbox, message history included."""
        self.store.remove(session_id)
        self.messages.forget(session_id)
        self._message_pages.pop(session_id, None)

    async def _reload(self, session_id: str) -> None:
        try:
            session = await self._call(self._api.get_session(session_id))
        except NotFoundError:
            self._drop(session_id)
            return
        except InboxError as e:
            logger.warning("Could not reload session=%s: %s", session_id, e)
            return
        self._merge_session(session)

    async def _deliver(self, session_id: str, correlation_id: str, body: str, attempts: int) -> ActionOutcome:
        while True:
            try:
                with self.pending.track(session_id, ActionType.SEND):
                    confirmed = await self._call(self._api.send_message(session_id, body, correlation_id))
            except InboxError as e:
                echoed = self.messages.find_by_correlation(session_id, correlation_id)
                if echoed is not None and not echoed.is_optimistic:
                    return ActionOutcome.success(ActionType.SEND, session_id, echoed)
                self.messages.mark_failed(session_id, correlation_id)
                attempts -= 1
                if e.retryable and attempts > 0:
                    logger.warning("Send failed for session=%s, retrying once: %s", session_id, e)
                    self.messages.mark_pending(session_id, correlation_id)
                    continue
                return self._fail(ActionType.SEND, session_id, e)
            if confirmed.correlation_id is None:
                confirmed = replace(confirmed, correlation_id=correlation_id)
            return ActionOutcome.success(ActionType.SEND, session_id, self.messages.reconcile(confirmed))

    def _require(self, session_id: str, action: str,
                 allowed: frozenset[SessionStatus] = frozenset(SessionStatus)) -> Session:
        session = self.store.get(session_id)
        if session is None:
            raise NotFoundError(f"Session {session_id} is not in this inbox")
        if session.is_ended:
            raise SessionClosedError(session_id)
        if session.status not in allowed:
            raise InvalidStateError(session_id, session.status.value, action)
        return session

    def _ensure_idle(self, session_id: str, action: ActionType) -> None:
        if self.pending.is_pending(session_id, action):
            raise InvalidStateError(session_id, "busy", action.value)

    def _leave(self, session_id: str) -> None:
        if self._selected == session_id:
            self._typing.release()
            self._selected = None
            if isinstance(self._channel, PollingChannel):
                self._channel.watch(None)
            self._navigate(None)

    def _send_typing(self, session_id: str, is_typing: bool) -> None:
        if self._channel is not None:
            self._channel.send_typing(session_id, is_typing)

    async def _call(self, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, self._config.action_timeout)
        except asyncio.TimeoutError as e:
            raise RequestTimeoutError(f"No response within {self._config.action_timeout:g}s") from e
        except ValueError as e:
            raise ValidationError(f"Malformed server response: {e}") from e

    def _fail(self, action: ActionType, session_id: Optional[str], error: InboxError) -> ActionOutcome:
        logger.warning("%s failed for session=%s: %s", action.value, session_id, error)
        self._last_error = error
        return ActionOutcome.failure(action, session_id, error)
