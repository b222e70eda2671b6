"""Tests for InboxController against a mocked API."""
import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, call

import pytest

from src.client.api import Page
from src.client.exceptions import (
    AlreadyAssignedError, ChannelDisconnectedError, InvalidStateError, NetworkError, NotFoundError,
    RequestTimeoutError, SessionClosedError, ValidationError,
)
from src.client.types import ActionType, ConnectionStatus, DeliveryState, InboxTab, SenderType, SessionStatus
from src.inbox.config import InboxConfig
from src.inbox.controller import InboxController
from src.realtime.events import SessionUpdate
from src.state.models.session import WrapUp
from src.state.sla import SlaLevel

T0 = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def api():
    api = AsyncMock()
    api.agent_id = "agent-1"
    api.list_sessions.return_value = Page(items=())
    api.list_messages.return_value = Page(items=())
    return api


@pytest.fixture
def navigated():
    return []


@pytest.fixture
def controller(api, navigated):
    ids = iter(f"c{i}" for i in range(1, 100))
    config = InboxConfig(action_timeout=1.0, search_debounce=0.01, typing_stop_delay=0.01)
    return InboxController(api, config, navigate=navigated.append, id_factory=lambda: next(ids))


class TestAssign:
    @pytest.mark.asyncio
    async def test_claims_pending_session(self, api, controller, navigated, make_session) -> None:
        controller.store.upsert(make_session("s1"))
        seen = {}

        async def assign(session_id, expected_agent_id=None):
            visible = controller.store.get(session_id)
            seen["status"] = visible.status
            seen["loading"] = controller.is_loading(session_id, ActionType.ASSIGN)
            return make_session("s1", SessionStatus.ACTIVE, minutes=1)

        api.assign.side_effect = assign
        outcome = await controller.assign("s1")

        assert outcome.ok
        assert seen == {"status": SessionStatus.ACTIVE, "loading": True}
        assert controller.store.get("s1").assigned_agent_id == "agent-1"
        assert not controller.store.has_overlay("s1")
        assert not controller.is_loading("s1")
        assert navigated == ["s1"]
        api.assign.assert_awaited_once_with("s1", expected_agent_id=None)

    @pytest.mark.asyncio
    async def test_conflict_rolls_back_and_reloads(self, api, controller, navigated, make_session) -> None:
        controller.store.upsert(make_session("s1"))
        api.assign.side_effect = AlreadyAssignedError("s1", "agent-2")
        api.get_session.return_value = make_session("s1", SessionStatus.ACTIVE, agent="agent-2", minutes=1)

        outcome = await controller.assign("s1")

        assert not outcome.ok
        assert outcome.error_code == "ALREADY_ASSIGNED"
        assert "s1" not in controller.store
        assert controller.last_error is outcome.error
        assert navigated == []

    @pytest.mark.asyncio
    async def test_network_failure_rolls_back(self, api, controller, make_session) -> None:
        controller.store.upsert(make_session("s1"))
        api.assign.side_effect = NetworkError("down")

        outcome = await controller.assign("s1")

        assert outcome.retryable
        assert controller.store.get("s1").status == SessionStatus.PENDING
        assert not controller.store.has_overlay("s1")

    @pytest.mark.asyncio
    async def test_session_owned_by_other_agent(self, api, controller, make_session) -> None:
        controller.store.upsert(make_session("s1", SessionStatus.ACTIVE, agent="agent-2"))
        outcome = await controller.assign("s1")
        assert isinstance(outcome.error, AlreadyAssignedError)
        api.assign.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_second_assign_while_first_in_flight_is_refused(self, api, controller, make_session) -> None:
        controller.store.upsert(make_session("s1"))
        release = asyncio.Event()

        async def assign(session_id, expected_agent_id=None):
            await release.wait()
            raise AlreadyAssignedError("s1", "agent-2")

        api.assign.side_effect = assign
        api.get_session.return_value = make_session("s1", minutes=1)
        first = asyncio.create_task(controller.assign("s1"))
        await asyncio.sleep(0)

        second = await controller.assign("s1")
        release.set()
        first_outcome = await first

        assert not second.ok
        assert isinstance(second.error, InvalidStateError)
        assert first_outcome.error_code == "ALREADY_ASSIGNED"
        assert api.assign.await_count == 1
        stored = controller.store.get("s1")
        assert stored.status == SessionStatus.PENDING
        assert stored.assigned_agent_id is None

    @pytest.mark.asyncio
    async def test_already_mine_is_a_no_op(self, api, controller, make_session) -> None:
        controller.store.upsert(make_session("s1", SessionStatus.ACTIVE))
        outcome = await controller.assign("s1")
        assert outcome.ok
        api.assign.assert_not_awaited()


class TestSendMessage:
    @pytest.fixture(autouse=True)
    def active(self, controller, make_session):
        controller.store.upsert(make_session("s1", SessionStatus.ACTIVE))

    @pytest.fixture
    def confirmed(self, make_message):
        return make_message("m9", sender=SenderType.AGENT, body="Hi", correlation_id="c1",
                            delivered_at=T0 + timedelta(seconds=5), seconds=5)

    @pytest.mark.asyncio
    async def test_optimistic_message_is_replaced(self, api, controller, confirmed) -> None:
        during = []

        async def send(session_id, body, correlation_id=None):
            during.extend(controller.messages_for(session_id))
            return confirmed

        api.send_message.side_effect = send
        outcome = await controller.send_message("s1", "Hi")

        assert outcome.ok
        assert [m.delivery_state for m in during] == [DeliveryState.PENDING]
        assert during[0].id == "local-c1"
        messages = controller.messages_for("s1")
        assert [m.id for m in messages] == ["m9"]
        assert messages[0].delivered_at is not None
        api.send_message.assert_awaited_once_with("s1", "Hi", "c1")

    @pytest.mark.asyncio
    async def test_retryable_failure_is_retried_once(self, api, controller, confirmed) -> None:
        api.send_message.side_effect = [NetworkError("down"), confirmed]
        outcome = await controller.send_message("s1", "Hi")
        assert outcome.ok
        assert api.send_message.await_count == 2
        assert controller.messages_for("s1")[0].attempts == 2

    @pytest.mark.asyncio
    async def test_second_failure_marks_failed(self, api, controller, confirmed) -> None:
        api.send_message.side_effect = NetworkError("down")
        outcome = await controller.send_message("s1", "Hi")

        assert not outcome.ok
        assert api.send_message.await_count == 2
        assert [m.correlation_id for m in controller.messages.failed("s1")] == ["c1"]

        api.send_message.side_effect = None
        api.send_message.return_value = confirmed
        retried = await controller.retry_message("s1", "c1")
        assert retried.ok
        assert controller.messages.failed("s1") == ()
        assert controller.messages_for("s1")[0].delivery_state == DeliveryState.DELIVERED

    @pytest.mark.asyncio
    async def test_validation_failure_is_not_retried(self, api, controller) -> None:
        api.send_message.side_effect = ValidationError("too long", {"body": "max 5000"})
        outcome = await controller.send_message("s1", "Hi")
        assert outcome.error.fields == {"body": "max 5000"}
        assert api.send_message.await_count == 1

    @pytest.mark.asyncio
    async def test_empty_body_is_rejected_locally(self, api, controller) -> None:
        outcome = await controller.send_message("s1", "   ")
        assert isinstance(outcome.error, ValidationError)
        assert controller.messages_for("s1") == ()
        api.send_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_retry_unknown_message(self, controller) -> None:
        outcome = await controller.retry_message("s1", "missing")
        assert isinstance(outcome.error, NotFoundError)


class TestGuards:
    @pytest.mark.asyncio
    async def test_ended_session_rejects_every_mutation(self, api, controller, make_session) -> None:
        controller.store.upsert(make_session("s1", SessionStatus.ENDED, agent="agent-1"))
        version = controller.store.version
        before = controller.store.get("s1")
        outcomes = [
            await controller.assign("s1"),
            await controller.send_message("s1", "Hi"),
            await controller.transfer_session("s1", None, "shift over"),
            await controller.end_session("s1", WrapUp(category="billing")),
            await controller.update_internal_notes("s1", "x"),
        ]
        assert all(isinstance(o.error, SessionClosedError) for o in outcomes)
        assert api.mock_calls == []
        assert controller.store.version == version
        assert controller.store.get("s1") == before
        assert controller.messages.messages("s1") == ()

    @pytest.mark.asyncio
    async def test_send_to_pending_session(self, controller, make_session) -> None:
        controller.store.upsert(make_session("s1"))
        outcome = await controller.send_message("s1", "Hi")
        assert isinstance(outcome.error, InvalidStateError)

    @pytest.mark.asyncio
    async def test_unknown_session(self, controller) -> None:
        outcome = await controller.send_message("nope", "Hi")
        assert isinstance(outcome.error, NotFoundError)


class TestTransferAndEnd:
    @pytest.fixture(autouse=True)
    def active(self, controller, make_session):
        controller.store.upsert(make_session("s1", SessionStatus.ACTIVE))

    @pytest.mark.asyncio
    async def test_transfer_drops_session(self, api, controller, navigated, make_session) -> None:
        await controller.select_session("s1")
        api.transfer.return_value = make_session("s1", SessionStatus.PENDING, minutes=1)

        outcome = await controller.transfer_session("s1", None, "needs billing")

        assert outcome.ok
        assert "s1" not in controller.store
        assert controller.selected_session_id is None
        assert navigated == [None]
        api.transfer.assert_awaited_once_with("s1", "needs billing", None, "")

    @pytest.mark.asyncio
    async def test_transferred_session_stays_gone(self, api, controller, make_session) -> None:
        api.transfer.return_value = make_session("s1", SessionStatus.PENDING, minutes=1)
        await controller.transfer_session("s1", None, "needs billing")
        await controller._on_session_update(SessionUpdate("s1", session=make_session("s1", minutes=2)))
        assert "s1" not in controller.store

    @pytest.mark.asyncio
    async def test_transfer_forgets_message_history(self, api, controller, make_session, make_message) -> None:
        api.list_messages.return_value = Page(items=(make_message("m1"), make_message("m2", seconds=1)))
        await controller.select_session("s1")
        assert len(controller.messages_for("s1")) == 2
        api.transfer.return_value = make_session("s1", SessionStatus.PENDING, minutes=1)

        await controller.transfer_session("s1", "agent-2", "needs billing")

        assert controller.messages_for("s1") == ()

    @pytest.mark.asyncio
    async def test_transfer_requires_reason(self, api, controller) -> None:
        outcome = await controller.transfer_session("s1", "agent-2", " ")
        assert outcome.error.fields == {"reason": "required"}
        api.transfer.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_transfer_to_self(self, controller) -> None:
        outcome = await controller.transfer_session("s1", "agent-1", "why")
        assert isinstance(outcome.error, ValidationError)

    @pytest.mark.asyncio
    async def test_end_records_wrap_up(self, api, controller, make_session) -> None:
        api.end.return_value = make_session("s1", SessionStatus.ENDED, agent="agent-1", minutes=3)
        wrap_up = WrapUp(category="billing", summary="refunded", tags=frozenset({"sales"}))

        outcome = await controller.end_session("s1", wrap_up)

        assert outcome.ok
        stored = controller.store.get("s1")
        assert stored.is_ended
        assert stored.wrap_up.category == "billing"
        assert stored.wrap_up.ended_at == T0 + timedelta(minutes=3)

    @pytest.mark.asyncio
    async def test_end_requires_category(self, api, controller) -> None:
        outcome = await controller.end_session("s1", WrapUp(category=""))
        assert outcome.error.fields == {"category": "required"}
        api.end.assert_not_awaited()


class TestNotesAndLoading:
    @pytest.mark.asyncio
    async def test_notes_roll_back_on_failure(self, api, controller, make_session) -> None:
        controller.store.upsert(make_session("s1", SessionStatus.ACTIVE, internal_notes="old"))
        api.update_notes.side_effect = NetworkError("down")
        outcome = await controller.update_internal_notes("s1", "new")
        assert not outcome.ok
        assert controller.store.get("s1").internal_notes == "old"

    @pytest.mark.asyncio
    async def test_notes_settle(self, api, controller, make_session) -> None:
        controller.store.upsert(make_session("s1", SessionStatus.ACTIVE))
        api.update_notes.return_value = make_session("s1", SessionStatus.ACTIVE, minutes=1, internal_notes="vip")
        outcome = await controller.update_internal_notes("s1", "vip")
        assert outcome.value.internal_notes == "vip"
        assert not controller.store.has_overlay("s1")

    @pytest.mark.asyncio
    async def test_slow_response_times_out(self, api, make_session) -> None:
        async def slow(session_id):
            await asyncio.sleep(1)

        api.get_session.side_effect = slow
        controller = InboxController(api, InboxConfig(action_timeout=0.01))
        outcome = await controller.load_session("s1")
        assert isinstance(outcome.error, RequestTimeoutError)
        assert outcome.retryable

    @pytest.mark.asyncio
    async def test_malformed_response(self, api, controller) -> None:
        api.get_session.side_effect = ValueError("status missing")
        outcome = await controller.load_session("s1")
        assert isinstance(outcome.error, ValidationError)

    @pytest.mark.asyncio
    async def test_load_session_owned_elsewhere(self, api, controller, make_session) -> None:
        api.get_session.return_value = make_session("s1", SessionStatus.ACTIVE, agent="agent-2")
        outcome = await controller.load_session("s1")
        assert isinstance(outcome.error, NotFoundError)

    @pytest.mark.asyncio
    async def test_refresh_keeps_only_visible_sessions(self, api, controller, make_session) -> None:
        api.list_sessions.return_value = Page(items=(
            make_session("s1"),
            make_session("s2", SessionStatus.ACTIVE),
            make_session("s3", SessionStatus.ACTIVE, agent="agent-2"),
        ))
        outcome = await controller.refresh_sessions()
        assert outcome.ok
        assert {s.id for s in controller.store.all()} == {"s1", "s2"}
        api.list_sessions.assert_awaited_once_with(
            InboxTab.MY_QUEUE, page=1, per_page=20, search=None, status=None, priority=None, category=None,
        )

    @pytest.mark.asyncio
    async def test_load_more_stops_at_last_page(self, api, controller) -> None:
        await controller.refresh_sessions()
        await controller.load_more_sessions()
        assert api.list_sessions.await_count == 1

    @pytest.mark.asyncio
    async def test_mark_read_sends_newest_inbound(self, api, controller, make_session, make_message) -> None:
        controller.store.upsert(make_session("s1", SessionStatus.ACTIVE, unread_count=2))
        controller.messages.extend([make_message("m1"), make_message("m2", seconds=1)])
        outcome = await controller.mark_read("s1")
        assert outcome.ok
        assert controller.store.get("s1").unread_count == 0
        api.mark_message_read.assert_awaited_once_with("s1", "m2")
        await controller.mark_read("s1")
        assert api.mark_message_read.await_count == 1


class TestViews:
    def test_filtered_sessions_is_memoized(self, controller, make_session) -> None:
        controller.store.upsert(make_session("s1"))
        first = controller.filtered_sessions()
        assert controller.filtered_sessions() is first
        controller.store.upsert(make_session("s2", minutes=1))
        second = controller.filtered_sessions()
        assert second is not first
        assert [s.id for s in second] == ["s2", "s1"]
        controller.set_filter(tab="active")
        assert controller.filtered_sessions() == ()

    def test_sla_level(self, controller, make_session) -> None:
        assert controller.sla_level(make_session(wait_time=20)) == SlaLevel.WARNING
        assert controller.sla_level(make_session(wait_time=31)) == SlaLevel.DANGER
        assert controller.sla_level(make_session(status=SessionStatus.ACTIVE, wait_time=40)) is None
        assert controller.sla_level("unknown") is None

    @pytest.mark.asyncio
    async def test_search_is_debounced(self, controller) -> None:
        controller.set_search("ad")
        controller.set_search("ada")
        assert controller.filter.search == ""
        await asyncio.sleep(0.05)
        assert controller.filter.search == "ada"

    @pytest.mark.asyncio
    async def test_flush_search(self, controller) -> None:
        controller.set_search("grace")
        controller.flush_search()
        assert controller.filter.search == "grace"


class TestChannelEvents:
    @pytest.mark.asyncio
    async def test_visibility_rule(self, controller, make_session) -> None:
        await controller._on_session_update(SessionUpdate("s1", session=make_session("s1")))
        await controller._on_session_update(
            SessionUpdate("s2", session=make_session("s2", SessionStatus.ACTIVE, agent="agent-2")))
        assert "s1" in controller.store
        assert "s2" not in controller.store

        await controller._on_session_update(
            SessionUpdate("s1", session=make_session("s1", SessionStatus.ACTIVE, agent="agent-2", minutes=1)))
        assert "s1" not in controller.store

    @pytest.mark.asyncio
    async def test_removed_selected_session_navigates_away(self, controller, navigated, make_session) -> None:
        controller.store.upsert(make_session("s1", SessionStatus.ACTIVE))
        await controller.select_session("s1")
        await controller._on_session_update(SessionUpdate("s1", removed=True))
        assert "s1" not in controller.store
        assert navigated == [None]

    @pytest.mark.asyncio
    async def test_removed_session_drops_messages(self, api, controller, make_session, make_message) -> None:
        controller.store.upsert(make_session("s1", SessionStatus.ACTIVE))
        api.list_messages.return_value = Page(items=(make_message("m1"),))
        await controller.load_messages("s1")

        await controller._on_session_update(SessionUpdate("s1", removed=True))

        assert controller.messages_for("s1") == ()

    @pytest.mark.asyncio
    async def test_message_in_open_session_is_read(self, controller, make_session, make_message) -> None:
        controller.store.upsert(make_session("s1", SessionStatus.ACTIVE))
        await controller.select_session("s1")
        controller.store.upsert(make_session("s1", SessionStatus.ACTIVE, minutes=1, unread_count=1))
        await controller._on_message(make_message("m1", seconds=70))
        assert controller.store.get("s1").unread_count == 0
        assert [m.id for m in controller.messages_for("s1")] == ["m1"]

    @pytest.mark.asyncio
    async def test_disconnect_surfaces_error_and_reconnect_refreshes(self, api, controller) -> None:
        await controller._on_status(ConnectionStatus.CONNECTED)
        await controller._on_status(ConnectionStatus.DISCONNECTED)
        assert isinstance(controller.last_error, ChannelDisconnectedError)
        assert controller.connection_status == ConnectionStatus.DISCONNECTED
        api.list_sessions.assert_not_awaited()

        await controller._on_status(ConnectionStatus.CONNECTED)
        assert controller.last_error is None
        api.list_sessions.assert_awaited_once()


class TestTyping:
    @pytest.fixture
    def channel(self):
        channel = MagicMock()
        channel.disconnect = AsyncMock()
        return channel

    @pytest.mark.asyncio
    async def test_keystrokes_start_and_stop(self, api, channel, make_session) -> None:
        controller = InboxController(api, InboxConfig(typing_stop_delay=0.01), channel=channel)
        controller.store.upsert(make_session("s1", SessionStatus.ACTIVE))
        controller.notify_typing("s1")
        controller.notify_typing("s1")
        await asyncio.sleep(0.05)
        assert channel.send_typing.call_args_list == [call("s1", True), call("s1", False)]

    @pytest.mark.asyncio
    async def test_close_stops_typing(self, api, channel, make_session) -> None:
        controller = InboxController(api, InboxConfig(typing_stop_delay=5), channel=channel)
        controller.store.upsert(make_session("s1", SessionStatus.ACTIVE))
        controller.notify_typing("s1")
        await controller.close()
        assert channel.send_typing.call_args_list == [call("s1", True), call("s1", False)]
        channel.disconnect.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_no_typing_for_pending_sessions(self, api, channel, make_session) -> None:
        controller = InboxController(api, channel=channel)
        controller.store.upsert(make_session("s1"))
        controller.notify_typing("s1")
        channel.send_typing.assert_not_called()

    @pytest.mark.asyncio
    async def test_start_subscribes_once(self, api, channel) -> None:
        controller = InboxController(api, channel=channel)
        await controller.start()
        await controller.start()
        channel.connect.assert_called_once()
        channel.on_status.assert_called_once()


class TestHistoryAndErrors:
    @pytest.mark.asyncio
    async def test_older_messages_page_in(self, api, controller, make_message) -> None:
        api.list_messages.return_value = Page(items=(make_message("m2", seconds=10),), current_page=1, last_page=2)
        await controller.load_messages("s1")
        api.list_messages.return_value = Page(items=(make_message("m1"),), current_page=2, last_page=2)
        outcome = await controller.load_older_messages("s1")
        assert [m.id for m in outcome.value] == ["m1", "m2"]
        api.list_messages.assert_awaited_with("s1", page=2)
        await controller.load_older_messages("s1")
        assert api.list_messages.await_count == 2

    @pytest.mark.asyncio
    async def test_page_info_tracks_tab(self, api, controller) -> None:
        api.list_sessions.return_value = Page(items=(), total=0)
        await controller.refresh_sessions()
        assert controller.page_info() is api.list_sessions.return_value
        assert controller.page_info(InboxTab.PENDING) is None

    @pytest.mark.asyncio
    async def test_dismiss_error(self, api, controller) -> None:
        api.get_session.side_effect = NetworkError("down")
        await controller.load_session("s1")
        assert controller.last_error is not None
        controller.dismiss_error()
        assert controller.last_error is None

    def test_typing_participants_exclude_self(self, api) -> None:
        channel = MagicMock()
        channel.typing.typing_in.return_value = ("agent-1", "cust-9")
        controller = InboxController(api, channel=channel)
        assert controller.typing_participants("s1") == ("cust-9",)
        assert InboxController(api).typing_participants("s1") == ()
