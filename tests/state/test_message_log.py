"""Tests for MessageLog."""
from datetime import timedelta

import pytest

from src.client.types import DeliveryState, SenderType
from src.state.messages import MessageLog


@pytest.fixture
def log() -> MessageLog:
    return MessageLog()


class TestOrdering:
    def test_messages_are_sorted_by_created_at(self, log, make_message) -> None:
        log.reconcile(make_message("m2", seconds=20))
        log.reconcile(make_message("m1", seconds=10))
        assert [m.id for m in log.messages("s1")] == ["m1", "m2"]

    def test_reconcile_same_id_updates_in_place(self, log, make_message) -> None:
        log.reconcile(make_message("m1", body="v1"))
        log.reconcile(make_message("m1", body="v2", is_read=True))
        messages = log.messages("s1")
        assert len(messages) == 1
        assert messages[0].body == "v2"
        assert messages[0].is_read

    def test_flags_never_revert(self, log, make_message) -> None:
        first = log.reconcile(make_message("m1", is_read=True))
        merged = log.reconcile(make_message("m1", is_read=False, delivered_at=None))
        assert merged.is_read
        assert merged.delivered_at == first.delivered_at

    def test_unknown_session_is_empty(self, log) -> None:
        assert log.messages("nope") == ()


class TestOptimistic:
    def test_optimistic_message_needs_correlation(self, log, make_message) -> None:
        with pytest.raises(ValueError):
            log.add_optimistic(make_message("local-1", sender=SenderType.AGENT))

    def test_server_copy_replaces_optimistic(self, log, make_message) -> None:
        pending = log.add_optimistic(make_message("local-c1", sender=SenderType.AGENT, correlation_id="c1"))
        assert pending.delivery_state == DeliveryState.PENDING
        assert pending.is_optimistic
        confirmed = make_message("srv-9", sender=SenderType.AGENT, correlation_id="c1", seconds=1,
                                 delivered_at=pending.created_at + timedelta(seconds=1))
        log.reconcile(confirmed)
        messages = log.messages("s1")
        assert len(messages) == 1
        assert messages[0].id == "srv-9"
        assert messages[0].delivery_state == DeliveryState.DELIVERED

    def test_echo_and_rest_response_collapse(self, log, make_message) -> None:
        log.add_optimistic(make_message("local-c1", sender=SenderType.AGENT, correlation_id="c1"))
        echo = make_message("srv-9", sender=SenderType.AGENT, correlation_id="c1", seconds=1,
                            delivered_at=make_message().created_at)
        log.reconcile(echo)
        log.reconcile(echo)
        assert len(log.messages("s1")) == 1

    def test_failed_then_retried(self, log, make_message) -> None:
        log.add_optimistic(make_message("local-c1", sender=SenderType.AGENT, correlation_id="c1"))
        log.mark_failed("s1", "c1")
        assert [m.correlation_id for m in log.failed("s1")] == ["c1"]
        retried = log.mark_pending("s1", "c1")
        assert retried.delivery_state == DeliveryState.PENDING
        assert retried.attempts == 2
        assert log.failed("s1") == ()

    def test_confirmed_message_cannot_be_failed(self, log, make_message) -> None:
        log.reconcile(make_message("srv-1", sender=SenderType.AGENT, correlation_id="c1",
                                   delivered_at=make_message().created_at))
        result = log.mark_failed("s1", "c1")
        assert result.delivery_state == DeliveryState.DELIVERED


class TestMarkRead:
    def test_marks_only_inbound(self, log, make_message) -> None:
        log.reconcile(make_message("m1"))
        log.reconcile(make_message("m2", sender=SenderType.AGENT, seconds=1, delivered_at=make_message().created_at))
        assert log.mark_read("s1") == 1
        assert log.mark_read("s1") == 0
        by_id = {m.id: m for m in log.messages("s1")}
        assert by_id["m1"].is_read
        assert not by_id["m2"].is_read


class TestForget:
    def test_drops_one_session_only(self, log, make_message) -> None:
        log.reconcile(make_message("m1"))
        log.reconcile(make_message("m2", seconds=1))
        log.reconcile(make_message("m3", session_id="s2"))
        assert log.forget("s1") == 2
        assert log.messages("s1") == ()
        assert [m.id for m in log.messages("s2")] == ["m3"]
        assert log.forget("s1") == 0
