"""Tests for typing and search debouncing."""
import asyncio

import pytest

from src.inbox.debounce import Debouncer, TypingDebouncer


@pytest.fixture
def sent():
    return []


@pytest.fixture
def typing(sent):
    return TypingDebouncer(lambda sid, on: sent.append((sid, on)), stop_delay=0.02)


class TestTypingDebouncer:
    @pytest.mark.asyncio
    async def test_start_once_then_stop_after_quiet(self, typing, sent) -> None:
        typing.keystroke("s1")
        typing.keystroke("s1")
        typing.keystroke("s1")
        assert sent == [("s1", True)]
        assert typing.is_typing
        await asyncio.sleep(0.06)
        assert sent == [("s1", True), ("s1", False)]
        assert not typing.is_typing

    @pytest.mark.asyncio
    async def test_switching_session_stops_previous(self, typing, sent) -> None:
        typing.keystroke("s1")
        typing.keystroke("s2")
        assert sent == [("s1", True), ("s1", False), ("s2", True)]
        assert typing.session_id == "s2"

    @pytest.mark.asyncio
    async def test_release_cancels_timer(self, typing, sent) -> None:
        typing.keystroke("s1")
        typing.release()
        typing.release()
        await asyncio.sleep(0.05)
        assert sent == [("s1", True), ("s1", False)]
        assert typing.session_id is None


class TestDebouncer:
    @pytest.mark.asyncio
    async def test_fires_once_after_quiet_period(self) -> None:
        calls = []
        debouncer = Debouncer(0.02, lambda: calls.append(1))
        for _ in range(5):
            debouncer.trigger()
        assert debouncer.pending
        await asyncio.sleep(0.06)
        assert calls == [1]
        assert not debouncer.pending

    @pytest.mark.asyncio
    async def test_flush_and_cancel(self) -> None:
        calls = []
        debouncer = Debouncer(10, lambda: calls.append(1))
        debouncer.flush()
        assert calls == []
        debouncer.trigger()
        debouncer.flush()
        assert calls == [1]
        debouncer.trigger()
        debouncer.cancel()
        assert not debouncer.pending
        assert calls == [1]
