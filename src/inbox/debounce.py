"""Timers owned by the controller: typing start/stop and search debounce."""
import asyncio
import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class TypingDebouncer:
    """Turns keystrokes into typing start/stop signals for one session at a time.

    The first keystroke sends ``start`` immediately; ``stop`` follows once no
    keystroke arrived for ``stop_delay`` seconds. Switching session or
    releasing sends ``stop`` for the previous session and cancels its timer.
    """

    def __init__(self, send: Callable[[str, bool], None], stop_delay: float = 1.0) -> None:
        self._send = send
        self._stop_delay = stop_delay
        self._session_id: Optional[str] = None
        self._timer: Optional[asyncio.TimerHandle] = None

    @property
    def session_id(self) -> Optional[str]:
        return self._session_id

    @property
    def is_typing(self) -> bool:
        return self._timer is not None

    def keystroke(self, session_id: str) -> None:
        if self._session_id != session_id:
            self.release()
            self._session_id = session_id
        if self._timer is None:
            self._send(session_id, True)
        else:
            self._timer.cancel()
        self._timer = asyncio.get_running_loop().call_later(self._stop_delay, self._stop)

    def release(self) -> None:
        """Cancel the pending timer, sending ``stop`` if typing was in progress."""
        if self._timer is not None:
            self._timer.cancel()
            self._stop()
        self._session_id = None

    def _stop(self) -> None:
        self._timer = None
        if self._session_id is not None:
            self._send(self._session_id, False)


class Debouncer:
    """Runs a callback once calls have been quiet for ``delay`` seconds."""

    def __init__(self, delay: float, callback: Callable[[], None]) -> None:
        self._delay = delay
        self._callback = callback
        self._timer: Optional[asyncio.TimerHandle] = None

    @property
    def pending(self) -> bool:
        return self._timer is not None

    def trigger(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        self._timer = asyncio.get_running_loop().call_later(self._delay, self._fire)

    def flush(self) -> None:
        """Run the pending callback now."""
        if self._timer is not None:
            self._timer.cancel()
            self._fire()

    def cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _fire(self) -> None:
        self._timer = None
        self._callback()
