"""Fan-out of inbox changes to event-stream subscribers."""
import asyncio
import json
import logging
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

from src.state.models.common import format_timestamp, utcnow

logger = logging.getLogger(__name__)


def format_sse_event(event_type: str, data: dict[str, Any]) -> str:
    """Format one Server-Sent Event."""
    json_data = json.dumps(data, ensure_ascii=False)
    return f"event: {event_type}\ndata: {json_data}\n\n"


class EventBroadcaster:
    """Gives every subscriber its own bounded queue.

    ``publish`` never blocks: a subscriber whose queue is full misses the
    event (it catches up through a list refresh after reconnecting).
    """

    def __init__(self, queue_size: int = 1000) -> None:
        self._queue_size = queue_size
        self._queues: list[asyncio.Queue[dict[str, Any]]] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._queues)

    def subscribe(self) -> asyncio.Queue[dict[str, Any]]:
        queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=self._queue_size)
        self._queues.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[dict[str, Any]]) -> None:
        if queue in self._queues:
            self._queues.remove(queue)

    def publish(self, event_type: str, data: dict[str, Any]) -> int:
        """Queue an event for every subscriber. Returns how many received it."""
        event = {"event": event_type, "data": data}
        delivered = 0
        for queue in list(self._queues):
            try:
                queue.put_nowait(event)
                delivered += 1
            except asyncio.QueueFull:
                logger.warning("Subscriber queue full, dropped %s event", event_type)
        return delivered


async def event_stream(broadcaster: EventBroadcaster, keepalive: float = 15.0,
                       is_disconnected: Optional[Callable[[], Awaitable[bool]]] = None) -> AsyncIterator[str]:
    """Yield SSE frames for one subscriber until it disconnects."""
    queue = broadcaster.subscribe()
    logger.info("Event stream connected (%d subscribers)", broadcaster.subscriber_count)
    try:
        yield format_sse_event("connected", {"timestamp": format_timestamp(utcnow())})
        while True:
            if is_disconnected is not None and await is_disconnected():
                break
            try:
                event = await asyncio.wait_for(queue.get(), timeout=keepalive)
            except asyncio.TimeoutError:
                yield format_sse_event("keepalive", {"timestamp": format_timestamp(utcnow())})
                continue
            yield format_sse_event(event["event"], event["data"])
    finally:
        broadcaster.unsubscribe(queue)
        logger.info("Event stream disconnected")
