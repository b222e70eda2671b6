"""GET /events: Server-Sent Events stream of inbox changes.

Events:
    - connected: stream established
    - keepalive: sent after ``keepalive`` idle seconds
    - session.updated: full session payload after any change
    - message.created / message.updated: message payload
    - typing: session_id, participant_id, participant_type, is_typing
"""
from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse

from src.client._constants import API_PREFIX
from src.server.events import EventBroadcaster, event_stream


def create_events_router(broadcaster: EventBroadcaster, keepalive: float = 15.0) -> APIRouter:
    router = APIRouter(prefix=API_PREFIX, tags=["events"])

    @router.get("/events")
    async def events(request: Request) -> StreamingResponse:
        return StreamingResponse(
            event_stream(broadcaster, keepalive, request.is_disconnected),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        )

    return router
