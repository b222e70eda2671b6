"""Message endpoints for a session."""
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Path, Query, status

from src.client._constants import API_PREFIX
from src.server.inbox_state import InboxState
from src.server.models.requests import CustomerMessageRequest, SendMessageRequest
from src.server.models.responses import Envelope
from src.server.routes._helpers import current_agent, ok, paged

SessionId = Annotated[str, Path(description="Session ID")]


def create_messages_router(state: InboxState) -> APIRouter:
    router = APIRouter(prefix=API_PREFIX, tags=["messages"])

    @router.get("/sessions/{session_id}/messages", response_model=Envelope)
    async def list_messages(
        session_id: SessionId,
        page: Annotated[int, Query(ge=1)] = 1,
        per_page: Annotated[int, Query(ge=1, le=200)] = 50,
    ) -> Envelope:
        """Page 1 holds the newest messages."""
        records, total = state.list_messages(session_id, page, per_page)
        return paged([m.to_dict() for m in records], page, per_page, total)

    @router.post("/sessions/{session_id}/messages", response_model=Envelope, status_code=status.HTTP_201_CREATED)
    async def send_message(
        session_id: SessionId, body: SendMessageRequest,
        agent: Annotated[Optional[str], Depends(current_agent)],
    ) -> Envelope:
        """Agent reply. Re-posting the same correlation_id returns the original message."""
        message = state.add_agent_message(session_id, body.sender_id or agent, body.body, body.correlation_id)
        return ok(message.to_dict(), "Message sent")

    @router.post("/sessions/{session_id}/customer-messages", response_model=Envelope,
                 status_code=status.HTTP_201_CREATED)
    async def customer_message(session_id: SessionId, body: CustomerMessageRequest) -> Envelope:
        return ok(state.add_customer_message(session_id, body.body).to_dict())

    @router.post("/sessions/{session_id}/messages/{message_id}/read", response_model=Envelope)
    async def mark_read(
        session_id: SessionId,
        message_id: Annotated[str, Path(description="Message ID")],
    ) -> Envelope:
        return ok(state.mark_read(session_id, message_id).to_dict())

    return router
