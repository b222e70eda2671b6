"""Session endpoints: listing, lifecycle actions, notes and statistics."""
import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Path, Query, status

from src.client._constants import API_PREFIX
from src.client.types import SessionStatus
from src.server.inbox_state import InboxState
from src.server.models.requests import (
    AssignRequest, CreateSessionRequest, EndSessionRequest, NotesRequest, RatingRequest, StatusRequest,
    TransferRequest, TypingRequest,
)
from src.server.models.responses import Envelope
from src.server.routes._helpers import current_agent, ok, paged

logger = logging.getLogger(__name__)

AgentId = Annotated[Optional[str], Depends(current_agent)]
SessionId = Annotated[str, Path(description="Session ID")]


def create_sessions_router(state: InboxState) -> APIRouter:
    """Create the sessions router over the shared in-memory state."""
    router = APIRouter(prefix=API_PREFIX, tags=["sessions"])

    def _list(agent: Optional[str], view: str, page: int, per_page: int, search: Optional[str],
              status_filter: Optional[str], priority: Optional[str], category: Optional[str]) -> Envelope:
        records, total = state.list_sessions(agent, view, search, status_filter, priority, category, page, per_page)
        return paged([r.to_dict() for r in records], page, per_page, total)

    @router.get("/sessions", response_model=Envelope)
    async def list_sessions(
        agent: AgentId,
        page: Annotated[int, Query(ge=1)] = 1,
        per_page: Annotated[int, Query(ge=1, le=100)] = 20,
        search: Optional[str] = None,
        status_filter: Annotated[Optional[str], Query(alias="status")] = None,
        priority: Optional[str] = None,
        category: Optional[str] = None,
    ) -> Envelope:
        """The queue plus every session owned by the agent."""
        return _list(agent, "all", page, per_page, search, status_filter, priority, category)

    @router.get("/sessions/active", response_model=Envelope)
    async def list_active(
        agent: AgentId,
        page: Annotated[int, Query(ge=1)] = 1,
        per_page: Annotated[int, Query(ge=1, le=100)] = 20,
        search: Optional[str] = None,
        priority: Optional[str] = None,
        category: Optional[str] = None,
    ) -> Envelope:
        return _list(agent, "active", page, per_page, search, None, priority, category)

    @router.get("/sessions/pending", response_model=Envelope)
    async def list_pending(
        agent: AgentId,
        page: Annotated[int, Query(ge=1)] = 1,
        per_page: Annotated[int, Query(ge=1, le=100)] = 20,
        search: Optional[str] = None,
        priority: Optional[str] = None,
        category: Optional[str] = None,
    ) -> Envelope:
        return _list(agent, "pending", page, per_page, search, None, priority, category)

    @router.post("/sessions", response_model=Envelope, status_code=status.HTTP_201_CREATED)
    async def create_session(body: CreateSessionRequest) -> Envelope:
        """Customer side: open a conversation. It enters the queue as pending."""
        record = state.create_session(
            body.customer.model_dump(), category=body.category, priority=body.priority,
            tags=body.tags, first_message=body.message,
        )
        return ok(record.to_dict(), "Session created")

    @router.get("/sessions/{session_id}", response_model=Envelope)
    async def get_session(session_id: SessionId) -> Envelope:
        return ok(state.get(session_id).to_dict())

    @router.post("/sessions/{session_id}/assign", response_model=Envelope)
    async def assign(session_id: SessionId, body: AssignRequest) -> Envelope:
        record = state.assign(session_id, body.agent_id, body.expected_agent_id)
        return ok(record.to_dict(), "Session assigned")

    @router.post("/sessions/{session_id}/transfer", response_model=Envelope)
    async def transfer(session_id: SessionId, body: TransferRequest) -> Envelope:
        record = state.transfer(session_id, body.agent_id, body.reason, body.notes)
        return ok(record.to_dict(), "Session transferred")

    @router.post("/sessions/{session_id}/end", response_model=Envelope)
    async def end(session_id: SessionId, body: EndSessionRequest) -> Envelope:
        record = state.end(session_id, body.category, body.resolution_type, body.resolution_notes, body.tags)
        return ok(record.to_dict(), "Session ended")

    @router.post("/sessions/{session_id}/status", response_model=Envelope)
    async def set_status(session_id: SessionId, body: StatusRequest) -> Envelope:
        record = state.set_status(session_id, SessionStatus(body.status))
        return ok(record.to_dict())

    @router.patch("/sessions/{session_id}/notes", response_model=Envelope)
    async def update_notes(session_id: SessionId, body: NotesRequest) -> Envelope:
        return ok(state.update_notes(session_id, body.internal_notes).to_dict())

    @router.post("/sessions/{session_id}/typing", response_model=Envelope)
    async def typing(session_id: SessionId, body: TypingRequest, agent: AgentId) -> Envelope:
        participant = body.agent_id or agent or "customer"
        state.typing(session_id, participant, body.participant_type, body.is_typing)
        return ok()

    @router.post("/sessions/{session_id}/rating", response_model=Envelope)
    async def rate(session_id: SessionId, body: RatingRequest) -> Envelope:
        return ok(state.rate(session_id, body.rating).to_dict())

    @router.get("/statistics", response_model=Envelope)
    async def statistics(agent: AgentId) -> Envelope:
        return ok(state.statistics(agent))

    return router
