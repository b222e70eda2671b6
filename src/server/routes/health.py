"""GET /health endpoint handler."""
from fastapi import APIRouter, status

from src.client._constants import API_PREFIX
from src.server.config import ServerConfig
from src.server.inbox_state import InboxState
from src.server.models.responses import HealthResponse
from src.state.models.common import format_timestamp, utcnow


def create_health_router(config: ServerConfig, state: InboxState) -> APIRouter:
    """Create health router with injected dependencies."""
    router = APIRouter(prefix=API_PREFIX)

    @router.get("/health", response_model=HealthResponse, status_code=status.HTTP_200_OK, tags=["status"])
    async def health_check() -> HealthResponse:
        """Report liveness plus session and subscriber counts."""
        subscribers = state.broadcaster.subscriber_count
        return HealthResponse(
            status="healthy",
            organization_id=config.organization_id,
            version=config.version,
            timestamp=format_timestamp(utcnow()),
            sessions=len(state),
            subscribers=subscribers,
        )

    return router
