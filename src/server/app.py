"""FastAPI application factory."""
import logging
from datetime import timedelta
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from src.server.config import ServerConfig, load_config_from_env
from src.server.errors import InboxApiError
from src.server.events import EventBroadcaster
from src.server.inbox_state import InboxState
from src.server.middleware.logging import RequestLoggingMiddleware
from src.server.middleware.rate_limit import RateLimitMiddleware
from src.server.models.responses import Envelope
from src.server.routes.events import create_events_router
from src.server.routes.health import create_health_router
from src.server.routes.messages import create_messages_router
from src.server.routes.sessions import create_sessions_router
from src.state.models.common import utcnow

logger = logging.getLogger(__name__)

_DEMO_SESSIONS = (
    ({"name": "Ada Lovelace", "email": "ada@example.com"}, "billing", "high", 32, "I was charged twice this month."),
    ({"name": "Grace Hopper", "email": "grace@example.com"}, "technical", "medium", 18, "The export button does nothing."),
    ({"name": "Alan Turing", "email": "alan@example.com"}, "general", "low", 3, "Do you ship to Manchester?"),
)


def seed_demo_sessions(state: InboxState) -> None:
    """Queue a few sessions with varied wait times (safe, warning, danger)."""
    for customer, category, priority, waited, text in _DEMO_SESSIONS:
        state.create_session(customer, category=category, priority=priority, first_message=text,
                             waiting_since=utcnow() - timedelta(minutes=waited))
    logger.info("Seeded %d demo sessions", len(_DEMO_SESSIONS))


def create_app(config: Optional[ServerConfig] = None, state: Optional[InboxState] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    When called without arguments (e.g. via uvicorn --factory), loads
    configuration from environment variables.
    """
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    if config is None:
        config = load_config_from_env()
    if state is None:
        state = InboxState(EventBroadcaster(config.subscriber_queue_size))
        if config.seed:
            seed_demo_sessions(state)

    app = FastAPI(
        title="Support Inbox API",
        description="In-memory reference implementation of the agent inbox API",
        version=config.version,
    )
    app.state.inbox = state
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RateLimitMiddleware, requests_per_minute=config.requests_per_minute)
    app.add_exception_handler(InboxApiError, _inbox_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.include_router(create_sessions_router(state))
    app.include_router(create_messages_router(state))
    app.include_router(create_events_router(state.broadcaster, config.keepalive))
    app.include_router(create_health_router(config, state))
    logger.info("Inbox API ready for organization=%s", config.organization_id)
    return app


async def _inbox_error_handler(request: Request, exc: InboxApiError) -> JSONResponse:
    response = Envelope(success=False, data=exc.details, message=exc.message, error_code=exc.error_code)
    return JSONResponse(status_code=exc.status_code, content=response.model_dump(exclude_none=True))


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = {}
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ()) if p != "body"]
        fields[".".join(loc) or "body"] = err.get("msg", "invalid")
    response = Envelope(success=False, data={"fields": fields}, message="Request validation failed",
                        error_code="VALIDATION_ERROR")
    return JSONResponse(status_code=422, content=response.model_dump(exclude_none=True))
