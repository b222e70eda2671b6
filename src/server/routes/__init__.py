"""Route handlers for the inbox API."""
from src.server.routes.events import create_events_router
from src.server.routes.health import create_health_router
from src.server.routes.messages import create_messages_router
from src.server.routes.sessions import create_sessions_router
__all__ = [
    "create_events_router",
    "create_health_router",
    "create_messages_router",
    "create_sessions_router",
]
