"""Shared fixtures: record factories, the reference server and API clients."""
from datetime import datetime, timedelta, timezone

import httpx
import pytest
from fastapi.testclient import TestClient

from src.client.api import InboxApi
from src.client.auth import AgentIdentity
from src.client.transport import Transport
from src.client.types import DeliveryState, Priority, SenderType, SessionStatus
from src.server.app import create_app
from src.server.config import ServerConfig
from src.server.events import EventBroadcaster
from src.server.inbox_state import InboxState
from src.state.models.message import Message
from src.state.models.session import Customer, Session

T0 = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_session():
    """Factory for Session records; ``minutes`` offsets last_activity_at from T0."""
    def _make(session_id: str = "s1", status: SessionStatus = SessionStatus.PENDING,
              agent: str | None = None, minutes: float = 0, name: str = "Ada Lovelace",
              email: str = "ada@example.com", **kwargs) -> Session:
        if agent is None and status in (SessionStatus.ACTIVE, SessionStatus.WAITING):
            agent = "agent-1"
        return Session(
            id=session_id, last_activity_at=T0 + timedelta(minutes=minutes),
            customer=Customer(name=name, email=email), status=status,
            priority=kwargs.pop("priority", Priority.MEDIUM), assigned_agent_id=agent, **kwargs,
        )
    return _make


@pytest.fixture
def make_message():
    """Factory for Message records; ``seconds`` offsets created_at from T0."""
    def _make(message_id: str = "m1", session_id: str = "s1", sender: SenderType = SenderType.CUSTOMER,
              body: str = "Hello", seconds: float = 0, **kwargs) -> Message:
        delivered = kwargs.pop("delivered_at", None)
        if delivered is None and sender != SenderType.AGENT:
            delivered = T0 + timedelta(seconds=seconds)
        return Message(
            id=message_id, session_id=session_id, sender_type=sender, body=body,
            created_at=T0 + timedelta(seconds=seconds), delivered_at=delivered,
            delivery_state=kwargs.pop("delivery_state", DeliveryState.DELIVERED), **kwargs,
        )
    return _make


@pytest.fixture
def server_config() -> ServerConfig:
    return ServerConfig(organization_id="acme", requests_per_minute=10_000, keepalive=0.05)


@pytest.fixture
def inbox_state() -> InboxState:
    return InboxState(EventBroadcaster(queue_size=100))


@pytest.fixture
def app(server_config: ServerConfig, inbox_state: InboxState):
    return create_app(server_config, inbox_state)


@pytest.fixture
def client(app) -> TestClient:
    with TestClient(app) as c:
        yield c


@pytest.fixture
async def api_factory(app):
    """Open InboxApi clients bound to the in-process app, one per agent id."""
    transports: list[Transport] = []

    async def _open(agent_id: str) -> InboxApi:
        transport = Transport("http://inbox.test", AgentIdentity(agent_id, token="secret"), max_retries=1,
                              transport=httpx.ASGITransport(app=app))
        await transport.open()
        transports.append(transport)
        return InboxApi(transport)

    yield _open
    for transport in transports:
        await transport.close()
