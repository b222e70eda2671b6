"""Support inbox client library: transport, identity, errors and wire types.

``InboxApi`` and the payload normalizers live in ``src.client.api`` and
``src.client.normalize``; they depend on ``src.state`` and are imported from
there directly.
"""

from ._constants import API_PREFIX, CLIENT_VERSION
from .auth import AgentIdentity
from .exceptions import (
    AlreadyAssignedError, ChannelDisconnectedError, InboxError, InvalidStateError, NetworkError,
    NotFoundError, RateLimitError, RequestTimeoutError, SessionClosedError, ValidationError,
)
from .transport import Transport
from .types import (
    ActionType, ConnectionStatus, DeliveryState, InboxTab, Priority, ResolutionType, SenderType, SessionStatus,
)

__all__ = [
    "API_PREFIX", "CLIENT_VERSION",
    "AgentIdentity", "Transport",
    "ActionType", "ConnectionStatus", "DeliveryState", "InboxTab", "Priority", "ResolutionType", "SenderType", "SessionStatus",
    "InboxError", "NetworkError", "RequestTimeoutError", "RateLimitError", "AlreadyAssignedError",
    "SessionClosedError", "ValidationError", "ChannelDisconnectedError", "NotFoundError", "InvalidStateError",
]

__version__ = CLIENT_VERSION
