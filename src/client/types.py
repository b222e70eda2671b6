"""Type definitions and enums for the support inbox client library."""

from enum import Enum


class SessionStatus(str, Enum):
    ACTIVE = "active"
    WAITING = "waiting"
    PENDING = "pending"
    ENDED = "ended"


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class SenderType(str, Enum):
    CUSTOMER = "customer"
    AGENT = "agent"
    BOT = "bot"
    SYSTEM = "system"


class DeliveryState(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    DELIVERED = "delivered"
    FAILED = "failed"


class InboxTab(str, Enum):
    MY_QUEUE = "my_queue"
    ACTIVE = "active"
    PENDING = "pending"


class ActionType(str, Enum):
    LOAD = "load"
    ASSIGN = "assign"
    SEND = "send"
    TRANSFER = "transfer"
    END = "end"
    NOTES = "notes"
    READ = "read"


class ConnectionStatus(str, Enum):
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    CLOSED = "closed"


class ResolutionType(str, Enum):
    RESOLVED = "resolved"
    ESCALATED = "escalated"
    NO_RESPONSE = "no_response"
    DUPLICATE = "duplicate"
