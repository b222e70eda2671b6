"""State models for the support inbox."""
from src.state.models.common import format_timestamp, parse_timestamp, utcnow
from src.state.models.filters import SessionFilter
from src.state.models.message import Message
from src.state.models.session import Customer, LastMessage, Session, WrapUp

__all__ = [
    "Customer",
    "LastMessage",
    "Message",
    "Session",
    "SessionFilter",
    "WrapUp",
    "format_timestamp",
    "parse_timestamp",
    "utcnow",
]
