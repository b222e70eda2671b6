"""Session state: canonical store, message log, and SLA policy."""
from src.state.messages import MessageLog
from src.state.models import Customer, LastMessage, Message, Session, SessionFilter, WrapUp
from src.state.sla import SlaLevel, SlaPolicy
from src.state.store import SessionDelta, SessionStore, session_sort_key
__all__ = ["MessageLog", "Customer", "LastMessage", "Message", "Session", "SessionFilter", "WrapUp",
           "SlaLevel", "SlaPolicy", "SessionDelta", "SessionStore", "session_sort_key"]
