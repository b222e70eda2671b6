"""Inbox controller and its configuration."""
from src.inbox.config import ApiConfig, InboxConfig, RealtimeConfig, load_config_from_env
from src.inbox.controller import InboxController, create_channel
from src.inbox.debounce import Debouncer, TypingDebouncer
from src.inbox.loading import PendingActions
from src.inbox.outcomes import ActionOutcome

__all__ = [
    "ApiConfig", "InboxConfig", "RealtimeConfig", "load_config_from_env",
    "InboxController", "create_channel", "Debouncer", "TypingDebouncer", "PendingActions", "ActionOutcome",
]
