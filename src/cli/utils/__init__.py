"""CLI utilities."""

from .config import AgentProfile, ConfigError, ConfigManager
from .validation import (
    validate_agent_id,
    validate_api_url,
    validate_message_body,
    validate_realtime_mode,
    validate_session_id,
    validate_tab,
)

__all__ = [
    "AgentProfile",
    "ConfigError",
    "ConfigManager",
    "validate_agent_id",
    "validate_api_url",
    "validate_message_body",
    "validate_realtime_mode",
    "validate_session_id",
    "validate_tab",
]
