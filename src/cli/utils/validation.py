"""Input validation utilities for CLI commands."""

import re

from src.client.types import InboxTab
from src.inbox.config import REALTIME_MODES


def validate_agent_id(agent_id: str) -> str:
    """Validate and return agent ID. Raises ValueError if invalid."""
    if not agent_id or not agent_id.strip():
        raise ValueError("Agent ID cannot be empty")
    agent_id = agent_id.strip()
    if len(agent_id) > 256:
        raise ValueError("Agent ID cannot exceed 256 characters")
    if not re.match(r"^[a-zA-Z0-9_.@-]+$", agent_id):
        raise ValueError(
            "Agent ID can only contain letters, numbers, underscores, dots, @ and hyphens"
        )
    return agent_id


def validate_api_url(url: str) -> str:
    """Validate and return the inbox API base URL. Raises ValueError if invalid."""
    if not url or not url.strip():
        raise ValueError("API URL cannot be empty")
    url = url.strip().rstrip("/")
    if not url.startswith(("https://", "http://")):
        raise ValueError("API URL must start with http:// or https://")
    if len(url) > 2048:
        raise ValueError("API URL cannot exceed 2048 characters")
    return url


def validate_session_id(session_id: str) -> str:
    if not session_id or not session_id.strip():
        raise ValueError("Session ID cannot be empty")
    session_id = session_id.strip()
    if "/" in session_id or len(session_id) > 128:
        raise ValueError(f"Invalid session ID: {session_id!r}")
    return session_id


def validate_message_body(body: str) -> str:
    """Validate and return message text. Raises ValueError if invalid."""
    if not body or not body.strip():
        raise ValueError("Message cannot be empty")
    if len(body) > 5000:
        raise ValueError("Message cannot exceed 5000 characters")
    return body


def validate_tab(tab: str) -> InboxTab:
    normalised = tab.strip().lower().replace("-", "_")
    try:
        return InboxTab(normalised)
    except ValueError as e:
        valid = ", ".join(t.value for t in InboxTab)
        raise ValueError(f"Unknown tab {tab!r}. Valid: {valid}") from e


def validate_realtime_mode(mode: str) -> str:
    mode = mode.strip().lower()
    if mode not in REALTIME_MODES:
        raise ValueError(f"Realtime mode must be one of: {', '.join(REALTIME_MODES)}")
    return mode
