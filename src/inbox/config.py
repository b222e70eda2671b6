"""Inbox controller configuration."""
import logging
import os
from dataclasses import dataclass, field

from src.state.sla import SlaPolicy

logger = logging.getLogger(__name__)

_RECOGNISED_BOOL_VALUES = frozenset(
    ("1", "true", "yes", "0", "false", "no")
)

REALTIME_MODES = ("sse", "polling", "off")


@dataclass(frozen=True)
class ApiConfig:
    base_url: str = "http://localhost:8000"
    agent_id: str = ""
    token: str = ""
    organization_id: str | None = None
    timeout: float = 10.0
    max_retries: int = 3


@dataclass(frozen=True)
class RealtimeConfig:
    """How the controller receives pushed changes.

    ``mode`` is ``sse`` (event stream), ``polling`` (the list is re-fetched
    every ``poll_interval`` seconds) or ``off``.
    """

    mode: str = "sse"
    poll_interval: float = 3.0
    backoff_base: float = 1.0
    backoff_cap: float = 30.0
    typing_ttl: float = 6.0

    def __post_init__(self) -> None:
        if self.mode not in REALTIME_MODES:
            raise ValueError(f"realtime mode must be one of {', '.join(REALTIME_MODES)}, got {self.mode!r}")
        if self.poll_interval <= 0:
            raise ValueError("poll_interval must be positive")


@dataclass(frozen=True)
class InboxConfig:
    api: ApiConfig = field(default_factory=ApiConfig)
    realtime: RealtimeConfig = field(default_factory=RealtimeConfig)
    sla: SlaPolicy = field(default_factory=SlaPolicy)
    action_timeout: float = 10.0
    typing_stop_delay: float = 1.0
    search_debounce: float = 0.3
    page_size: int = 20
    mark_read_on_select: bool = True


def _parse_bool(value: str, default: bool) -> bool:
    """Parse a boolean environment variable with explicit default.

    Recognises ``true/1/yes`` and ``false/0/no`` (case-insensitive).
    Returns *default* when the value is empty or unset and logs a warning
    for anything else.
    """
    if not value:
        return default
    normalised = value.lower()
    if normalised not in _RECOGNISED_BOOL_VALUES:
        logger.warning(
            "Unrecognised boolean value %r, using default %s. "
            "Expected one of: true/1/yes or false/0/no.",
            value,
            default,
        )
        return default
    return normalised in ("1", "true", "yes")


def load_config_from_env() -> InboxConfig:
    agent_id = os.environ.get("INBOX_AGENT_ID")
    if not agent_id:
        raise ValueError("Missing: INBOX_AGENT_ID")

    mode = os.environ.get("INBOX_REALTIME", "sse").lower()
    if mode not in REALTIME_MODES:
        logger.warning("Unknown INBOX_REALTIME %r, falling back to polling", mode)
        mode = "polling"

    return InboxConfig(
        api=ApiConfig(
            base_url=os.environ.get("INBOX_API_URL", "http://localhost:8000"),
            agent_id=agent_id,
            token=os.environ.get("INBOX_API_TOKEN", ""),
            organization_id=os.environ.get("INBOX_ORGANIZATION_ID") or None,
            timeout=float(os.environ.get("INBOX_HTTP_TIMEOUT", "10.0")),
        ),
        realtime=RealtimeConfig(
            mode=mode,
            poll_interval=float(os.environ.get("INBOX_POLL_INTERVAL", "3.0")),
        ),
        sla=SlaPolicy(
            warning_after=int(os.environ.get("INBOX_SLA_WARNING_MINUTES", "15")),
            danger_after=int(os.environ.get("INBOX_SLA_DANGER_MINUTES", "30")),
        ),
        action_timeout=float(os.environ.get("INBOX_ACTION_TIMEOUT", "10.0")),
        typing_stop_delay=float(os.environ.get("INBOX_TYPING_STOP_DELAY", "1.0")),
        mark_read_on_select=_parse_bool(os.environ.get("INBOX_MARK_READ_ON_SELECT", ""), default=True),
    )
