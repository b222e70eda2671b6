"""Reference server configuration."""
import logging
import os
from dataclasses import dataclass

from src.inbox.config import _parse_bool

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ServerConfig:
    """Settings for the in-memory inbox API.

    ``seed`` loads a handful of demo sessions at startup. ``keepalive`` is
    the idle interval, in seconds, after which the event stream sends a
    ``keepalive`` event.
    """

    organization_id: str = "default"
    seed: bool = False
    requests_per_minute: int = 600
    keepalive: float = 15.0
    subscriber_queue_size: int = 1000
    version: str = "0.1.0"


def load_config_from_env() -> ServerConfig:
    return ServerConfig(
        organization_id=os.environ.get("INBOX_SERVER_ORG", "default"),
        seed=_parse_bool(os.environ.get("INBOX_SERVER_SEED", ""), default=False),
        requests_per_minute=int(os.environ.get("INBOX_SERVER_RATE_LIMIT", "600")),
        keepalive=float(os.environ.get("INBOX_SERVER_KEEPALIVE", "15.0")),
    )
