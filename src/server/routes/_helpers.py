"""Helpers shared by the inbox API routes."""
from typing import Annotated, Any, Optional

from fastapi import Header, Query

from src.server.models.responses import Envelope, page_meta


def current_agent(
    x_agent_id: Annotated[Optional[str], Header()] = None,
    agent_id: Annotated[Optional[str], Query(description="Agent id when no X-Agent-ID header is sent")] = None,
) -> Optional[str]:
    """Acting agent, from the ``X-Agent-ID`` header or ``agent_id`` query parameter."""
    return x_agent_id or agent_id


def ok(data: Any = None, message: str = "") -> Envelope:
    return Envelope(success=True, data=data, message=message)


def paged(items: list[dict[str, Any]], page: int, per_page: int, total: int) -> Envelope:
    return Envelope(success=True, data=items, meta=page_meta(page, per_page, total))
