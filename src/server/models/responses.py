"""Response models for API endpoints."""
from typing import Annotated, Any, Literal, Optional

from pydantic import BaseModel, Field


class PageMeta(BaseModel):
    current_page: int
    per_page: int
    total: int
    last_page: int


class Envelope(BaseModel):
    """Wrapper every endpoint responds with, success or failure."""

    success: bool = True
    data: Any = None
    message: str = ""
    error_code: Optional[str] = None
    meta: Optional[PageMeta] = None


class HealthResponse(BaseModel):
    status: Annotated[Literal["healthy", "degraded"], Field()]
    organization_id: Annotated[str, Field()]
    version: Annotated[str, Field()]
    timestamp: Annotated[str, Field()]
    sessions: int = 0
    subscribers: int = 0


def page_meta(page: int, per_page: int, total: int) -> PageMeta:
    return PageMeta(current_page=page, per_page=per_page, total=total,
                    last_page=max(1, (total + per_page - 1) // per_page))
