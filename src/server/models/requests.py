"""Request models for API endpoints."""
from typing import Annotated, Literal, Optional

from pydantic import BaseModel, Field, field_validator

ResolutionLiteral = Literal["resolved", "escalated", "no_response", "duplicate"]
PriorityLiteral = Literal["high", "medium", "low"]


def _not_blank(v: str) -> str:
    if not v.strip():
        raise ValueError("Must not be blank")
    return v


class CustomerIn(BaseModel):
    name: Annotated[str, Field(max_length=200)] = ""
    email: Annotated[str, Field(max_length=320)] = ""
    phone: Annotated[str, Field(max_length=50)] = ""


class CreateSessionRequest(BaseModel):
    customer: CustomerIn
    category: Annotated[str, Field(min_length=1, max_length=100)] = "general"
    priority: PriorityLiteral = "medium"
    tags: list[str] = Field(default_factory=list)
    message: Optional[Annotated[str, Field(max_length=5000)]] = None


class CustomerMessageRequest(BaseModel):
    body: Annotated[str, Field(min_length=1, max_length=5000)]

    @field_validator("body")
    @classmethod
    def validate_body(cls, v: str) -> str:
        return _not_blank(v)


class SendMessageRequest(BaseModel):
    body: Annotated[str, Field(min_length=1, max_length=5000)]
    correlation_id: Optional[Annotated[str, Field(max_length=100)]] = None
    sender_id: Optional[str] = None

    @field_validator("body")
    @classmethod
    def validate_body(cls, v: str) -> str:
        return _not_blank(v)


class AssignRequest(BaseModel):
    agent_id: Annotated[str, Field(min_length=1)]
    expected_agent_id: Optional[str] = None


class TransferRequest(BaseModel):
    agent_id: Optional[str] = None
    reason: Annotated[str, Field(min_length=1, max_length=500)]
    notes: Annotated[str, Field(max_length=2000)] = ""

    @field_validator("reason")
    @classmethod
    def validate_reason(cls, v: str) -> str:
        return _not_blank(v)


class EndSessionRequest(BaseModel):
    category: Annotated[str, Field(min_length=1, max_length=100)]
    resolution_type: ResolutionLiteral = "resolved"
    resolution_notes: Annotated[str, Field(max_length=5000)] = ""
    tags: list[str] = Field(default_factory=list)

    @field_validator("category")
    @classmethod
    def validate_category(cls, v: str) -> str:
        return _not_blank(v)


class StatusRequest(BaseModel):
    status: Literal["active", "waiting"]


class NotesRequest(BaseModel):
    internal_notes: Annotated[str, Field(max_length=10000)]


class TypingRequest(BaseModel):
    agent_id: Optional[str] = None
    participant_type: Literal["agent", "customer"] = "agent"
    is_typing: bool = True


class RatingRequest(BaseModel):
    rating: Annotated[int, Field(ge=1, le=5)]
