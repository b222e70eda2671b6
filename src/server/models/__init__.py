"""Pydantic models for request/response validation."""
from src.server.models.requests import (
    AssignRequest,
    CreateSessionRequest,
    CustomerIn,
    CustomerMessageRequest,
    EndSessionRequest,
    NotesRequest,
    RatingRequest,
    SendMessageRequest,
    StatusRequest,
    TransferRequest,
    TypingRequest,
)
from src.server.models.responses import Envelope, HealthResponse, PageMeta, page_meta

__all__ = [
    "AssignRequest",
    "CreateSessionRequest",
    "CustomerIn",
    "CustomerMessageRequest",
    "EndSessionRequest",
    "NotesRequest",
    "RatingRequest",
    "SendMessageRequest",
    "StatusRequest",
    "TransferRequest",
    "TypingRequest",
    "Envelope",
    "HealthResponse",
    "PageMeta",
    "page_meta",
]
