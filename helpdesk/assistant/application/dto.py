"""
Assistant Application DTOs
==========================

Data Transfer Objects for the assistant API layer.

Pydantic models for request/response validation.
"""

from datetime import datetime
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


FaqSourceStr = Literal["manual", "pdf", "conversation"]


# ========== Request DTOs ==========

class ChatRequest(BaseModel):
    """
    Request model for a chat message.

    `message` is typed loosely on purpose: emptiness, type and length are
    checked by the orchestrator after the availability gate.
    """
    message: Any = Field(None, description="User message (max 4000 characters)")


class AvailabilityUpdateRequest(BaseModel):
    """Request model for switching the assistant on or off."""
    model_config = ConfigDict(strict=True)

    enabled: bool = Field(..., description="Whether the assistant may answer chats")


class FaqCreateRequest(BaseModel):
    """Request model for a manual FAQ entry."""
    question: str = Field(..., min_length=1, max_length=1000)
    answer: str = Field(..., min_length=1, max_length=5000)


class ExtractFaqRequest(BaseModel):
    """Request model for document FAQ extraction."""
    document_url: str = Field(..., min_length=1, description="URL or reference of the FAQ document")


class LearnFaqRequest(BaseModel):
    """Request model for learning from one exchange."""
    question: str = Field(..., min_length=1)
    answer: str = Field(..., min_length=1)


# ========== Response DTOs ==========

class ChatResponse(BaseModel):
    """Response model for a chat message."""
    response: str


class MemoryTurnInfo(BaseModel):
    """One remembered exchange."""
    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None
    message: str
    response: str
    created_at: datetime


class MemoryHistoryResponse(BaseModel):
    """Response model for a user's recent conversation, oldest first."""
    turns: List[MemoryTurnInfo]


class AvailabilityResponse(BaseModel):
    """Response model for the assistant availability switch."""
    model_config = ConfigDict(from_attributes=True)

    enabled: bool
    faq_document_url: Optional[str] = None
    updated_at: datetime


class FaqEntryInfo(BaseModel):
    """FAQ entry information in API responses."""
    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None
    question: str
    answer: str
    source: FaqSourceStr
    created_at: datetime


class FaqListResponse(BaseModel):
    """Response model for the FAQ knowledge base."""
    entries: List[FaqEntryInfo]
    total: int


class ExtractFaqResponse(BaseModel):
    """Response model for document FAQ extraction."""
    document_url: str
    extracted: int
    saved: int
    entries: List[FaqEntryInfo]


class LearnFaqResponse(BaseModel):
    """Response model for learning from one exchange."""
    saved: bool
    entry: Optional[FaqEntryInfo] = None
