"""Pydantic schemas for conversation memory."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class SummaryRead(BaseModel):
    """A conversation summary as returned by the API."""

    id: str
    conversation_id: str
    summary: str
    key_topics: List[str] = Field(default_factory=list)
    importance_score: int = Field(..., ge=1, le=10)
    emotion: Optional[int] = None
    message_count: int
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class CorrectionCreate(BaseModel):
    """A user correction to merge into a conversation's memory."""

    content: str = Field(..., min_length=1, description="Preference or fact, in the user's words")
    importance: int = Field(5, ge=1, le=10, description="Importance from 1 to 10")
    emotion: Optional[int] = Field(None, description="Emotion signal supplied by the client")


class ShouldSummarizeResponse(BaseModel):
    conversation_id: str
    should_summarize: bool
    has_summary: bool


class SummarizeAsyncResponse(BaseModel):
    conversation_id: str
    status: str
    task_id: str


class TopicCount(BaseModel):
    topic: str
    count: int


class MemoryStats(BaseModel):
    total_summaries: int
    average_importance: float
    total_messages: int
    top_topics: List[TopicCount]


class MemoryContextResponse(BaseModel):
    context: str
    summary_count: int
