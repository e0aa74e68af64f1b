"""Pydantic schemas for API endpoints and data validation."""

from app.schemas.document import CollectionStats, DocumentListResponse, DocumentRead, DocumentUploadResponse
from app.schemas.memory import (
    CorrectionCreate,
    MemoryContextResponse,
    MemoryStats,
    ShouldSummarizeResponse,
    SummarizeAsyncResponse,
    SummaryRead,
)
from app.schemas.search import ContextResponse, SearchResponse, SearchResultRead

__all__ = [
    "CollectionStats",
    "ContextResponse",
    "CorrectionCreate",
    "DocumentListResponse",
    "DocumentRead",
    "DocumentUploadResponse",
    "MemoryContextResponse",
    "MemoryStats",
    "SearchResponse",
    "SearchResultRead",
    "ShouldSummarizeResponse",
    "SummarizeAsyncResponse",
    "SummaryRead",
]
