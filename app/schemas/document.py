"""Pydantic schemas for knowledge base documents."""

from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class DocumentRead(BaseModel):
    """A document as returned by the API."""

    id: str = Field(..., description="Document ID")
    filename: str = Field(..., description="Original filename")
    content_type: str = Field(..., description="Declared MIME type")
    size_bytes: int = Field(..., description="Size of the upload in bytes")
    status: str = Field(..., description="processing, completed or failed")
    error_message: Optional[str] = Field(None, description="Why processing failed")
    created_at: datetime = Field(..., description="When the document was uploaded")

    model_config = ConfigDict(from_attributes=True)


class DocumentUploadResponse(BaseModel):
    """Returned immediately after upload; processing continues in the background."""

    document_id: str
    status: str
    task_id: Optional[str] = None
    filename: str
    size_bytes: int


class DocumentListResponse(BaseModel):
    total: int
    documents: list[DocumentRead]


class CollectionStats(BaseModel):
    """Aggregate numbers for one user's knowledge base."""

    total_documents: int
    documents_by_status: Dict[str, int]
    total_chunks: int = Field(..., description="Chunks of completed documents")
    total_size_bytes: int = Field(..., description="Bytes of completed documents")
    has_documents: bool = Field(..., description="Whether anything is searchable")
