"""Pydantic schemas for knowledge base search."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class SearchResultRead(BaseModel):
    chunk_id: str
    document_id: str
    document_filename: str
    chunk_index: int
    content: str
    similarity: float = Field(..., description="Cosine similarity in [0, 1]")
    metadata: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(from_attributes=True)


class SearchResponse(BaseModel):
    query: str
    total: int
    results: List[SearchResultRead]


class ContextResponse(BaseModel):
    query: str
    context: str = Field(..., description="Prompt-ready context block")
