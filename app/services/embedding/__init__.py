"""Embedding provider adapter."""

from app.services.embedding.service import EmbeddingService, validate_embedding_dimensions

__all__ = ["EmbeddingService", "validate_embedding_dimensions"]
