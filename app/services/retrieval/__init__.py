"""Vector search over the knowledge base."""

from app.services.retrieval.service import (
    SearchResult,
    VectorSearchService,
    distance_cutoff,
    format_relevant_context,
    passes_threshold,
    similarity_from_distance,
)

__all__ = [
    "SearchResult",
    "VectorSearchService",
    "distance_cutoff",
    "format_relevant_context",
    "passes_threshold",
    "similarity_from_distance",
]
