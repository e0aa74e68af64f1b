"""Nearest-neighbour search over a user's document chunks."""

from dataclasses import dataclass
import logging
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.constants import NO_RELEVANT_DOCUMENTS
from app.core.errors import EmbeddingDimensionError
from app.db.models.document import Document, DocumentChunk, DocumentStatus
from app.services.embedding import EmbeddingService

logger = logging.getLogger(__name__)

CONTEXT_HEADER = "RELEVANT KNOWLEDGE BASE CONTEXT:"
CONTEXT_SEPARATOR = "\n\n---\n\n"
CONTEXT_INSTRUCTION = (
    "Please use the above context to answer the user's question. "
    "If the context doesn't contain relevant information, acknowledge that and use your general knowledge."
)


def similarity_from_distance(distance: float) -> float:
    """Cosine similarity for a cosine distance."""
    return 1.0 - distance


def distance_cutoff(similarity_threshold: float) -> float:
    """Largest cosine distance a result may have and still meet the threshold."""
    return 1.0 - similarity_threshold


def passes_threshold(distance: float, similarity_threshold: float) -> bool:
    return similarity_from_distance(distance) >= similarity_threshold


@dataclass
class SearchResult:
    """One chunk returned by a search, with its source document."""

    chunk_id: str
    document_id: str
    document_filename: str
    chunk_index: int
    content: str
    similarity: float
    metadata: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chunk_id": self.chunk_id,
            "document_id": self.document_id,
            "document_filename": self.document_filename,
            "chunk_index": self.chunk_index,
            "content": self.content,
            "similarity": self.similarity,
            "metadata": self.metadata or {},
        }


def format_relevant_context(results: Sequence[SearchResult]) -> str:
    """Render search results as a prompt context block."""
    if not results:
        return NO_RELEVANT_DOCUMENTS

    parts = [
        f"[Document {i}: {result.document_filename or 'Unknown'} "
        f"(Relevance: {result.similarity * 100:.1f}%)]\n{result.content}"
        for i, result in enumerate(results, start=1)
    ]
    return f"{CONTEXT_HEADER}\n\n{CONTEXT_SEPARATOR.join(parts)}\n\n{CONTEXT_INSTRUCTION}"


class VectorSearchService:
    """Service for semantic search over completed documents."""

    def __init__(self, db_session: AsyncSession, embedding_service: Optional[EmbeddingService] = None):
        self.db = db_session
        self.embedding_service = embedding_service or EmbeddingService()

    @staticmethod
    def searchable_chunks(user_id: str, *columns):
        """Chunks of the user's completed documents, with the document filename."""
        return (
            select(
                DocumentChunk.id,
                DocumentChunk.document_id,
                DocumentChunk.chunk_index,
                DocumentChunk.content,
                DocumentChunk.chunk_metadata,
                Document.filename,
                *columns,
            )
            .join(Document, DocumentChunk.document_id == Document.id)
            .where(Document.user_id == user_id)
            .where(Document.status == DocumentStatus.COMPLETED.value)
        )

    def build_query(self, query_vector: List[float], user_id: str, limit: int, similarity_threshold: float):
        """Cosine-distance query scoped to the user's completed documents."""
        distance = DocumentChunk.embedding.cosine_distance(query_vector).label("distance")
        return (
            self.searchable_chunks(user_id, distance)
            .where(distance <= distance_cutoff(similarity_threshold))
            .order_by(distance)
            .limit(limit)
        )

    async def search(
        self,
        query: str,
        user_id: str,
        limit: int = settings.SEARCH_RESULT_LIMIT,
        similarity_threshold: float = settings.SEARCH_SIMILARITY_THRESHOLD,
    ) -> List[SearchResult]:
        """Find the chunks most similar to ``query``.

        Args:
            query: Free-text query
            user_id: Only this user's completed documents are searched
            limit: Maximum number of results
            similarity_threshold: Minimum cosine similarity in [0, 1]

        Returns:
            Results ordered by descending similarity

        Raises:
            ValueError: On an invalid limit or threshold
            ProviderError: If the query cannot be embedded
            EmbeddingDimensionError: If the query vector has the wrong length
        """
        if limit < 1:
            raise ValueError(f"limit must be at least 1, got {limit}")
        if not 0.0 <= similarity_threshold <= 1.0:
            raise ValueError(f"similarity_threshold must be within [0, 1], got {similarity_threshold}")

        query_vector = await self.embedding_service.embed(query)
        if len(query_vector) != settings.EMBEDDING_DIMENSIONS:
            raise EmbeddingDimensionError(
                expected=settings.EMBEDDING_DIMENSIONS, actual=len(query_vector), source="query embedding"
            )

        rows = await self.db.execute(self.build_query(query_vector, user_id, limit, similarity_threshold))

        results = []
        for row in rows.all():
            if not passes_threshold(row.distance, similarity_threshold):
                continue
            results.append(SearchResult(
                chunk_id=row.id,
                document_id=row.document_id,
                document_filename=row.filename,
                chunk_index=row.chunk_index,
                content=row.content,
                similarity=similarity_from_distance(row.distance),
                metadata=row.chunk_metadata,
            ))

        logger.info(f"Search for user {user_id} returned {len(results)} results "
                    f"(limit={limit}, threshold={similarity_threshold})")
        return results[:limit]

    async def get_relevant_context(
        self,
        query: str,
        user_id: str,
        limit: int = settings.SEARCH_RESULT_LIMIT,
        similarity_threshold: float = settings.SEARCH_SIMILARITY_THRESHOLD,
    ) -> str:
        """Search and render the results as a context block for the chat prompt."""
        results = await self.search(query, user_id, limit=limit, similarity_threshold=similarity_threshold)
        return format_relevant_context(results)
