import logging

from fastapi import APIRouter, Depends, Query

from app.api.deps import get_current_user_or_mock, get_search_service
from app.core.config import settings
from app.core.constants import DEFAULT_USER
from app.schemas.search import ContextResponse, SearchResponse, SearchResultRead
from app.services.retrieval import VectorSearchService

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("", response_model=SearchResponse)
async def search(
    query: str = Query(..., min_length=1, description="Search query"),
    limit: int = Query(settings.SEARCH_RESULT_LIMIT, ge=1, le=50, description="Maximum number of results"),
    threshold: float = Query(
        settings.SEARCH_SIMILARITY_THRESHOLD, ge=0.0, le=1.0, description="Minimum cosine similarity"
    ),
    current_user: dict = Depends(get_current_user_or_mock),
    search_service: VectorSearchService = Depends(get_search_service),
):
    """Semantic search over the current user's completed documents."""
    user_id = current_user.get("id", DEFAULT_USER["id"])
    results = await search_service.search(query, user_id, limit=limit, similarity_threshold=threshold)
    return SearchResponse(
        query=query,
        total=len(results),
        results=[SearchResultRead(**result.to_dict()) for result in results],
    )


@router.get("/context", response_model=ContextResponse)
async def get_relevant_context(
    query: str = Query(..., min_length=1, description="The user's chat message"),
    limit: int = Query(settings.SEARCH_RESULT_LIMIT, ge=1, le=50),
    threshold: float = Query(settings.SEARCH_SIMILARITY_THRESHOLD, ge=0.0, le=1.0),
    current_user: dict = Depends(get_current_user_or_mock),
    search_service: VectorSearchService = Depends(get_search_service),
):
    """Knowledge base context block for a chat prompt."""
    user_id = current_user.get("id", DEFAULT_USER["id"])
    context = await search_service.get_relevant_context(query, user_id, limit=limit, similarity_threshold=threshold)
    return ContextResponse(query=query, context=context)
