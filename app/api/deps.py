from collections.abc import AsyncGenerator
from functools import lru_cache
from typing import Annotated, Optional

from fastapi import HTTPException, Security, status, Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import jwt
from jose.exceptions import JWTError
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from app.core.config import settings
from app.core.constants import DEFAULT_USER
from app.db.session import AsyncSessionLocal
from app.services.conversation import ConversationMemoryService, ConversationSummarizer
from app.services.embedding import EmbeddingService
from app.services.ingestion import DocumentService, FileService
from app.services.retrieval import VectorSearchService

logger = logging.getLogger(__name__)

security = HTTPBearer()
# Optional security scheme that doesn't raise an error for missing credentials
optional_security = HTTPBearer(auto_error=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting async database session."""
    async with AsyncSessionLocal() as session:
        yield session


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Security(security)],
) -> dict:
    """Get the current authenticated user from JWT token."""
    try:
        # Signature is not verified; only the subject is read
        payload = jwt.decode(
            credentials.credentials,
            "",
            algorithms=settings.AUTH0_ALGORITHMS,
            options={"verify_signature": False},
        )
        user_id = payload.get("sub")
        if not user_id:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid authentication credentials",
            )
        return {"id": user_id}
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
        )


async def get_current_user_or_mock(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(optional_security),
) -> dict:
    """Get the current authenticated user or a mock user for development.

    Args:
        credentials: Optional HTTP auth credentials

    Returns:
        User dict with ID
    """
    if credentials:
        try:
            return await get_current_user(credentials)
        except HTTPException:
            # Fall back to mock user if authentication fails
            logger.warning("Authentication failed, using mock user")
            return DEFAULT_USER

    # No credentials provided, use mock user
    logger.warning("No authentication provided, using mock user")
    return DEFAULT_USER


@lru_cache
def get_embedding_service() -> EmbeddingService:
    """Shared embedding client for the process."""
    return EmbeddingService()


@lru_cache
def get_summarizer() -> ConversationSummarizer:
    return ConversationSummarizer()


@lru_cache
def get_file_service() -> FileService:
    return FileService()


async def get_document_service(
    db: AsyncSession = Depends(get_db),
    embedding_service: EmbeddingService = Depends(get_embedding_service),
    file_service: FileService = Depends(get_file_service),
) -> DocumentService:
    return DocumentService(db, embedding_service=embedding_service, file_service=file_service)


async def get_search_service(
    db: AsyncSession = Depends(get_db),
    embedding_service: EmbeddingService = Depends(get_embedding_service),
) -> VectorSearchService:
    return VectorSearchService(db, embedding_service=embedding_service)


async def get_memory_service(
    db: AsyncSession = Depends(get_db),
    summarizer: ConversationSummarizer = Depends(get_summarizer),
) -> ConversationMemoryService:
    return ConversationMemoryService(db, summarizer=summarizer)
