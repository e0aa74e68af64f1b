"""Conversation memory endpoints: summaries, corrections and prompt context."""

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from typing import List, Optional
import logging

from app.api.deps import get_current_user_or_mock, get_memory_service, get_summarizer
from app.core.config import settings
from app.core.constants import DEFAULT_USER
from app.db.session import get_async_session
from app.schemas.memory import (
    CorrectionCreate,
    MemoryContextResponse,
    MemoryStats,
    ShouldSummarizeResponse,
    SummarizeAsyncResponse,
    SummaryRead,
)
from app.services.conversation import ConversationMemoryService
from app.worker.tasks.conversation_tasks import summarize_conversation

logger = logging.getLogger(__name__)
router = APIRouter()


async def _summarize_in_process(conversation_id: str, user_id: str) -> None:
    """Summarize inside the API process (development mode)."""
    async with get_async_session() as db:
        service = ConversationMemoryService(db, summarizer=get_summarizer())
        await service.maybe_summarize(conversation_id, user_id)


@router.get("/conversations/{conversation_id}/should-summarize", response_model=ShouldSummarizeResponse)
async def should_summarize(
    conversation_id: str,
    memory_service: ConversationMemoryService = Depends(get_memory_service),
):
    """Whether a conversation is eligible for summarization."""
    return ShouldSummarizeResponse(
        conversation_id=conversation_id,
        should_summarize=await memory_service.should_summarize(conversation_id),
        has_summary=await memory_service.has_summary(conversation_id),
    )


@router.post("/conversations/{conversation_id}/summary", response_model=Optional[SummaryRead])
async def generate_summary(
    conversation_id: str,
    current_user: dict = Depends(get_current_user_or_mock),
    memory_service: ConversationMemoryService = Depends(get_memory_service),
):
    """
    Summarize a conversation now and store the result.

    Returns null when the conversation has no messages.
    """
    user_id = current_user.get("id", DEFAULT_USER["id"])
    summary = await memory_service.generate_summary(conversation_id, user_id)
    return SummaryRead.model_validate(summary) if summary else None


@router.post("/conversations/{conversation_id}/summarize-async", status_code=202,
             response_model=SummarizeAsyncResponse)
async def summarize_on_switch(
    conversation_id: str,
    background_tasks: BackgroundTasks,
    current_user: dict = Depends(get_current_user_or_mock),
):
    """
    Fire-and-forget summarization, used when the user switches conversations.

    The result is visible on a later read of the conversation's summary.
    """
    user_id = current_user.get("id", DEFAULT_USER["id"])
    if settings.CELERY_TASK_ALWAYS_EAGER:
        background_tasks.add_task(_summarize_in_process, conversation_id, user_id)
        task_id = "in-process"
    else:
        task_id = summarize_conversation.delay(conversation_id, user_id).id
    logger.info(f"Queued summarization of conversation {conversation_id} for user {user_id}")
    return SummarizeAsyncResponse(conversation_id=conversation_id, status="queued", task_id=task_id)


@router.post("/conversations/{conversation_id}/corrections", response_model=SummaryRead)
async def record_correction(
    conversation_id: str,
    correction: CorrectionCreate,
    current_user: dict = Depends(get_current_user_or_mock),
    memory_service: ConversationMemoryService = Depends(get_memory_service),
):
    """Merge a user correction into the conversation's memory."""
    user_id = current_user.get("id", DEFAULT_USER["id"])
    summary = await memory_service.record_correction(
        conversation_id,
        user_id,
        content=correction.content,
        importance=correction.importance,
        emotion=correction.emotion,
    )
    return SummaryRead.model_validate(summary)


@router.get("/conversations/{conversation_id}/summary", response_model=SummaryRead)
async def get_summary(
    conversation_id: str,
    current_user: dict = Depends(get_current_user_or_mock),
    memory_service: ConversationMemoryService = Depends(get_memory_service),
):
    user_id = current_user.get("id", DEFAULT_USER["id"])
    return SummaryRead.model_validate(await memory_service.get_summary(conversation_id, user_id))


@router.get("/summaries", response_model=List[SummaryRead])
async def get_recent_summaries(
    limit: int = Query(settings.RECENT_SUMMARY_LIMIT, ge=1, le=100, description="Maximum number of summaries"),
    min_importance: int = Query(settings.RECENT_SUMMARY_MIN_IMPORTANCE, ge=1, le=10),
    current_user: dict = Depends(get_current_user_or_mock),
    memory_service: ConversationMemoryService = Depends(get_memory_service),
):
    """Most recent summaries at or above an importance floor."""
    user_id = current_user.get("id", DEFAULT_USER["id"])
    summaries = await memory_service.get_recent_summaries(user_id, limit=limit, min_importance=min_importance)
    return [SummaryRead.model_validate(summary) for summary in summaries]


@router.get("/summaries/context", response_model=MemoryContextResponse)
async def get_memory_context(
    limit: int = Query(settings.RECENT_SUMMARY_LIMIT, ge=1, le=100),
    min_importance: int = Query(settings.RECENT_SUMMARY_MIN_IMPORTANCE, ge=1, le=10),
    current_user: dict = Depends(get_current_user_or_mock),
    memory_service: ConversationMemoryService = Depends(get_memory_service),
):
    """Recent summaries rendered as a chat prompt context block."""
    user_id = current_user.get("id", DEFAULT_USER["id"])
    summaries = await memory_service.get_recent_summaries(user_id, limit=limit, min_importance=min_importance)
    return MemoryContextResponse(
        context=memory_service.format_memory_context(summaries),
        summary_count=len(summaries),
    )


@router.get("/stats", response_model=MemoryStats)
async def get_memory_stats(
    current_user: dict = Depends(get_current_user_or_mock),
    memory_service: ConversationMemoryService = Depends(get_memory_service),
):
    user_id = current_user.get("id", DEFAULT_USER["id"])
    return MemoryStats(**await memory_service.get_summary_stats(user_id))


@router.delete("/summaries/{summary_id}", status_code=200)
async def delete_summary(
    summary_id: str,
    current_user: dict = Depends(get_current_user_or_mock),
    memory_service: ConversationMemoryService = Depends(get_memory_service),
):
    """Delete one of the current user's summaries."""
    user_id = current_user.get("id", DEFAULT_USER["id"])
    await memory_service.delete_summary(summary_id, user_id)
    return {"status": "success", "message": f"Summary {summary_id} deleted", "summary_id": summary_id}
