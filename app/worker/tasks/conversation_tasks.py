import logging
from typing import Any, Dict

from app.worker.celery_app import celery_app, run_async
from app.db.session import get_async_session
from app.core.errors import KnowledgeBaseError
from app.services.conversation import ConversationMemoryService

logger = logging.getLogger(__name__)


async def _summarize(conversation_id: str, user_id: str) -> Dict[str, Any]:
    async with get_async_session() as db:
        service = ConversationMemoryService(db)
        summary = await service.maybe_summarize(conversation_id, user_id)
        if summary is None:
            return {"status": "not_needed", "conversation_id": conversation_id}
        return {
            "status": "success",
            "conversation_id": conversation_id,
            "summary_id": summary.id,
            "importance_score": summary.importance_score,
        }


@celery_app.task(name="app.worker.tasks.conversation_tasks.summarize_conversation")
def summarize_conversation(conversation_id: str, user_id: str) -> Dict[str, Any]:
    """Summarize a conversation the user just switched away from.

    Args:
        conversation_id: ID of the conversation to summarize
        user_id: ID of the user who owns the conversation

    Returns:
        Summarization results dictionary
    """
    logger.info(f"TASK: Checking summarization for conversation {conversation_id}")
    try:
        return run_async(_summarize(conversation_id, user_id))
    except KnowledgeBaseError as e:
        # Nobody awaits this task; the summary table is the only observable result
        logger.error(f"Error summarizing conversation {conversation_id}: {str(e)}")
        return {
            "status": "error",
            "reason": str(e),
            "conversation_id": conversation_id
        }
