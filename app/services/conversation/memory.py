"""Conversation memory: durable, append-only summaries of past conversations."""

from collections import Counter
from datetime import datetime, UTC
import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence

from sqlalchemy import desc, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.constants import CORRECTION_TOPICS
from app.db.models.chat_message import ChatMessage
from app.db.models.conversation import Conversation
from app.db.models.conversation_summary import ConversationSummary
from app.services.authorization import ensure_owner
from app.services.conversation.summarization import ConversationSummarizer

logger = logging.getLogger(__name__)

MEMORY_HEADER = "CONVERSATION MEMORY (summaries of past conversations with this user):"
MEMORY_SEPARATOR = "\n\n---\n\n"
MEMORY_INSTRUCTION = (
    "Use these memories to personalize your answer when they are relevant. "
    "Treat corrections as the user's current preferences."
)


def merge_topics(existing: Optional[Iterable[str]], new: Optional[Iterable[str]]) -> List[str]:
    """Union of two topic lists, keeping first-seen order."""
    merged: List[str] = []
    for topic in list(existing or []) + list(new or []):
        if topic and topic not in merged:
            merged.append(topic)
    return merged


def format_memory_context(summaries: Sequence[ConversationSummary]) -> str:
    """Render summaries as a prompt context block; empty input renders as ``""``."""
    if not summaries:
        return ""

    parts = []
    for i, summary in enumerate(summaries, start=1):
        date = summary.created_at.strftime("%Y-%m-%d") if summary.created_at else "unknown date"
        topics = ", ".join(summary.key_topics or []) or "none"
        parts.append(
            f"[Memory {i}: {date} (Importance: {summary.importance_score}/10, Topics: {topics})]\n"
            f"{summary.summary}"
        )
    return f"{MEMORY_HEADER}\n\n{MEMORY_SEPARATOR.join(parts)}\n\n{MEMORY_INSTRUCTION}"


class ConversationMemoryService:
    """Decides when to summarize a conversation and keeps its one summary up to date.

    A conversation moves from having no summary to having exactly one, which
    is only ever appended to afterwards. The unique constraint on
    ``conversation_id`` settles concurrent creators: whoever loses the insert
    appends to the winner's row instead.
    """

    def __init__(
        self,
        db_session: AsyncSession,
        summarizer: Optional[ConversationSummarizer] = None,
        min_messages: int = settings.SUMMARY_MIN_MESSAGES,
    ):
        """Initialize the service with a database session.

        Args:
            db_session: SQLAlchemy async session
            summarizer: LLM summarization client; built from settings when omitted
            min_messages: Message count at which a conversation becomes eligible
        """
        self.db = db_session
        self.summarizer = summarizer or ConversationSummarizer()
        self.min_messages = min_messages

    async def _message_count(self, conversation_id: str) -> int:
        result = await self.db.execute(
            select(func.count(ChatMessage.id)).where(ChatMessage.conversation_id == conversation_id)
        )
        return result.scalar_one()

    async def _find_summary(self, conversation_id: str, lock: bool = False) -> Optional[ConversationSummary]:
        query = (
            select(ConversationSummary)
            .where(ConversationSummary.conversation_id == conversation_id)
            .execution_options(populate_existing=True)
        )
        if lock:
            query = query.with_for_update()
        result = await self.db.execute(query)
        return result.scalars().first()

    async def has_summary(self, conversation_id: str) -> bool:
        result = await self.db.execute(
            select(ConversationSummary.id).where(ConversationSummary.conversation_id == conversation_id)
        )
        return result.first() is not None

    async def should_summarize(self, conversation_id: str) -> bool:
        """True iff the conversation has no summary yet and enough messages.

        A False result does not tell "already summarized" from "too short";
        use ``has_summary`` to distinguish.
        """
        if await self.has_summary(conversation_id):
            return False
        count = await self._message_count(conversation_id)
        logger.debug(f"Conversation {conversation_id} has {count} messages (threshold {self.min_messages})")
        return count >= self.min_messages

    async def _create_or_append(
        self,
        conversation_id: str,
        user_id: str,
        text: str,
        topics: List[str],
        importance: int,
        emotion: Optional[int],
        message_count: int,
        is_correction: bool,
    ) -> ConversationSummary:
        """Insert the conversation's summary, or append to it if one exists.

        The insert runs inside a SAVEPOINT so a unique-constraint conflict
        from a concurrent creator rolls back only the insert; the text is then
        appended to the row that won.
        """
        summary = await self._find_summary(conversation_id, lock=True)

        if summary is None:
            candidate = ConversationSummary(
                user_id=user_id,
                conversation_id=conversation_id,
                summary=text,
                key_topics=list(topics),
                importance_score=importance,
                emotion=emotion,
                message_count=message_count,
            )
            try:
                async with self.db.begin_nested():
                    self.db.add(candidate)
                    await self.db.flush()
                await self.db.commit()
                logger.info(f"Created summary for conversation {conversation_id}")
                return candidate
            except IntegrityError:
                logger.info(f"Summary for conversation {conversation_id} created concurrently, appending instead")
                summary = await self._find_summary(conversation_id, lock=True)
                if summary is None:
                    raise

        ensure_owner(summary, user_id, "ConversationSummary", conversation_id)

        summary.summary = f"{summary.summary}\n\n{text}"
        summary.key_topics = merge_topics(summary.key_topics, topics)
        summary.importance_score = importance
        if is_correction:
            summary.emotion = emotion
        else:
            summary.message_count = message_count
        summary.updated_at = datetime.now(UTC)

        await self.db.commit()
        logger.info(f"Appended to summary for conversation {conversation_id}")
        return summary

    async def generate_summary(self, conversation_id: str, user_id: str) -> Optional[ConversationSummary]:
        """Summarize a conversation with the LLM and persist the result.

        Callers normally check ``should_summarize`` first; if a summary already
        exists the new text is appended to it.

        Args:
            conversation_id: ID of the conversation to summarize
            user_id: ID of the user who owns the conversation

        Returns:
            The stored summary, or None if the conversation has no messages

        Raises:
            NotFoundOrForbidden: If the conversation is missing or not the user's
            ProviderError: If the summarization call fails
        """
        result = await self.db.execute(select(Conversation).where(Conversation.id == conversation_id))
        ensure_owner(result.scalars().first(), user_id, "Conversation", conversation_id)

        messages_result = await self.db.execute(
            select(ChatMessage)
            .where(ChatMessage.conversation_id == conversation_id)
            .order_by(ChatMessage.created_at)
        )
        messages = list(messages_result.scalars().all())
        if not messages:
            logger.info(f"No messages to summarize for conversation {conversation_id}")
            return None

        generated = await self.summarizer.summarize(messages)

        try:
            return await self._create_or_append(
                conversation_id=conversation_id,
                user_id=user_id,
                text=generated["summary"],
                topics=generated.get("key_topics", []),
                importance=generated.get("importance_score", 5),
                emotion=None,
                message_count=len(messages),
                is_correction=False,
            )
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Error storing summary for conversation {conversation_id}: {str(e)}")
            raise

    async def maybe_summarize(self, conversation_id: str, user_id: str) -> Optional[ConversationSummary]:
        """Summarize on conversation switch if the conversation is eligible."""
        if not await self.should_summarize(conversation_id):
            logger.info(f"Conversation {conversation_id} not eligible for summarization")
            return None
        return await self.generate_summary(conversation_id, user_id)

    async def record_correction(
        self,
        conversation_id: str,
        user_id: str,
        content: str,
        importance: int,
        emotion: Optional[int] = None,
    ) -> ConversationSummary:
        """Merge a user correction into the conversation's memory.

        Appends after a blank line and overwrites importance and emotion with
        these values; creates the summary with ``message_count = 1`` if none
        exists yet.

        Raises:
            ValueError: If the content is blank or importance is outside 1-10
            NotFoundOrForbidden: If the conversation or its summary belongs to another user
        """
        if not content or not content.strip():
            raise ValueError("Correction content must not be empty")
        if not 1 <= importance <= 10:
            raise ValueError(f"importance must be within 1-10, got {importance}")

        # Corrections may arrive before the chat flow stores the conversation
        result = await self.db.execute(select(Conversation).where(Conversation.id == conversation_id))
        conversation = result.scalars().first()
        if conversation is not None:
            ensure_owner(conversation, user_id, "Conversation", conversation_id)

        try:
            return await self._create_or_append(
                conversation_id=conversation_id,
                user_id=user_id,
                text=content,
                topics=CORRECTION_TOPICS,
                importance=importance,
                emotion=emotion,
                message_count=1,
                is_correction=True,
            )
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Error saving correction for conversation {conversation_id}: {str(e)}")
            raise

    async def get_summary(self, conversation_id: str, user_id: str) -> ConversationSummary:
        summary = await self._find_summary(conversation_id)
        return ensure_owner(summary, user_id, "ConversationSummary", conversation_id)

    async def get_recent_summaries(
        self,
        user_id: str,
        limit: int = settings.RECENT_SUMMARY_LIMIT,
        min_importance: int = settings.RECENT_SUMMARY_MIN_IMPORTANCE,
    ) -> List[ConversationSummary]:
        """Most recent summaries at or above an importance floor, newest first."""
        query = (
            select(ConversationSummary)
            .where(ConversationSummary.user_id == user_id)
            .where(ConversationSummary.importance_score >= min_importance)
            .order_by(desc(ConversationSummary.created_at))
            .limit(limit)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    def format_memory_context(self, summaries: Sequence[ConversationSummary]) -> str:
        return format_memory_context(summaries)

    async def get_summary_stats(self, user_id: str) -> Dict[str, Any]:
        """Summary count, average importance, total messages and most frequent topics."""
        result = await self.db.execute(
            select(ConversationSummary).where(ConversationSummary.user_id == user_id)
        )
        summaries = list(result.scalars().all())

        topic_counts = Counter(topic for summary in summaries for topic in (summary.key_topics or []))
        average = (
            round(sum(s.importance_score for s in summaries) / len(summaries), 2) if summaries else 0.0
        )
        return {
            "total_summaries": len(summaries),
            "average_importance": average,
            "total_messages": sum(s.message_count or 0 for s in summaries),
            "top_topics": [{"topic": topic, "count": count} for topic, count in topic_counts.most_common(10)],
        }

    async def delete_summary(self, summary_id: str, user_id: str) -> None:
        """Delete a summary owned by ``user_id``."""
        result = await self.db.execute(select(ConversationSummary).where(ConversationSummary.id == summary_id))
        summary = ensure_owner(result.scalars().first(), user_id, "ConversationSummary", summary_id)
        try:
            await self.db.delete(summary)
            await self.db.commit()
            logger.info(f"Deleted summary {summary_id} for user {user_id}")
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Error deleting summary {summary_id}: {str(e)}")
            raise
