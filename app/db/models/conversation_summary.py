"""ConversationSummary model: the durable memory of one conversation."""

from datetime import datetime, UTC
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import CheckConstraint, DateTime, Integer, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base_class import Base


class ConversationSummary(Base):
    """Summary of a conversation, created once and appended to afterwards.

    ``conversation_id`` is unique: the constraint, not an application-level
    existence check, guarantees one summary per conversation.
    """
    __tablename__ = "conversation_summary"
    __table_args__ = (
        CheckConstraint("importance_score BETWEEN 1 AND 10", name="importance_range"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    conversation_id: Mapped[str] = mapped_column(String(36), unique=True, index=True)
    summary: Mapped[str] = mapped_column(Text)
    key_topics: Mapped[List[str]] = mapped_column(JSON, default=list)
    importance_score: Mapped[int] = mapped_column(Integer, default=5)
    emotion: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    message_count: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(UTC), index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True),
                                                 default=lambda: datetime.now(UTC),
                                                 onupdate=lambda: datetime.now(UTC))

    def __repr__(self):
        return f"<ConversationSummary(conversation_id='{self.conversation_id}', importance={self.importance_score})>"

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dict."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "conversation_id": self.conversation_id,
            "summary": self.summary,
            "key_topics": list(self.key_topics or []),
            "importance_score": self.importance_score,
            "emotion": self.emotion,
            "message_count": self.message_count,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
