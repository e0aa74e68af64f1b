from datetime import datetime, UTC
import uuid
from sqlalchemy import String, DateTime, JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship
from typing import Optional, Dict, Any

from app.db.base_class import Base


class Conversation(Base):
    """Conversation model for chat sessions.

    Owned by the chat flow; the memory engine only reads it.
    """
    __tablename__ = "conversation"  # Explicitly set the table name

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    title: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(UTC))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True),
                                               default=lambda: datetime.now(UTC),
                                               onupdate=lambda: datetime.now(UTC))
    meta_data: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)

    # Define relationships
    messages = relationship("ChatMessage", back_populates="conversation", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Conversation(id='{self.id}', user_id='{self.user_id}', title='{self.title}')>"
