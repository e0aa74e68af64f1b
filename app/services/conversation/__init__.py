"""Conversation memory services."""

from app.services.conversation.memory import ConversationMemoryService, format_memory_context
from app.services.conversation.summarization import ConversationSummarizer

__all__ = ["ConversationMemoryService", "ConversationSummarizer", "format_memory_context"]
