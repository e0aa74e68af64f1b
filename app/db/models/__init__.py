from app.db.models.document import Document, DocumentChunk, DocumentStatus
from app.db.models.conversation import Conversation
from app.db.models.chat_message import ChatMessage, MessageRole
from app.db.models.conversation_summary import ConversationSummary

# These imports are required to ensure all models are discovered by SQLAlchemy
__all__ = [
    "Document",
    "DocumentChunk",
    "DocumentStatus",
    "Conversation",
    "ChatMessage",
    "MessageRole",
    "ConversationSummary",
]
