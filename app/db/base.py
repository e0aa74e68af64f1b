# Import all models so that Base has them before running Alembic
from app.db.base_class import Base

# Import all models here
from app.db.models.document import Document, DocumentChunk
from app.db.models.conversation import Conversation
from app.db.models.chat_message import ChatMessage
from app.db.models.conversation_summary import ConversationSummary

__all__ = ["Base", "Document", "DocumentChunk", "Conversation", "ChatMessage", "ConversationSummary"]
