"""Test fixtures for the application."""

import hashlib
import math
from datetime import datetime, timedelta, UTC
from typing import List

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db.base import Base
from app.core.config import settings
from app.core.errors import ProviderError
from app.db.models.chat_message import ChatMessage, MessageRole
from app.db.models.conversation import Conversation
from app.services.ingestion.file_service import FileService


class FakeEmbeddingService:
    """Deterministic stand-in for the embeddings API.

    Each text maps to a unit vector derived from its hash, so identical texts
    have cosine similarity 1.
    """

    provider_name = "fake_embedding"

    def __init__(self, dimensions: int = settings.EMBEDDING_DIMENSIONS):
        self.dimensions = dimensions
        self.batches: List[List[str]] = []
        self.fail_on_call = None
        self.calls = 0

    def vector_for(self, text: str) -> List[float]:
        digest = hashlib.sha256(text.encode("utf-8")).digest()
        raw = [digest[i % len(digest)] + i % 7 for i in range(self.dimensions)]
        norm = math.sqrt(sum(value * value for value in raw))
        return [value / norm for value in raw]

    async def embed(self, text: str) -> List[float]:
        return (await self.embed_batch([text]))[0]

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        self.calls += 1
        if self.fail_on_call is not None and self.calls == self.fail_on_call:
            raise ProviderError("Rate limited: try again later", provider_name=self.provider_name)
        self.batches.append(list(texts))
        return [self.vector_for(text) for text in texts]


class FakeSummarizer:
    """Returns a canned summary and records what it was asked to summarize."""

    def __init__(self, summary: str = "User asked about refunds and prefers email contact.",
                 key_topics=None, importance_score: int = 7):
        self.result = {
            "summary": summary,
            "key_topics": key_topics or ["refunds", "contact"],
            "importance_score": importance_score,
        }
        self.calls = []

    async def summarize(self, messages):
        self.calls.append(list(messages))
        return dict(self.result)


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """In-memory SQLite engine with savepoints and foreign keys enabled."""
    engine = create_async_engine(
        settings.TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        # Let SQLAlchemy emit BEGIN itself so SAVEPOINT works
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop all tables after the test is complete
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    # Dispose of the engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory):
    """Create a clean database session for a test."""
    async with session_factory() as session:
        yield session

        # Roll back any changes
        await session.rollback()


@pytest.fixture
def embedding_service():
    return FakeEmbeddingService()


@pytest.fixture
def summarizer():
    return FakeSummarizer()


@pytest.fixture
def file_service(tmp_path):
    """File storage rooted in a temporary directory."""
    return FileService(data_dir=str(tmp_path))


@pytest.fixture
def test_user_id():
    return "test-user-id"


@pytest.fixture
def other_user_id():
    return "other-user-id"


@pytest.fixture
def make_conversation(db_session):
    """Factory that stores a conversation with ``message_count`` alternating messages."""

    async def _make(user_id: str, message_count: int, conversation_id: str = None) -> Conversation:
        conversation = Conversation(user_id=user_id, title="Test Conversation")
        if conversation_id:
            conversation.id = conversation_id
        db_session.add(conversation)
        await db_session.flush()

        started = datetime.now(UTC) - timedelta(minutes=message_count)
        for i in range(message_count):
            db_session.add(ChatMessage(
                conversation_id=conversation.id,
                user_id=user_id,
                role=MessageRole.USER if i % 2 == 0 else MessageRole.ASSISTANT,
                content=f"Message {i}",
                created_at=started + timedelta(minutes=i),
            ))
        await db_session.commit()
        return conversation

    return _make
