import asyncio
from contextlib import asynccontextmanager
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from app.core.errors import ProviderError
from app.worker.celery_app import celery_app, run_async
from app.worker.tasks import conversation_tasks, document_tasks


@pytest.fixture
def fake_session():
    session = MagicMock()

    @asynccontextmanager
    async def _session():
        yield session

    return _session


def test_worker_configuration():
    assert celery_app.conf.task_acks_late is True
    assert celery_app.conf.task_reject_on_worker_lost is True
    assert celery_app.conf.worker_prefetch_multiplier == 1
    assert "sweep-stale-documents" in celery_app.conf.beat_schedule
    assert "app.worker.tasks.document_tasks.process_document" in celery_app.tasks


def test_process_document_reports_final_status(fake_session):
    with patch.object(document_tasks, "get_async_session", fake_session), \
         patch.object(document_tasks, "DocumentService") as mock_service_cls:
        mock_service_cls.return_value.process_upload = AsyncMock(return_value="completed")

        result = document_tasks.process_document("doc-1")

    assert result == {"status": "completed", "document_id": "doc-1"}
    mock_service_cls.return_value.process_upload.assert_awaited_once_with("doc-1")


def test_process_document_missing(fake_session):
    with patch.object(document_tasks, "get_async_session", fake_session), \
         patch.object(document_tasks, "DocumentService") as mock_service_cls:
        mock_service_cls.return_value.process_upload = AsyncMock(return_value=None)

        result = document_tasks.process_document("gone")

    assert result == {"status": "error", "reason": "document_not_found", "document_id": "gone"}


def test_sweep_stale_documents(fake_session):
    with patch.object(document_tasks, "get_async_session", fake_session), \
         patch.object(document_tasks, "DocumentService") as mock_service_cls:
        mock_service_cls.return_value.sweep_stale_documents = AsyncMock(return_value=3)

        result = document_tasks.sweep_stale_documents(45)

    assert result == {"status": "success", "failed_documents": 3}
    mock_service_cls.return_value.sweep_stale_documents.assert_awaited_once_with(45)


def test_summarize_conversation_success(fake_session):
    summary = SimpleNamespace(id="summary-1", importance_score=7)
    with patch.object(conversation_tasks, "get_async_session", fake_session), \
         patch.object(conversation_tasks, "ConversationMemoryService") as mock_service_cls:
        mock_service_cls.return_value.maybe_summarize = AsyncMock(return_value=summary)

        result = conversation_tasks.summarize_conversation("conv-1", "user-1")

    assert result == {
        "status": "success",
        "conversation_id": "conv-1",
        "summary_id": "summary-1",
        "importance_score": 7,
    }
    mock_service_cls.return_value.maybe_summarize.assert_awaited_once_with("conv-1", "user-1")


def test_summarize_conversation_not_needed(fake_session):
    with patch.object(conversation_tasks, "get_async_session", fake_session), \
         patch.object(conversation_tasks, "ConversationMemoryService") as mock_service_cls:
        mock_service_cls.return_value.maybe_summarize = AsyncMock(return_value=None)

        result = conversation_tasks.summarize_conversation("conv-1", "user-1")

    assert result == {"status": "not_needed", "conversation_id": "conv-1"}


def test_summarize_conversation_provider_failure(fake_session):
    with patch.object(conversation_tasks, "get_async_session", fake_session), \
         patch.object(conversation_tasks, "ConversationMemoryService") as mock_service_cls:
        mock_service_cls.return_value.maybe_summarize = AsyncMock(
            side_effect=ProviderError("unavailable", provider_name="openai_chat")
        )

        result = conversation_tasks.summarize_conversation("conv-1", "user-1")

    assert result["status"] == "error"
    assert result["reason"] == "[openai_chat] unavailable"


def test_run_async_replaces_a_closed_loop():
    closed = asyncio.new_event_loop()
    closed.close()
    asyncio.set_event_loop(closed)

    async def answer():
        return 42

    assert run_async(answer()) == 42
    asyncio.get_event_loop().close()
    asyncio.set_event_loop(None)
