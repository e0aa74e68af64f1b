"""Celery tasks for document ingestion."""

import logging
from typing import Any, Dict, Optional

from app.worker.celery_app import celery_app, run_async
from app.db.session import get_async_session
from app.services.ingestion import DocumentService

logger = logging.getLogger(__name__)


async def _process_document(document_id: str) -> Optional[str]:
    async with get_async_session() as db:
        service = DocumentService(db)
        return await service.process_upload(document_id)


async def _sweep_stale_documents(max_age_minutes: Optional[int]) -> int:
    async with get_async_session() as db:
        service = DocumentService(db)
        return await service.sweep_stale_documents(max_age_minutes)


@celery_app.task(name="app.worker.tasks.document_tasks.process_document")
def process_document(document_id: str) -> Dict[str, Any]:
    """Extract, chunk and embed an uploaded document.

    Safe to run more than once: a document that already reached a terminal
    status is left alone.

    Args:
        document_id: ID of the document to process

    Returns:
        Processing results dictionary
    """
    logger.info(f"TASK: Processing document {document_id}")
    status = run_async(_process_document(document_id))
    if status is None:
        return {"status": "error", "reason": "document_not_found", "document_id": document_id}

    logger.info(f"TASK: Document {document_id} finished as {status}")
    return {"status": status, "document_id": document_id}


@celery_app.task(name="app.worker.tasks.document_tasks.sweep_stale_documents")
def sweep_stale_documents(max_age_minutes: Optional[int] = None) -> Dict[str, Any]:
    """Fail documents stuck in processing past the timeout."""
    swept = run_async(_sweep_stale_documents(max_age_minutes))
    return {"status": "success", "failed_documents": swept}
