"""Knowledge base document endpoints: upload, list, inspect, delete."""

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, HTTPException, Query, UploadFile

from app.api.deps import get_current_user_or_mock, get_document_service, get_embedding_service, get_file_service
from app.core.config import settings
from app.core.constants import DEFAULT_USER
from app.db.session import get_async_session
from app.schemas.document import CollectionStats, DocumentListResponse, DocumentRead, DocumentUploadResponse
from app.services.ingestion import DocumentService, get_extractor
from app.worker.tasks.document_tasks import process_document

logger = logging.getLogger(__name__)
router = APIRouter()


async def _process_in_process(document_id: str) -> None:
    """Run ingestion inside the API process (development mode)."""
    async with get_async_session() as db:
        service = DocumentService(db, embedding_service=get_embedding_service(), file_service=get_file_service())
        await service.process_upload(document_id)


def enqueue_document_processing(document_id: str, background_tasks: BackgroundTasks) -> Optional[str]:
    """Hand a new document to the task queue; returns the Celery task ID if one was sent."""
    if settings.CELERY_TASK_ALWAYS_EAGER:
        background_tasks.add_task(_process_in_process, document_id)
        return None
    return process_document.delay(document_id).id


@router.post("", status_code=202, response_model=DocumentUploadResponse)
async def upload_document(
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    current_user: dict = Depends(get_current_user_or_mock),
    document_service: DocumentService = Depends(get_document_service),
):
    """
    Upload a document to the knowledge base.

    The document is recorded as ``processing`` and the response returns at
    once; poll ``GET /documents/{id}`` to see when it is searchable.
    """
    user_id = current_user.get("id", DEFAULT_USER["id"])
    filename = file.filename or "upload"

    # Unsupported types are rejected before any record exists
    get_extractor(file.content_type, filename)

    content = await file.read()
    if len(content) > settings.MAX_UPLOAD_SIZE_BYTES:
        raise HTTPException(
            status_code=413,
            detail=f"File too large: {len(content)} bytes (max: {settings.MAX_UPLOAD_SIZE_BYTES} bytes)"
        )

    storage_path = document_service.file_service.save_upload(content, filename)
    try:
        document_id = await document_service.create_record(
            filename=filename,
            content_type=file.content_type or "application/octet-stream",
            size_bytes=len(content),
            user_id=user_id,
            storage_path=storage_path,
        )
    except Exception:
        document_service.file_service.remove(storage_path)
        raise

    task_id = enqueue_document_processing(document_id, background_tasks)
    logger.info(f"Queued document {document_id} ({filename}) for user {user_id}")

    return DocumentUploadResponse(
        document_id=document_id,
        status="processing",
        task_id=task_id,
        filename=filename,
        size_bytes=len(content),
    )


@router.get("", response_model=DocumentListResponse)
async def list_documents(
    limit: int = Query(100, ge=1, le=500, description="Maximum number of documents to return"),
    offset: int = Query(0, ge=0),
    current_user: dict = Depends(get_current_user_or_mock),
    document_service: DocumentService = Depends(get_document_service),
):
    """List the current user's documents, newest first."""
    user_id = current_user.get("id", DEFAULT_USER["id"])
    documents = await document_service.list_documents(user_id, limit=limit, offset=offset)
    return DocumentListResponse(
        total=len(documents),
        documents=[DocumentRead.model_validate(document) for document in documents],
    )


@router.get("/stats", response_model=CollectionStats)
async def get_collection_stats(
    current_user: dict = Depends(get_current_user_or_mock),
    document_service: DocumentService = Depends(get_document_service),
):
    """Counts and sizes for the current user's knowledge base."""
    user_id = current_user.get("id", DEFAULT_USER["id"])
    stats = await document_service.get_collection_stats(user_id)
    return CollectionStats(**stats, has_documents=await document_service.has_documents(user_id))


@router.get("/{document_id}", response_model=DocumentRead)
async def get_document(
    document_id: str,
    current_user: dict = Depends(get_current_user_or_mock),
    document_service: DocumentService = Depends(get_document_service),
):
    user_id = current_user.get("id", DEFAULT_USER["id"])
    return DocumentRead.model_validate(await document_service.get_document(document_id, user_id))


@router.delete("/{document_id}", status_code=200)
async def delete_document(
    document_id: str,
    current_user: dict = Depends(get_current_user_or_mock),
    document_service: DocumentService = Depends(get_document_service),
):
    """Delete a document and all of its chunks."""
    user_id = current_user.get("id", DEFAULT_USER["id"])
    await document_service.delete_document(document_id, user_id)
    return {"status": "success", "message": f"Document {document_id} deleted", "document_id": document_id}
