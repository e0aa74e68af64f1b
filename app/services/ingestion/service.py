"""Document ingestion: records, text extraction, chunking and embedding."""

from datetime import datetime, timedelta, UTC
import logging
from typing import Any, Dict, List, Optional
from uuid import uuid4

from sqlalchemy import delete, desc, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.db.models.document import Document, DocumentChunk, DocumentStatus
from app.services.authorization import ensure_owner
from app.services.embedding import EmbeddingService
from app.services.ingestion.chunking import TextChunker
from app.services.ingestion.file_service import FileService
from app.services.ingestion.parsers import extract_text

logger = logging.getLogger(__name__)


class DocumentService:
    """Service for ingesting uploaded documents into the knowledge base."""

    def __init__(
        self,
        db_session: AsyncSession,
        embedding_service: Optional[EmbeddingService] = None,
        chunker: Optional[TextChunker] = None,
        file_service: Optional[FileService] = None,
        batch_size: int = settings.EMBEDDING_BATCH_SIZE,
    ):
        """Initialize the service with a database session.

        Args:
            db_session: SQLAlchemy async session
            embedding_service: Embedding adapter; built from settings when omitted
            chunker: Text chunker; built from settings when omitted
            file_service: Upload storage; built from settings when omitted
            batch_size: Chunks embedded and committed per round trip
        """
        if batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {batch_size}")
        self.db = db_session
        self.embedding_service = embedding_service or EmbeddingService()
        self.chunker = chunker or TextChunker()
        self.file_service = file_service or FileService()
        self.batch_size = batch_size

    async def create_record(
        self,
        filename: str,
        content_type: str,
        size_bytes: int,
        user_id: str,
        storage_path: Optional[str] = None,
    ) -> str:
        """Insert a document in ``processing`` state.

        Returns:
            The new document ID
        """
        try:
            document = Document(
                id=str(uuid4()),
                filename=filename,
                content_type=content_type,
                size_bytes=size_bytes,
                user_id=user_id,
                status=DocumentStatus.PROCESSING.value,
                storage_path=storage_path,
            )
            self.db.add(document)
            await self.db.commit()

            logger.info(f"Created document {document.id} ({filename}) for user {user_id}")
            return document.id

        except Exception as e:
            await self.db.rollback()
            logger.error(f"Error creating document record for {filename}: {str(e)}")
            raise

    def extract_text(self, data: bytes, content_type: Optional[str], filename: Optional[str] = None) -> str:
        """Extract text by MIME type; raises ``UnsupportedFormat`` for anything else."""
        return extract_text(data, content_type, filename)

    async def _transition(self, document_id: str, status: DocumentStatus, **values: Any) -> bool:
        """Move a document out of ``processing``.

        Terminal statuses are never overwritten; returns False when the
        document had already left ``processing``.
        """
        result = await self.db.execute(
            update(Document)
            .where(Document.id == document_id)
            .where(Document.status == DocumentStatus.PROCESSING.value)
            .values(status=status.value, updated_at=datetime.now(UTC), **values)
        )
        await self.db.commit()
        changed = result.rowcount > 0
        if not changed:
            logger.warning(f"Document {document_id} already terminal, not marking {status.value}")
        return changed

    async def _load(self, document_id: str) -> Optional[Document]:
        result = await self.db.execute(
            select(Document).where(Document.id == document_id).execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def process_content(self, document_id: str, text: str) -> bool:
        """Chunk, embed and store a document's text.

        Skips documents that are no longer ``processing``, so a redelivered
        task is harmless. Chunks left from an earlier attempt are cleared first.
        Any failure marks the document ``failed``; chunks already committed
        stay behind but are never searched.

        Args:
            document_id: ID of the document
            text: Extracted text

        Returns:
            True if the document ended ``completed`` by this call
        """
        document = await self._load(document_id)
        if document is None:
            logger.warning(f"Document {document_id} not found, skipping processing")
            return False
        if document.is_terminal:
            logger.info(f"Document {document_id} is already {document.status}, skipping processing")
            return False

        try:
            await self.db.execute(delete(DocumentChunk).where(DocumentChunk.document_id == document_id))
            await self.db.commit()

            chunks = self.chunker.chunk_document(text, {"filename": document.filename})
            if not chunks:
                logger.warning(f"Document {document_id} produced no text to index")

            for start in range(0, len(chunks), self.batch_size):
                batch = chunks[start:start + self.batch_size]
                vectors = await self.embedding_service.embed_batch([chunk.content for chunk in batch])

                for chunk, vector in zip(batch, vectors):
                    self.db.add(DocumentChunk(
                        id=str(uuid4()),
                        document_id=document_id,
                        chunk_index=chunk.index,
                        content=chunk.content,
                        embedding=vector,
                        token_count=chunk.token_count,
                        chunk_metadata=chunk.offsets(),
                    ))
                await self.db.commit()
                logger.debug(f"Stored chunks {start}-{start + len(batch) - 1} of document {document_id}")

            completed = await self._transition(document_id, DocumentStatus.COMPLETED, error_message=None)
            if completed:
                logger.info(f"Document {document_id} completed with {len(chunks)} chunks")
            return completed

        except Exception as e:
            await self.db.rollback()
            logger.error(f"Error processing document {document_id}: {str(e)}")
            await self._transition(document_id, DocumentStatus.FAILED, error_message=str(e))
            return False

    async def process_upload(self, document_id: str) -> Optional[str]:
        """Task entry point: read the stored bytes, extract, then process.

        Returns:
            The document's status after this call, or None if it does not exist
        """
        document = await self._load(document_id)
        if document is None:
            logger.warning(f"Document {document_id} not found, nothing to process")
            return None

        storage_path = document.storage_path
        if not document.is_terminal:
            try:
                data = self.file_service.read_bytes(storage_path)
                text = self.extract_text(data, document.content_type, document.filename)
            except Exception as e:
                logger.error(f"Error extracting text from document {document_id}: {str(e)}")
                await self._transition(document_id, DocumentStatus.FAILED, error_message=str(e))
            else:
                await self.process_content(document_id, text)

        document = await self._load(document_id)
        if document is None:
            # Deleted while processing
            logger.warning(f"Document {document_id} was deleted during processing")
            self.file_service.remove(storage_path)
            return None
        if document.is_terminal and document.storage_path:
            self.file_service.remove(document.storage_path)
            await self.db.execute(
                update(Document).where(Document.id == document_id).values(storage_path=None)
            )
            await self.db.commit()
        return document.status

    async def list_documents(self, user_id: str, limit: int = 100, offset: int = 0) -> List[Document]:
        """List a user's documents, newest first."""
        query = (
            select(Document)
            .where(Document.user_id == user_id)
            .order_by(desc(Document.created_at))
            .offset(offset)
            .limit(limit)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_document(self, document_id: str, user_id: str) -> Document:
        """Get a document owned by ``user_id``; raises ``NotFoundOrForbidden`` otherwise."""
        result = await self.db.execute(select(Document).where(Document.id == document_id))
        return ensure_owner(result.scalars().first(), user_id, "Document", document_id)

    async def delete_document(self, document_id: str, user_id: str) -> None:
        """Delete a document and, by cascade, its chunks."""
        document = await self.get_document(document_id, user_id)
        storage_path = document.storage_path
        try:
            await self.db.delete(document)
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Error deleting document {document_id}: {str(e)}")
            raise

        self.file_service.remove(storage_path)
        logger.info(f"Deleted document {document_id} for user {user_id}")

    async def has_documents(self, user_id: str) -> bool:
        """True if the user has at least one searchable document."""
        query = (
            select(Document.id)
            .where(Document.user_id == user_id)
            .where(Document.status == DocumentStatus.COMPLETED.value)
            .limit(1)
        )
        result = await self.db.execute(query)
        return result.first() is not None

    async def get_collection_stats(self, user_id: str) -> Dict[str, Any]:
        """Document counts per status plus chunk and byte totals of completed documents."""
        status_rows = await self.db.execute(
            select(Document.status, func.count(Document.id))
            .where(Document.user_id == user_id)
            .group_by(Document.status)
        )
        by_status = {status.value: 0 for status in DocumentStatus}
        by_status.update({status: count for status, count in status_rows.all()})

        size_result = await self.db.execute(
            select(func.coalesce(func.sum(Document.size_bytes), 0))
            .where(Document.user_id == user_id)
            .where(Document.status == DocumentStatus.COMPLETED.value)
        )
        chunk_result = await self.db.execute(
            select(func.count(DocumentChunk.id))
            .join(Document, DocumentChunk.document_id == Document.id)
            .where(Document.user_id == user_id)
            .where(Document.status == DocumentStatus.COMPLETED.value)
        )

        return {
            "total_documents": sum(by_status.values()),
            "documents_by_status": by_status,
            "total_chunks": chunk_result.scalar_one(),
            "total_size_bytes": size_result.scalar_one(),
        }

    async def sweep_stale_documents(self, max_age_minutes: Optional[int] = None) -> int:
        """Fail documents stuck in ``processing`` longer than ``max_age_minutes``.

        Their stored uploads are removed, since no task will pick them up.

        Returns:
            Number of documents marked failed
        """
        max_age_minutes = max_age_minutes or settings.DOCUMENT_PROCESSING_TIMEOUT_MINUTES
        cutoff = datetime.now(UTC) - timedelta(minutes=max_age_minutes)
        result = await self.db.execute(
            select(Document.id, Document.storage_path)
            .where(Document.status == DocumentStatus.PROCESSING.value)
            .where(Document.created_at < cutoff)
        )
        stale = result.all()

        swept = 0
        for document_id, storage_path in stale:
            # Skips documents that finished since the select
            if await self._transition(
                document_id,
                DocumentStatus.FAILED,
                error_message=f"Processing timed out after {max_age_minutes} minutes",
                storage_path=None,
            ):
                self.file_service.remove(storage_path)
                swept += 1

        if swept:
            logger.warning(f"Marked {swept} stale documents as failed")
        return swept
