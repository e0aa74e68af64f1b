"""Ingestion services for turning uploaded files into searchable chunks."""

from app.services.ingestion.service import DocumentService
from app.services.ingestion.file_service import FileService
from app.services.ingestion.chunking import TextChunker, TextChunk, estimate_token_count
from app.services.ingestion.parsers import extract_text, get_extractor, is_supported

__all__ = [
    "DocumentService",
    "FileService",
    "TextChunker",
    "TextChunk",
    "estimate_token_count",
    "extract_text",
    "get_extractor",
    "is_supported",
]
