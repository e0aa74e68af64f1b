"""Text extractors for the supported document types."""

import io
import logging
import mimetypes
from typing import Callable, Dict, List, Optional

from pdfminer.high_level import extract_text as pdf_extract_text
from pdfminer.pdfparser import PDFSyntaxError

from app.core.errors import UnsupportedFormat

logger = logging.getLogger(__name__)

Extractor = Callable[[bytes], str]

# Dictionary mapping MIME types to extractor functions
EXTRACTOR_REGISTRY: Dict[str, Extractor] = {}

# Declared types that say nothing about the content; fall back to the extension
GENERIC_CONTENT_TYPES = {"", "application/octet-stream", "binary/octet-stream"}


def register_extractor(content_types: List[str]):
    """Decorator to register an extractor function for specific MIME types."""
    def decorator(func):
        for content_type in content_types:
            EXTRACTOR_REGISTRY[content_type.lower()] = func
        return func
    return decorator


def normalize_content_type(content_type: Optional[str]) -> str:
    """Strip parameters such as ``; charset=utf-8`` and lowercase."""
    if not content_type:
        return ""
    return content_type.split(";", 1)[0].strip().lower()


def resolve_content_type(content_type: Optional[str], filename: Optional[str] = None) -> str:
    """Pick the MIME type used for dispatch.

    The declared type wins; the filename extension is consulted only when the
    declared type is missing or generic.
    """
    declared = normalize_content_type(content_type)
    if declared not in GENERIC_CONTENT_TYPES or not filename:
        return declared

    guessed, _ = mimetypes.guess_type(filename)
    if guessed:
        logger.debug(f"Guessed content type {guessed} for {filename} (declared '{declared}')")
        return guessed.lower()
    return declared


def get_extractor(content_type: Optional[str], filename: Optional[str] = None) -> Extractor:
    """Return the extractor for a document or raise ``UnsupportedFormat``."""
    resolved = resolve_content_type(content_type, filename)
    extractor = EXTRACTOR_REGISTRY.get(resolved)
    if extractor is None:
        raise UnsupportedFormat(content_type or resolved, filename)
    return extractor


def is_supported(content_type: Optional[str], filename: Optional[str] = None) -> bool:
    return resolve_content_type(content_type, filename) in EXTRACTOR_REGISTRY


def extract_text(data: bytes, content_type: Optional[str], filename: Optional[str] = None) -> str:
    """Extract text from raw document bytes.

    Args:
        data: Raw bytes as uploaded
        content_type: Declared MIME type
        filename: Original filename, used for the extension fallback

    Returns:
        Extracted text (possibly empty)

    Raises:
        UnsupportedFormat: If no extractor handles the type
        ValueError: If the bytes cannot be decoded by the chosen extractor
    """
    extractor = get_extractor(content_type, filename)
    text = extractor(data)
    logger.info(f"Extracted {len(text)} characters from {filename or 'document'} "
                f"({resolve_content_type(content_type, filename)})")
    return text


@register_extractor(["text/plain", "text/markdown"])
def extract_plain_text(data: bytes) -> str:
    """Decode a plain text file as UTF-8, verbatim."""
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise ValueError(f"Text file is not valid UTF-8: {e}") from e


@register_extractor(["application/pdf"])
def extract_pdf_text(data: bytes) -> str:
    """Extract the text layer of a PDF with pdfminer."""
    try:
        return pdf_extract_text(io.BytesIO(data))
    except PDFSyntaxError as e:
        raise ValueError(f"Could not parse PDF: {e}") from e
