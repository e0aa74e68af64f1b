"""Utilities for chunking documents into overlapping character windows."""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List

from app.core.config import settings

logger = logging.getLogger(__name__)

# Default chunking parameters
DEFAULT_CHUNK_SIZE = 1000  # characters
DEFAULT_CHUNK_OVERLAP = 200  # characters
CHARS_PER_TOKEN = 4


def estimate_token_count(text: str) -> int:
    """Cheap token estimate (characters / 4, rounded up) for accounting only."""
    return math.ceil(len(text) / CHARS_PER_TOKEN)


@dataclass
class TextChunk:
    """One window of the source text with its absolute offsets."""

    index: int
    content: str
    character_start: int
    character_end: int
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def token_count(self) -> int:
        return estimate_token_count(self.content)

    def offsets(self) -> Dict[str, int]:
        return {"character_start": self.character_start, "character_end": self.character_end}


class TextChunker:
    """Class for chunking documents into fixed-size, overlapping windows."""

    def __init__(
        self,
        chunk_size: int = settings.CHUNK_SIZE,
        chunk_overlap: int = settings.CHUNK_OVERLAP,
    ):
        """Initialize the document chunker.

        Args:
            chunk_size: Window size in characters
            chunk_overlap: Characters shared by consecutive windows

        Raises:
            ValueError: If the overlap is negative or not smaller than the window
        """
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        if chunk_overlap < 0 or chunk_overlap >= chunk_size:
            raise ValueError(
                f"chunk_overlap must be in [0, chunk_size), got {chunk_overlap} with chunk_size {chunk_size}"
            )
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap

    @property
    def step(self) -> int:
        return self.chunk_size - self.chunk_overlap

    def expected_chunk_count(self, length: int) -> int:
        """Number of chunks ``split`` produces for a text of ``length`` characters."""
        if length <= 0:
            return 0
        if length <= self.chunk_size:
            return 1
        return math.ceil((length - self.chunk_overlap) / self.step)

    def split(self, text: str) -> List[TextChunk]:
        """Split text into windows covering ``[0, len(text))``.

        The start advances by ``chunk_size - chunk_overlap`` and stops once a
        window reaches the end of the text, so the last window may be short
        but is never empty.

        Args:
            text: Extracted document text

        Returns:
            Ordered list of chunks; empty for empty text
        """
        length = len(text)
        chunks: List[TextChunk] = []
        start = 0

        while start < length:
            end = min(start + self.chunk_size, length)
            chunks.append(TextChunk(
                index=len(chunks),
                content=text[start:end],
                character_start=start,
                character_end=end,
            ))
            if end >= length:
                break
            start += self.step

        return chunks

    def chunk_document(self, content: str, metadata: Dict[str, Any] = None) -> List[TextChunk]:
        """Chunk a document and attach shared metadata to every chunk.

        Args:
            content: Document content
            metadata: Metadata copied onto each chunk

        Returns:
            List of chunks with metadata
        """
        chunks = self.split(content)
        if not chunks:
            logger.warning("Chunking produced no chunks (empty text)")
            return chunks

        for chunk in chunks:
            chunk.metadata = {
                **(metadata or {}),
                **chunk.offsets(),
                "chunk_index": chunk.index,
                "total_chunks": len(chunks),
            }

        logger.debug(f"Split {len(content)} characters into {len(chunks)} chunks")
        return chunks
