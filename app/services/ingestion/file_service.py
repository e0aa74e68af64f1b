"""Service for storing uploaded document bytes until they are processed."""

import os
import logging
import re
import uuid
from typing import Optional

from app.core.config import settings

logger = logging.getLogger(__name__)

UPLOAD_SUBDIR = "uploads"


class FileService:
    """Service for handling uploaded file storage."""

    def __init__(self, data_dir: Optional[str] = None):
        """Initialize the file service."""
        self.data_dir = data_dir or settings.DATA_DIR
        self.upload_dir = os.path.join(self.data_dir, UPLOAD_SUBDIR)
        # Ensure the upload directory exists
        if not os.path.exists(self.upload_dir):
            os.makedirs(self.upload_dir, exist_ok=True)
            logger.info(f"Created upload directory: {self.upload_dir}")

    @staticmethod
    def _safe_name(filename: str) -> str:
        name = os.path.basename(filename or "upload")
        return re.sub(r"[^A-Za-z0-9._-]", "_", name)[:200] or "upload"

    def save_upload(self, data: bytes, filename: str) -> str:
        """Write uploaded bytes to disk.

        Args:
            data: Raw file content
            filename: Original filename

        Returns:
            Storage path relative to the data directory
        """
        relative_path = os.path.join(UPLOAD_SUBDIR, f"{uuid.uuid4()}_{self._safe_name(filename)}")
        full_path = os.path.join(self.data_dir, relative_path)
        with open(full_path, "wb") as f:
            f.write(data)
        logger.info(f"Stored upload {filename} ({len(data)} bytes) at {relative_path}")
        return relative_path

    def read_bytes(self, storage_path: str) -> bytes:
        """Read stored bytes back.

        Raises:
            FileNotFoundError: If the file was already removed
        """
        full_path = os.path.join(self.data_dir, storage_path)
        with open(full_path, "rb") as f:
            return f.read()

    def remove(self, storage_path: Optional[str]) -> bool:
        """Delete a stored upload; returns False when nothing was there."""
        if not storage_path:
            return False
        full_path = os.path.join(self.data_dir, storage_path)
        if not os.path.exists(full_path):
            return False
        os.remove(full_path)
        logger.debug(f"Removed stored upload {storage_path}")
        return True
