# services/storage.py - Media / Artifact Storage Service
# ============================================================================

import logging
import uuid
from pathlib import Path
from typing import List, Optional, Sequence

from fastapi import UploadFile
from freightdesk.core.config import settings

logger = logging.getLogger(__name__)

class StorageService:
    """Append-only file store: files are written under UPLOAD_DIR and served
    from MEDIA_BASE_URL. Nothing is ever deleted."""

    def __init__(self, root: Optional[str] = None, base_url: Optional[str] = None):
        self.root = Path(root or settings.UPLOAD_DIR)
        self.base_url = (base_url or settings.MEDIA_BASE_URL).rstrip("/")
        # Ensure directory exists
        self.root.mkdir(parents=True, exist_ok=True)

    async def upload_file(self, data: bytes, folder: str, filename: Optional[str] = None) -> str:
        # Generate unique filename, keep the original extension
        file_ext = Path(filename).suffix if filename else ""
        unique_filename = f"{uuid.uuid4()}{file_ext}"
        folder = folder.strip("/")
        file_path = self.root / folder / unique_filename

        file_path.parent.mkdir(parents=True, exist_ok=True)
        with open(file_path, "wb") as buffer:
            buffer.write(data)

        url = f"{self.base_url}/{folder}/{unique_filename}"
        logger.info(f"Stored {len(data)} bytes at {url}")
        return url

    async def save_upload(self, file: UploadFile, folder: str) -> str:
        content = await file.read()
        return await self.upload_file(content, folder, file.filename)

    async def upload_multiple(self, files: Sequence[UploadFile], folder: str) -> List[str]:
        """Upload files in order; the returned URLs keep that order."""
        urls = []
        for file in files:
            urls.append(await self.save_upload(file, folder))
        return urls

    async def upload_pdf(self, data: bytes, filename: str, folder: str) -> str:
        # Generated documents keep a readable name; the prefix keeps reruns from colliding
        stored_name = f"{uuid.uuid4().hex[:8]}-{Path(filename).stem}.pdf"
        folder = folder.strip("/")
        file_path = self.root / folder / stored_name

        file_path.parent.mkdir(parents=True, exist_ok=True)
        with open(file_path, "wb") as buffer:
            buffer.write(data)

        url = f"{self.base_url}/{folder}/{stored_name}"
        logger.info(f"Stored PDF {url}")
        return url


def get_storage_service() -> StorageService:
    return StorageService()
