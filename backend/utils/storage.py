import asyncio
import mimetypes
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from core.config import settings
from core.exceptions import MediaStorageError
import logging

logger = logging.getLogger(__name__)


@dataclass
class StoredFile:
    public_id: str
    url: str
    size: int
    mime_type: str
    extra: dict = field(default_factory=dict)


class MediaStorage:
    """Where uploaded media bytes live. Rows in ``media`` only keep the returned metadata."""

    async def save(self, filename: str, content: bytes, content_type: Optional[str] = None) -> StoredFile:
        raise NotImplementedError

    async def delete(self, public_id: str) -> None:
        raise NotImplementedError


def guess_mime_type(filename: str, content_type: Optional[str] = None) -> str:
    if content_type and content_type != "application/octet-stream":
        return content_type
    return mimetypes.guess_type(filename)[0] or "application/octet-stream"


class LocalMediaStorage(MediaStorage):
    """Stores files under ``MEDIA_DIR`` and serves them from ``MEDIA_BASE_URL``."""

    def __init__(self, directory: str, base_url: str):
        self.directory = Path(directory)
        self.base_url = base_url.rstrip("/")

    def _write(self, public_id: str, content: bytes) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        (self.directory / public_id).write_bytes(content)

    async def save(self, filename: str, content: bytes, content_type: Optional[str] = None) -> StoredFile:
        # Only the extension of the client's name is kept on disk
        public_id = f"{uuid.uuid4().hex}{Path(filename).suffix.lower()}"
        try:
            await asyncio.to_thread(self._write, public_id, content)
        except OSError as exc:
            raise MediaStorageError(f"Failed to store {filename}: {exc}") from exc
        logger.info(f"Stored {filename} as {public_id}")
        return StoredFile(
            public_id=public_id,
            url=f"{self.base_url}/{public_id}",
            size=len(content),
            mime_type=guess_mime_type(filename, content_type),
            extra={"public_id": public_id, "original_name": filename},
        )

    async def delete(self, public_id: str) -> None:
        path = self.directory / Path(public_id).name
        await asyncio.to_thread(path.unlink, True)


def get_media_storage() -> MediaStorage:
    return LocalMediaStorage(settings.MEDIA_DIR, settings.MEDIA_BASE_URL)
