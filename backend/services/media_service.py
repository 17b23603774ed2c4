"""Media library: stored files and their metadata rows."""
import logging
from dataclasses import dataclass
from pathlib import PurePath
from typing import List, Optional

from sqlalchemy import select, func, delete
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.exceptions import MediaNotFound, NoFilesUploaded, FileTooLarge
from db.models.media import Media
from schemas.query_schema import ListQuery
from utils.db import safe_commit
from utils.sorting import SortingHelper
from utils.storage import MediaStorage

logger = logging.getLogger(__name__)

media_sorting = SortingHelper(Media, ["id", "alt", "size", "mime_type", "created_at", "updated_at"])


@dataclass
class MediaUpload:
    filename: str
    content: bytes
    content_type: Optional[str] = None


async def list_media(db: AsyncSession, query: ListQuery) -> dict:
    conditions = []
    if query.search:
        conditions.append(Media.alt.ilike(f"%{query.search.strip()}%"))
    total = (await db.execute(select(func.count(Media.id)).where(*conditions))).scalar_one()
    result = await db.execute(
        select(Media)
        .where(*conditions)
        .order_by(media_sorting.apply_sorting(query.sort_by, query.sort_order))
        .offset((query.page - 1) * query.limit)
        .limit(query.limit)
    )
    return {
        "items": result.scalars().all(),
        "pagination": {
            "page": query.page,
            "limit": query.limit,
            "total": total,
            "total_pages": (total + query.limit - 1) // query.limit,
        },
    }


async def get_media(db: AsyncSession, media_id: int) -> Media:
    result = await db.execute(select(Media).where(Media.id == media_id))
    media = result.scalars().first()
    if media is None:
        raise MediaNotFound()
    return media


async def _discard(storage: MediaStorage, public_ids: List[str]) -> None:
    for public_id in public_ids:
        try:
            await storage.delete(public_id)
        except Exception as exc:
            logger.warning(f"Could not remove stored file {public_id}: {exc}")


async def upload_files(db: AsyncSession, storage: MediaStorage, uploads: List[MediaUpload]) -> List[Media]:
    """Store every file, then save one row per file. Stored files are removed again if saving fails."""
    if not uploads:
        raise NoFilesUploaded()
    for upload in uploads:
        if len(upload.content) > settings.MEDIA_MAX_FILE_SIZE:
            raise FileTooLarge(f"{upload.filename} exceeds {settings.MEDIA_MAX_FILE_SIZE} bytes")

    stored = []
    try:
        for upload in uploads:
            stored.append((upload, await storage.save(upload.filename, upload.content, upload.content_type)))
    except Exception:
        await _discard(storage, [s.public_id for _, s in stored])
        raise

    rows = [
        Media(
            src=item.url,
            alt=upload.filename,
            size=item.size,
            mime_type=item.mime_type,
            additional_data=item.extra,
        )
        for upload, item in stored
    ]
    db.add_all(rows)
    try:
        await safe_commit(db, client_error_message="Could not save uploaded files")
    except Exception:
        await _discard(storage, [s.public_id for _, s in stored])
        raise
    for row in rows:
        await db.refresh(row)
    logger.info(f"Uploaded {len(rows)} file(s)")
    return rows


def describe_upload(media: Media) -> dict:
    name = PurePath(media.alt).stem
    return {
        "file_name": name,
        "success": True,
        "src": media.src,
        "file_data": {"name": name, "size": media.size, "type": media.mime_type},
    }


async def rename_media(db: AsyncSession, media_id: int, name: str) -> Media:
    media = await get_media(db, media_id)
    media.alt = name
    await safe_commit(db, client_error_message="Could not rename file")
    await db.refresh(media)
    return media


async def _delete_rows(db: AsyncSession, storage: MediaStorage, rows: List[Media]) -> None:
    public_ids = [(row.additional_data or {}).get("public_id") for row in rows]
    await db.execute(delete(Media).where(Media.id.in_([row.id for row in rows])))
    await safe_commit(db, client_error_message="Could not delete files")
    # Rows are gone either way; a leftover stored file is only logged
    await _discard(storage, [p for p in public_ids if p])


async def delete_media(db: AsyncSession, storage: MediaStorage, media_id: int) -> Media:
    media = await get_media(db, media_id)
    await _delete_rows(db, storage, [media])
    logger.info(f"Deleted media {media_id}")
    return media


async def delete_media_by_urls(db: AsyncSession, storage: MediaStorage, urls: List[str]) -> List[Media]:
    rows = (await db.execute(select(Media).where(Media.src.in_(urls)))).scalars().all()
    if not rows:
        raise MediaNotFound("Files not found")
    await _delete_rows(db, storage, list(rows))
    logger.info(f"Deleted {len(rows)} media file(s) by url")
    return list(rows)
