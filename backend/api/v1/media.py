from typing import Annotated, List

from fastapi import APIRouter, Depends, File, Query, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import admin_required
from db.session import get_db_session
from schemas.media_schema import MediaOut, MediaRenameRequest, MediaDeleteRequest
from schemas.query_schema import ListQuery
from services import media_service
from utils.responses import success_response
from utils.storage import MediaStorage, get_media_storage
from utils.timing import timeit

router = APIRouter(prefix="/media", dependencies=[Depends(admin_required)])


@router.get("")
@timeit("list_media")
async def list_media(query: Annotated[ListQuery, Query()], db: AsyncSession = Depends(get_db_session)):
    page = await media_service.list_media(db, query)
    page["items"] = [MediaOut.model_validate(m) for m in page["items"]]
    return success_response("Media retrieved successfully", page)


@router.post("", status_code=201)
@timeit("upload_media")
async def upload_media(
    files: List[UploadFile] = File(...),
    db: AsyncSession = Depends(get_db_session),
    storage: MediaStorage = Depends(get_media_storage),
):
    uploads = [
        media_service.MediaUpload(filename=f.filename or "upload", content=await f.read(), content_type=f.content_type)
        for f in files
    ]
    rows = await media_service.upload_files(db, storage, uploads)
    return success_response(
        f"{len(rows)} file{'s' if len(rows) != 1 else ''} uploaded successfully",
        [media_service.describe_upload(row) for row in rows],
        status_code=201,
    )


@router.delete("")
@timeit("delete_media_by_urls")
async def delete_media_by_urls(
    data: MediaDeleteRequest,
    db: AsyncSession = Depends(get_db_session),
    storage: MediaStorage = Depends(get_media_storage),
):
    rows = await media_service.delete_media_by_urls(db, storage, data.urls)
    return success_response("Files deleted successfully", [MediaOut.model_validate(m) for m in rows])


@router.put("/{media_id}")
@timeit("rename_media")
async def rename_media(media_id: int, data: MediaRenameRequest, db: AsyncSession = Depends(get_db_session)):
    media = await media_service.rename_media(db, media_id, data.name)
    return success_response("File name updated successfully", MediaOut.model_validate(media))


@router.delete("/{media_id}")
@timeit("delete_media")
async def delete_media(
    media_id: int,
    db: AsyncSession = Depends(get_db_session),
    storage: MediaStorage = Depends(get_media_storage),
):
    media = await media_service.delete_media(db, storage, media_id)
    return success_response("File deleted successfully", MediaOut.model_validate(media))
