from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import admin_required
from core.exceptions import NotificationDeliveryFailed
from db.session import get_db_session
from schemas.email_schema import EmailConfigurationOut, EmailConfigurationUpdate
from schemas.query_schema import ListQuery
from services import email_service
from utils.responses import success_response
from utils.timing import timeit

router = APIRouter(prefix="/email", dependencies=[Depends(admin_required)])


@router.get("")
@timeit("list_email_configurations")
async def list_email_configurations(query: Annotated[ListQuery, Query()], db: AsyncSession = Depends(get_db_session)):
    page = await email_service.list_email_configurations(db, query)
    page["items"] = [EmailConfigurationOut.model_validate(c) for c in page["items"]]
    return success_response("Email configurations retrieved successfully", page)


@router.post("/test-smtp")
@timeit("test_smtp")
async def test_smtp(data: EmailConfigurationUpdate):
    try:
        await email_service.try_smtp_settings(data)
    except NotificationDeliveryFailed as exc:
        return success_response("SMTP connection failed", {"success": False, "error": exc.message})
    return success_response("SMTP connection successful", {"success": True})


@router.get("/{config_id}")
@timeit("show_email_configuration")
async def show_email_configuration(config_id: int, db: AsyncSession = Depends(get_db_session)):
    config = await email_service.get_email_configuration(db, config_id)
    return success_response("Email configuration retrieved successfully", EmailConfigurationOut.model_validate(config))


@router.put("/{config_id}")
@timeit("update_email_configuration")
async def update_email_configuration(config_id: int, data: EmailConfigurationUpdate, db: AsyncSession = Depends(get_db_session)):
    config = await email_service.update_email_configuration(db, config_id, data)
    return success_response("Email configuration updated successfully", EmailConfigurationOut.model_validate(config))
