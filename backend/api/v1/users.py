from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import admin_required
from db.session import get_db_session
from schemas.query_schema import UserListQuery
from schemas.user_schema import UserOut, UserCreateRequest, UserDeleteRequest
from services import user_service
from utils.responses import success_response
from utils.timing import timeit

router = APIRouter(prefix="/user", dependencies=[Depends(admin_required)])


@router.get("")
@timeit("list_users")
async def list_users(
    query: Annotated[UserListQuery, Query()],
    db: AsyncSession = Depends(get_db_session),
):
    page = await user_service.list_users(db, query, query.roles)
    page["items"] = [UserOut.model_validate(u) for u in page["items"]]
    return success_response("Users retrieved successfully", page)


@router.post("", status_code=201)
@timeit("create_user")
async def create_user(data: UserCreateRequest, db: AsyncSession = Depends(get_db_session)):
    user = await user_service.create_user(
        db,
        name=data.name,
        username=data.username,
        email=data.email,
        password=data.password,
        role=data.role,
        email_verified=data.email_verified,
    )
    return success_response("User created successfully", UserOut.model_validate(user), status_code=201)


@router.delete("")
@timeit("delete_users")
async def delete_users(data: UserDeleteRequest, db: AsyncSession = Depends(get_db_session)):
    deleted = await user_service.delete_users(db, data.ids)
    return success_response(f"{deleted} user{'s' if deleted != 1 else ''} deleted successfully", {"deleted": deleted})
