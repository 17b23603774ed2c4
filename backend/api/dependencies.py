from typing import Optional

from fastapi import Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import UserNotFound
from core.security import oauth2_scheme, verify_token
from db.models.enums import Role
from db.models.user import User as UserModel
from db.session import get_db_session
from services.user_service import find_user_by_id
import logging

logger = logging.getLogger(__name__)

_CREDENTIALS_ERROR = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Could not validate credentials",
    headers={"WWW-Authenticate": "Bearer"},
)


async def get_optional_user(token: Optional[str] = Depends(oauth2_scheme), db: AsyncSession = Depends(get_db_session)) -> Optional[UserModel]:
    """Resolve the bearer token to a user, or None when no token was sent"""
    if not token:
        return None
    payload = verify_token(token)
    if not payload:
        raise _CREDENTIALS_ERROR
    try:
        return await find_user_by_id(db, int(payload["sub"]))
    except (ValueError, UserNotFound):
        logger.warning(f"Token subject {payload.get('sub')!r} does not match a user")
        raise _CREDENTIALS_ERROR


async def get_current_user(user: Optional[UserModel] = Depends(get_optional_user)) -> UserModel:
    if user is None:
        raise _CREDENTIALS_ERROR
    return user


async def admin_required(current_user: UserModel = Depends(get_current_user)) -> UserModel:
    if current_user.role != Role.ADMIN.value:
        raise HTTPException(status_code=403, detail="Admin access required")
    return current_user
