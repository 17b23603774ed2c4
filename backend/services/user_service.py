from datetime import datetime, timezone
from typing import Optional
import logging

from sqlalchemy import select, or_, func, delete
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import UserNotFound, UserAlreadyExists, InvalidCredentials
from core.security import get_password_hash, verify_password
from db.models.enums import Role
from db.models.user import User as UserModel
from db.models.user_otp import UserOTP
from schemas.query_schema import ListQuery
from utils.db import safe_commit
from utils.sorting import SortingHelper

logger = logging.getLogger(__name__)

user_sorting = SortingHelper(UserModel, ["id", "name", "username", "email", "role", "email_verified", "created_at", "updated_at"])


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


async def _first(db: AsyncSession, *criteria) -> Optional[UserModel]:
    result = await db.execute(select(UserModel).where(*criteria))
    return result.scalars().first()


async def find_user_by_id(db: AsyncSession, user_id: int) -> UserModel:
    user = await _first(db, UserModel.id == user_id)
    if user is None:
        raise UserNotFound()
    return user


async def find_user_by_email(db: AsyncSession, email: str) -> UserModel:
    user = await _first(db, UserModel.email == normalize_email(email))
    if user is None:
        raise UserNotFound()
    return user


async def find_user_by_username(db: AsyncSession, username: str) -> UserModel:
    user = await _first(db, UserModel.username == username.strip())
    if user is None:
        raise UserNotFound()
    return user


async def find_user_by_username_or_email(db: AsyncSession, username_or_email: str) -> UserModel:
    key = username_or_email.strip()
    user = await _first(db, or_(UserModel.username == key, UserModel.email == normalize_email(key)))
    if user is None:
        raise UserNotFound()
    return user


async def create_user(
    db: AsyncSession,
    *,
    name: str,
    username: str,
    email: str,
    password: str,
    role: Role = Role.MEMBER,
    email_verified: bool = False,
) -> UserModel:
    """Create a user with a hashed password; username and email must be unused"""
    email = normalize_email(email)
    if await _first(db, UserModel.username == username):
        raise UserAlreadyExists("Username already registered")
    if await _first(db, UserModel.email == email):
        raise UserAlreadyExists("Email already registered")

    user = UserModel(
        name=name,
        username=username,
        email=email,
        password=get_password_hash(password),
        role=Role(role).value,
        email_verified=datetime.now(timezone.utc) if email_verified else None,
    )
    db.add(user)
    await safe_commit(db, client_error_message="Username or email already registered")
    await db.refresh(user)
    logger.info(f"Created user {user.id} ({user.username})")
    return user


async def update_user(db: AsyncSession, user_id: int, **fields) -> UserModel:
    user = await find_user_by_id(db, user_id)
    for key, value in fields.items():
        if not hasattr(UserModel, key):
            raise ValueError(f"Unknown user field '{key}'")
        setattr(user, key, value)
    await safe_commit(db, client_error_message="Invalid user update")
    await db.refresh(user)
    return user


async def mark_email_verified(db: AsyncSession, user_id: int) -> UserModel:
    return await update_user(db, user_id, email_verified=datetime.now(timezone.utc))


async def change_password(db: AsyncSession, user_id: int, new_password: str) -> UserModel:
    user = await update_user(db, user_id, password=get_password_hash(new_password))
    logger.info(f"Password changed for user {user_id}")
    return user


def check_password(password: str, user: UserModel) -> None:
    if not verify_password(password, user.password):
        raise InvalidCredentials("Invalid username, email or password")


async def list_users(db: AsyncSession, query: ListQuery, roles: Optional[list[str]] = None) -> dict:
    conditions = []
    if query.search:
        pattern = f"%{query.search.strip()}%"
        conditions.append(or_(
            UserModel.name.ilike(pattern),
            UserModel.username.ilike(pattern),
            UserModel.email.ilike(pattern),
        ))
    if roles:
        conditions.append(UserModel.role.in_(roles))

    total = (await db.execute(select(func.count(UserModel.id)).where(*conditions))).scalar_one()
    result = await db.execute(
        select(UserModel)
        .where(*conditions)
        .order_by(user_sorting.apply_sorting(query.sort_by, query.sort_order))
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


async def delete_users(db: AsyncSession, ids: list[int]) -> int:
    existing = (await db.execute(select(UserModel.id).where(UserModel.id.in_(ids)))).scalars().all()
    if not existing:
        raise UserNotFound("No matching users found")
    await db.execute(delete(UserOTP).where(UserOTP.user_id.in_(existing)))
    await db.execute(delete(UserModel).where(UserModel.id.in_(existing)))
    await safe_commit(db, client_error_message="Could not delete users")
    logger.info(f"Deleted users {list(existing)}")
    return len(existing)
