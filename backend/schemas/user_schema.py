from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from db.models.enums import Role
from schemas.auth_schema import Username, NewPassword


class UserOut(BaseModel):
    id: int
    name: str
    username: str
    email: EmailStr
    image: Optional[str] = None
    role: Role
    email_verified: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UserCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    username: Username
    email: EmailStr
    password: NewPassword
    role: Role = Role.MEMBER
    email_verified: bool = False


class UserDeleteRequest(BaseModel):
    ids: List[int] = Field(min_length=1)

    @field_validator("ids")
    @classmethod
    def _positive_ids(cls, value: List[int]) -> List[int]:
        if any(i <= 0 for i in value):
            raise ValueError("User ID must be a positive number")
        return value
