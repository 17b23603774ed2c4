from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class MediaOut(BaseModel):
    id: int
    src: str
    alt: str
    size: int
    mime_type: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class MediaRenameRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Name is required for updating media")
        return value


class MediaDeleteRequest(BaseModel):
    urls: List[str] = Field(min_length=1)
