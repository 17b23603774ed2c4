from datetime import datetime
from typing import Annotated, Optional

from pydantic import AfterValidator, BaseModel, EmailStr, Field


def validate_header_value(value: Optional[str]) -> Optional[str]:
    # These end up in SMTP commands and message headers
    if value is not None and ("\r" in value or "\n" in value):
        raise ValueError("Value may not contain line breaks")
    return value


HeaderValue = Annotated[Optional[str], AfterValidator(validate_header_value)]


class EmailConfigurationOut(BaseModel):
    id: int
    host: str
    port: int
    secure: bool
    username: Optional[str] = None
    from_name: Optional[str] = None
    from_email: str
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class EmailConfigurationUpdate(BaseModel):
    host: Annotated[str, Field(min_length=1), AfterValidator(validate_header_value)]
    port: int = Field(ge=1, le=65535)
    secure: bool = False
    username: HeaderValue = None
    password: Optional[str] = None
    from_name: HeaderValue = None
    from_email: EmailStr
