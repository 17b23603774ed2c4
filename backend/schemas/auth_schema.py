import re
from typing import Annotated, Union

from pydantic import AfterValidator, BaseModel, EmailStr, Field

USERNAME_RE = re.compile(r"^[A-Za-z0-9_.]{3,30}$")


def validate_username(value: str) -> str:
    value = value.strip()
    if not USERNAME_RE.match(value):
        raise ValueError("Username must be 3-30 characters of letters, digits, '_' or '.'")
    return value


def validate_new_password(value: str) -> str:
    if len(value) < 8:
        raise ValueError("Password must be at least 8 characters long")
    if not re.search(r"[a-z]", value):
        raise ValueError("Password must contain a lowercase letter")
    if not re.search(r"[A-Z]", value):
        raise ValueError("Password must contain an uppercase letter")
    if not re.search(r"\d", value):
        raise ValueError("Password must contain a digit")
    if not re.search(r"[^A-Za-z0-9]", value):
        raise ValueError("Password must contain a special character")
    return value


def validate_otp(value: Union[int, str]) -> Union[int, str]:
    # Integers keep their value and are zero-padded by the OTP manager; strings must be digits
    if isinstance(value, int):
        if value <= 0:
            raise ValueError("OTP must be a positive number")
        return value
    value = value.strip()
    if not (value.isascii() and value.isdigit()):
        raise ValueError("OTP must be a positive number")
    return value


Username = Annotated[str, AfterValidator(validate_username)]
NewPassword = Annotated[str, AfterValidator(validate_new_password)]
OTPCode = Annotated[Union[int, str], AfterValidator(validate_otp)]


class UserRegisterRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    username: Username
    email: EmailStr
    password: NewPassword


class UsernameOrEmailRequest(BaseModel):
    username_or_email: str = Field(min_length=3, max_length=255)


class UserIdentityRequest(UsernameOrEmailRequest):
    password: str = Field(min_length=1)


class UserLoginRequest(UserIdentityRequest):
    otp: OTPCode


class EmailRequest(BaseModel):
    email: EmailStr


class OTPVerifyRequest(EmailRequest):
    otp: OTPCode


class PasswordResetRequest(OTPVerifyRequest):
    password: NewPassword
