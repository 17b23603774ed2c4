from enum import Enum


class Role(str, Enum):
    ADMIN = "ADMIN"
    MEMBER = "MEMBER"


class OTPPurpose(str, Enum):
    EMAIL_VERIFICATION = "EMAIL_VERIFICATION"
    LOGIN_OTP = "LOGIN_OTP"
    PASSWORD_RESET = "PASSWORD_RESET"
