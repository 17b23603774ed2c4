"""Registration, login step-up and password reset flows built on the OTP manager."""
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.exceptions import AccountNotVerified, AccountAlreadyVerified
from core.security import create_access_token, create_refresh_token
from db.models.enums import OTPPurpose
from schemas.auth_schema import (
    UserRegisterRequest,
    UsernameOrEmailRequest,
    UserIdentityRequest,
    UserLoginRequest,
    EmailRequest,
    OTPVerifyRequest,
    PasswordResetRequest,
)
from schemas.user_schema import UserOut
from services import user_service
from services.email_service import send_otp_email
from services.otp_service import OTPConfig, OTPManager

logger = logging.getLogger(__name__)

VERIFICATION_TEMPLATE = "account_verification_otp"
LOGIN_TEMPLATE = "login_otp"
PASSWORD_RESET_TEMPLATE = "password_reset"


def get_otp_config() -> OTPConfig:
    return OTPConfig.from_settings(settings)


def _serialize_user(user) -> dict:
    return UserOut.model_validate(user).model_dump(mode="json")


def _otp_payload(config: OTPConfig, otp: str) -> dict:
    payload = {"otp_expiration_time": config.ttl_minutes}
    if config.show_otp:
        payload["otp"] = otp
    return payload


class AuthService:
    def __init__(self, db: AsyncSession, config: Optional[OTPConfig] = None, otp_manager: Optional[OTPManager] = None):
        self.db = db
        self.config = config or get_otp_config()
        self.otp = otp_manager or OTPManager(db, self.config)

    async def _issue_and_send(self, user, purpose: OTPPurpose, template_name: str) -> dict:
        otp = await self.otp.issue(user, purpose)
        # Delivery is best effort; the issued code stays valid either way
        await send_otp_email(self.db, template_name, user, otp, self.config.ttl_minutes)
        return _otp_payload(self.config, otp)

    async def register(self, data: UserRegisterRequest) -> dict:
        user = await user_service.create_user(
            self.db,
            name=data.name,
            username=data.username,
            email=data.email,
            password=data.password,
        )
        payload = await self._issue_and_send(user, OTPPurpose.EMAIL_VERIFICATION, VERIFICATION_TEMPLATE)
        return {"user": _serialize_user(user), **payload}

    async def request_verification_otp(self, data: UsernameOrEmailRequest) -> dict:
        user = await user_service.find_user_by_username_or_email(self.db, data.username_or_email)
        if user.email_verified:
            raise AccountAlreadyVerified()
        return await self._issue_and_send(user, OTPPurpose.EMAIL_VERIFICATION, VERIFICATION_TEMPLATE)

    async def verify_registration(self, data: OTPVerifyRequest) -> dict:
        user = await user_service.find_user_by_email(self.db, data.email)
        if user.email_verified:
            raise AccountAlreadyVerified()
        await self.otp.verify(user, data.otp, OTPPurpose.EMAIL_VERIFICATION)
        user = await user_service.mark_email_verified(self.db, user.id)
        logger.info(f"User {user.id} verified their email")
        return _serialize_user(user)

    async def _check_identity(self, data: UserIdentityRequest):
        user = await user_service.find_user_by_username_or_email(self.db, data.username_or_email)
        user_service.check_password(data.password, user)
        if not user.email_verified:
            raise AccountNotVerified()
        return user

    async def verify_identity(self, data: UserIdentityRequest) -> dict:
        """First login step: password check, then a LOGIN_OTP is mailed."""
        user = await self._check_identity(data)
        return await self._issue_and_send(user, OTPPurpose.LOGIN_OTP, LOGIN_TEMPLATE)

    async def login(self, data: UserLoginRequest) -> dict:
        user = await self._check_identity(data)
        await self.otp.verify(user, data.otp, OTPPurpose.LOGIN_OTP)
        claims = {"sub": str(user.id), "username": user.username, "role": user.role}
        logger.info(f"User {user.id} logged in")
        return {
            "access_token": create_access_token(claims),
            "refresh_token": create_refresh_token(claims),
            "token_type": "bearer",
            "user": _serialize_user(user),
        }

    async def request_password_reset(self, data: EmailRequest) -> dict:
        user = await user_service.find_user_by_email(self.db, data.email)
        return await self._issue_and_send(user, OTPPurpose.PASSWORD_RESET, PASSWORD_RESET_TEMPLATE)

    async def verify_password_reset(self, data: OTPVerifyRequest) -> None:
        """Check the reset code without using it up; confirm still needs it."""
        user = await user_service.find_user_by_email(self.db, data.email)
        await self.otp.verify(user, data.otp, OTPPurpose.PASSWORD_RESET, consume=False)

    async def confirm_password_reset(self, data: PasswordResetRequest) -> None:
        user = await user_service.find_user_by_email(self.db, data.email)
        await self.otp.verify(user, data.otp, OTPPurpose.PASSWORD_RESET, consume=False)
        await self.otp.delete(user, OTPPurpose.PASSWORD_RESET)
        await user_service.change_password(self.db, user.id, data.password)
