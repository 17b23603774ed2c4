from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_optional_user, get_current_user
from db.session import get_db_session
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
from services.auth_service import AuthService
from utils.responses import success_response
from utils.timing import timeit

router = APIRouter(prefix="/auth")


def get_auth_service(db: AsyncSession = Depends(get_db_session)) -> AuthService:
    return AuthService(db)


@router.get("/me")
@timeit("auth_me")
async def me(user=Depends(get_optional_user)):
    if user is None:
        return success_response("No session found")
    return success_response("Authorized", UserOut.model_validate(user))


@router.post("/register", status_code=201)
@timeit("register")
async def register(data: UserRegisterRequest, service: AuthService = Depends(get_auth_service)):
    return success_response("User registered. Verification OTP sent", await service.register(data), status_code=201)


@router.post("/register/otp")
@timeit("register_otp")
async def request_verification_otp(data: UsernameOrEmailRequest, service: AuthService = Depends(get_auth_service)):
    return success_response("OTP sent", await service.request_verification_otp(data))


@router.post("/register/verify")
@timeit("register_verify")
async def verify_registration(data: OTPVerifyRequest, service: AuthService = Depends(get_auth_service)):
    return success_response("User verified successfully", await service.verify_registration(data))


@router.post("/verify-identity")
@timeit("verify_identity")
async def verify_identity(data: UserIdentityRequest, service: AuthService = Depends(get_auth_service)):
    return success_response("Login OTP sent", await service.verify_identity(data))


@router.post("/login")
@timeit("login")
async def login(data: UserLoginRequest, service: AuthService = Depends(get_auth_service)):
    return success_response("Login successful", await service.login(data))


@router.post("/reset-password/request")
@timeit("reset_password_request")
async def reset_password_request(data: EmailRequest, service: AuthService = Depends(get_auth_service)):
    return success_response("Password reset OTP sent", await service.request_password_reset(data))


@router.post("/reset-password/verify")
@timeit("reset_password_verify")
async def reset_password_verify(data: OTPVerifyRequest, service: AuthService = Depends(get_auth_service)):
    await service.verify_password_reset(data)
    return success_response("OTP verified successfully")


@router.post("/reset-password/confirm")
@timeit("reset_password_confirm")
async def reset_password_confirm(data: PasswordResetRequest, service: AuthService = Depends(get_auth_service)):
    await service.confirm_password_reset(data)
    return success_response("User password reset")


@router.post("/logout")
@timeit("logout")
async def logout(user=Depends(get_current_user)):
    # Tokens are stateless; the client discards them
    return success_response("Logged out")
