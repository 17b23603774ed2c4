from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import logging

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base class for errors that map onto a client-facing JSON response"""

    status_code: int = 400
    message: str = "Bad request"

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None, error_code: Optional[str] = None):
        self.message = message or self.message
        self.status_code = status_code or self.status_code
        self.error_code = error_code or self.__class__.__name__
        super().__init__(self.message)


class UserNotFound(AppError):
    status_code = 404
    message = "User not found"


class UserAlreadyExists(AppError):
    status_code = 409
    message = "User already exists"


class InvalidCredentials(AppError):
    status_code = 401
    message = "Invalid credentials"


class AccountNotVerified(AppError):
    status_code = 403
    message = "Account is not verified"


class AccountAlreadyVerified(AppError):
    status_code = 400
    message = "User is already verified"


class EmailConfigurationNotFound(AppError):
    status_code = 404
    message = "Email configuration not found"


class MediaNotFound(AppError):
    status_code = 404
    message = "File not found"


class NoFilesUploaded(AppError):
    status_code = 400
    message = "No files uploaded"


class FileTooLarge(AppError):
    status_code = 413
    message = "File is too large"


class MediaStorageError(AppError):
    status_code = 502
    message = "Failed to store file"


class OTPError(AppError):
    """Raised when an OTP fails a lifecycle check"""

    status_code = 400
    message = "Invalid OTP"


class OTPNotFound(OTPError):
    message = "No OTP has been requested"


class OTPExpired(OTPError):
    message = "OTP has expired"


class OTPMismatch(OTPError):
    message = "Invalid OTP"


class NotificationDeliveryFailed(AppError):
    status_code = 502
    message = "Failed to deliver notification"


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if isinstance(exc, OTPError):
            logger.warning(f"OTP rejected at {request.url.path}: {exc.error_code}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.message, "error_code": exc.error_code},
        )

    # Global exception handler to ensure 500s for unexpected errors
    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error at {request.url.path}: {exc}")
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})
