"""One-time passcode lifecycle: issue, verify, expire and delete.

Codes are scoped to a (user, purpose) pair. The ``user_otps`` table holds at
most one row per pair, so a fresh issuance replaces the previous code and a
purpose can never be satisfied by another purpose's code.
"""
import hmac
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from sqlalchemy import select, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import AppError, OTPNotFound, OTPExpired, OTPMismatch
from db.models.enums import OTPPurpose
from db.models.user_otp import UserOTP
from utils.db import safe_commit

logger = logging.getLogger("authkit.security")

ISSUE_ATTEMPTS = 3


def utcnow() -> datetime:
    """Naive UTC now, the representation stored in ``user_otps.expires_at``."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _as_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


@dataclass(frozen=True)
class OTPConfig:
    ttl_minutes: int = 5
    length: int = 6
    show_otp: bool = False

    @classmethod
    def from_settings(cls, settings) -> "OTPConfig":
        return cls(
            ttl_minutes=int(settings.OTP_TTL_MINUTES),
            length=int(settings.OTP_LENGTH),
            show_otp=bool(settings.SHOW_OTP),
        )


class OTPManager:
    def __init__(self, db: AsyncSession, config: Optional[OTPConfig] = None, clock: Optional[Callable[[], datetime]] = None):
        self.db = db
        self.config = config or OTPConfig()
        self.clock = clock or utcnow

    def generate_code(self) -> str:
        """Uniform fixed-width digit string; leading zeros are kept."""
        return f"{secrets.randbelow(10 ** self.config.length):0{self.config.length}d}"

    def normalize_code(self, code) -> str:
        # Numeric submissions lose their leading zeros on the way in
        if isinstance(code, int):
            return f"{code:0{self.config.length}d}"
        return str(code).strip()

    async def _fetch(self, user_id: int, purpose: OTPPurpose) -> Optional[UserOTP]:
        result = await self.db.execute(
            select(UserOTP).where(UserOTP.user_id == user_id, UserOTP.purpose == purpose.value)
        )
        return result.scalars().first()

    async def get(self, user, purpose: OTPPurpose) -> Optional[UserOTP]:
        return await self._fetch(user.id, OTPPurpose(purpose))

    async def issue(self, user, purpose: OTPPurpose) -> str:
        """Persist a fresh code for (user, purpose) and return it for delivery."""
        purpose = OTPPurpose(purpose)
        user_id = user.id
        code = self.generate_code()
        expires_at = self.clock() + timedelta(minutes=self.config.ttl_minutes)

        rolled_back = False
        for _ in range(ISSUE_ATTEMPTS):
            record = await self._fetch(user_id, purpose)
            if record is not None:
                record.code = code
                record.expires_at = expires_at
                await safe_commit(self.db, client_error_message="Could not issue OTP")
                break
            self.db.add(UserOTP(user_id=user_id, purpose=purpose.value, code=code, expires_at=expires_at))
            try:
                await self.db.commit()
                break
            except IntegrityError:
                # Another request inserted the row first; overwrite it on the next pass
                await self.db.rollback()
                rolled_back = True
        else:
            raise AppError("Could not issue OTP", status_code=409, error_code="OTPIssueConflict")
        if rolled_back:
            # Rollback expires every loaded instance, the caller's user included
            await self.db.refresh(user)

        logger.info(f"Issued {purpose.value} OTP for user {user_id}, expires at {expires_at.isoformat()}")
        if self.config.show_otp:
            logger.info(f"OTP for user {user_id} ({purpose.value}): {code}")
        return code

    async def verify(self, user, code, purpose: OTPPurpose, consume: bool = True) -> None:
        """Check a submitted code; raises OTPNotFound, OTPExpired or OTPMismatch.

        A successful check deletes the record unless ``consume`` is False, in
        which case the caller owns the later :meth:`delete`.
        """
        purpose = OTPPurpose(purpose)
        record = await self.get(user, purpose)
        if record is None:
            raise OTPNotFound()
        if self.clock() > _as_naive_utc(record.expires_at):
            raise OTPExpired()
        if not hmac.compare_digest(self.normalize_code(code).encode(), record.code.encode()):
            raise OTPMismatch()

        logger.info(f"Verified {purpose.value} OTP for user {user.id}")
        if consume:
            await self.delete(user, purpose)

    async def delete(self, user, purpose: OTPPurpose) -> None:
        """Remove the (user, purpose) record. Deleting nothing is not an error."""
        purpose = OTPPurpose(purpose)
        await self.db.execute(
            delete(UserOTP).where(UserOTP.user_id == user.id, UserOTP.purpose == purpose.value)
        )
        await safe_commit(self.db, client_error_message="Could not delete OTP")
