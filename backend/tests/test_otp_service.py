"""
Unit tests for the OTP lifecycle manager.
"""
import pytest
from sqlalchemy import select, func, delete

from core.exceptions import AppError, OTPNotFound, OTPExpired, OTPMismatch
from db.models.enums import OTPPurpose
from db.models.user_otp import UserOTP
from services.otp_service import OTPConfig, OTPManager


@pytest.fixture
def manager(db_session, clock) -> OTPManager:
    return OTPManager(db_session, OTPConfig(ttl_minutes=5, length=6), clock=clock)


def fixed_codes(monkeypatch, manager: OTPManager, *codes: str) -> None:
    it = iter(codes)
    monkeypatch.setattr(manager, "generate_code", lambda: next(it))


class TestIssue:
    """OTP issuance and storage."""

    @pytest.mark.asyncio
    async def test_issue_returns_persisted_code(self, manager, member_user, clock):
        code = await manager.issue(member_user, OTPPurpose.EMAIL_VERIFICATION)

        assert len(code) == 6 and code.isdigit()
        record = await manager.get(member_user, OTPPurpose.EMAIL_VERIFICATION)
        assert record.code == code
        assert record.purpose == "EMAIL_VERIFICATION"
        assert record.expires_at == clock.now.replace(minute=5)

    def test_generate_code_is_fixed_width(self):
        manager = OTPManager(None, OTPConfig(length=8))
        codes = [manager.generate_code() for _ in range(200)]
        assert all(len(c) == 8 and c.isdigit() for c in codes)
        assert len(set(codes)) > 1

    @pytest.mark.asyncio
    async def test_reissue_replaces_previous_record(self, manager, member_user, monkeypatch, db_session):
        fixed_codes(monkeypatch, manager, "111111", "222222")
        first = await manager.issue(member_user, OTPPurpose.PASSWORD_RESET)
        second = await manager.issue(member_user, OTPPurpose.PASSWORD_RESET)

        count = (await db_session.execute(
            select(func.count(UserOTP.id)).where(UserOTP.user_id == member_user.id)
        )).scalar_one()
        assert count == 1

        with pytest.raises(OTPMismatch):
            await manager.verify(member_user, first, OTPPurpose.PASSWORD_RESET)
        await manager.verify(member_user, second, OTPPurpose.PASSWORD_RESET)

    @pytest.mark.asyncio
    async def test_reissue_extends_expiry(self, manager, member_user, clock):
        await manager.issue(member_user, OTPPurpose.LOGIN_OTP)
        clock.advance(minutes=4)
        code = await manager.issue(member_user, OTPPurpose.LOGIN_OTP)
        clock.advance(minutes=4)
        await manager.verify(member_user, code, OTPPurpose.LOGIN_OTP)

    @pytest.mark.asyncio
    async def test_purposes_coexist_per_user(self, manager, member_user, db_session):
        for purpose in OTPPurpose:
            await manager.issue(member_user, purpose)
        count = (await db_session.execute(
            select(func.count(UserOTP.id)).where(UserOTP.user_id == member_user.id)
        )).scalar_one()
        assert count == len(OTPPurpose)


class TestVerify:
    """Verification order: not found, expired, mismatch."""

    @pytest.mark.asyncio
    async def test_verify_right_after_issue(self, manager, member_user):
        code = await manager.issue(member_user, OTPPurpose.EMAIL_VERIFICATION)
        await manager.verify(member_user, code, OTPPurpose.EMAIL_VERIFICATION)

    @pytest.mark.asyncio
    async def test_verify_consumes_by_default(self, manager, member_user):
        code = await manager.issue(member_user, OTPPurpose.LOGIN_OTP)
        await manager.verify(member_user, code, OTPPurpose.LOGIN_OTP)

        assert await manager.get(member_user, OTPPurpose.LOGIN_OTP) is None
        with pytest.raises(OTPNotFound):
            await manager.verify(member_user, code, OTPPurpose.LOGIN_OTP)

    @pytest.mark.asyncio
    async def test_verify_without_consuming_keeps_record(self, manager, member_user):
        code = await manager.issue(member_user, OTPPurpose.PASSWORD_RESET)
        await manager.verify(member_user, code, OTPPurpose.PASSWORD_RESET, consume=False)
        await manager.verify(member_user, code, OTPPurpose.PASSWORD_RESET, consume=False)
        assert await manager.get(member_user, OTPPurpose.PASSWORD_RESET) is not None

    @pytest.mark.asyncio
    async def test_wrong_code_is_mismatch_and_keeps_record(self, manager, member_user, monkeypatch):
        fixed_codes(monkeypatch, manager, "123456")
        await manager.issue(member_user, OTPPurpose.EMAIL_VERIFICATION)

        for wrong in ("654321", "12345", "1234567", 123457):
            with pytest.raises(OTPMismatch):
                await manager.verify(member_user, wrong, OTPPurpose.EMAIL_VERIFICATION)
        await manager.verify(member_user, "123456", OTPPurpose.EMAIL_VERIFICATION)

    @pytest.mark.asyncio
    async def test_never_issued_is_not_found(self, manager, member_user):
        with pytest.raises(OTPNotFound):
            await manager.verify(member_user, "000000", OTPPurpose.EMAIL_VERIFICATION)

    @pytest.mark.asyncio
    async def test_expired_code_fails_even_when_correct(self, manager, member_user, clock):
        code = await manager.issue(member_user, OTPPurpose.EMAIL_VERIFICATION)
        clock.advance(minutes=10)
        with pytest.raises(OTPExpired):
            await manager.verify(member_user, code, OTPPurpose.EMAIL_VERIFICATION)

    @pytest.mark.asyncio
    async def test_expired_takes_precedence_over_mismatch(self, manager, member_user, monkeypatch, clock):
        fixed_codes(monkeypatch, manager, "111111")
        await manager.issue(member_user, OTPPurpose.LOGIN_OTP)
        clock.advance(minutes=6)
        with pytest.raises(OTPExpired):
            await manager.verify(member_user, "999999", OTPPurpose.LOGIN_OTP)

    @pytest.mark.asyncio
    async def test_ttl_window(self, manager, member_user, clock):
        """TTL 5 minutes: valid at +4, expired at +6."""
        code = await manager.issue(member_user, OTPPurpose.EMAIL_VERIFICATION)

        clock.advance(minutes=4)
        await manager.verify(member_user, code, OTPPurpose.EMAIL_VERIFICATION, consume=False)

        clock.advance(minutes=2)
        with pytest.raises(OTPExpired):
            await manager.verify(member_user, code, OTPPurpose.EMAIL_VERIFICATION)

    @pytest.mark.asyncio
    async def test_expiry_instant_is_still_valid(self, manager, member_user, clock):
        code = await manager.issue(member_user, OTPPurpose.LOGIN_OTP)
        clock.advance(minutes=5)
        await manager.verify(member_user, code, OTPPurpose.LOGIN_OTP, consume=False)
        clock.advance(seconds=1)
        with pytest.raises(OTPExpired):
            await manager.verify(member_user, code, OTPPurpose.LOGIN_OTP)

    @pytest.mark.asyncio
    async def test_purpose_isolation(self, manager, member_user):
        code = await manager.issue(member_user, OTPPurpose.LOGIN_OTP)

        with pytest.raises(OTPNotFound):
            await manager.verify(member_user, code, OTPPurpose.PASSWORD_RESET)
        # The LOGIN_OTP record is untouched by the failed attempt
        await manager.verify(member_user, code, OTPPurpose.LOGIN_OTP)

    @pytest.mark.asyncio
    async def test_codes_are_scoped_per_user(self, manager, user_factory):
        alice = await user_factory()
        bob = await user_factory()
        code = await manager.issue(alice, OTPPurpose.LOGIN_OTP)
        with pytest.raises(OTPNotFound):
            await manager.verify(bob, code, OTPPurpose.LOGIN_OTP)

    @pytest.mark.asyncio
    async def test_integer_submission_keeps_leading_zeros(self, manager, member_user, monkeypatch):
        fixed_codes(monkeypatch, manager, "001234")
        await manager.issue(member_user, OTPPurpose.PASSWORD_RESET)
        await manager.verify(member_user, 1234, OTPPurpose.PASSWORD_RESET)


class TestDelete:
    """Explicit invalidation."""

    @pytest.mark.asyncio
    async def test_delete_then_verify_is_not_found(self, manager, member_user):
        code = await manager.issue(member_user, OTPPurpose.PASSWORD_RESET)
        await manager.delete(member_user, OTPPurpose.PASSWORD_RESET)
        with pytest.raises(OTPNotFound):
            await manager.verify(member_user, code, OTPPurpose.PASSWORD_RESET)

    @pytest.mark.asyncio
    async def test_delete_is_idempotent(self, manager, member_user):
        await manager.delete(member_user, OTPPurpose.EMAIL_VERIFICATION)
        await manager.delete(member_user, OTPPurpose.EMAIL_VERIFICATION)
        assert await manager.get(member_user, OTPPurpose.EMAIL_VERIFICATION) is None

    @pytest.mark.asyncio
    async def test_delete_only_touches_one_purpose(self, manager, member_user):
        login_code = await manager.issue(member_user, OTPPurpose.LOGIN_OTP)
        await manager.issue(member_user, OTPPurpose.PASSWORD_RESET)

        await manager.delete(member_user, OTPPurpose.PASSWORD_RESET)

        assert await manager.get(member_user, OTPPurpose.PASSWORD_RESET) is None
        await manager.verify(member_user, login_code, OTPPurpose.LOGIN_OTP)

    @pytest.mark.asyncio
    async def test_issue_after_delete(self, manager, member_user):
        await manager.issue(member_user, OTPPurpose.EMAIL_VERIFICATION)
        await manager.delete(member_user, OTPPurpose.EMAIL_VERIFICATION)
        code = await manager.issue(member_user, OTPPurpose.EMAIL_VERIFICATION)
        await manager.verify(member_user, code, OTPPurpose.EMAIL_VERIFICATION)


class TestOTPConfig:
    def test_from_settings(self):
        class _Settings:
            OTP_TTL_MINUTES = "15"
            OTP_LENGTH = 8
            SHOW_OTP = True

        config = OTPConfig.from_settings(_Settings)
        assert config == OTPConfig(ttl_minutes=15, length=8, show_otp=True)


class TestConcurrentIssue:
    """Another request inserting or removing the row between our read and write."""

    @pytest.mark.asyncio
    async def test_insert_race_overwrites_existing_row(self, manager, member_user, monkeypatch, db_session):
        await manager.issue(member_user, OTPPurpose.LOGIN_OTP)

        real_fetch = manager._fetch
        calls = []

        async def stale_first_read(user_id, purpose):
            calls.append(purpose)
            if len(calls) == 1:
                return None
            return await real_fetch(user_id, purpose)

        monkeypatch.setattr(manager, "_fetch", stale_first_read)
        code = await manager.issue(member_user, OTPPurpose.LOGIN_OTP)

        assert len(calls) == 2
        # The caller's user must stay readable after the rollback
        assert member_user.email
        record = await real_fetch(member_user.id, OTPPurpose.LOGIN_OTP)
        assert record.code == code
        count = (await db_session.execute(
            select(func.count(UserOTP.id)).where(UserOTP.user_id == member_user.id)
        )).scalar_one()
        assert count == 1

    @pytest.mark.asyncio
    async def test_row_removed_before_reread_is_inserted_again(self, manager, member_user, monkeypatch, db_session):
        await manager.issue(member_user, OTPPurpose.PASSWORD_RESET)

        real_fetch = manager._fetch
        calls = []

        async def competing_delete(user_id, purpose):
            calls.append(purpose)
            if len(calls) == 1:
                return None
            if len(calls) == 2:
                await db_session.execute(delete(UserOTP).where(UserOTP.user_id == user_id))
                await db_session.commit()
            return await real_fetch(user_id, purpose)

        monkeypatch.setattr(manager, "_fetch", competing_delete)
        code = await manager.issue(member_user, OTPPurpose.PASSWORD_RESET)

        assert member_user.username
        record = await real_fetch(member_user.id, OTPPurpose.PASSWORD_RESET)
        assert record is not None
        assert record.code == code
        await manager.verify(member_user, code, OTPPurpose.PASSWORD_RESET)

    @pytest.mark.asyncio
    async def test_gives_up_after_repeated_conflicts(self, manager, member_user, monkeypatch):
        await manager.issue(member_user, OTPPurpose.EMAIL_VERIFICATION)

        async def always_missing(user_id, purpose):
            return None

        monkeypatch.setattr(manager, "_fetch", always_missing)
        with pytest.raises(AppError) as exc_info:
            await manager.issue(member_user, OTPPurpose.EMAIL_VERIFICATION)
        assert exc_info.value.status_code == 409
