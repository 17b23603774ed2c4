"""
Pytest configuration and fixtures for the backend tests.
"""
import os
import tempfile
import uuid

# Settings are read at import time; provide a test environment first
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ADMIN_EMAIL", "admin@example.com")
os.environ.setdefault("ADMIN_PASSWORD", "Adm1n!Passw0rd")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="authkit-logs-"))
os.environ.setdefault("LOG_LEVEL", "INFO")
os.environ.setdefault("MEDIA_DIR", tempfile.mkdtemp(prefix="authkit-media-"))
os.environ["SHOW_OTP"] = "false"
os.environ.pop("SMTP_HOST", None)

from typing import AsyncGenerator
from datetime import datetime, timedelta

import pytest
from faker import Faker
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from main import app
from core.config import settings
from core.security import create_access_token
from db.base import Base
from db.models.enums import Role
from db.session import get_db_session
from services.user_service import create_user

# Initialize Faker for test data generation
fake = Faker()

DEFAULT_PASSWORD = "Str0ng!Passw0rd"


class FakeClock:
    """Controllable naive-UTC clock for OTP expiry tests."""

    def __init__(self, start: datetime = datetime(2025, 1, 1, 12, 0, 0)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, minutes: float = 0, seconds: float = 0) -> None:
        self.now += timedelta(minutes=minutes, seconds=seconds)


def unique_username() -> str:
    return f"user_{uuid.uuid4().hex[:10]}"


@pytest.fixture
async def test_engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    TestSessionLocal = async_sessionmaker(bind=test_engine, class_=AsyncSession, expire_on_commit=False)
    async with TestSessionLocal() as session:
        yield session


@pytest.fixture
async def async_client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Async test client sharing the test database session."""
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db_session] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def show_otp(monkeypatch):
    """Echo issued codes in API responses, as SHOW_OTP=true does."""
    monkeypatch.setattr(settings, "SHOW_OTP", True)


@pytest.fixture
def user_factory(db_session: AsyncSession):
    async def _create(**overrides):
        data = {
            "name": fake.name(),
            "username": unique_username(),
            "email": fake.unique.email(),
            "password": DEFAULT_PASSWORD,
            "role": Role.MEMBER,
            "email_verified": True,
        }
        data.update(overrides)
        return await create_user(db_session, **data)

    return _create


@pytest.fixture
async def member_user(user_factory):
    return await user_factory()


@pytest.fixture
async def admin_user(user_factory):
    return await user_factory(role=Role.ADMIN, username="site_admin")


def auth_headers(user) -> dict:
    token = create_access_token({"sub": str(user.id), "username": user.username, "role": user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def sample_registration():
    """Sample registration payload for testing."""
    return {
        "name": fake.name(),
        "username": unique_username(),
        "email": fake.unique.email(),
        "password": DEFAULT_PASSWORD,
    }
