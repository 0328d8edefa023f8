"""Test configuration and fixtures."""

import os
from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Set up test environment variables BEFORE importing app modules
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret-for-testing-only-0123456789abcdef")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from forum.config import Settings
from forum.core.mailer import LoggingMailer
from forum.core.password_engine import Argon2Params, PasswordEngine
from forum.core.user_store import UserStore
from forum.database import Base, get_db
from forum.models import User, UserRole

TEST_SECRET = "test-jwt-secret-for-testing-only-0123456789abcdef"
TEST_PASSWORD = "correct horse"

# Minimal Argon2 cost so the suite stays fast
fast_password_engine = PasswordEngine(Argon2Params(time_cost=1, memory_cost=1024, parallelism=1))


@pytest.fixture(autouse=True)
def fast_hashing(monkeypatch):
    """Use the cheap hasher everywhere routes hash passwords."""
    monkeypatch.setattr("forum.api.auth.password_engine", fast_password_engine)
    monkeypatch.setattr("forum.api.users.password_engine", fast_password_engine)


@pytest.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session_maker = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session_maker() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def store(db_session: AsyncSession) -> UserStore:
    return UserStore(db_session)


@pytest.fixture
def settings() -> Settings:
    """Settings with no OAuth provider configured and rate limits off."""
    return Settings(
        jwt_secret_key=TEST_SECRET,
        jwt_maxage=60,
        host_url="http://forum.test",
        email_verification=True,
        rate_limit_enabled=False,
        _env_file=None,
    )


@pytest.fixture
def mailer() -> LoggingMailer:
    return LoggingMailer()


@pytest.fixture
def make_app(db_session: AsyncSession, settings: Settings, mailer: LoggingMailer):
    """Build an app bound to the test session; kwargs go to create_app."""
    from forum.main import create_app

    def _make(app_settings: Settings | None = None, **kwargs):
        kwargs.setdefault("mailer", mailer)
        app = create_app(app_settings or settings, **kwargs)

        async def override_get_db():
            yield db_session

        app.dependency_overrides[get_db] = override_get_db
        return app

    return _make


@pytest.fixture
def app(make_app):
    return make_app()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://forum.test") as ac:
        yield ac


async def create_user(
    store: UserStore,
    name: str = "alice",
    email: str = "alice@example.com",
    password: str | None = TEST_PASSWORD,
    role: UserRole = UserRole.USER,
    verified: bool = True,
) -> User:
    return await store.insert_user(
        name=name,
        email=email,
        password_hash=fast_password_engine.hash_password(password) if password else None,
        role=role,
        verified=verified,
    )


@pytest.fixture
async def test_user(store: UserStore) -> User:
    """Create a verified regular user."""
    return await create_user(store)


@pytest.fixture
async def admin_user(store: UserStore) -> User:
    return await create_user(store, name="root", email="root@example.com", role=UserRole.ADMIN)


@pytest.fixture
async def mod_user(store: UserStore) -> User:
    return await create_user(store, name="mod", email="mod@example.com", role=UserRole.MOD)


def bearer(user: User, secret: str = TEST_SECRET, ttl_minutes: int = 60) -> dict[str, str]:
    from forum.auth.jwt import create_access_token

    return {"Authorization": f"Bearer {create_access_token(user.id, secret, ttl_minutes)}"}
