"""Pytest configuration for all tests."""

import os
from typing import AsyncGenerator

# Settings require both secrets; set them before anything reads the environment.
os.environ.setdefault("AUTHCORE_JWT_ACCESS_SECRET", "test-access-secret-0123456789abcdef")
os.environ.setdefault("AUTHCORE_JWT_REFRESH_SECRET", "test-refresh-secret-0123456789abcdef")
os.environ.setdefault("AUTHCORE_ENVIRONMENT", "testing")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from authcore.core.config import get_settings
from authcore.domain.services import SessionManager
from authcore.infrastructure.auth import MIN_COST_FACTOR, TokenCodec
from authcore.infrastructure.persistence import models  # noqa: F401
from authcore.infrastructure.persistence.database import Base, enable_sqlite_savepoints
from authcore.infrastructure.persistence.repositories import (
    RefreshTokenRepository,
    UserRepository,
)


@pytest.fixture(autouse=True)
def _reset_settings_cache():
    """Make every test read settings from the current environment."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session.

    Uses an in-memory SQLite database for testing.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    enable_sqlite_savepoints(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with session_factory() as session:
        yield session
        await session.rollback()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def token_codec() -> TokenCodec:
    """Codec with distinct test secrets and default lifetimes."""
    return TokenCodec(
        access_secret="unit-access-secret",
        refresh_secret="unit-refresh-secret",
        access_ttl="15m",
        refresh_ttl="7d",
    )


@pytest.fixture
def user_repository(db_session: AsyncSession) -> UserRepository:
    return UserRepository(db_session)


@pytest.fixture
def refresh_token_repository(db_session: AsyncSession) -> RefreshTokenRepository:
    return RefreshTokenRepository(db_session)


@pytest.fixture
def make_session_manager(db_session: AsyncSession, token_codec: TokenCodec):
    """Build session managers over the test database.

    Uses the cheapest cost factor so tests stay fast.
    """

    def _make(codec: TokenCodec | None = None, cost: int = MIN_COST_FACTOR) -> SessionManager:
        return SessionManager(
            session=db_session,
            users=UserRepository(db_session),
            refresh_tokens=RefreshTokenRepository(db_session),
            token_codec=codec or token_codec,
            password_hash_cost=cost,
        )

    return _make


@pytest.fixture
def session_manager(make_session_manager) -> SessionManager:
    return make_session_manager()


@pytest_asyncio.fixture
async def client(db_session: AsyncSession, monkeypatch) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client with overridden database dependency."""
    from authcore.infrastructure.api.app import create_app
    from authcore.infrastructure.persistence.database import get_db_session

    monkeypatch.setenv("AUTHCORE_PASSWORD_HASH_COST", str(MIN_COST_FACTOR))
    get_settings.cache_clear()

    app = create_app()
    app.dependency_overrides[get_db_session] = lambda: db_session

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides = {}
