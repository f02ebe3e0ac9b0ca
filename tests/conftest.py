"""Pytest configuration and fixtures."""

import os
from collections.abc import AsyncGenerator
from typing import Any
from unittest.mock import AsyncMock

# Set test environment before importing app
os.environ["ENVIRONMENT"] = "test"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool, StaticPool

from careerforge.config import settings
from careerforge.database import drop_db, get_session, init_db
from careerforge.main import app
from careerforge.models import User
from careerforge.services.auth import create_access_token, create_verification_token
from careerforge.services.email import email_service
from careerforge.services.rate_limit import get_rate_limiter
from careerforge.services.security import get_password_hash

TEST_PASSWORD = "Str0ng!Pass"


def make_engine(url: str) -> AsyncEngine:
    """Create a test engine; in-memory SQLite needs a single shared connection."""
    if url.startswith("sqlite") and ":memory:" in url:
        return create_async_engine(url, poolclass=StaticPool, connect_args={"check_same_thread": False})
    return create_async_engine(url, poolclass=NullPool)


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    """Start every test with an empty rate limiter."""
    get_rate_limiter().reset()
    yield
    get_rate_limiter().reset()


@pytest.fixture(autouse=True)
def email_backend(monkeypatch) -> AsyncMock:
    """Replace the global email backend so no mail leaves the test run."""
    backend = AsyncMock()
    backend.send.return_value = True
    monkeypatch.setattr(email_service, "_backend", backend)
    return backend


@pytest.fixture
async def test_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create a fresh test database for each test."""
    engine = make_engine(settings.database_url_test)
    await init_db(engine)

    yield engine

    await drop_db(engine)
    await engine.dispose()


@pytest.fixture
async def session_factory(test_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""

    async def override_get_session():
        yield session

    app.dependency_overrides[get_session] = override_get_session

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


async def make_user(
    session: AsyncSession,
    email: str,
    name: str = "TestUser",
    verified: bool = False,
    user_id: str | None = None,
) -> User:
    user = User(
        name=name,
        email=email,
        hashed_password=get_password_hash(TEST_PASSWORD),
        verified=verified,
    )
    if user_id:
        user.id = user_id
    session.add(user)
    await session.commit()
    return user


@pytest.fixture
async def user(session: AsyncSession) -> User:
    """Create an unverified test user."""
    return await make_user(session, "test@example.com")


@pytest.fixture
async def verified_user(session: AsyncSession) -> User:
    """Create a verified test user."""
    return await make_user(session, "verified@example.com", name="Verified", verified=True)


@pytest.fixture
def verification_token(user: User) -> str:
    """Create a verification link token for the test user."""
    return create_verification_token(user)


@pytest.fixture
def user_token(user: User) -> str:
    """Create a session JWT for the test user."""
    return create_access_token(user)


@pytest.fixture
def auth_headers(user_token: str) -> dict[str, str]:
    """Create authorization headers for the test user."""
    return {"Authorization": f"Bearer {user_token}"}


class AuthenticatedClient:
    """Wrapper for AsyncClient with authentication."""

    def __init__(self, client: AsyncClient, headers: dict[str, str]):
        self.client = client
        self.headers = headers

    async def get(self, url: str, **kwargs: Any) -> Any:
        kwargs.setdefault("headers", {}).update(self.headers)
        return await self.client.get(url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> Any:
        kwargs.setdefault("headers", {}).update(self.headers)
        return await self.client.post(url, **kwargs)


@pytest.fixture
def authenticated_client(client: AsyncClient, auth_headers: dict[str, str]) -> AuthenticatedClient:
    """Create an authenticated test client."""
    return AuthenticatedClient(client, auth_headers)
