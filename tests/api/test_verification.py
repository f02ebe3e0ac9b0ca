"""Email verification endpoint tests."""

import base64
import json
from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient
from jose import jwt
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from careerforge.config import settings
from careerforge.models import User
from careerforge.services.auth import (
    VERIFY_EMAIL_PURPOSE,
    create_access_token,
    create_token,
    create_verification_token,
)
from tests.conftest import make_user

GENERIC_FAILURE = {"success": False, "message": "Verification link is invalid or expired."}
SUCCESS = {"success": True, "message": "User verified successfully."}


def _unsigned_token(user_id: str) -> str:
    def b64(data: dict) -> str:
        return base64.urlsafe_b64encode(json.dumps(data).encode()).rstrip(b"=").decode()

    header = b64({"alg": "none", "typ": "JWT"})
    payload = b64({"sub": user_id, "purpose": VERIFY_EMAIL_PURPOSE, "iss": settings.jwt_issuer})
    return f"{header}.{payload}."


async def _get_verified(session: AsyncSession, user_id: str) -> bool:
    user = await session.get(User, user_id, populate_existing=True)
    assert user is not None
    return user.verified


@pytest.mark.asyncio
async def test_verify_success(client: AsyncClient, session: AsyncSession, user: User, verification_token: str):
    """A valid link for an unverified user verifies them."""
    response = await client.get(f"/api/auth/verify/{verification_token}")
    assert response.status_code == 200
    assert response.json() == SUCCESS
    assert await _get_verified(session, user.id) is True


@pytest.mark.asyncio
async def test_verify_example_user_u123(client: AsyncClient, session: AsyncSession):
    """Success once, then the same link fails and the record stays verified."""
    user = await make_user(session, "u123@example.com", user_id="u123")
    token = create_verification_token(user)

    first = await client.get(f"/api/auth/verify/{token}")
    assert first.status_code == 200
    assert first.json() == SUCCESS
    assert await _get_verified(session, "u123") is True

    second = await client.get(f"/api/auth/verify/{token}")
    assert second.status_code == 401
    assert second.json() == GENERIC_FAILURE
    assert await _get_verified(session, "u123") is True


@pytest.mark.asyncio
async def test_replay_never_yields_two_successes(client: AsyncClient, verification_token: str):
    """Replaying a link yields one success followed by failures."""
    statuses = []
    for _ in range(3):
        response = await client.get(f"/api/auth/verify/{verification_token}")
        statuses.append(response.status_code)
    assert statuses == [200, 401, 401]


@pytest.mark.asyncio
async def test_failure_bodies_are_byte_identical(
    client: AsyncClient,
    session: AsyncSession,
    user: User,
    verified_user: User,
):
    """Bad tokens, unknown users and verified users all get the same bytes back."""
    unknown = User(id="ghost", name="Ghost", email="ghost@example.com", hashed_password="x")

    tokens = {
        "malformed": "not-a-token",
        "garbage_segments": "aaa.bbb.ccc",
        "expired": create_token(
            {"sub": user.id, "purpose": VERIFY_EMAIL_PURPOSE}, timedelta(seconds=-10)
        ),
        "wrong_secret": jwt.encode(
            {"sub": user.id, "purpose": VERIFY_EMAIL_PURPOSE, "iss": settings.jwt_issuer},
            "another-secret-that-is-at-least-32-chars",
            algorithm="HS256",
        ),
        "wrong_issuer": jwt.encode(
            {"sub": user.id, "purpose": VERIFY_EMAIL_PURPOSE, "iss": "someone-else"},
            settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
        ),
        "unsigned": _unsigned_token(user.id),
        "session_token": create_access_token(user),
        "unknown_user": create_verification_token(unknown),
        "already_verified": create_verification_token(verified_user),
    }

    bodies = {}
    for name, token in tokens.items():
        response = await client.get(f"/api/auth/verify/{token}")
        assert response.status_code == 401, name
        bodies[name] = response.content

    assert len(set(bodies.values())) == 1
    assert json.loads(next(iter(bodies.values()))) == GENERIC_FAILURE
    assert await _get_verified(session, user.id) is False


@pytest.mark.asyncio
async def test_store_fault_returns_generic_failure(
    client: AsyncClient,
    session: AsyncSession,
    user: User,
    verification_token: str,
):
    """A database error surfaces as the generic 401, never a 500."""
    with patch(
        "careerforge.services.verification.conditional_verify",
        new_callable=AsyncMock,
        side_effect=OperationalError("UPDATE users", {}, Exception("database is down")),
    ):
        response = await client.get(f"/api/auth/verify/{verification_token}")

    assert response.status_code == 401
    assert response.json() == GENERIC_FAILURE
    assert "database is down" not in response.text

    # The token is still usable once the store recovers
    response = await client.get(f"/api/auth/verify/{verification_token}")
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_verify_rate_limit(client: AsyncClient):
    """The verify endpoint shares the auth rate limit."""
    from careerforge.services.rate_limit import RATE_LIMIT_CONFIG, RateLimitType

    config = RATE_LIMIT_CONFIG[RateLimitType.AUTH]
    for _ in range(config.requests):
        response = await client.get("/api/auth/verify/not-a-token")
        assert response.status_code == 401

    response = await client.get("/api/auth/verify/not-a-token")
    assert response.status_code == 429
    assert "Retry-After" in response.headers
