"""Authentication service for JWT token management."""

import logging
from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from careerforge.config import settings
from careerforge.models import User

logger = logging.getLogger(__name__)

SESSION_PURPOSE = "session"
VERIFY_EMAIL_PURPOSE = "verify_email"


class AuthError(Exception):
    """Authentication error."""

    pass


class TokenInvalid(AuthError):
    """Token signature, format, issuer, purpose or expiry check failed."""

    pass


def create_token(claims: dict[str, Any], expires_delta: timedelta) -> str:
    """Sign claims into a JWT with issued-at, expiry and issuer set."""
    now = datetime.now(UTC)
    payload = {
        **claims,
        "iat": now,
        "exp": now + expires_delta,
        "iss": settings.jwt_issuer,
    }
    token = jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)
    # Never log the token itself
    logger.debug(f"[JWT][Create][Success] Token issued for userId: {claims.get('sub', 'unknown')}")
    return token


def create_access_token(user: User) -> str:
    """Create a session JWT for a user."""
    return create_token(
        {
            "sub": user.id,
            "role": user.role.value,
            "purpose": SESSION_PURPOSE,
        },
        timedelta(days=settings.jwt_expiration_days),
    )


def create_verification_token(user: User) -> str:
    """Create a JWT for an email verification link."""
    return create_token(
        {"sub": user.id, "purpose": VERIFY_EMAIL_PURPOSE},
        timedelta(minutes=settings.verification_token_expiration_minutes),
    )


def decode_token(token: str, purpose: str = SESSION_PURPOSE) -> dict[str, Any]:
    """Decode and validate a JWT token.

    Raises:
        TokenInvalid: on a bad signature, malformed token, wrong issuer,
            wrong purpose, missing subject or an elapsed expiry. The
            message is for server-side logs only.
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            issuer=settings.jwt_issuer,
        )
    except JWTError as e:
        raise TokenInvalid(f"Invalid token: {e}") from e

    if payload.get("purpose") != purpose:
        raise TokenInvalid("Invalid token: wrong purpose")
    if not payload.get("sub"):
        raise TokenInvalid("Invalid token: missing user ID")

    return payload


async def verify_token(session: AsyncSession, token: str) -> User:
    """Verify a session JWT and return the associated user."""
    payload = decode_token(token)

    stmt = select(User).where(User.id == payload["sub"])
    result = await session.execute(stmt)
    user = result.scalar_one_or_none()

    if not user:
        raise AuthError("User not found")

    return user
