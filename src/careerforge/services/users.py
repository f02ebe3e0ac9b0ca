"""User store operations."""

import logging
from datetime import UTC, datetime, timedelta

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from careerforge.config import settings
from careerforge.models import User
from careerforge.services.security import generate_reset_token, get_password_hash, hash_token

logger = logging.getLogger(__name__)


class EmailAlreadyRegistered(Exception):
    """An account with this email address already exists."""

    pass


def normalize_email(email: str) -> str:
    return email.strip().lower()


async def get_user_by_email(session: AsyncSession, email: str) -> User | None:
    stmt = select(User).where(User.email == normalize_email(email))
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def create_user(session: AsyncSession, name: str, email: str, password: str) -> User:
    """Create an unverified user.

    Raises:
        EmailAlreadyRegistered: if the email is taken.
    """
    if await get_user_by_email(session, email):
        raise EmailAlreadyRegistered(email)

    user = User(
        name=name,
        email=normalize_email(email),
        hashed_password=get_password_hash(password),
    )
    session.add(user)
    await session.flush()
    return user


async def conditional_verify(session: AsyncSession, user_id: str) -> User | None:
    """Atomically mark a user verified if they are not already.

    Issues a single ``UPDATE ... WHERE id = :id AND verified IS NOT TRUE
    RETURNING`` statement, so concurrent callers cannot both match. Returns
    the transitioned user (re-read inside the same transaction), or None
    when no row matched (unknown user or already verified). The caller owns
    the commit.
    """
    stmt = (
        update(User)
        .where(User.id == user_id)  # type: ignore[arg-type]
        .where(User.verified.is_not(True))  # type: ignore[union-attr]
        .values(verified=True)
        .returning(User.id)  # type: ignore[arg-type]
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    if result.scalar_one_or_none() is None:
        return None
    return await session.get(User, user_id, populate_existing=True)


async def issue_password_reset(session: AsyncSession, user: User) -> str:
    """Store a hashed reset token on the user and return the raw token."""
    token = generate_reset_token()
    user.reset_password_token = hash_token(token)
    user.reset_password_expires = datetime.now(UTC) + timedelta(
        minutes=settings.password_reset_expiration_minutes
    )
    session.add(user)
    await session.flush()
    return token


async def get_user_by_reset_token(session: AsyncSession, token: str) -> User | None:
    """Find the user holding an unexpired reset token."""
    stmt = (
        select(User)
        .where(User.reset_password_token == hash_token(token))
        .where(User.reset_password_expires > datetime.now(UTC))  # type: ignore[operator]
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def reset_password(session: AsyncSession, user: User, password: str) -> User:
    """Replace the password hash and clear the reset token."""
    user.hashed_password = get_password_hash(password)
    user.reset_password_token = None
    user.reset_password_expires = None
    session.add(user)
    await session.flush()
    logger.info(f"[ResetPassword][Success] Password reset for userId: {user.id}")
    return user
