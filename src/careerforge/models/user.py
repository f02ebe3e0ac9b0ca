"""User model."""

from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from careerforge.models.base import TimestampMixin, generate_nanoid


class UserRole(str, Enum):
    """Authorization role of a user."""

    USER = "user"
    ADMIN = "admin"


class User(TimestampMixin, SQLModel, table=True):
    """User account model.

    ``verified`` only ever moves from False to True, and only through
    ``careerforge.services.users.conditional_verify``.
    """

    __tablename__ = "users"

    id: str = Field(default_factory=generate_nanoid, primary_key=True, max_length=21)
    name: str = Field(max_length=30)
    email: str = Field(unique=True, index=True, max_length=255)
    hashed_password: str = Field(max_length=255)
    role: UserRole = Field(default=UserRole.USER)
    verified: bool = Field(default=False, nullable=False)
    reset_password_token: str | None = Field(
        default=None, index=True, max_length=64, description="sha256 of the emailed reset token"
    )
    reset_password_expires: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore[call-overload]
    )


class UserRead(SQLModel):
    """Public representation of a user."""

    id: str
    name: str
    email: str
    role: UserRole
    is_verified: bool

    @classmethod
    def from_user(cls, user: User) -> "UserRead":
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            role=user.role,
            is_verified=user.verified,
        )
