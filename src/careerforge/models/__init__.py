"""SQLModel database models."""

from careerforge.models.base import TimestampMixin, generate_nanoid
from careerforge.models.user import User, UserRead, UserRole

__all__ = [
    "TimestampMixin",
    "User",
    "UserRead",
    "UserRole",
    "generate_nanoid",
]
