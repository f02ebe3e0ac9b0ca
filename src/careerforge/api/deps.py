"""FastAPI dependencies for dependency injection."""

import logging
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from careerforge.config import settings
from careerforge.database import get_session
from careerforge.models import User
from careerforge.services.auth import verify_token
from careerforge.services.rate_limit import (
    RateLimitType,
    check_rate_limit,
    get_client_ip,
    rate_limit_headers,
)

logger = logging.getLogger(__name__)

# Type alias for database session dependency
SessionDep = Annotated[AsyncSession, Depends(get_session)]

# Security scheme; the session cookie is accepted as a fallback
security = HTTPBearer(auto_error=False)


def get_session_token(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> str | None:
    """Session token from the Authorization header, else the auth cookie."""
    if credentials:
        return credentials.credentials
    return request.cookies.get(settings.auth_cookie_name)


async def get_current_user(
    request: Request,
    session: SessionDep,
    token: Annotated[str | None, Depends(get_session_token)],
) -> User:
    """Get current authenticated user or raise 401."""
    if not token:
        logger.warning(f"[Auth] Token missing from {get_client_ip(request)} for {request.url.path}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return await verify_token(session, token)
    except Exception as e:
        logger.warning(f"[Auth] Token invalid or expired for {get_client_ip(request)}: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


def get_request_ip(request: Request) -> str | None:
    return get_client_ip(request)


# Type aliases for common dependencies
CurrentUser = Annotated[User, Depends(get_current_user)]
ClientIP = Annotated[str | None, Depends(get_request_ip)]


class RateLimitDependency:
    """Dependency class for rate limiting endpoints.

    Usage:
        @router.post("/endpoint")
        async def endpoint(
            rate_limit: Annotated[None, Depends(RateLimitDependency(RateLimitType.AUTH))]
        ):
            ...
    """

    def __init__(self, limit_type: RateLimitType) -> None:
        self.limit_type = limit_type

    async def __call__(self, request: Request) -> None:
        """Check rate limit and raise 429 if exceeded."""
        result = await check_rate_limit(request, self.limit_type)

        if not result.success:
            headers = rate_limit_headers(result)
            retry_after = headers.get("Retry-After", "60")
            logger.warning(
                f"[RateLimit] {self.limit_type.value} limit hit by {get_client_ip(request)} "
                f"on {request.url.path}"
            )
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail=f"Rate limit exceeded. Please try again in {retry_after} seconds.",
                headers=headers,
            )


# Pre-configured rate limit dependencies
SignupRateLimit = Annotated[None, Depends(RateLimitDependency(RateLimitType.SIGNUP))]
SigninRateLimit = Annotated[None, Depends(RateLimitDependency(RateLimitType.SIGNIN))]
AuthRateLimit = Annotated[None, Depends(RateLimitDependency(RateLimitType.AUTH))]
