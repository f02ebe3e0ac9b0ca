"""Per-client rate limiting for auth endpoints (sliding window)."""

import asyncio
import logging
import time
from collections import defaultdict, deque
from dataclasses import dataclass
from enum import Enum

from fastapi import Request

from careerforge.config import settings

logger = logging.getLogger(__name__)


class RateLimitType(str, Enum):
    """Rate limit buckets, one per endpoint category."""

    SIGNUP = "signup"
    SIGNIN = "signin"
    AUTH = "auth"
    API = "api"


@dataclass
class RateLimitConfig:
    """Allowed requests per window."""

    requests: int
    window_seconds: int


# Signin is tightest to slow password guessing
RATE_LIMIT_CONFIG: dict[RateLimitType, RateLimitConfig] = {
    RateLimitType.SIGNUP: RateLimitConfig(requests=5, window_seconds=15 * 60),
    RateLimitType.SIGNIN: RateLimitConfig(requests=5, window_seconds=5 * 60),
    RateLimitType.AUTH: RateLimitConfig(requests=10, window_seconds=60),
    RateLimitType.API: RateLimitConfig(requests=100, window_seconds=15 * 60),
}


@dataclass
class RateLimitResult:
    """Result of a rate limit check."""

    success: bool
    limit: int
    remaining: int
    reset: int  # Unix timestamp in seconds


class InMemoryRateLimiter:
    """In-process sliding window limiter.

    State is per process; a multi-instance deployment needs a shared store.
    """

    def __init__(self) -> None:
        self._hits: dict[tuple[RateLimitType, str], deque[float]] = defaultdict(deque)
        self._lock = asyncio.Lock()

    async def check(self, identifier: str, limit_type: RateLimitType) -> RateLimitResult:
        """Record a hit for ``identifier`` unless its window is already full."""
        config = RATE_LIMIT_CONFIG[limit_type]
        now = time.time()

        async with self._lock:
            hits = self._hits[(limit_type, identifier)]
            _evict(hits, now - config.window_seconds)

            if len(hits) >= config.requests:
                return RateLimitResult(
                    success=False,
                    limit=config.requests,
                    remaining=0,
                    reset=int(hits[0] + config.window_seconds),
                )

            hits.append(now)
            return RateLimitResult(
                success=True,
                limit=config.requests,
                remaining=config.requests - len(hits),
                reset=int(hits[0] + config.window_seconds),
            )

    def reset(self) -> None:
        """Forget all recorded hits."""
        self._hits.clear()

    async def cleanup_old_entries(self) -> int:
        """Drop identifiers with no hits inside their window.

        Returns:
            Number of identifiers removed
        """
        now = time.time()
        async with self._lock:
            stale = []
            for key, hits in self._hits.items():
                _evict(hits, now - RATE_LIMIT_CONFIG[key[0]].window_seconds)
                if not hits:
                    stale.append(key)
            for key in stale:
                del self._hits[key]
        return len(stale)


async def cleanup_loop(limiter: InMemoryRateLimiter, interval_seconds: float) -> None:
    """Sweep idle identifiers every ``interval_seconds`` until cancelled."""
    while True:
        await asyncio.sleep(interval_seconds)
        removed = await limiter.cleanup_old_entries()
        if removed:
            logger.debug(f"[RateLimit] Dropped {removed} idle entries")


def _evict(hits: deque[float], window_start: float) -> None:
    while hits and hits[0] <= window_start:
        hits.popleft()


_rate_limiter = InMemoryRateLimiter()


def get_rate_limiter() -> InMemoryRateLimiter:
    """Get the global rate limiter instance."""
    return _rate_limiter


def get_client_ip(request: Request) -> str | None:
    """Client IP for rate limiting and logs.

    Proxy headers are client-controlled, so they are read only when
    ``settings.trust_proxy_headers`` is on; otherwise the socket peer is used.
    """
    if settings.trust_proxy_headers:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            # Comma-separated chain; the first entry is the original client
            return forwarded.split(",")[0].strip()

        for header in ("x-real-ip", "cf-connecting-ip"):
            value = request.headers.get(header)
            if value:
                return value.strip()

    if request.client:
        return request.client.host

    return None


def get_identifier(ip: str | None, user_id: str | None = None) -> str:
    """Rate limit key: user ID when authenticated, else client IP."""
    if user_id:
        return f"user:{user_id}"
    return f"ip:{ip or 'unknown'}"


async def check_rate_limit(
    request: Request,
    limit_type: RateLimitType,
    user_id: str | None = None,
) -> RateLimitResult:
    """Check and record a request against its rate limit bucket."""
    identifier = get_identifier(get_client_ip(request), user_id)
    return await get_rate_limiter().check(identifier, limit_type)


def rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    """Build X-RateLimit-* headers, plus Retry-After when blocked."""
    headers = {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(result.reset),
    }

    if not result.success:
        headers["Retry-After"] = str(max(0, result.reset - int(time.time())))

    return headers
