"""Main API router that aggregates all route modules."""

from fastapi import APIRouter, Depends

from careerforge.api import auth, health
from careerforge.api.deps import RateLimitDependency
from careerforge.services.rate_limit import RateLimitType

api_router = APIRouter()

api_router.include_router(health.router, prefix="/health", tags=["health"])

# Everything besides health checks shares the global API budget
api_router.include_router(
    auth.router,
    prefix="/auth",
    tags=["auth"],
    dependencies=[Depends(RateLimitDependency(RateLimitType.API))],
)


@api_router.get("", include_in_schema=False)
async def api_root():
    """API root status."""
    return {"status": "OK", "message": "API root. All systems operational."}
