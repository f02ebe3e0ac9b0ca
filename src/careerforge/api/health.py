"""Health check endpoints."""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text

from careerforge.api.deps import SessionDep
from careerforge.config import settings

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("")
async def health_check():
    """Basic health check - just confirms the service is running."""
    return {"status": "ok"}


@router.get("/db")
async def health_check_db(session: SessionDep):
    """Health check with database connectivity."""
    try:
        await session.execute(text("SELECT 1"))
        return {"status": "ok", "database": "connected"}
    except Exception as e:
        logger.error(f"Database health check failed: {e!r}")
        return JSONResponse(
            status_code=503,
            content={"status": "error", "database": "disconnected"},
        )


@router.get("/ready")
async def readiness_check(session: SessionDep):
    """Readiness check for load balancers.

    Returns 503 when the database is unreachable; reports "degraded" when
    email delivery is not configured for production.
    """
    try:
        await session.execute(text("SELECT 1"))
        db_status = "connected"
    except Exception as e:
        logger.error(f"Database readiness check failed: {e!r}")
        db_status = "disconnected"

    email_ok = not settings.is_production or settings.email_backend != "console"

    response = {
        "status": "ok" if db_status == "connected" and email_ok else "degraded",
        "database": db_status,
        "email_configured": email_ok,
    }

    if db_status != "connected":
        return JSONResponse(status_code=503, content=response)
    return response
