"""FastAPI application entrypoint."""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from careerforge.api.middleware import RequestIDMiddleware, RequestLoggingMiddleware
from careerforge.api.router import api_router
from careerforge.config import settings
from careerforge.database import close_db
from careerforge.services.rate_limit import cleanup_loop, get_rate_limiter

logger = logging.getLogger(__name__)

# Initialize Sentry for error tracking
if settings.sentry_dsn:
    import sentry_sdk

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        traces_sample_rate=0.1 if settings.is_production else 1.0,
        send_default_pii=False,
    )
    logger.info("Sentry initialized")


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup: tables are created with `careerforge db init`
    logger.info(f"[Server][Start] CareerForge API starting [ENV: {settings.environment}]")
    cleanup_task = asyncio.create_task(
        cleanup_loop(get_rate_limiter(), settings.rate_limit_cleanup_seconds)
    )
    yield
    # Shutdown
    cleanup_task.cancel()
    with suppress(asyncio.CancelledError):
        await cleanup_task
    await close_db()
    logger.info("[Server][Shutdown] Database disconnected")


app = FastAPI(
    title="CareerForge API",
    description="Account and email verification API for CareerForge",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/api/docs" if settings.debug_enabled else None,
    redoc_url="/api/redoc" if settings.debug_enabled else None,
    openapi_url="/api/openapi.json" if settings.debug_enabled else None,
)

# Request logging runs inside the request ID middleware so log lines carry the ID
app.add_middleware(RequestLoggingMiddleware)  # type: ignore[arg-type]
app.add_middleware(RequestIDMiddleware)  # type: ignore[arg-type]

# CORS middleware
app.add_middleware(
    CORSMiddleware,  # type: ignore[arg-type]
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
    expose_headers=["X-Request-ID"],
)

# Include API router
app.include_router(api_router, prefix="/api")


if __name__ == "__main__":
    import uvicorn

    from careerforge.logging import get_uvicorn_log_config

    uvicorn.run(
        "careerforge.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development,
        log_config=get_uvicorn_log_config(),
    )
