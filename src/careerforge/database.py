"""Async database engine and session management."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from careerforge.config import settings


def create_engine_for_url(url: str) -> AsyncEngine:
    """Create an async engine, applying pool options only where the driver supports them."""
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=False)
    return create_async_engine(
        url,
        echo=False,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        pool_pre_ping=True,
    )


engine = create_engine_for_url(settings.database_url)

async_session_factory = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding a database session."""
    async with async_session_factory() as session:
        yield session


@asynccontextmanager
async def get_session_context() -> AsyncGenerator[AsyncSession, None]:
    """Session context manager for use outside of request handling (CLI, scripts)."""
    async with async_session_factory() as session:
        yield session


async def init_db(bind: AsyncEngine | None = None) -> None:
    """Create all tables."""
    # Import models so they register with SQLModel metadata
    import careerforge.models  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def drop_db(bind: AsyncEngine | None = None) -> None:
    """Drop all tables."""
    import careerforge.models  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)


async def close_db() -> None:
    """Dispose of the engine's connection pool."""
    await engine.dispose()
