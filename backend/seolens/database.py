"""
Database connection and session management for SEOLens.
"""
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from seolens.config import settings
from seolens.models.base import Base

# Convert sync URL to async
DATABASE_URL = settings.DATABASE_URL.replace(
    "postgresql://", "postgresql+asyncpg://"
)


def create_engine_for_url(url: str) -> AsyncEngine:
    """Create an async engine, sizing the pool only for server databases."""
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=False)
    return create_async_engine(
        url,
        echo=settings.ENVIRONMENT == "development",
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=20,
    )


engine = create_engine_for_url(DATABASE_URL)

# Storage commits per operation; rows stay readable after commit
async_session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


def get_task_session_maker() -> async_sessionmaker:
    """Create a fresh session maker for Celery task execution.

    Celery workers run each task in their own event loop, so they cannot
    share the module-level engine's connection pool.
    """
    task_engine = create_engine_for_url(DATABASE_URL)
    return async_sessionmaker(task_engine, class_=AsyncSession, expire_on_commit=False)


async def init_db() -> None:
    """Initialize database tables."""
    from seolens.models import AiUsage, SeoReport, TrackedSeoIssue, Website  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
