"""Async database engine and session management for SQLAlchemy 2.0+.

PostgreSQL (asyncpg) in production, SQLite (aiosqlite) for local runs and
tests. Engines are cached per URL.
"""

from functools import lru_cache

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from quizgate.app.core.config import settings
from quizgate.app.core.logging import get_logger

logger = get_logger(__name__)


@lru_cache(maxsize=4)
def get_async_engine(database_url: str | None = None) -> AsyncEngine:
    """Get or create the async database engine for a URL.

    Args:
        database_url: Optional database URL. Uses settings if not provided.

    Returns:
        AsyncEngine instance
    """
    url = database_url or settings.database_url

    if "sqlite" in url.lower():
        engine = create_async_engine(url, echo=False)
        logger.info("Created SQLite async engine")
    else:
        engine = create_async_engine(
            url,
            echo=False,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=True,
        )
        logger.info(
            f"Created async engine (pool_size={settings.db_pool_size}, "
            f"max_overflow={settings.db_max_overflow})"
        )
    return engine


def get_async_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Build a session maker bound to an engine."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def init_async_db(engine: AsyncEngine | None = None) -> None:
    """Create all tables that do not exist yet."""
    from quizgate.app.db import models  # noqa: F401 - import to register models
    from quizgate.app.db.base import Base

    engine = engine or get_async_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
