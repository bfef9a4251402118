"""Access-code storage.

This package provides the AccessCode model, the abstract store contract
and three backends (in-memory, SQL database, Redis), plus a factory that
picks one from settings.
"""

from datetime import timedelta
from typing import Optional

from quizgate.app.core.config import Settings
from quizgate.app.core.logging import get_logger

from .base import AccessCodeStore
from .database import DatabaseAccessCodeStore
from .memory import InMemoryAccessCodeStore
from .models import AccessCode, is_valid_code_format, normalize_code
from .redis_store import RedisAccessCodeStore

logger = get_logger(__name__)

__all__ = [
    "AccessCode",
    "AccessCodeStore",
    "InMemoryAccessCodeStore",
    "DatabaseAccessCodeStore",
    "RedisAccessCodeStore",
    "create_access_code_store",
    "static_code_ttl",
    "is_valid_code_format",
    "normalize_code",
]


def static_code_ttl(settings: Settings) -> Optional[timedelta]:
    """TTL applied to codes loaded from configuration (None = never expires)."""
    if settings.access_code_expiry_days == 0:
        return None
    return timedelta(days=settings.access_code_expiry_days)


def create_access_code_store(settings: Settings) -> AccessCodeStore:
    """Create the access-code store selected by ``code_store_backend``."""
    backend = settings.code_store_backend
    if backend == "database":
        from quizgate.app.db.async_session import get_async_engine

        logger.info("Using database access code store")
        return DatabaseAccessCodeStore(get_async_engine(settings.database_url))
    if backend == "redis":
        logger.info("Using Redis access code store")
        return RedisAccessCodeStore(
            redis_url=settings.redis_url,
            retention_seconds=settings.redis_code_retention_seconds,
        )
    logger.debug("Using in-memory access code store")
    return InMemoryAccessCodeStore()
