"""Database package.

This package provides:
- ORM models (AccessCodeRow, SimulatedTest)
- Async engine and session management
"""

from quizgate.app.db.base import Base
from quizgate.app.db.models import AccessCodeRow, SimulatedTest
from quizgate.app.db.async_session import (
    get_async_engine,
    get_async_session_maker,
    init_async_db,
)

__all__ = [
    "Base",
    "AccessCodeRow",
    "SimulatedTest",
    "get_async_engine",
    "get_async_session_maker",
    "init_async_db",
]
