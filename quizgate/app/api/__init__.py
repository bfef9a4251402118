"""API endpoints package for the quiz access service."""

from quizgate.app.api.access import router as access_router
from quizgate.app.api.admin import router as admin_router
from quizgate.app.api.rankings import router as rankings_router

__all__ = [
    "access_router",
    "admin_router",
    "rankings_router",
]
