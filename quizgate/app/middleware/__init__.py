"""Middleware package for the quiz access service."""

from quizgate.app.middleware.auth import require_admin, verify_admin_secret
from quizgate.app.middleware.request_id import RequestIdMiddleware, get_request_id
from quizgate.app.middleware.request_size import RequestSizeLimitMiddleware

__all__ = [
    "require_admin",
    "verify_admin_secret",
    "RequestIdMiddleware",
    "get_request_id",
    "RequestSizeLimitMiddleware",
]
