"""Utility functions for the application."""

from datetime import datetime, timezone
from typing import Callable, Optional

from starlette.requests import Request

# Injected wherever "now" matters so tests can drive time explicitly.
Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on the way back)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def get_client_ip(request: Request, trust_proxy_headers: bool = True) -> str:
    """Resolve the client identity used as the abuse-tracking key.

    When running behind a trusted proxy the first X-Forwarded-For hop wins,
    then X-Real-IP, then CF-Connecting-IP; otherwise the socket peer address.

    Examples:
        X-Forwarded-For: "10.0.0.1, 192.168.1.1"  ->  "10.0.0.1"
    """
    if trust_proxy_headers:
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            first = forwarded.split(",")[0].strip()
            if first:
                return first

        for header in ("X-Real-IP", "CF-Connecting-IP"):
            value = request.headers.get(header)
            if value and value.strip():
                return value.strip()

    return request.client.host if request.client else "unknown"
