"""Shared HTTP client management for outbound notifications.

The client is initialized on application startup and shared by anything
that calls out over HTTP (currently the attack alert webhook).
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import httpx

from quizgate.app.core.config import settings


_shared_http_client: httpx.AsyncClient | None = None


def get_http_client() -> httpx.AsyncClient:
    """Get the shared HTTP client instance.

    Raises:
        RuntimeError: If the HTTP client has not been initialized.
    """
    if _shared_http_client is None:
        raise RuntimeError(
            "HTTP client not initialized. Ensure lifespan context is active."
        )
    return _shared_http_client


@asynccontextmanager
async def init_http_client(timeout: float | None = None) -> AsyncGenerator[httpx.AsyncClient, None]:
    """Initialize and yield the shared HTTP client.

    This context manager should be used in the FastAPI lifespan:

        @asynccontextmanager
        async def lifespan(app: FastAPI):
            async with init_http_client():
                yield
    """
    global _shared_http_client

    limits = httpx.Limits(max_connections=10, max_keepalive_connections=2)
    _shared_http_client = httpx.AsyncClient(
        timeout=httpx.Timeout(timeout or settings.alert_webhook_timeout),
        limits=limits,
    )

    try:
        yield _shared_http_client
    finally:
        if _shared_http_client is not None:
            await _shared_http_client.aclose()
            _shared_http_client = None
