from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from quizgate.app.core.config import Settings
from quizgate.app.main import create_app
from quizgate.app.services.container import build_services

ADMIN_KEY = "test-admin-key"
START = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Controllable replacement for utcnow()."""

    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 0, **kwargs) -> datetime:
        self.now += timedelta(seconds=seconds, **kwargs)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        admin_key=ADMIN_KEY,
        access_codes="quiz2024,TRIAL01",
        access_code_max_uses=3,
        access_code_expiry_days=30,
        code_store_backend="memory",
        alert_webhook_url="",
    )


@pytest.fixture
def services(settings, clock):
    return build_services(settings, clock=clock)


@pytest.fixture
def client(services):
    app = create_app(services=services)
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"X-Admin-Key": ADMIN_KEY}
