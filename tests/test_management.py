"""Tests for the management service and the service container."""

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from quizgate.app.exceptions import AccessCodeNotFoundError, InputValidationError
from quizgate.app.services.access_codes import (
    DatabaseAccessCodeStore,
    InMemoryAccessCodeStore,
    RedisAccessCodeStore,
    create_access_code_store,
    static_code_ttl,
)
from quizgate.app.services.alerts import LogAlertNotifier, WebhookAlertNotifier
from quizgate.app.services.container import build_services


@pytest.fixture
def management(services):
    return services.management


@pytest.mark.asyncio
async def test_create_with_ttl(management, clock):
    created = await management.create_code("vip", 2, ttl_seconds=120)

    assert created.code == "VIP"
    assert created.expires_at == clock() + timedelta(seconds=120)


@pytest.mark.asyncio
async def test_create_rejects_non_positive_ttl(management):
    with pytest.raises(InputValidationError):
        await management.create_code("VIP", 2, ttl_seconds=-1)


@pytest.mark.asyncio
async def test_code_status_reasons(management, services, clock):
    await management.create_code("SOON", 5, ttl_seconds=10)
    assert (await management.code_status("soon"))["status"] == "active"

    clock.advance(10)

    status = await management.code_status("SOON")
    assert status["status"] == "expired"
    assert status["valid"] is False


@pytest.mark.asyncio
async def test_code_status_unknown(management):
    with pytest.raises(AccessCodeNotFoundError):
        await management.code_status("nothing")


@pytest.mark.asyncio
async def test_list_codes_counts_active(management, clock):
    await management.create_code("ONE", 1)
    await management.create_code("TWO", 1, ttl_seconds=5)
    clock.advance(6)

    inventory = await management.list_codes()

    assert inventory["total"] == 2
    assert inventory["active"] == 1


@pytest.mark.asyncio
async def test_security_status_shape(management, services):
    await services.ledger.record_attempt("10.0.0.1", False)
    await services.monitor.record_attempt(False)

    status = await management.security_status()

    assert status["security"]["totalRecords"] == 1
    assert status["security"]["failedAttempts"] == 1
    assert status["security"]["lastAlert"] is None
    assert status["blockedIPs"] == []
    assert status["recentActivity"][0]["ip"] == "10.0.0.1"


def test_static_code_ttl(settings):
    assert static_code_ttl(settings) == timedelta(days=30)
    assert static_code_ttl(settings.model_copy(update={"access_code_expiry_days": 0})) is None


def test_store_factory(settings, tmp_path):
    assert isinstance(create_access_code_store(settings), InMemoryAccessCodeStore)

    redis_settings = settings.model_copy(update={"code_store_backend": "redis"})
    assert isinstance(create_access_code_store(redis_settings), RedisAccessCodeStore)

    db_settings = settings.model_copy(
        update={
            "code_store_backend": "database",
            "database_url": f"sqlite+aiosqlite:///{tmp_path / 'factory.db'}",
        }
    )
    assert isinstance(create_access_code_store(db_settings), DatabaseAccessCodeStore)


def test_notifier_selection(settings, clock):
    assert isinstance(build_services(settings, clock=clock).monitor.notifier, LogAlertNotifier)

    webhook = settings.model_copy(update={"alert_webhook_url": "https://hooks.example.com/x"})
    assert isinstance(build_services(webhook, clock=clock).monitor.notifier, WebhookAlertNotifier)


@pytest.mark.asyncio
async def test_startup_without_static_codes(settings, clock):
    services = build_services(settings.model_copy(update={"access_codes": []}), clock=clock)

    await services.startup()
    try:
        assert await services.store.list_codes() == []
    finally:
        await services.shutdown()


@pytest.mark.asyncio
async def test_startup_seeds_with_configured_limits(services, clock):
    await services.startup()
    try:
        code = await services.store.lookup("QUIZ2024")
    finally:
        await services.shutdown()

    assert code.max_uses == 3
    assert code.expires_at == clock() + timedelta(days=30)


@pytest.mark.asyncio
async def test_shutdown_closes_store(services):
    services.store.close = AsyncMock()
    await services.startup()

    await services.shutdown()

    services.store.close.assert_awaited_once()
    assert services.tasks == []
