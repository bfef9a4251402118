"""Tests for the Redis access-code store with a mocked client."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest
import redis

from quizgate.app.exceptions import (
    AccessCodeExistsError,
    AccessCodeNotFoundError,
    StoreUnavailableError,
)
from quizgate.app.services.access_codes import RedisAccessCodeStore
from quizgate.app.services.access_codes.redis_lua import (
    CONSUME_SCRIPT,
    CREATE_SCRIPT,
    RESET_SCRIPT,
)

START = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
START_MS = str(int(START.timestamp() * 1000))


def _hash(code="ABC123", max_uses=5, current_uses=1, expires_ms=""):
    return {
        "code": code,
        "max_uses": str(max_uses),
        "current_uses": str(current_uses),
        "created_at": START_MS,
        "expires_at": expires_ms,
        "last_used_at": START_MS,
    }


@pytest.fixture
def mock_redis():
    client = AsyncMock()
    client.eval = AsyncMock()
    client.hgetall = AsyncMock(return_value={})
    client.smembers = AsyncMock(return_value=set())
    client.srem = AsyncMock()
    client.ping = AsyncMock(return_value=True)
    return client


@pytest.fixture
def store(mock_redis):
    return RedisAccessCodeStore(redis_client=mock_redis, retention_seconds=3600)


@pytest.mark.asyncio
async def test_consume_runs_lua_script_with_normalized_key(store, mock_redis):
    mock_redis.eval.return_value = ["code", "ABC123", "max_uses", "5", "current_uses", "2",
                                    "created_at", START_MS, "expires_at", "", "last_used_at", START_MS]

    consumed = await store.find_valid_and_consume(" abc123 ", START)

    mock_redis.eval.assert_awaited_once_with(CONSUME_SCRIPT, 1, "accesscode:ABC123", START_MS)
    assert consumed.code == "ABC123"
    assert consumed.current_uses == 2
    assert consumed.expires_at is None
    assert consumed.last_used_at == START


@pytest.mark.asyncio
async def test_consume_returns_none_when_script_refuses(store, mock_redis):
    mock_redis.eval.return_value = None

    assert await store.find_valid_and_consume("ABC123", START) is None


@pytest.mark.asyncio
async def test_create_sets_purge_after_expiry_plus_retention(store, mock_redis):
    mock_redis.eval.return_value = 1

    created = await store.create("new1", 10, timedelta(days=1), START)

    expires = START + timedelta(days=1)
    purge = expires + timedelta(seconds=3600)
    mock_redis.eval.assert_awaited_once_with(
        CREATE_SCRIPT,
        2,
        "accesscode:NEW1",
        "accesscode:index",
        "NEW1",
        10,
        START_MS,
        str(int(expires.timestamp() * 1000)),
        str(int(purge.timestamp() * 1000)),
    )
    assert created.expires_at == expires


@pytest.mark.asyncio
async def test_create_never_expiring_code_has_no_purge(store, mock_redis):
    mock_redis.eval.return_value = 1

    await store.create("FOREVER", 1, None, START)

    args = mock_redis.eval.await_args.args
    assert args[-2] == ""
    assert args[-1] == ""


@pytest.mark.asyncio
async def test_create_duplicate(store, mock_redis):
    mock_redis.eval.return_value = 0

    with pytest.raises(AccessCodeExistsError):
        await store.create("DUP", 1, None, START)


@pytest.mark.asyncio
async def test_reset(store, mock_redis):
    mock_redis.eval.return_value = _hash(current_uses=0)

    reset = await store.reset("abc123")

    mock_redis.eval.assert_awaited_once_with(RESET_SCRIPT, 1, "accesscode:ABC123")
    assert reset.current_uses == 0


@pytest.mark.asyncio
async def test_reset_unknown(store, mock_redis):
    mock_redis.eval.return_value = None

    with pytest.raises(AccessCodeNotFoundError):
        await store.reset("MISSING")


@pytest.mark.asyncio
async def test_lookup_decodes_bytes(store, mock_redis):
    mock_redis.hgetall.return_value = {
        k.encode(): v.encode() for k, v in _hash(current_uses=5).items()
    }

    found = await store.lookup("ABC123")

    assert found.is_exhausted()


@pytest.mark.asyncio
async def test_list_codes_drops_purged_index_entries(store, mock_redis):
    mock_redis.smembers.return_value = {"LIVE", "GONE"}

    async def hgetall(key):
        return _hash(code="LIVE") if key == "accesscode:LIVE" else {}

    mock_redis.hgetall.side_effect = hgetall

    codes = await store.list_codes()

    assert [c.code for c in codes] == ["LIVE"]
    mock_redis.srem.assert_awaited_once_with("accesscode:index", "GONE")


@pytest.mark.asyncio
async def test_redis_errors_become_store_unavailable(store, mock_redis):
    mock_redis.eval.side_effect = redis.ConnectionError("down")

    with pytest.raises(StoreUnavailableError):
        await store.find_valid_and_consume("ABC123", START)


@pytest.mark.asyncio
async def test_initialize_pings(store, mock_redis):
    await store.initialize()

    mock_redis.ping.assert_awaited_once()
