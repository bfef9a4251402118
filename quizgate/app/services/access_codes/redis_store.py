"""Redis-backed access-code store.

Redis key format:
- accesscode:{CODE} - hash with max_uses, current_uses and timestamps
- accesscode:index  - set of every code created through this store

Consumption, creation and reset run as Lua scripts so each is atomic on
the Redis side. Expired codes are removed by key TTL only after
``expires_at + retention``, so a lookup before expiry always sees them.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import redis
import redis.asyncio as aioredis

from quizgate.app.core.logging import get_logger
from quizgate.app.exceptions import (
    AccessCodeExistsError,
    AccessCodeNotFoundError,
    StoreUnavailableError,
)
from quizgate.app.services.access_codes.base import AccessCodeStore
from quizgate.app.services.access_codes.models import AccessCode, normalize_code
from quizgate.app.services.access_codes.redis_lua import (
    CONSUME_SCRIPT,
    CREATE_SCRIPT,
    RESET_SCRIPT,
)

logger = get_logger(__name__)


def _to_ms(value: Optional[datetime]) -> str:
    if value is None:
        return ""
    return str(int(value.timestamp() * 1000))


def _from_ms(value: Any) -> Optional[datetime]:
    if isinstance(value, bytes):
        value = value.decode()
    if value in (None, ""):
        return None
    return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)


def _decode_hash(data: Any) -> dict[str, str]:
    """Normalize HGETALL output (dict or flat pair list, bytes or str)."""
    if isinstance(data, dict):
        items = list(data.items())
    else:
        items = list(zip(data[0::2], data[1::2]))
    decoded = {}
    for key, value in items:
        if isinstance(key, bytes):
            key = key.decode()
        if isinstance(value, bytes):
            value = value.decode()
        decoded[key] = value
    return decoded


def _to_model(data: Any) -> AccessCode:
    fields = _decode_hash(data)
    return AccessCode(
        code=fields["code"],
        max_uses=int(fields["max_uses"]),
        current_uses=int(fields.get("current_uses") or 0),
        created_at=_from_ms(fields.get("created_at")),
        expires_at=_from_ms(fields.get("expires_at")),
        last_used_at=_from_ms(fields.get("last_used_at")),
    )


class RedisAccessCodeStore(AccessCodeStore):
    """Access codes shared by every instance through Redis."""

    KEY_PREFIX = "accesscode"
    INDEX_KEY = "accesscode:index"

    def __init__(
        self,
        redis_client: Optional[Any] = None,
        redis_url: Optional[str] = None,
        retention_seconds: int = 86400,
    ) -> None:
        self._redis = redis_client
        self._redis_url = redis_url
        self._retention = timedelta(seconds=retention_seconds)

    def _get_redis(self) -> Any:
        if self._redis is None:
            self._redis = aioredis.from_url(self._redis_url, decode_responses=True)
        return self._redis

    def _make_key(self, code: str) -> str:
        return f"{self.KEY_PREFIX}:{code}"

    async def initialize(self) -> None:
        try:
            await self._get_redis().ping()
        except redis.RedisError as e:
            raise StoreUnavailableError(f"Cannot reach Redis: {e}") from e

    async def close(self) -> None:
        if self._redis is not None:
            try:
                await self._redis.aclose()
            except redis.RedisError as e:
                logger.warning(f"Error closing Redis connection: {e}")
            self._redis = None

    async def find_valid_and_consume(self, code: str, now: datetime) -> Optional[AccessCode]:
        key = self._make_key(normalize_code(code))
        try:
            result = await self._get_redis().eval(CONSUME_SCRIPT, 1, key, _to_ms(now))
        except redis.RedisError as e:
            logger.error(f"Lua consume script failed: {e}")
            raise StoreUnavailableError() from e
        if not result:
            return None
        return _to_model(result)

    async def lookup(self, code: str) -> Optional[AccessCode]:
        try:
            data = await self._get_redis().hgetall(self._make_key(normalize_code(code)))
        except redis.RedisError as e:
            raise StoreUnavailableError() from e
        if not data:
            return None
        return _to_model(data)

    async def create(
        self,
        code: str,
        max_uses: int,
        ttl: Optional[timedelta],
        now: datetime,
    ) -> AccessCode:
        record = self._prepare_new(code, max_uses, ttl, now)
        purge_at = record.expires_at + self._retention if record.expires_at else None
        try:
            created = await self._get_redis().eval(
                CREATE_SCRIPT,
                2,  # Number of keys
                self._make_key(record.code),  # KEYS[1]
                self.INDEX_KEY,  # KEYS[2]
                record.code,  # ARGV[1]
                record.max_uses,  # ARGV[2]
                _to_ms(record.created_at),  # ARGV[3]
                _to_ms(record.expires_at),  # ARGV[4]
                _to_ms(purge_at),  # ARGV[5]
            )
        except redis.RedisError as e:
            raise StoreUnavailableError() from e
        if not int(created):
            raise AccessCodeExistsError(record.code)
        return record

    async def reset(self, code: str) -> AccessCode:
        normalized = normalize_code(code)
        try:
            result = await self._get_redis().eval(RESET_SCRIPT, 1, self._make_key(normalized))
        except redis.RedisError as e:
            raise StoreUnavailableError() from e
        if not result:
            raise AccessCodeNotFoundError(normalized)
        return _to_model(result)

    async def list_codes(self) -> list[AccessCode]:
        client = self._get_redis()
        try:
            members = await client.smembers(self.INDEX_KEY)
            codes = sorted(m.decode() if isinstance(m, bytes) else m for m in members)
            records = []
            purged = []
            for code in codes:
                data = await client.hgetall(self._make_key(code))
                if data:
                    records.append(_to_model(data))
                else:
                    purged.append(code)
            if purged:
                # Keys already removed by TTL; drop them from the index too
                await client.srem(self.INDEX_KEY, *purged)
        except redis.RedisError as e:
            raise StoreUnavailableError() from e
        return sorted(records, key=lambda c: c.created_at)
