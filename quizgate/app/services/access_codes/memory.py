"""In-memory access-code store.

Suitable for single-instance deployments and tests. Data is lost when the
process restarts; static codes are re-seeded from configuration at startup.
"""

import asyncio
from datetime import datetime, timedelta
from typing import Optional

from quizgate.app.exceptions import AccessCodeExistsError, AccessCodeNotFoundError
from quizgate.app.services.access_codes.base import AccessCodeStore
from quizgate.app.services.access_codes.models import AccessCode, normalize_code


class InMemoryAccessCodeStore(AccessCodeStore):
    """Dictionary-backed store guarded by a map-scoped lock."""

    def __init__(self) -> None:
        self._codes: dict[str, AccessCode] = {}
        self._lock = asyncio.Lock()

    async def find_valid_and_consume(self, code: str, now: datetime) -> Optional[AccessCode]:
        key = normalize_code(code)
        async with self._lock:
            record = self._codes.get(key)
            if record is None or not record.is_valid(now):
                return None
            updated = record.consumed(now)
            self._codes[key] = updated
            return updated

    async def lookup(self, code: str) -> Optional[AccessCode]:
        async with self._lock:
            return self._codes.get(normalize_code(code))

    async def create(
        self,
        code: str,
        max_uses: int,
        ttl: Optional[timedelta],
        now: datetime,
    ) -> AccessCode:
        record = self._prepare_new(code, max_uses, ttl, now)
        async with self._lock:
            if record.code in self._codes:
                raise AccessCodeExistsError(record.code)
            self._codes[record.code] = record
        return record

    async def reset(self, code: str) -> AccessCode:
        key = normalize_code(code)
        async with self._lock:
            record = self._codes.get(key)
            if record is None:
                raise AccessCodeNotFoundError(key)
            updated = record.reset()
            self._codes[key] = updated
            return updated

    async def list_codes(self) -> list[AccessCode]:
        async with self._lock:
            return sorted(self._codes.values(), key=lambda c: c.created_at)
