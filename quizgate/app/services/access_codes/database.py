"""SQLAlchemy-backed access-code store.

Consumption is a single conditional UPDATE with RETURNING, so the
"increment only if below ceiling and not expired" check and the write
happen in one statement and cannot lose updates under concurrency.
"""

from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import or_, select, update
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine

from quizgate.app.core.logging import get_logger
from quizgate.app.core.utils import as_utc
from quizgate.app.db.async_session import get_async_session_maker, init_async_db
from quizgate.app.db.models import AccessCodeRow
from quizgate.app.exceptions import (
    AccessCodeExistsError,
    AccessCodeNotFoundError,
    StoreUnavailableError,
)
from quizgate.app.services.access_codes.base import AccessCodeStore
from quizgate.app.services.access_codes.models import AccessCode, normalize_code

logger = get_logger(__name__)

_COLUMNS = (
    AccessCodeRow.code,
    AccessCodeRow.max_uses,
    AccessCodeRow.current_uses,
    AccessCodeRow.created_at,
    AccessCodeRow.expires_at,
    AccessCodeRow.last_used_at,
)


def _to_model(row) -> AccessCode:
    code, max_uses, current_uses, created_at, expires_at, last_used_at = row
    return AccessCode(
        code=code,
        max_uses=max_uses,
        current_uses=current_uses,
        created_at=as_utc(created_at),
        expires_at=as_utc(expires_at),
        last_used_at=as_utc(last_used_at),
    )


class DatabaseAccessCodeStore(AccessCodeStore):
    """Access codes persisted in the ``access_codes`` table."""

    def __init__(self, engine: AsyncEngine, create_tables: bool = True) -> None:
        self._engine = engine
        self._session_maker = get_async_session_maker(engine)
        self._create_tables = create_tables

    async def initialize(self) -> None:
        if self._create_tables:
            try:
                await init_async_db(self._engine)
            except DBAPIError as e:
                raise StoreUnavailableError(f"Cannot initialize access code table: {e}") from e

    async def close(self) -> None:
        await self._engine.dispose()

    async def find_valid_and_consume(self, code: str, now: datetime) -> Optional[AccessCode]:
        stmt = (
            update(AccessCodeRow)
            .where(
                AccessCodeRow.code == normalize_code(code),
                AccessCodeRow.current_uses < AccessCodeRow.max_uses,
                or_(AccessCodeRow.expires_at.is_(None), AccessCodeRow.expires_at > now),
            )
            .values(current_uses=AccessCodeRow.current_uses + 1, last_used_at=now)
            .returning(*_COLUMNS)
            .execution_options(synchronize_session=False)
        )
        try:
            async with self._session_maker() as session:
                result = await session.execute(stmt)
                row = result.fetchone()
                await session.commit()
        except DBAPIError as e:
            logger.error(f"Access code consume failed: {e}")
            raise StoreUnavailableError() from e

        return _to_model(row) if row is not None else None

    async def lookup(self, code: str) -> Optional[AccessCode]:
        try:
            async with self._session_maker() as session:
                result = await session.execute(
                    select(*_COLUMNS).where(AccessCodeRow.code == normalize_code(code))
                )
                row = result.fetchone()
        except DBAPIError as e:
            raise StoreUnavailableError() from e
        return _to_model(row) if row is not None else None

    async def create(
        self,
        code: str,
        max_uses: int,
        ttl: Optional[timedelta],
        now: datetime,
    ) -> AccessCode:
        record = self._prepare_new(code, max_uses, ttl, now)
        try:
            async with self._session_maker() as session:
                session.add(
                    AccessCodeRow(
                        code=record.code,
                        max_uses=record.max_uses,
                        current_uses=0,
                        created_at=record.created_at,
                        expires_at=record.expires_at,
                        last_used_at=None,
                    )
                )
                await session.commit()
        except IntegrityError as e:
            raise AccessCodeExistsError(record.code) from e
        except DBAPIError as e:
            raise StoreUnavailableError() from e
        return record

    async def reset(self, code: str) -> AccessCode:
        key = normalize_code(code)
        stmt = (
            update(AccessCodeRow)
            .where(AccessCodeRow.code == key)
            .values(current_uses=0)
            .returning(*_COLUMNS)
            .execution_options(synchronize_session=False)
        )
        try:
            async with self._session_maker() as session:
                result = await session.execute(stmt)
                row = result.fetchone()
                await session.commit()
        except DBAPIError as e:
            raise StoreUnavailableError() from e
        if row is None:
            raise AccessCodeNotFoundError(key)
        return _to_model(row)

    async def list_codes(self) -> list[AccessCode]:
        try:
            async with self._session_maker() as session:
                result = await session.execute(
                    select(*_COLUMNS).order_by(AccessCodeRow.created_at)
                )
                rows = result.fetchall()
        except DBAPIError as e:
            raise StoreUnavailableError() from e
        return [_to_model(row) for row in rows]
