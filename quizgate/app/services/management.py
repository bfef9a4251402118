"""Privileged operations behind the admin secret.

Authentication happens at the HTTP boundary (``require_admin``); this
service only performs the operations.
"""

from datetime import timedelta
from typing import Any, Optional

from quizgate.app.core.logging import get_log_context, get_logger
from quizgate.app.core.utils import Clock, utcnow
from quizgate.app.exceptions import AccessCodeNotFoundError, InputValidationError
from quizgate.app.services.access_codes import AccessCode, AccessCodeStore
from quizgate.app.services.attack_monitor import AttackMonitor
from quizgate.app.services.security_ledger import ClientSecurityLedger

logger = get_logger(__name__)


class ManagementService:
    def __init__(
        self,
        store: AccessCodeStore,
        ledger: ClientSecurityLedger,
        monitor: AttackMonitor,
        clock: Clock = utcnow,
    ) -> None:
        self.store = store
        self.ledger = ledger
        self.monitor = monitor
        self._clock = clock

    async def create_code(
        self,
        code: str,
        max_uses: int,
        ttl_seconds: Optional[int] = None,
    ) -> AccessCode:
        """Create a code; ``ttl_seconds=None`` means it never expires.

        Raises:
            InputValidationError: Bad code format, max_uses or ttl
            AccessCodeExistsError: Normalized code already exists
        """
        if ttl_seconds is not None and ttl_seconds <= 0:
            raise InputValidationError("ttlSeconds must be a positive integer")
        ttl = timedelta(seconds=ttl_seconds) if ttl_seconds is not None else None
        created = await self.store.create(code, max_uses, ttl, self._clock())
        logger.info(
            f"Access code {created.code} created (maxUses={created.max_uses})",
            extra=get_log_context(access_code=created.code),
        )
        return created

    async def reset_code(self, code: str) -> AccessCode:
        record = await self.store.reset(code)
        logger.info(f"Access code {record.code} reset", extra=get_log_context(access_code=record.code))
        return record

    async def code_status(self, code: str) -> dict[str, Any]:
        """Diagnostic view of a single code, including why it is unusable."""
        record = await self.store.lookup(code)
        if record is None:
            raise AccessCodeNotFoundError(code.strip().upper())
        now = self._clock()
        data = record.to_dict(now)
        data["status"] = "active" if record.is_valid(now) else record.rejection_reason(now)
        return data

    async def list_codes(self) -> dict[str, Any]:
        now = self._clock()
        codes = await self.store.list_codes()
        return {
            "total": len(codes),
            "active": sum(1 for c in codes if c.is_valid(now)),
            "codes": [c.to_dict(now) for c in codes],
        }

    async def unblock_client(self, client_id: str) -> None:
        """Raises ClientNotFoundError for unknown clients."""
        await self.ledger.unblock(client_id)

    async def security_status(self) -> dict[str, Any]:
        now = self._clock()
        snapshot = self.ledger.snapshot(now)
        monitor = self.monitor.snapshot()
        return {
            "security": {
                "totalRecords": snapshot["totalRecords"],
                "blockedIPs": len(snapshot["blockedIPs"]),
                "totalAttempts": monitor["totalAttempts"],
                "failedAttempts": monitor["failedAttempts"],
                "lastAlert": monitor["lastAlert"],
            },
            "blockedIPs": snapshot["blockedIPs"],
            "recentActivity": snapshot["recentActivity"],
        }
