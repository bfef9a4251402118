"""Per-client abuse tracking for the verification endpoint.

Records are plain immutable values; the policy lives in ``SecurityPolicy``
and the transitions are free functions, so block logic can be exercised
with explicit timestamps. ``ClientSecurityLedger`` owns the map of client
identity -> record and serializes access per key.

Blocking is driven by consecutive failures (reset on any success) and is
expired lazily: a stale block clears itself the next time it is observed.
"""

import asyncio
import math
import weakref
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Any, Optional

from quizgate.app.core.config import Settings
from quizgate.app.core.logging import get_log_context, get_logger
from quizgate.app.core.utils import Clock, isoformat, utcnow
from quizgate.app.exceptions import ClientBlockedError, ClientNotFoundError, RateLimitedError

logger = get_logger(__name__)

RECENT_ACTIVITY_WINDOW = timedelta(hours=1)
RECENT_ACTIVITY_LIMIT = 20


@dataclass(frozen=True)
class SecurityPolicy:
    """Thresholds and durations applied by the ledger."""

    max_consecutive_failures: int = 5
    block_duration: timedelta = timedelta(minutes=15)
    min_attempt_interval: timedelta = timedelta(seconds=1)
    record_ttl: timedelta = timedelta(hours=24)

    @classmethod
    def from_settings(cls, settings: Settings) -> "SecurityPolicy":
        return cls(
            max_consecutive_failures=settings.max_consecutive_failures,
            block_duration=timedelta(seconds=settings.block_duration_seconds),
            min_attempt_interval=timedelta(milliseconds=settings.min_attempt_interval_ms),
            record_ttl=timedelta(hours=settings.security_record_ttl_hours),
        )


@dataclass(frozen=True)
class ClientSecurityRecord:
    """Abuse history and block state of one client identity."""

    client_id: str
    first_seen: datetime
    attempts: int = 0
    failed_attempts: int = 0
    last_attempt: Optional[datetime] = None
    is_blocked: bool = False
    block_until: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "ip": self.client_id,
            "attempts": self.attempts,
            "failedAttempts": self.failed_attempts,
            "firstSeen": isoformat(self.first_seen),
            "lastAttempt": isoformat(self.last_attempt),
            "isBlocked": self.is_blocked,
            "blockedUntil": isoformat(self.block_until),
        }


def new_record(client_id: str, now: datetime) -> ClientSecurityRecord:
    return ClientSecurityRecord(client_id=client_id, first_seen=now)


def evaluate_block(record: ClientSecurityRecord, now: datetime) -> tuple[bool, ClientSecurityRecord]:
    """Return the block status at ``now`` and the (possibly self-cleared) record.

    A block whose ``block_until`` has elapsed is cleared together with the
    consecutive failure counter.
    """
    if not record.is_blocked:
        return False, record
    if record.block_until is not None and now > record.block_until:
        return False, replace(record, is_blocked=False, block_until=None, failed_attempts=0)
    return True, record


def apply_attempt(
    record: ClientSecurityRecord,
    success: bool,
    now: datetime,
    policy: SecurityPolicy,
) -> ClientSecurityRecord:
    """Account for one verification attempt."""
    attempts = record.attempts + 1
    if success:
        return replace(record, attempts=attempts, last_attempt=now, failed_attempts=0)

    failed = record.failed_attempts + 1
    if failed >= policy.max_consecutive_failures:
        return replace(
            record,
            attempts=attempts,
            last_attempt=now,
            failed_attempts=failed,
            is_blocked=True,
            block_until=now + policy.block_duration,
        )
    return replace(record, attempts=attempts, last_attempt=now, failed_attempts=failed)


def is_too_frequent(record: ClientSecurityRecord, now: datetime, policy: SecurityPolicy) -> bool:
    """True when the previous attempt was less than the minimum interval ago."""
    if record.last_attempt is None:
        return False
    return now - record.last_attempt < policy.min_attempt_interval


def _seconds_until(target: Optional[datetime], now: datetime) -> int:
    if target is None:
        return 1
    return max(1, math.ceil((target - now).total_seconds()))


def is_sweepable(record: ClientSecurityRecord, now: datetime, policy: SecurityPolicy) -> bool:
    """Old enough to drop and not currently blocked."""
    blocked, _ = evaluate_block(record, now)
    return not blocked and now - record.first_seen > policy.record_ttl


class ClientSecurityLedger:
    """In-memory map of client identity -> ClientSecurityRecord.

    Each client has its own asyncio.Lock, so a busy client never makes
    unrelated clients wait. Locks live in a weak registry: a lock stays
    registered exactly as long as some request holds or awaits it.
    """

    def __init__(self, policy: Optional[SecurityPolicy] = None, clock: Clock = utcnow) -> None:
        self.policy = policy or SecurityPolicy()
        self._clock = clock
        self._records: dict[str, ClientSecurityRecord] = {}
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _key_lock(self, client_id: str) -> asyncio.Lock:
        lock = self._locks.get(client_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[client_id] = lock
        return lock

    def _get_or_create(self, client_id: str, now: datetime) -> ClientSecurityRecord:
        record = self._records.get(client_id)
        if record is None:
            record = new_record(client_id, now)
            self._records[client_id] = record
        return record

    def __len__(self) -> int:
        return len(self._records)

    async def get_record(self, client_id: str) -> Optional[ClientSecurityRecord]:
        return self._records.get(client_id)

    async def is_blocked(self, client_id: str, now: Optional[datetime] = None) -> bool:
        """Check block status, clearing an elapsed block as a side effect."""
        now = now or self._clock()
        async with self._key_lock(client_id):
            record = self._get_or_create(client_id, now)
            blocked, updated = evaluate_block(record, now)
            if updated is not record:
                self._records[client_id] = updated
                logger.info(
                    f"Block on {client_id} expired",
                    extra=get_log_context(client_ip=client_id),
                )
            return blocked

    async def check_rate(self, client_id: str, now: Optional[datetime] = None) -> bool:
        """Return True when the client's previous attempt is too recent."""
        now = now or self._clock()
        async with self._key_lock(client_id):
            record = self._get_or_create(client_id, now)
            return is_too_frequent(record, now, self.policy)

    async def admit(self, client_id: str, now: Optional[datetime] = None) -> ClientSecurityRecord:
        """Let one attempt through the block and throttle gates.

        Both checks and the reservation of the client's attempt slot happen
        under a single hold of the client's lock, so concurrent requests
        from one client are admitted at most once per throttle interval.
        ``record_attempt`` later settles the outcome of the admitted attempt.

        Raises:
            ClientBlockedError: Client is serving a block
            RateLimitedError: Previous attempt was too recent
        """
        now = now or self._clock()
        async with self._key_lock(client_id):
            record = self._get_or_create(client_id, now)
            blocked, record = evaluate_block(record, now)
            self._records[client_id] = record

            if blocked:
                logger.info(
                    f"Rejected request from blocked client {client_id}",
                    extra=get_log_context(client_ip=client_id),
                )
                raise ClientBlockedError(
                    record.block_until, _seconds_until(record.block_until, now)
                )

            if is_too_frequent(record, now, self.policy):
                logger.info(
                    f"Client {client_id} is retrying too fast",
                    extra=get_log_context(client_ip=client_id),
                )
                raise RateLimitedError(
                    _seconds_until(record.last_attempt + self.policy.min_attempt_interval, now)
                )

            reserved = replace(record, last_attempt=now)
            self._records[client_id] = reserved
            return reserved

    async def record_attempt(
        self,
        client_id: str,
        success: bool,
        now: Optional[datetime] = None,
    ) -> ClientSecurityRecord:
        now = now or self._clock()
        async with self._key_lock(client_id):
            record = self._get_or_create(client_id, now)
            updated = apply_attempt(record, success, now, self.policy)
            self._records[client_id] = updated

        if updated.is_blocked and not record.is_blocked:
            logger.warning(
                f"Client {client_id} blocked until {updated.block_until.isoformat()} "
                f"after {updated.failed_attempts} consecutive failures",
                extra=get_log_context(client_ip=client_id),
            )
        return updated

    async def unblock(self, client_id: str) -> ClientSecurityRecord:
        """Administrative override: clear block state and failure count.

        Raises:
            ClientNotFoundError: If the client has no security record
        """
        async with self._key_lock(client_id):
            record = self._records.get(client_id)
            if record is None:
                raise ClientNotFoundError(client_id)
            updated = replace(record, is_blocked=False, block_until=None, failed_attempts=0)
            self._records[client_id] = updated
        logger.info(f"Client {client_id} unblocked by admin", extra=get_log_context(client_ip=client_id))
        return updated

    async def sweep(self, now: Optional[datetime] = None) -> int:
        """Drop records past the retention window that are not blocked.

        Returns:
            Number of records removed.
        """
        now = now or self._clock()
        removed = 0
        for client_id in list(self._records):
            async with self._key_lock(client_id):
                record = self._records.get(client_id)
                if record is None or not is_sweepable(record, now, self.policy):
                    continue
                del self._records[client_id]
                removed += 1

        if removed:
            logger.info(f"Swept {removed} expired security records")
        return removed

    def stats(self, now: Optional[datetime] = None) -> dict[str, int]:
        now = now or self._clock()
        blocked = sum(1 for r in list(self._records.values()) if evaluate_block(r, now)[0])
        return {"monitored": len(self._records), "blocked": blocked}

    def snapshot(self, now: Optional[datetime] = None) -> dict[str, Any]:
        """Blocked clients plus the most recent activity within the last hour.

        Records are immutable values, so this reads a consistent view of
        each client without taking the per-key locks.
        """
        now = now or self._clock()
        records = [evaluate_block(r, now)[1] for r in list(self._records.values())]

        blocked = [
            {
                "ip": r.client_id,
                "blockedUntil": isoformat(r.block_until),
                "failedAttempts": r.failed_attempts,
                "firstSeen": isoformat(r.first_seen),
            }
            for r in records
            if r.is_blocked
        ]

        recent = sorted(
            (r for r in records if r.last_attempt is not None and now - r.last_attempt < RECENT_ACTIVITY_WINDOW),
            key=lambda r: r.last_attempt,
            reverse=True,
        )[:RECENT_ACTIVITY_LIMIT]

        return {
            "totalRecords": len(records),
            "blockedIPs": blocked,
            "recentActivity": [r.to_dict() for r in recent],
        }
