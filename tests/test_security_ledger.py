"""Tests for the client security ledger."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from quizgate.app.exceptions import ClientBlockedError, ClientNotFoundError, RateLimitedError
from quizgate.app.services.security_ledger import (
    ClientSecurityLedger,
    SecurityPolicy,
    apply_attempt,
    evaluate_block,
    is_too_frequent,
    new_record,
)

START = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
POLICY = SecurityPolicy()


def _fail(record, times, now=START):
    for _ in range(times):
        record = apply_attempt(record, False, now, POLICY)
    return record


class TestPureTransitions:

    def test_fifth_consecutive_failure_blocks(self):
        record = _fail(new_record("1.2.3.4", START), 4)
        assert not record.is_blocked

        record = apply_attempt(record, False, START, POLICY)

        assert record.is_blocked
        assert record.failed_attempts == 5
        assert record.block_until == START + timedelta(minutes=15)

    def test_success_resets_consecutive_failures(self):
        record = _fail(new_record("1.2.3.4", START), 4)
        record = apply_attempt(record, True, START, POLICY)
        record = _fail(record, 4)

        assert record.failed_attempts == 4
        assert record.attempts == 9
        assert not record.is_blocked

    def test_block_holds_until_block_until(self):
        record = _fail(new_record("1.2.3.4", START), 5)

        blocked, same = evaluate_block(record, START + timedelta(minutes=15))

        assert blocked
        assert same is record

    def test_block_self_clears_after_expiry(self):
        record = _fail(new_record("1.2.3.4", START), 5)

        blocked, cleared = evaluate_block(record, START + timedelta(minutes=15, seconds=1))

        assert not blocked
        assert not cleared.is_blocked
        assert cleared.block_until is None
        assert cleared.failed_attempts == 0
        assert cleared.attempts == 5

    def test_fresh_record_is_not_rate_limited(self):
        assert not is_too_frequent(new_record("1.2.3.4", START), START, POLICY)

    def test_rate_window(self):
        record = apply_attempt(new_record("1.2.3.4", START), True, START, POLICY)

        assert is_too_frequent(record, START + timedelta(milliseconds=999), POLICY)
        assert not is_too_frequent(record, START + timedelta(milliseconds=1000), POLICY)

    def test_policy_is_configurable(self):
        policy = SecurityPolicy(max_consecutive_failures=2, block_duration=timedelta(minutes=1))
        record = new_record("1.2.3.4", START)
        record = apply_attempt(record, False, START, policy)
        record = apply_attempt(record, False, START, policy)

        assert record.is_blocked
        assert record.block_until == START + timedelta(minutes=1)


class TestClientSecurityLedger:

    @pytest.fixture
    def ledger(self, clock):
        return ClientSecurityLedger(POLICY, clock=clock)

    @pytest.mark.asyncio
    async def test_block_lifecycle(self, ledger, clock):
        for _ in range(5):
            await ledger.record_attempt("10.0.0.1", False)

        assert await ledger.is_blocked("10.0.0.1")
        assert not await ledger.is_blocked("10.0.0.2")

        clock.advance(minutes=15, seconds=1)

        assert not await ledger.is_blocked("10.0.0.1")
        assert (await ledger.get_record("10.0.0.1")).failed_attempts == 0

    @pytest.mark.asyncio
    async def test_check_rate(self, ledger, clock):
        assert not await ledger.check_rate("10.0.0.1")
        await ledger.record_attempt("10.0.0.1", True)

        assert await ledger.check_rate("10.0.0.1")
        clock.advance(1)
        assert not await ledger.check_rate("10.0.0.1")

    @pytest.mark.asyncio
    async def test_unblock(self, ledger):
        for _ in range(5):
            await ledger.record_attempt("10.0.0.1", False)

        record = await ledger.unblock("10.0.0.1")

        assert not record.is_blocked
        assert record.failed_attempts == 0
        assert not await ledger.is_blocked("10.0.0.1")

    @pytest.mark.asyncio
    async def test_unblock_unknown_client(self, ledger):
        with pytest.raises(ClientNotFoundError):
            await ledger.unblock("10.9.9.9")

    @pytest.mark.asyncio
    async def test_sweep_removes_old_unblocked_records_only(self, ledger, clock):
        await ledger.record_attempt("old-idle", True)
        for _ in range(5):
            await ledger.record_attempt("old-blocked", False)

        clock.advance(hours=24, seconds=1)
        await ledger.record_attempt("new", True)
        # Keep the old block alive past the retention window
        for _ in range(5):
            await ledger.record_attempt("old-blocked", False)

        removed = await ledger.sweep()

        assert removed == 1
        assert await ledger.get_record("old-idle") is None
        assert await ledger.get_record("old-blocked") is not None
        assert await ledger.get_record("new") is not None

    @pytest.mark.asyncio
    async def test_sweep_drops_records_whose_block_has_expired(self, ledger, clock):
        for _ in range(5):
            await ledger.record_attempt("10.0.0.1", False)

        clock.advance(hours=25)

        assert await ledger.sweep() == 1
        assert len(ledger) == 0

    @pytest.mark.asyncio
    async def test_concurrent_failures_are_not_lost(self, ledger):
        await asyncio.gather(*(ledger.record_attempt("10.0.0.1", False) for _ in range(3)))

        assert (await ledger.get_record("10.0.0.1")).failed_attempts == 3

    @pytest.mark.asyncio
    async def test_snapshot_and_stats(self, ledger, clock):
        for _ in range(5):
            await ledger.record_attempt("bad", False)
        await ledger.record_attempt("good", True)
        clock.advance(minutes=1)
        await ledger.record_attempt("latest", True)

        snapshot = ledger.snapshot()
        stats = ledger.stats()

        assert snapshot["totalRecords"] == 3
        assert [b["ip"] for b in snapshot["blockedIPs"]] == ["bad"]
        assert snapshot["recentActivity"][0]["ip"] == "latest"
        assert stats == {"monitored": 3, "blocked": 1}

    @pytest.mark.asyncio
    async def test_snapshot_excludes_activity_older_than_an_hour(self, ledger, clock):
        await ledger.record_attempt("stale", True)
        clock.advance(hours=1)

        assert ledger.snapshot()["recentActivity"] == []

    @pytest.mark.asyncio
    async def test_snapshot_limits_recent_activity(self, ledger, clock):
        for i in range(25):
            await ledger.record_attempt(f"10.0.0.{i}", True)
            clock.advance(1)

        recent = ledger.snapshot()["recentActivity"]

        assert len(recent) == 20
        assert recent[0]["ip"] == "10.0.0.24"

    @pytest.mark.asyncio
    async def test_admit_reserves_the_attempt_slot(self, ledger, clock):
        reserved = await ledger.admit("10.0.0.1")

        assert reserved.last_attempt == clock()
        assert reserved.attempts == 0
        with pytest.raises(RateLimitedError) as exc_info:
            await ledger.admit("10.0.0.1")
        assert exc_info.value.retry_after == 1

        clock.advance(1)
        await ledger.admit("10.0.0.1")

    @pytest.mark.asyncio
    async def test_admit_rejects_blocked_client_until_block_expires(self, ledger, clock):
        for _ in range(5):
            await ledger.record_attempt("10.0.0.1", False)
        clock.advance(5)

        with pytest.raises(ClientBlockedError) as exc_info:
            await ledger.admit("10.0.0.1")
        assert exc_info.value.retry_after == 15 * 60 - 5

        clock.advance(minutes=15)
        record = await ledger.admit("10.0.0.1")
        assert not record.is_blocked
        assert record.failed_attempts == 0

    @pytest.mark.asyncio
    async def test_concurrent_admits_let_one_through(self, ledger):
        results = await asyncio.gather(
            *(ledger.admit("10.0.0.1") for _ in range(10)),
            return_exceptions=True,
        )

        admitted = [r for r in results if not isinstance(r, Exception)]
        throttled = [r for r in results if isinstance(r, RateLimitedError)]
        assert len(admitted) == 1
        assert len(throttled) == 9

    @pytest.mark.asyncio
    async def test_sweep_keeps_lock_shared_with_waiting_request(self, ledger, clock):
        await ledger.record_attempt("10.0.0.1", True)
        clock.advance(hours=25)

        lock = ledger._key_lock("10.0.0.1")
        assert await ledger.sweep() == 1

        assert ledger._key_lock("10.0.0.1") is lock
