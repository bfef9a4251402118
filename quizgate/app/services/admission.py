"""Admission control for access-code verification.

The controller holds no state of its own: it orchestrates the injected
store, ledger and monitor to answer "is this code, from this client,
valid right now?" and applies the consequences.

    blocked?           -> ClientBlockedError (429)
    too frequent?      -> RateLimitedError (429)
    malformed input?   -> InputValidationError (400)
    consume the code   -> AdmissionResult, or AccessCodeRejectedError (400)
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from quizgate.app.core.logging import get_log_context, get_logger
from quizgate.app.core.utils import Clock, isoformat, utcnow
from quizgate.app.exceptions import (
    AccessCodeRejectedError,
    InputValidationError,
)
from quizgate.app.services.access_codes import (
    AccessCode,
    AccessCodeStore,
    is_valid_code_format,
    normalize_code,
)
from quizgate.app.services.attack_monitor import AttackMonitor
from quizgate.app.services.security_ledger import ClientSecurityLedger

logger = get_logger(__name__)

EMPTY_CODE_MESSAGE = "Access code must be a non-empty string"
BAD_FORMAT_MESSAGE = "Access code format is invalid"
ACCEPTED_MESSAGE = "Access code verified"


@dataclass(frozen=True)
class AdmissionResult:
    """Verdict for an accepted code."""

    access_code: AccessCode

    def to_response(self) -> dict[str, Any]:
        return {
            "valid": True,
            "message": ACCEPTED_MESSAGE,
            "code": self.access_code.code,
            "expiresAt": isoformat(self.access_code.expires_at),
            "remainingUses": self.access_code.remaining_uses,
        }


class AdmissionController:
    """Verify access codes on behalf of anonymous clients.

    Args:
        store: Access-code store
        ledger: Per-client security ledger
        monitor: Process-wide attack monitor
        count_malformed_as_failure: Whether missing, empty or badly formatted
            codes count as failed attempts against the client
        clock: Source of "now"
    """

    def __init__(
        self,
        store: AccessCodeStore,
        ledger: ClientSecurityLedger,
        monitor: AttackMonitor,
        count_malformed_as_failure: bool = True,
        clock: Clock = utcnow,
    ) -> None:
        self.store = store
        self.ledger = ledger
        self.monitor = monitor
        self.count_malformed_as_failure = count_malformed_as_failure
        self._clock = clock

    async def verify(self, client_id: str, raw_code: Any) -> AdmissionResult:
        """Run one verification request through the admission pipeline.

        Args:
            client_id: Resolved client identity
            raw_code: The ``accessCode`` value exactly as received

        Returns:
            AdmissionResult for an accepted code.

        Raises:
            ClientBlockedError: Client is serving a block
            RateLimitedError: Previous attempt was too recent
            InputValidationError: Missing, non-string, empty or malformed code
            AccessCodeRejectedError: Code absent, exhausted or expired
        """
        now = self._clock()

        # Raises ClientBlockedError / RateLimitedError; reserves the slot otherwise
        await self.ledger.admit(client_id, now)

        if not isinstance(raw_code, str) or not raw_code.strip():
            await self._record_malformed(client_id, now)
            raise InputValidationError(EMPTY_CODE_MESSAGE)

        code = normalize_code(raw_code)
        if not is_valid_code_format(code):
            await self._record_malformed(client_id, now)
            logger.info(
                f"Client {client_id} sent a malformed access code",
                extra=get_log_context(client_ip=client_id),
            )
            raise InputValidationError(BAD_FORMAT_MESSAGE)

        try:
            consumed = await self.store.find_valid_and_consume(code, now)
        except Exception:
            await self._record(client_id, False, now)
            raise

        if consumed is not None:
            await self._record(client_id, True, now)
            logger.info(
                f"Access code {code} accepted for {client_id}, {consumed.remaining_uses} uses left",
                extra=get_log_context(client_ip=client_id, access_code=code),
            )
            return AdmissionResult(consumed)

        await self._record(client_id, False, now)
        reason = await self._rejection_reason(code, now)
        logger.info(
            f"Access code {code} rejected for {client_id}: {reason}",
            extra=get_log_context(client_ip=client_id, access_code=code),
        )
        raise AccessCodeRejectedError(reason)

    async def _rejection_reason(self, code: str, now: datetime) -> str:
        try:
            existing = await self.store.lookup(code)
        except Exception as e:
            logger.warning(f"Could not look up rejected code {code}: {e}")
            return "invalid"
        return existing.rejection_reason(now) if existing is not None else "invalid"

    async def _record_malformed(self, client_id: str, now: datetime) -> None:
        if self.count_malformed_as_failure:
            await self._record(client_id, False, now)
            return
        try:
            await self.monitor.record_request()
        except Exception as e:
            logger.error(f"Attack monitor bookkeeping failed: {e}")

    async def _record(self, client_id: str, success: bool, now: datetime) -> None:
        """Update ledger and monitor; failures here never reach the caller."""
        try:
            await self.ledger.record_attempt(client_id, success, now)
        except Exception as e:
            logger.error(
                f"Security ledger bookkeeping failed: {e}",
                extra=get_log_context(client_ip=client_id),
            )
        try:
            await self.monitor.record_attempt(success)
        except Exception as e:
            logger.error(f"Attack monitor bookkeeping failed: {e}")
