"""Process-wide failure counters with periodic threshold alerting.

This is a coarse, lossy signal meant to surface coordinated brute-force
campaigns. Counters are reset at the end of every tick whether or not an
alert fired, and alerts are spaced at least one interval apart.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional

from quizgate.app.core.logging import get_logger
from quizgate.app.core.utils import Clock, isoformat, utcnow
from quizgate.app.services.alerts import AlertNotifier, AttackAlert, LogAlertNotifier

logger = get_logger(__name__)


@dataclass
class AttackDetectionState:
    """Counters for the current alerting window."""
    total_attempts: int = 0
    failed_attempts: int = 0
    last_alert: Optional[datetime] = None


class AttackMonitor:
    """Aggregate attempt counters shared by all clients."""

    def __init__(
        self,
        alert_threshold: int = 50,
        alert_interval: timedelta = timedelta(hours=1),
        notifier: Optional[AlertNotifier] = None,
        clock: Clock = utcnow,
    ) -> None:
        self.alert_threshold = alert_threshold
        self.alert_interval = alert_interval
        self.notifier = notifier or LogAlertNotifier()
        self._clock = clock
        self._state = AttackDetectionState()
        self._lock = asyncio.Lock()

    async def record_attempt(self, success: bool) -> None:
        async with self._lock:
            self._state.total_attempts += 1
            if not success:
                self._state.failed_attempts += 1

    async def record_request(self) -> None:
        """Count a request that is neither a success nor a failure."""
        async with self._lock:
            self._state.total_attempts += 1

    async def tick(self, now: Optional[datetime] = None) -> Optional[AttackAlert]:
        """Evaluate the window, emit an alert if warranted, reset counters.

        Returns:
            The alert that was emitted, or None.
        """
        now = now or self._clock()
        alert = None
        async with self._lock:
            state = self._state
            due = state.last_alert is None or now - state.last_alert >= self.alert_interval
            if state.failed_attempts >= self.alert_threshold and due:
                alert = AttackAlert(
                    failed_attempts=state.failed_attempts,
                    total_attempts=state.total_attempts,
                    threshold=self.alert_threshold,
                    window_seconds=int(self.alert_interval.total_seconds()),
                    detected_at=now,
                )
                state.last_alert = now
            state.total_attempts = 0
            state.failed_attempts = 0

        if alert is not None:
            try:
                await self.notifier.notify(alert)
            except Exception as e:
                logger.error(f"Failed to deliver attack alert: {e}")
        return alert

    def snapshot(self) -> dict[str, Any]:
        return {
            "totalAttempts": self._state.total_attempts,
            "failedAttempts": self._state.failed_attempts,
            "lastAlert": isoformat(self._state.last_alert),
        }
