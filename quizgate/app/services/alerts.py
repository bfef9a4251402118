"""Attack alert notifiers.

The attack monitor hands alerts to a notifier; delivery is best effort.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

import httpx

from quizgate.app.core.http_client import get_http_client

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AttackAlert:
    """Aggregate failure burst observed during one alerting window."""

    failed_attempts: int
    total_attempts: int
    threshold: int
    window_seconds: int
    detected_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "event": "attack_alert",
            "failedAttempts": self.failed_attempts,
            "totalAttempts": self.total_attempts,
            "threshold": self.threshold,
            "windowSeconds": self.window_seconds,
            "detectedAt": self.detected_at.isoformat(),
        }


class AlertNotifier(ABC):
    """Abstract base class for alert delivery channels."""

    @abstractmethod
    async def notify(self, alert: AttackAlert) -> None:
        """Deliver an alert.

        Args:
            alert: The alert to deliver
        """
        pass


class LogAlertNotifier(AlertNotifier):
    """Write alerts to the application log."""

    async def notify(self, alert: AttackAlert) -> None:
        logger.warning(
            f"Security alert: possible brute-force attack, {alert.failed_attempts} failed "
            f"attempts (of {alert.total_attempts}) in the last {alert.window_seconds}s",
            extra={"alert": alert.to_dict()},
        )


class WebhookAlertNotifier(AlertNotifier):
    """POST alerts as JSON to a webhook (chat integration, pager, ...).

    Alerts are logged as well, so a failing webhook never hides an alert.
    """

    def __init__(self, url: str, client: Optional[httpx.AsyncClient] = None) -> None:
        self.url = url
        self._client = client
        self._log = LogAlertNotifier()

    async def notify(self, alert: AttackAlert) -> None:
        await self._log.notify(alert)
        client = self._client or get_http_client()
        response = await client.post(self.url, json=alert.to_dict())
        response.raise_for_status()
