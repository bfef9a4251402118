"""Explicitly owned application state.

Everything stateful (code store, security ledger, attack monitor) is built
once here and attached to ``app.state``; nothing lives in module globals.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Optional

from quizgate.app.core.config import Settings
from quizgate.app.core.logging import get_logger
from quizgate.app.core.scheduler import PeriodicTask
from quizgate.app.core.utils import Clock, utcnow
from quizgate.app.services.access_codes import (
    AccessCodeStore,
    create_access_code_store,
    static_code_ttl,
)
from quizgate.app.services.admission import AdmissionController
from quizgate.app.services.alerts import AlertNotifier, LogAlertNotifier, WebhookAlertNotifier
from quizgate.app.services.attack_monitor import AttackMonitor
from quizgate.app.services.management import ManagementService
from quizgate.app.services.security_ledger import ClientSecurityLedger, SecurityPolicy

logger = get_logger(__name__)


@dataclass
class AppServices:
    settings: Settings
    store: AccessCodeStore
    ledger: ClientSecurityLedger
    monitor: AttackMonitor
    admission: AdmissionController
    management: ManagementService
    clock: Clock = utcnow
    tasks: list[PeriodicTask] = field(default_factory=list)

    async def startup(self) -> None:
        """Open the store, load static codes and start background timers."""
        await self.store.initialize()

        if self.settings.access_codes:
            created = await self.store.seed(
                self.settings.access_codes,
                self.settings.access_code_max_uses,
                static_code_ttl(self.settings),
                self.clock(),
            )
            logger.info(
                f"Loaded {created} static access codes "
                f"({len(self.settings.access_codes)} configured)"
            )
        else:
            logger.warning("No static access codes configured (ACCESS_CODES is empty)")

        self.tasks = [
            PeriodicTask(
                "security-ledger-sweep",
                self.ledger.sweep,
                interval=self.settings.security_sweep_interval_seconds,
            ),
            PeriodicTask(
                "attack-monitor-tick",
                self.monitor.tick,
                interval=self.settings.attack_alert_interval_seconds,
            ),
        ]
        for task in self.tasks:
            await task.start()

    async def shutdown(self) -> None:
        for task in self.tasks:
            await task.stop()
        self.tasks = []
        await self.store.close()


def build_notifier(settings: Settings) -> AlertNotifier:
    if settings.alert_webhook_url:
        return WebhookAlertNotifier(settings.alert_webhook_url)
    return LogAlertNotifier()


def build_services(
    settings: Settings,
    clock: Optional[Clock] = None,
    store: Optional[AccessCodeStore] = None,
    notifier: Optional[AlertNotifier] = None,
) -> AppServices:
    """Wire the admission subsystem from settings.

    ``store`` and ``notifier`` override the settings-selected backends.
    """
    clock = clock or utcnow
    store = store or create_access_code_store(settings)
    ledger = ClientSecurityLedger(SecurityPolicy.from_settings(settings), clock=clock)
    monitor = AttackMonitor(
        alert_threshold=settings.attack_alert_threshold,
        alert_interval=timedelta(seconds=settings.attack_alert_interval_seconds),
        notifier=notifier or build_notifier(settings),
        clock=clock,
    )
    return AppServices(
        settings=settings,
        store=store,
        ledger=ledger,
        monitor=monitor,
        admission=AdmissionController(
            store,
            ledger,
            monitor,
            count_malformed_as_failure=settings.count_malformed_as_failure,
            clock=clock,
        ),
        management=ManagementService(store, ledger, monitor, clock=clock),
        clock=clock,
    )
