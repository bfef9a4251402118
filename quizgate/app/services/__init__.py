"""Services package: admission control, abuse tracking, management and rankings."""

from quizgate.app.services.admission import AdmissionController, AdmissionResult
from quizgate.app.services.attack_monitor import AttackMonitor
from quizgate.app.services.container import AppServices, build_services
from quizgate.app.services.management import ManagementService
from quizgate.app.services.security_ledger import ClientSecurityLedger, SecurityPolicy

__all__ = [
    "AdmissionController",
    "AdmissionResult",
    "AttackMonitor",
    "AppServices",
    "build_services",
    "ManagementService",
    "ClientSecurityLedger",
    "SecurityPolicy",
]
