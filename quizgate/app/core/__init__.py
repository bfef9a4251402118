"""Core utilities for the application."""

from quizgate.app.core.config import Settings, settings
from quizgate.app.core.logging import get_logger, setup_logging
from quizgate.app.core.scheduler import PeriodicTask
from quizgate.app.core.utils import Clock, get_client_ip, utcnow

__all__ = [
    "Settings",
    "settings",
    "get_logger",
    "setup_logging",
    "PeriodicTask",
    "Clock",
    "get_client_ip",
    "utcnow",
]
