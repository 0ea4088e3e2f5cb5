"""Transient user notifications."""

from __future__ import annotations

import logging
from typing import Protocol

from pyhighscore.models.diagnostics import Notification, Severity

_logger = logging.getLogger(__name__)

_LEVELS: dict[Severity, int] = {
    Severity.SUCCESS: logging.INFO,
    Severity.INFO: logging.INFO,
    Severity.WARNING: logging.WARNING,
    Severity.ERROR: logging.ERROR,
}


class Notifier(Protocol):
    def notify(self, notification: Notification) -> None:
        ...


class LoggingNotifier:
    """Default notifier for headless use: writes notifications to the log."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or _logger

    def notify(self, notification: Notification) -> None:
        self._logger.log(_LEVELS.get(notification.severity, logging.INFO), "%s", notification.message)
