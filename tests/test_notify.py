from __future__ import annotations

import logging

import pytest

from pyhighscore.models.diagnostics import Notification, Severity
from pyhighscore.notify import LoggingNotifier


def test_logging_notifier_maps_severity(caplog: pytest.LogCaptureFixture) -> None:
    notifier = LoggingNotifier(logging.getLogger("highscore.test"))

    with caplog.at_level(logging.INFO, logger="highscore.test"):
        notifier.notify(Notification(severity=Severity.SUCCESS, message="3 offline hits imported"))
        notifier.notify(Notification(severity=Severity.ERROR, message="Sync failed: timed out"))

    assert [(r.levelno, r.getMessage()) for r in caplog.records] == [
        (logging.INFO, "3 offline hits imported"),
        (logging.ERROR, "Sync failed: timed out"),
    ]
