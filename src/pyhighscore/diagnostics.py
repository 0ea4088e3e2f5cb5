"""Bounded connection log and flame history for troubleshooting.

Nothing here influences polling or reconciliation.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable
from datetime import datetime

from pyhighscore._constants import CONNECTION_LOG_LIMIT, FLAME_HISTORY_LIMIT
from pyhighscore.models.diagnostics import ConnectionLogEntry, FlameHistoryEntry, LogKind

_logger = logging.getLogger(__name__)


def _local_now() -> datetime:
    return datetime.now().astimezone()


class DiagnosticsLog:
    """Connection log (newest first) and flame history (newest last)."""

    def __init__(
        self,
        *,
        connection_log_limit: int = CONNECTION_LOG_LIMIT,
        flame_history_limit: int = FLAME_HISTORY_LIMIT,
        clock: Callable[[], datetime] = _local_now,
    ) -> None:
        self._clock = clock
        # appendleft keeps the newest connection entry at index 0.
        self._connection_log: deque[ConnectionLogEntry] = deque(maxlen=connection_log_limit)
        self._flame_history: deque[FlameHistoryEntry] = deque(maxlen=flame_history_limit)

    def log(self, kind: LogKind, message: str) -> ConnectionLogEntry:
        entry = ConnectionLogEntry(kind=kind, message=message, timestamp=self._clock())
        self._connection_log.appendleft(entry)
        level = logging.WARNING if kind == LogKind.ERROR else logging.INFO
        _logger.log(level, "%s: %s", kind, message)
        return entry

    def log_success(self, message: str) -> ConnectionLogEntry:
        return self.log(LogKind.SUCCESS, message)

    def log_error(self, message: str) -> ConnectionLogEntry:
        return self.log(LogKind.ERROR, message)

    def record_flame(self, time_ms: int, *, flame_detected: bool, inhaling: bool) -> None:
        self._flame_history.append(
            FlameHistoryEntry(time=time_ms, flame_detected=flame_detected, inhaling=inhaling)
        )

    @property
    def connection_log(self) -> list[ConnectionLogEntry]:
        return list(self._connection_log)

    @property
    def flame_history(self) -> list[FlameHistoryEntry]:
        return list(self._flame_history)

    def clear(self) -> None:
        self._connection_log.clear()
        self._flame_history.clear()
