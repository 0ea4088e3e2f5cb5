"""Diagnostics records and user-facing notifications."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict


class LogKind(StrEnum):
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"


class ConnectionLogEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: LogKind
    message: str
    timestamp: datetime


class FlameHistoryEntry(BaseModel):
    """Raw flame flag and derived session-active flag for one tick."""

    model_config = ConfigDict(frozen=True)

    time: int
    flame_detected: bool
    inhaling: bool


class Severity(StrEnum):
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"
    INFO = "info"


class Notification(BaseModel):
    """Transient message for the host application to surface.

    ``dismiss_after`` is the number of seconds the message should stay
    visible; ``icon`` is a symbolic name the host maps to its own assets.
    """

    model_config = ConfigDict(frozen=True)

    severity: Severity
    message: str
    icon: str | None = None
    dismiss_after: float | None = None
