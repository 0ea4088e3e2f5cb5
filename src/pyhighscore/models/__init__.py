"""Data models for device payloads and reconciled hits."""

from pyhighscore.models._base import HighscoreBaseModel
from pyhighscore.models.device import DeviceData, LiveData
from pyhighscore.models.diagnostics import (
    ConnectionLogEntry,
    FlameHistoryEntry,
    LogKind,
    Notification,
    Severity,
)
from pyhighscore.models.hit import Hit, HitOrigin, HitTemplate
from pyhighscore.models.sync import (
    PendingBatch,
    PendingHitRecord,
    SyncOutcome,
    SyncResult,
    SyncTrigger,
)

__all__ = [
    "ConnectionLogEntry",
    "DeviceData",
    "FlameHistoryEntry",
    "HighscoreBaseModel",
    "Hit",
    "HitOrigin",
    "HitTemplate",
    "LiveData",
    "LogKind",
    "Notification",
    "PendingBatch",
    "PendingHitRecord",
    "Severity",
    "SyncOutcome",
    "SyncResult",
    "SyncTrigger",
]
