"""pyhighscore - Async Python client for the HighScore flame sensor."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pyhighscore")
except PackageNotFoundError:
    __version__ = "0+local"
from pyhighscore.client import HighscoreClient
from pyhighscore.config import HighscoreConfig
from pyhighscore.detector import HitDeltaDetector, LiveHitEvent
from pyhighscore.diagnostics import DiagnosticsLog
from pyhighscore.exceptions import (
    HighscoreConfigError,
    HighscoreError,
    HighscoreNetworkError,
    HighscoreResponseError,
    HighscoreTimeoutError,
    HighscoreTransportError,
)
from pyhighscore.models import (
    ConnectionLogEntry,
    FlameHistoryEntry,
    Hit,
    HitOrigin,
    HitTemplate,
    LiveData,
    LogKind,
    Notification,
    PendingBatch,
    PendingHitRecord,
    Severity,
    SyncOutcome,
    SyncResult,
    SyncTrigger,
)
from pyhighscore.notify import LoggingNotifier, Notifier
from pyhighscore.poller import DevicePoller
from pyhighscore.store import HitStore, InMemoryHitStore
from pyhighscore.sync import OfflineSyncOrchestrator, SyncState

__all__ = [
    "__version__",
    "ConnectionLogEntry",
    "DevicePoller",
    "DiagnosticsLog",
    "FlameHistoryEntry",
    "HighscoreClient",
    "HighscoreConfig",
    "HighscoreConfigError",
    "HighscoreError",
    "HighscoreNetworkError",
    "HighscoreResponseError",
    "HighscoreTimeoutError",
    "HighscoreTransportError",
    "Hit",
    "HitDeltaDetector",
    "HitOrigin",
    "HitStore",
    "HitTemplate",
    "InMemoryHitStore",
    "LiveData",
    "LiveHitEvent",
    "LogKind",
    "LoggingNotifier",
    "Notification",
    "Notifier",
    "OfflineSyncOrchestrator",
    "PendingBatch",
    "PendingHitRecord",
    "Severity",
    "SyncOutcome",
    "SyncResult",
    "SyncState",
    "SyncTrigger",
]
