from __future__ import annotations

import asyncio
import copy
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import pytest

from pyhighscore.config import HighscoreConfig
from pyhighscore.detector import HitDeltaDetector
from pyhighscore.diagnostics import DiagnosticsLog
from pyhighscore.exceptions import HighscoreTransportError
from pyhighscore.models.diagnostics import Notification
from pyhighscore.poller import DevicePoller
from pyhighscore.store import InMemoryHitStore
from pyhighscore.sync import OfflineSyncOrchestrator

T0 = 1_767_225_600_000  # 2026-01-01T00:00:00Z in epoch ms


def _empty_batch() -> dict[str, Any]:
    return {"pendingHits": [], "pendingCount": 0, "espUptime": 0, "timeSync": True}


@dataclass
class FakeDevice:
    """In-process stand-in for the sensor firmware's HTTP API."""

    data: dict[str, Any] = field(
        default_factory=lambda: {"flame": False, "isInhaling": False, "today": 0, "total": 0, "timeSync": True}
    )
    batch: dict[str, Any] = field(default_factory=_empty_batch)
    calls: dict[str, int] = field(default_factory=dict)
    posts: list[tuple[str, dict[str, Any] | None]] = field(default_factory=list)
    hosts: list[str] = field(default_factory=list)
    data_error: Exception | None = None
    sync_error: Exception | None = None
    ack_error: Exception | None = None
    clear_on_ack: bool = True
    gates: dict[str, asyncio.Event] = field(default_factory=dict)

    def _record_call(self, path: str) -> None:
        self.calls[path] = self.calls.get(path, 0) + 1

    def set_pending(self, hits: list[dict[str, Any]], *, uptime: int = 0, time_sync: bool = True) -> None:
        self.batch = {
            "pendingHits": hits,
            "pendingCount": len(hits),
            "espUptime": uptime,
            "timeSync": time_sync,
        }

    def gate(self, path: str) -> asyncio.Event:
        event = asyncio.Event()
        self.gates[path] = event
        return event

    async def get_json(self, host: str, path: str, *, timeout: float) -> dict[str, Any]:
        self._record_call(path)
        self.hosts.append(host)
        gate = self.gates.get(path)
        if gate is not None:
            await gate.wait()

        if path == "/api/data":
            if self.data_error is not None:
                raise self.data_error
            return dict(self.data)
        if path == "/api/sync":
            if self.sync_error is not None:
                raise self.sync_error
            return copy.deepcopy(self.batch)
        raise HighscoreTransportError(f"HTTP 404 from {path}", status_code=404, endpoint=path)

    async def post(
        self,
        host: str,
        path: str,
        *,
        timeout: float,
        payload: Mapping[str, Any] | None = None,
    ) -> None:
        self._record_call(path)
        self.posts.append((path, dict(payload) if payload is not None else None))
        if path == "/api/sync-complete":
            if self.ack_error is not None:
                raise self.ack_error
            if self.clear_on_ack:
                self.batch = _empty_batch()


class FakeClock:
    """Settable epoch-millisecond clock."""

    def __init__(self, now: int = T0) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> int:
        self.now += ms
        return self.now


class RecordingNotifier:
    def __init__(self) -> None:
        self.notifications: list[Notification] = []

    def notify(self, notification: Notification) -> None:
        self.notifications.append(notification)


@dataclass
class Session:
    config: HighscoreConfig
    poller: DevicePoller
    detector: HitDeltaDetector
    orchestrator: OfflineSyncOrchestrator
    diagnostics: DiagnosticsLog


@pytest.fixture
def device() -> FakeDevice:
    return FakeDevice()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def store() -> InMemoryHitStore:
    return InMemoryHitStore()


@pytest.fixture
def make_session(device: FakeDevice, clock: FakeClock, notifier: RecordingNotifier, store: InMemoryHitStore):
    """Wire one device session against the fake device, the way the client does."""

    def _make(**overrides: Any) -> Session:
        kwargs: dict[str, Any] = {"device_address": "http://192.168.4.1/", "reconnect_sync_delay": 0.0}
        kwargs.update(overrides)
        config = HighscoreConfig(**kwargs)
        orchestrator = OfflineSyncOrchestrator(config, device, store, notifier, clock=clock)
        detector = HitDeltaDetector(orchestrator.recent_live_hits, clock=clock)
        diagnostics = DiagnosticsLog(
            connection_log_limit=config.connection_log_limit,
            flame_history_limit=config.flame_history_limit,
        )
        poller = DevicePoller(
            config,
            device,
            detector=detector,
            orchestrator=orchestrator,
            diagnostics=diagnostics,
            clock=clock,
        )
        return Session(
            config=config,
            poller=poller,
            detector=detector,
            orchestrator=orchestrator,
            diagnostics=diagnostics,
        )

    return _make
