"""High-level async client for a HighScore flame sensor."""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Callable, Mapping
from typing import Any

import aiohttp

from pyhighscore._api import push_settings
from pyhighscore._clock import now_ms
from pyhighscore._transport import HttpTransport, Transport, normalize_address
from pyhighscore.config import HighscoreConfig
from pyhighscore.detector import HitDeltaDetector, LiveHitListener
from pyhighscore.diagnostics import DiagnosticsLog
from pyhighscore.exceptions import HighscoreConfigError, HighscoreError
from pyhighscore.models.device import LiveData
from pyhighscore.models.diagnostics import ConnectionLogEntry, FlameHistoryEntry
from pyhighscore.models.hit import HitTemplate
from pyhighscore.models.sync import SyncResult, SyncTrigger
from pyhighscore.notify import LoggingNotifier, Notifier
from pyhighscore.poller import DevicePoller
from pyhighscore.store import HitStore
from pyhighscore.sync import OfflineSyncOrchestrator

_logger = logging.getLogger(__name__)


@dataclasses.dataclass
class _DeviceSession:
    """Everything that lives exactly as long as one (address, mode) pairing."""

    poller: DevicePoller
    detector: HitDeltaDetector
    orchestrator: OfflineSyncOrchestrator


class HighscoreClient:
    """Async client keeping a hit store in step with the sensor.

    Usage::

        async with HighscoreClient(config, store=store) as client:
            client.start()
            ...
            result = await client.force_sync()
    """

    def __init__(
        self,
        config: HighscoreConfig,
        *,
        store: HitStore,
        notifier: Notifier | None = None,
        template_provider: Callable[[], HitTemplate] = HitTemplate,
        on_live_hit: LiveHitListener | None = None,
        session: aiohttp.ClientSession | None = None,
        transport: Transport | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._config = config
        self._store = store
        self._notifier = notifier if notifier is not None else LoggingNotifier()
        self._template_provider = template_provider
        self._live_hit_listeners: list[LiveHitListener] = [on_live_hit] if on_live_hit is not None else []
        self._external_session = session is not None
        self._http_session = session
        self._transport = transport
        self._clock = clock
        self._diagnostics = DiagnosticsLog(
            connection_log_limit=config.connection_log_limit,
            flame_history_limit=config.flame_history_limit,
        )
        self._device: _DeviceSession | None = None
        self._manual_offset = 0
        self._manual_holding = False

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> HighscoreClient:
        if self._transport is None:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            self._transport = HttpTransport(self._http_session)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.stop()
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
            self._transport = None

    # ------------------------------------------------------------------
    # Device session
    # ------------------------------------------------------------------

    @property
    def config(self) -> HighscoreConfig:
        return self._config

    def _require_transport(self) -> Transport:
        if self._transport is None:
            raise HighscoreError("Client not initialized. Use 'async with HighscoreClient(...) as client:'")
        return self._transport

    def _require_device(self) -> _DeviceSession:
        if self._device is None:
            raise HighscoreError("Client not started. Call 'client.start()' first")
        return self._device

    def _build_device(self) -> _DeviceSession:
        transport = self._require_transport()
        orchestrator = OfflineSyncOrchestrator(
            self._config,
            transport,
            self._store,
            self._notifier,
            template_provider=self._template_provider,
            clock=self._clock,
        )
        detector = HitDeltaDetector(orchestrator.recent_live_hits, clock=self._clock)
        for listener in self._live_hit_listeners:
            detector.add_listener(listener)
        poller = DevicePoller(
            self._config,
            transport,
            detector=detector,
            orchestrator=orchestrator,
            diagnostics=self._diagnostics,
            clock=self._clock,
        )
        poller.manual_offset = self._manual_offset
        poller.manual_holding = self._manual_holding
        return _DeviceSession(poller=poller, detector=detector, orchestrator=orchestrator)

    def start(self) -> None:
        """Begin polling. Safe to call when already running."""
        if self._device is None:
            self._device = self._build_device()
            mode = "simulated" if self._config.simulated else normalize_address(self._config.device_address) or "<unset>"
            _logger.info("Starting device session (%s)", mode)
        self._device.poller.start()

    async def stop(self) -> None:
        """Tear down the device session: timers are cancelled, late responses ignored."""
        device, self._device = self._device, None
        if device is None:
            return
        device.orchestrator.close()
        await device.poller.stop()

    async def reconfigure(self, *, device_address: str | None = None, simulated: bool | None = None) -> None:
        """Switch target device or mode, starting a fresh device session.

        All per-session state (connection, counter baseline, sync cooldown,
        recent live hits) is discarded; the hit store is untouched.
        """
        changes: dict[str, Any] = {}
        if device_address is not None:
            changes["device_address"] = device_address
        if simulated is not None:
            changes["simulated"] = simulated
        if not changes:
            return
        try:
            new_config = dataclasses.replace(self._config, **changes)
        except (TypeError, ValueError) as exc:
            raise HighscoreConfigError(str(exc)) from exc
        was_running = self._device is not None
        await self.stop()
        self._config = new_config
        if was_running:
            self.start()

    # ------------------------------------------------------------------
    # Triggers
    # ------------------------------------------------------------------

    async def force_sync(self) -> SyncResult:
        """Import pending offline hits now, regardless of the reconnect cooldown."""
        return await self._require_device().orchestrator.request_sync(SyncTrigger.MANUAL)

    def notify_foreground(self) -> bool:
        """The host app regained focus; schedule a sync if the device is reachable.

        Returns ``True`` when a sync attempt was scheduled.
        """
        device = self._device
        if device is None or not device.poller.connected or self._config.simulated:
            return False
        return device.orchestrator.schedule(SyncTrigger.FOREGROUND, self._config.foreground_sync_delay)

    async def wait_for_sync(self) -> None:
        """Wait for any scheduled sync attempt to finish."""
        if self._device is not None:
            await self._device.orchestrator.wait_idle()

    async def push_settings(self, settings: Mapping[str, Any]) -> None:
        """Forward a settings mapping to the device's ``/api/settings`` endpoint."""
        host = normalize_address(self._config.device_address)
        if not host:
            raise HighscoreConfigError("No device address configured")
        await push_settings(self._require_transport(), host, settings, timeout=self._config.ack_timeout)

    # ------------------------------------------------------------------
    # Observed state
    # ------------------------------------------------------------------

    @property
    def connected(self) -> bool:
        return self._device is not None and self._device.poller.connected

    @property
    def live_data(self) -> LiveData:
        return self._device.poller.live_data if self._device is not None else LiveData()

    @property
    def last_error(self) -> str | None:
        return self._device.poller.last_error if self._device is not None else None

    @property
    def error_count(self) -> int:
        return self._device.poller.error_count if self._device is not None else 0

    @property
    def syncing(self) -> bool:
        return self._device is not None and self._device.orchestrator.syncing

    @property
    def last_sync_time(self) -> int | None:
        return self._device.orchestrator.last_sync_time if self._device is not None else None

    @property
    def connection_log(self) -> list[ConnectionLogEntry]:
        return self._diagnostics.connection_log

    @property
    def flame_history(self) -> list[FlameHistoryEntry]:
        return self._diagnostics.flame_history

    @property
    def manual_offset(self) -> int:
        return self._manual_offset

    @manual_offset.setter
    def manual_offset(self, value: int) -> None:
        self._manual_offset = value
        if self._device is not None:
            self._device.poller.manual_offset = value

    @property
    def manual_holding(self) -> bool:
        return self._manual_holding

    @manual_holding.setter
    def manual_holding(self, value: bool) -> None:
        self._manual_holding = value
        if self._device is not None:
            self._device.poller.manual_holding = value

    def add_live_hit_listener(self, listener: LiveHitListener) -> Callable[[], None]:
        """Subscribe to live hits; the subscription survives :meth:`reconfigure`."""
        self._live_hit_listeners.append(listener)
        detach = self._device.detector.add_listener(listener) if self._device is not None else None

        def _remove() -> None:
            if listener in self._live_hit_listeners:
                self._live_hit_listeners.remove(listener)
            if detach is not None:
                detach()

        return _remove
