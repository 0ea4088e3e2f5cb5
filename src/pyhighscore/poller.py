"""Periodic ``/api/data`` polling with adaptive backoff.

The scheduler spawns a tick every effective interval; a tick that finds the
previous one still in flight returns immediately instead of queueing. The
effective interval is ``base * min(1 + errors * 0.3, 4)`` and is refreshed
on its own, slower cadence so that a burst of failures slows polling and a
single success restores it at the next refresh.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from collections.abc import Callable

from pyhighscore._api import fetch_device_data
from pyhighscore._clock import now_ms
from pyhighscore._constants import (
    BACKOFF_STEP,
    MAX_BACKOFF_FACTOR,
    NETWORK_ERROR_MESSAGE,
    NO_ADDRESS_MESSAGE,
    SIMULATED_FLICKER_THRESHOLD,
    SIMULATED_MAX_SESSION_MS,
    SIMULATED_MIN_SESSION_MS,
)
from pyhighscore._transport import Transport, normalize_address
from pyhighscore.config import HighscoreConfig
from pyhighscore.detector import HitDeltaDetector
from pyhighscore.diagnostics import DiagnosticsLog
from pyhighscore.exceptions import HighscoreError, HighscoreNetworkError, HighscoreTransportError
from pyhighscore.models.device import DeviceData, LiveData
from pyhighscore.models.sync import SyncTrigger
from pyhighscore.sync import OfflineSyncOrchestrator

_logger = logging.getLogger(__name__)


def backoff_factor(error_count: int) -> float:
    return min(1 + error_count * BACKOFF_STEP, MAX_BACKOFF_FACTOR)


def describe_error(exc: HighscoreTransportError) -> str:
    """Collapse connectivity failures into one user-facing message."""
    if isinstance(exc, HighscoreNetworkError):
        return NETWORK_ERROR_MESSAGE
    return str(exc)


class DevicePoller:
    """Drives the request cycle and tracks connection state for one device session."""

    def __init__(
        self,
        config: HighscoreConfig,
        transport: Transport,
        *,
        detector: HitDeltaDetector,
        orchestrator: OfflineSyncOrchestrator,
        diagnostics: DiagnosticsLog,
        clock: Callable[[], int] = now_ms,
        rng: Callable[[], float] = random.random,
    ) -> None:
        self._config = config
        self._transport = transport
        self._detector = detector
        self._orchestrator = orchestrator
        self._diagnostics = diagnostics
        self._clock = clock
        self._rng = rng

        self._connected = False
        self._ever_connected = False
        self._error_count = 0
        self._last_error: str | None = None
        self._live_data = LiveData()
        self._interval = config.poll_interval

        self.manual_offset = 0
        self.manual_holding = False

        self._tick_running = False
        self._closed = False
        self._tasks: list[asyncio.Task[None]] = []
        self._ticks: set[asyncio.Task[bool]] = set()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def error_count(self) -> int:
        return self._error_count

    @property
    def last_error(self) -> str | None:
        return self._last_error

    @property
    def live_data(self) -> LiveData:
        return self._live_data

    @property
    def interval(self) -> float:
        """Interval currently used by the scheduler (refreshed on the recheck cadence)."""
        return self._interval

    def effective_interval(self) -> float:
        return self._config.poll_interval * backoff_factor(self._error_count)

    @property
    def running(self) -> bool:
        return bool(self._tasks) and not self._closed

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        if self._closed:
            raise HighscoreError("Poller has been stopped; build a new one")
        if self._tasks:
            return
        self._spawn_tick()
        self._tasks = [
            asyncio.create_task(self._schedule_loop()),
            asyncio.create_task(self._recheck_loop()),
        ]

    async def stop(self) -> None:
        """Cancel timers; a tick still awaiting the device is left to finish and ignored."""
        self._closed = True
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def _schedule_loop(self) -> None:
        while not self._closed:
            await asyncio.sleep(self._interval)
            self._spawn_tick()

    async def _recheck_loop(self) -> None:
        while not self._closed:
            await asyncio.sleep(self._config.backoff_recheck_interval)
            self.recheck_interval()

    def recheck_interval(self) -> float:
        interval = self.effective_interval()
        if interval != self._interval:
            _logger.debug("Poll interval %.2fs -> %.2fs (errors=%d)", self._interval, interval, self._error_count)
        self._interval = interval
        return interval

    def _spawn_tick(self) -> None:
        task = asyncio.create_task(self.tick())
        self._ticks.add(task)
        task.add_done_callback(self._tick_done)

    def _tick_done(self, task: asyncio.Task[bool]) -> None:
        self._ticks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            _logger.error("Poll tick crashed", exc_info=exc)

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    async def tick(self) -> bool:
        """Run one poll cycle; returns ``False`` if skipped because one is already in flight."""
        if self._tick_running:
            _logger.debug("Tick skipped: previous request still in flight")
            return False
        self._tick_running = True
        try:
            if self._config.simulated:
                self._simulated_tick()
            else:
                await self._device_tick()
        finally:
            self._tick_running = False
        return True

    async def _device_tick(self) -> None:
        host = normalize_address(self._config.device_address)
        if not host:
            # Misconfiguration, not a network condition: no backoff.
            self._connected = False
            self._last_error = NO_ADDRESS_MESSAGE
            self._diagnostics.log_error(NO_ADDRESS_MESSAGE)
            return

        started = time.monotonic()
        try:
            data = await fetch_device_data(self._transport, host, timeout=self._config.data_timeout)
        except HighscoreTransportError as exc:
            if self._closed:
                return
            self._on_failure(exc)
            return

        if self._closed:
            return
        self._on_success(host, data, int((time.monotonic() - started) * 1000))

    def _on_success(self, host: str, data: DeviceData, response_ms: int) -> None:
        self._detector.observe(data.total, data.last_duration)
        self._diagnostics.record_flame(self._clock(), flame_detected=data.flame, inhaling=data.is_inhaling)
        self._live_data = LiveData.from_device(data, manual_offset=self.manual_offset)

        was_disconnected = not self._connected
        if was_disconnected:
            self._diagnostics.log_success(f"Connected to {host} ({response_ms} ms)")
        self._connected = True
        self._last_error = None
        self._error_count = 0

        if was_disconnected:
            trigger = SyncTrigger.RECONNECT if self._ever_connected else SyncTrigger.INITIAL
            self._ever_connected = True
            if not self._orchestrator.has_synced_since_reconnect:
                self._orchestrator.schedule(trigger, self._config.reconnect_sync_delay)

    def _on_failure(self, exc: HighscoreTransportError) -> None:
        self._error_count += 1
        was_connected = self._connected
        self._connected = False
        message = describe_error(exc)
        _logger.debug("Poll failed (%d consecutive): %s", self._error_count, exc)
        self._last_error = message
        self._diagnostics.log_error(message)
        if was_connected:
            self._orchestrator.mark_disconnected()

    def _simulated_tick(self) -> None:
        inhaling = self.manual_holding
        flame = inhaling or self._rng() > SIMULATED_FLICKER_THRESHOLD
        self._diagnostics.record_flame(self._clock(), flame_detected=flame, inhaling=inhaling)
        self._live_data = LiveData(
            flame_detected=flame,
            inhaling=inhaling,
            today_count=self.manual_offset,
            total_count=self.manual_offset,
            min_session_duration_ms=SIMULATED_MIN_SESSION_MS,
            max_session_duration_ms=SIMULATED_MAX_SESSION_MS,
            device_time_synchronized=False,
        )
        self._connected = True
        self._last_error = None
        self._error_count = 0
