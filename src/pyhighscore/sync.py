"""Offline hit reconciliation protocol.

One run of the protocol:

1. validate address and mode,
2. ``GET /api/sync``,
3. stop early (as a success) when nothing is pending,
4. resolve timestamps and ids, clamp durations,
5. drop hits seen live or already stored,
6. prepend survivors to the store and rebuild its aggregates,
7. notify when something was imported,
8. ``POST /api/sync-complete`` regardless of how many survived,
9. mark the session as synced.

A failure before step 6 leaves the store untouched and the session
unsynced, so the next trigger retries the whole batch. Ids are stable
across retries, so a batch that was merged but never acknowledged is
filtered out by id the second time around.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from pyhighscore._api import acknowledge_sync, fetch_pending_batch
from pyhighscore._clock import now_ms
from pyhighscore._constants import SYNC_ERROR_DISMISS_AFTER, SYNC_SUCCESS_DISMISS_AFTER
from pyhighscore._transport import Transport, normalize_address
from pyhighscore.config import HighscoreConfig
from pyhighscore.exceptions import HighscoreTransportError
from pyhighscore.models.diagnostics import Notification, Severity
from pyhighscore.models.hit import HitTemplate
from pyhighscore.models.sync import SyncOutcome, SyncResult, SyncTrigger
from pyhighscore.notify import Notifier
from pyhighscore.reconcile import BootAnchor, Deduplicator, RecentHitWindow, TimestampReconciler
from pyhighscore.store import HitStore

_logger = logging.getLogger(__name__)


@dataclass
class SyncState:
    """Per device-session sync bookkeeping."""

    syncing: bool = False
    has_synced_since_reconnect: bool = False
    last_sync_time: int | None = None
    recent_live_hits: RecentHitWindow = field(default_factory=RecentHitWindow)
    boot_anchor: BootAnchor = field(default_factory=BootAnchor)


class OfflineSyncOrchestrator:
    """Single-flight importer of the device's pending hit batch."""

    def __init__(
        self,
        config: HighscoreConfig,
        transport: Transport,
        store: HitStore,
        notifier: Notifier,
        *,
        template_provider: Callable[[], HitTemplate] = HitTemplate,
        state: SyncState | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._config = config
        self._transport = transport
        self._store = store
        self._notifier = notifier
        self._template_provider = template_provider
        self._clock = clock
        self._state = state if state is not None else SyncState(
            recent_live_hits=RecentHitWindow(config.live_hit_window_ms),
            boot_anchor=BootAnchor(config.boot_anchor_tolerance_ms),
        )
        self._reconciler = TimestampReconciler(
            max_plausible_duration=config.max_plausible_duration,
            boot_anchor=self._state.boot_anchor,
        )
        self._deduplicator = Deduplicator(self._state.recent_live_hits, tolerance_ms=config.duplicate_window_ms)
        self._timer: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task[SyncResult]] = set()
        self._closed = False

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def syncing(self) -> bool:
        return self._state.syncing

    @property
    def has_synced_since_reconnect(self) -> bool:
        return self._state.has_synced_since_reconnect

    @property
    def last_sync_time(self) -> int | None:
        return self._state.last_sync_time

    @property
    def recent_live_hits(self) -> RecentHitWindow:
        return self._state.recent_live_hits

    def mark_disconnected(self) -> None:
        """Re-arm automatic sync for the next reconnect."""
        if self._state.has_synced_since_reconnect:
            _logger.debug("Link lost; next reconnect will sync again")
        self._state.has_synced_since_reconnect = False

    # ------------------------------------------------------------------
    # Triggers
    # ------------------------------------------------------------------

    def schedule(self, trigger: SyncTrigger, delay: float) -> bool:
        """Run :meth:`request_sync` after *delay* seconds.

        At most one delayed attempt is pending at a time; returns ``False``
        when another one already is (or the orchestrator is closed).
        """
        if self._closed:
            return False
        if self._timer is not None:
            _logger.debug("%s sync not scheduled: another attempt is already pending", trigger)
            return False
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(max(0.0, delay), self._fire, trigger)
        return True

    @property
    def has_pending_schedule(self) -> bool:
        return self._timer is not None

    def _fire(self, trigger: SyncTrigger) -> None:
        self._timer = None
        task = asyncio.create_task(self.request_sync(trigger))
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task[SyncResult]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            _logger.error("Scheduled sync crashed", exc_info=exc)

    async def wait_idle(self) -> None:
        """Wait until no delayed or running scheduled sync remains."""
        loop = asyncio.get_running_loop()
        while self._timer is not None or self._tasks:
            if self._tasks:
                await asyncio.gather(*self._tasks, return_exceptions=True)
            elif self._timer is not None:
                await asyncio.sleep(max(0.0, self._timer.when() - loop.time()))

    async def request_sync(self, trigger: SyncTrigger = SyncTrigger.MANUAL) -> SyncResult:
        """Run the reconciliation protocol unless a guard rejects it."""
        if trigger.is_automatic and self._state.has_synced_since_reconnect:
            _logger.debug("%s sync skipped: already synced since reconnect", trigger)
            return SyncResult(trigger=trigger, outcome=SyncOutcome.SKIPPED_ALREADY_SYNCED)

        host = normalize_address(self._config.device_address)
        if not host:
            _logger.warning("%s sync skipped: no valid device address configured", trigger)
            return SyncResult(trigger=trigger, outcome=SyncOutcome.SKIPPED_NO_ADDRESS)

        if self._config.simulated:
            _logger.info("%s sync skipped: simulated mode", trigger)
            return SyncResult(trigger=trigger, outcome=SyncOutcome.SKIPPED_SIMULATED)

        if self._state.syncing:
            _logger.info("%s sync skipped: a sync is already running", trigger)
            return SyncResult(trigger=trigger, outcome=SyncOutcome.SKIPPED_IN_FLIGHT)

        self._state.syncing = True
        try:
            return await self._run(trigger, host)
        finally:
            self._state.syncing = False

    # ------------------------------------------------------------------
    # Protocol
    # ------------------------------------------------------------------

    async def _run(self, trigger: SyncTrigger, host: str) -> SyncResult:
        try:
            batch = await fetch_pending_batch(self._transport, host, timeout=self._config.sync_timeout)
        except HighscoreTransportError as exc:
            if self._closed:
                return SyncResult(trigger=trigger, outcome=SyncOutcome.ABANDONED)
            _logger.error("%s sync failed: %s", trigger, exc)
            self._notifier.notify(
                Notification(
                    severity=Severity.ERROR,
                    message=f"Sync failed: {exc}",
                    icon="refresh",
                    dismiss_after=SYNC_ERROR_DISMISS_AFTER,
                )
            )
            return SyncResult(trigger=trigger, outcome=SyncOutcome.FAILED, error=str(exc))

        if self._closed:
            _logger.debug("Discarding sync response for a closed session")
            return SyncResult(trigger=trigger, outcome=SyncOutcome.ABANDONED)

        if batch.is_empty:
            _logger.info("%s sync: no pending hits", trigger)
            return self._mark_synced(SyncResult(trigger=trigger, outcome=SyncOutcome.SYNCED))

        _logger.info(
            "%s sync: %d pending hits (time synchronized: %s)",
            trigger,
            batch.pending_count,
            batch.time_sync,
        )
        reconciled = self._reconciler.reconcile(batch, now_ms=self._clock(), template=self._template_provider())
        report = self._deduplicator.filter(reconciled.hits, self._store.known_ids())

        if report.kept:
            self._store.prepend(report.kept)
            self._store.rebuild_aggregates()
            self._notifier.notify(
                Notification(
                    severity=Severity.SUCCESS,
                    message=f"{len(report.kept)} offline hits imported",
                    icon="refresh",
                    dismiss_after=SYNC_SUCCESS_DISMISS_AFTER,
                )
            )

        _logger.info(
            "%s sync: imported %d, dropped %d seen live and %d already stored",
            trigger,
            len(report.kept),
            len(report.live_duplicates),
            len(report.id_duplicates),
        )

        acknowledged = await self._acknowledge(host)

        return self._mark_synced(
            SyncResult(
                trigger=trigger,
                outcome=SyncOutcome.SYNCED,
                pending_count=batch.pending_count,
                imported=len(report.kept),
                live_duplicates=len(report.live_duplicates),
                id_duplicates=len(report.id_duplicates),
                clamped_durations=reconciled.clamped_durations,
                acknowledged=acknowledged,
            )
        )

    async def _acknowledge(self, host: str) -> bool:
        try:
            await acknowledge_sync(self._transport, host, timeout=self._config.ack_timeout)
        except HighscoreTransportError as exc:
            # The device keeps its queue; the next batch is filtered by id.
            _logger.warning("Sync acknowledgment failed: %s", exc)
            return False
        _logger.debug("Sync acknowledgment sent to %s", host)
        return True

    def _mark_synced(self, result: SyncResult) -> SyncResult:
        self._state.has_synced_since_reconnect = True
        self._state.last_sync_time = self._clock()
        return result

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Cancel any pending delayed sync; in-flight runs finish but apply nothing."""
        self._closed = True
        timer = self._timer
        self._timer = None
        if timer is not None:
            timer.cancel()
