"""Timestamp resolution, stable ids and duplicate suppression for offline hits.

A pending batch arrives in one of two clock regimes:

* ``timeSync`` true: the device had NTP time when it recorded the hits, so
  each ``timestamp`` is already wall-clock epoch milliseconds.
* ``timeSync`` false: each ``timestamp`` is ``millis()`` since boot and has
  to be placed on the wall clock relative to ``espUptime`` at fetch time.

In the second regime ``now - (uptime - ts)`` equals ``boot + ts`` where
``boot = now - uptime``. :class:`BootAnchor` pins that boot estimate for the
device session so the same record fetched twice (e.g. after a lost
acknowledgment) resolves to the same instant and therefore the same
fingerprint id.
"""

from __future__ import annotations

import hashlib
import json
import logging
from collections import deque
from collections.abc import Collection, Iterable
from dataclasses import dataclass, field

from pyhighscore._constants import (
    DEFAULT_BOOT_ANCHOR_TOLERANCE_MS,
    DEFAULT_DUPLICATE_WINDOW_MS,
    DEFAULT_LIVE_HIT_WINDOW_MS,
    FALLBACK_ID_PREFIX,
    MAX_PLAUSIBLE_DURATION,
)
from pyhighscore.models.hit import Hit, HitOrigin, HitTemplate
from pyhighscore.models.sync import PendingBatch, PendingHitRecord

_logger = logging.getLogger(__name__)


def resolve_timestamp(
    device_timestamp: int,
    *,
    time_synchronized: bool,
    device_uptime: int,
    now_ms: int,
) -> int:
    """Place a device timestamp on the wall clock."""
    if time_synchronized:
        return device_timestamp
    age_ms = device_uptime - device_timestamp
    return now_ms - age_ms


def clamp_duration(duration: float | None, max_plausible: float = MAX_PLAUSIBLE_DURATION) -> float:
    """Return *duration* if it lies in ``(0, max_plausible]``, else ``0``."""
    if duration is None:
        return 0.0
    if duration <= 0 or duration > max_plausible:
        return 0.0
    return float(duration)


def fingerprint(resolved_timestamp: int, payload: dict[str, object]) -> str:
    """Deterministic id for a record the device did not name."""
    canonical = json.dumps(
        {"ts": resolved_timestamp, "payload": payload},
        sort_keys=True,
        separators=(",", ":"),
        default=str,
    )
    digest = hashlib.blake2b(canonical.encode("utf-8"), digest_size=8).hexdigest()
    return f"{FALLBACK_ID_PREFIX}{digest}"


class BootAnchor:
    """Wall-clock estimate of the device's boot instant, pinned across fetches."""

    def __init__(self, tolerance_ms: int = DEFAULT_BOOT_ANCHOR_TOLERANCE_MS) -> None:
        self._tolerance_ms = tolerance_ms
        self._anchor_ms: int | None = None

    @property
    def value(self) -> int | None:
        return self._anchor_ms

    def resolve(self, *, device_uptime: int, now_ms: int) -> int:
        """Return the pinned boot instant, re-pinning if the device clearly rebooted."""
        estimate = now_ms - device_uptime
        if self._anchor_ms is None or abs(estimate - self._anchor_ms) > self._tolerance_ms:
            if self._anchor_ms is not None:
                _logger.info(
                    "Device boot anchor moved by %d ms; re-pinning",
                    estimate - self._anchor_ms,
                )
            self._anchor_ms = estimate
        return self._anchor_ms

    def reset(self) -> None:
        self._anchor_ms = None


class RecentHitWindow:
    """Timestamps of hits registered live within the last *span_ms*."""

    def __init__(self, span_ms: int = DEFAULT_LIVE_HIT_WINDOW_MS) -> None:
        self._span_ms = span_ms
        self._timestamps: deque[int] = deque()

    def record(self, timestamp_ms: int) -> None:
        self._timestamps.append(timestamp_ms)
        while self._timestamps and timestamp_ms - self._timestamps[0] >= self._span_ms:
            self._timestamps.popleft()

    def near(self, timestamp_ms: int, tolerance_ms: int) -> bool:
        return any(abs(timestamp_ms - live) < tolerance_ms for live in self._timestamps)

    def timestamps(self) -> tuple[int, ...]:
        return tuple(self._timestamps)

    def __len__(self) -> int:
        return len(self._timestamps)


@dataclass
class ReconciledBatch:
    hits: list[Hit] = field(default_factory=list)
    clamped_durations: int = 0


class TimestampReconciler:
    """Turns a :class:`PendingBatch` into canonical offline hits."""

    def __init__(
        self,
        *,
        max_plausible_duration: float = MAX_PLAUSIBLE_DURATION,
        boot_anchor: BootAnchor | None = None,
    ) -> None:
        self._max_plausible_duration = max_plausible_duration
        self._boot_anchor = boot_anchor if boot_anchor is not None else BootAnchor()

    def resolve(self, record: PendingHitRecord, batch: PendingBatch, *, now_ms: int) -> int:
        if not batch.time_sync:
            # Evaluate against the pinned boot instant, not the raw fetch time.
            boot_ms = self._boot_anchor.resolve(device_uptime=batch.esp_uptime, now_ms=now_ms)
            now_ms = boot_ms + batch.esp_uptime
        return resolve_timestamp(
            record.timestamp,
            time_synchronized=batch.time_sync,
            device_uptime=batch.esp_uptime,
            now_ms=now_ms,
        )

    def reconcile(self, batch: PendingBatch, *, now_ms: int, template: HitTemplate) -> ReconciledBatch:
        result = ReconciledBatch()
        for record in batch.pending_hits:
            resolved = self.resolve(record, batch, now_ms=now_ms)
            hit_id = record.id or fingerprint(resolved, record.raw)

            duration = clamp_duration(record.duration, self._max_plausible_duration)
            if record.duration is not None and record.duration != 0 and duration == 0:
                _logger.warning("Ignoring implausible duration %ss on pending hit %s", record.duration, hit_id)
                result.clamped_durations += 1

            result.hits.append(
                Hit.from_template(
                    template,
                    id=hit_id,
                    timestamp=resolved,
                    origin=HitOrigin.OFFLINE_SENSOR,
                    duration=duration,
                )
            )
        return result


@dataclass
class DedupReport:
    kept: list[Hit] = field(default_factory=list)
    live_duplicates: list[Hit] = field(default_factory=list)
    id_duplicates: list[Hit] = field(default_factory=list)


class Deduplicator:
    """Drops offline hits already known to the store or already seen live."""

    def __init__(self, window: RecentHitWindow, *, tolerance_ms: int = DEFAULT_DUPLICATE_WINDOW_MS) -> None:
        self._window = window
        self._tolerance_ms = tolerance_ms

    def filter(self, hits: Iterable[Hit], known_ids: Collection[str]) -> DedupReport:
        report = DedupReport()
        seen: set[str] = set()
        for hit in hits:
            if self._window.near(hit.timestamp, self._tolerance_ms):
                _logger.info("Dropping offline hit %s: within %d ms of a live hit", hit.id, self._tolerance_ms)
                report.live_duplicates.append(hit)
                continue
            if hit.id in known_ids or hit.id in seen:
                report.id_duplicates.append(hit)
                continue
            seen.add(hit.id)
            report.kept.append(hit)
        return report
