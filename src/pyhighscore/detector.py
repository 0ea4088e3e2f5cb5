"""Live hit detection from the device's cumulative counter."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from pyhighscore.reconcile import RecentHitWindow

_logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LiveHitEvent:
    """A hit observed while connected.

    ``duration`` is the device's ``lastDuration`` in seconds (0 if absent);
    ``total`` is the counter value that triggered the event.
    """

    timestamp: int
    duration: float
    total: int


LiveHitListener = Callable[[LiveHitEvent], None]


class HitDeltaDetector:
    """Emits one :class:`LiveHitEvent` when the all-time counter advances.

    The first observation after construction only primes the counter, so a
    restart never turns the device's existing total into a burst of hits.
    A jump of more than one between two polls still yields a single event.
    """

    def __init__(self, window: RecentHitWindow, *, clock: Callable[[], int]) -> None:
        self._window = window
        self._clock = clock
        self._previous_total = 0
        self._listeners: list[LiveHitListener] = []

    @property
    def previous_total(self) -> int:
        return self._previous_total

    def add_listener(self, listener: LiveHitListener) -> Callable[[], None]:
        """Register *listener*; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def observe(self, total: int, last_duration: float | None = None) -> LiveHitEvent | None:
        event: LiveHitEvent | None = None
        previous = self._previous_total
        if total > previous and previous != 0:
            if total - previous > 1:
                _logger.warning(
                    "Hit counter advanced by %d (%d -> %d) between polls; registering a single hit",
                    total - previous,
                    previous,
                    total,
                )
            now = self._clock()
            event = LiveHitEvent(timestamp=now, duration=last_duration or 0.0, total=total)
            self._window.record(now)
            self._dispatch(event)
        self._previous_total = total
        return event

    def _dispatch(self, event: LiveHitEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                _logger.warning("Live hit listener failed", exc_info=True)
