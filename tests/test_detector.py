from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import pytest

from pyhighscore.detector import HitDeltaDetector, LiveHitEvent
from pyhighscore.reconcile import RecentHitWindow

if TYPE_CHECKING:
    from conftest import FakeClock


@pytest.fixture
def window() -> RecentHitWindow:
    return RecentHitWindow()


def test_first_observation_only_primes_counter(window: RecentHitWindow, clock: FakeClock) -> None:
    detector = HitDeltaDetector(window, clock=clock)

    assert detector.observe(42, 2.0) is None
    assert detector.previous_total == 42
    assert len(window) == 0


def test_increment_emits_one_event(window: RecentHitWindow, clock: FakeClock) -> None:
    detector = HitDeltaDetector(window, clock=clock)
    events: list[LiveHitEvent] = []
    detector.add_listener(events.append)

    detector.observe(42)
    clock.advance(400)
    event = detector.observe(43, 2.7)
    clock.advance(400)
    assert detector.observe(43, 2.7) is None

    assert event == LiveHitEvent(timestamp=clock.now - 400, duration=2.7, total=43)
    assert events == [event]
    assert window.timestamps() == (event.timestamp,)


def test_missing_duration_reports_zero(window: RecentHitWindow, clock: FakeClock) -> None:
    detector = HitDeltaDetector(window, clock=clock)
    detector.observe(5)

    event = detector.observe(6, None)

    assert event is not None
    assert event.duration == 0.0


def test_counter_jump_collapses_to_single_event(
    window: RecentHitWindow, clock: FakeClock, caplog: pytest.LogCaptureFixture
) -> None:
    detector = HitDeltaDetector(window, clock=clock)
    events: list[LiveHitEvent] = []
    detector.add_listener(events.append)
    detector.observe(43)

    with caplog.at_level(logging.WARNING, logger="pyhighscore.detector"):
        detector.observe(46, 1.0)

    assert len(events) == 1
    assert events[0].total == 46
    assert detector.previous_total == 46
    assert "advanced by 3" in caplog.text


def test_counter_reset_rebaselines_without_event(window: RecentHitWindow, clock: FakeClock) -> None:
    detector = HitDeltaDetector(window, clock=clock)
    detector.observe(46)

    assert detector.observe(3) is None
    assert detector.previous_total == 3
    assert detector.observe(4) is not None


def test_first_hit_on_fresh_device_is_not_emitted(window: RecentHitWindow, clock: FakeClock) -> None:
    detector = HitDeltaDetector(window, clock=clock)
    detector.observe(0)

    assert detector.observe(1) is None
    assert detector.observe(2) is not None


def test_failing_listener_does_not_block_others(window: RecentHitWindow, clock: FakeClock) -> None:
    detector = HitDeltaDetector(window, clock=clock)
    received: list[LiveHitEvent] = []

    def _boom(_event: LiveHitEvent) -> None:
        raise RuntimeError("listener bug")

    detector.add_listener(_boom)
    detector.add_listener(received.append)
    detector.observe(1)

    event = detector.observe(2)

    assert received == [event]


def test_removed_listener_is_not_called(window: RecentHitWindow, clock: FakeClock) -> None:
    detector = HitDeltaDetector(window, clock=clock)
    received: list[LiveHitEvent] = []
    remove = detector.add_listener(received.append)
    detector.observe(1)

    remove()
    detector.observe(2)

    assert received == []
