"""Client configuration for pyhighscore."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from pyhighscore._constants import (
    CONNECTION_LOG_LIMIT,
    DEFAULT_ACK_TIMEOUT,
    DEFAULT_BACKOFF_RECHECK_INTERVAL,
    DEFAULT_BOOT_ANCHOR_TOLERANCE_MS,
    DEFAULT_DATA_TIMEOUT,
    DEFAULT_DUPLICATE_WINDOW_MS,
    DEFAULT_FOREGROUND_SYNC_DELAY,
    DEFAULT_LIVE_HIT_WINDOW_MS,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_RECONNECT_SYNC_DELAY,
    DEFAULT_SYNC_TIMEOUT,
    FLAME_HISTORY_LIMIT,
    MAX_PLAUSIBLE_DURATION,
)
from pyhighscore.exceptions import HighscoreConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class HighscoreConfig:
    """Client configuration.

    Parameters
    ----------
    device_address : str
        Host (optionally ``host:port``) of the sensor on the local network.
        A leading ``http://`` / ``https://`` and a trailing slash are
        tolerated and stripped before use.
    simulated : bool
        Produce synthetic live data instead of polling a real device.
        Offline sync is a no-op in this mode.
    poll_interval : float
        Base seconds between ``/api/data`` requests.
    backoff_recheck_interval : float
        Seconds between recomputations of the effective (backed-off)
        poll interval.
    data_timeout : float
        Timeout for a single ``/api/data`` request.
    sync_timeout : float
        Timeout for the ``/api/sync`` batch fetch.
    ack_timeout : float
        Timeout for the ``/api/sync-complete`` acknowledgment.
    reconnect_sync_delay : float
        Settle delay between a reconnect and the automatic sync attempt.
    foreground_sync_delay : float
        Settle delay between the app regaining focus and the sync attempt.
    duplicate_window_ms : int
        Offline hits resolving closer than this to a live hit are dropped.
    live_hit_window_ms : int
        How long live hit timestamps are remembered for duplicate checks.
    boot_anchor_tolerance_ms : int
        Drift allowed between successive boot-time estimates of an
        unsynchronized device before the anchor is re-pinned.
    max_plausible_duration : float
        Durations (seconds) above this are treated as sensor glitches.
    connection_log_limit : int
        Maximum entries kept in the connection log.
    flame_history_limit : int
        Maximum entries kept in the flame history.
    """

    device_address: str = ""
    simulated: bool = False
    poll_interval: float = DEFAULT_POLL_INTERVAL
    backoff_recheck_interval: float = DEFAULT_BACKOFF_RECHECK_INTERVAL
    data_timeout: float = DEFAULT_DATA_TIMEOUT
    sync_timeout: float = DEFAULT_SYNC_TIMEOUT
    ack_timeout: float = DEFAULT_ACK_TIMEOUT
    reconnect_sync_delay: float = DEFAULT_RECONNECT_SYNC_DELAY
    foreground_sync_delay: float = DEFAULT_FOREGROUND_SYNC_DELAY
    duplicate_window_ms: int = DEFAULT_DUPLICATE_WINDOW_MS
    live_hit_window_ms: int = DEFAULT_LIVE_HIT_WINDOW_MS
    boot_anchor_tolerance_ms: int = DEFAULT_BOOT_ANCHOR_TOLERANCE_MS
    max_plausible_duration: float = MAX_PLAUSIBLE_DURATION
    connection_log_limit: int = CONNECTION_LOG_LIMIT
    flame_history_limit: int = FLAME_HISTORY_LIMIT

    def __post_init__(self) -> None:
        for name in ("poll_interval", "backoff_recheck_interval", "data_timeout", "sync_timeout", "ack_timeout"):
            if getattr(self, name) <= 0:
                raise HighscoreConfigError(f"{name} must be positive, got {getattr(self, name)!r}")
        for name in ("reconnect_sync_delay", "foreground_sync_delay", "duplicate_window_ms", "live_hit_window_ms"):
            if getattr(self, name) < 0:
                raise HighscoreConfigError(f"{name} must not be negative, got {getattr(self, name)!r}")
        if self.connection_log_limit < 1 or self.flame_history_limit < 1:
            raise HighscoreConfigError("diagnostics limits must be at least 1")

    @classmethod
    def from_env(cls, **overrides: Any) -> HighscoreConfig:
        """Create configuration from environment variables.

        Reads ``HIGHSCORE_DEVICE_ADDRESS``, ``HIGHSCORE_SIMULATED`` and the
        optional ``HIGHSCORE_*`` timing variables. Explicit keyword
        arguments override environment values.
        """
        env = os.environ

        config_kwargs: dict[str, Any] = {}
        address = env.get("HIGHSCORE_DEVICE_ADDRESS")
        if address is not None:
            config_kwargs["device_address"] = address

        if "simulated" not in overrides:
            config_kwargs["simulated"] = _env_bool(env.get("HIGHSCORE_SIMULATED"), False)

        _ENV_FLOAT_MAP = {
            "HIGHSCORE_POLL_INTERVAL": "poll_interval",
            "HIGHSCORE_BACKOFF_RECHECK_INTERVAL": "backoff_recheck_interval",
            "HIGHSCORE_DATA_TIMEOUT": "data_timeout",
            "HIGHSCORE_SYNC_TIMEOUT": "sync_timeout",
            "HIGHSCORE_ACK_TIMEOUT": "ack_timeout",
            "HIGHSCORE_RECONNECT_SYNC_DELAY": "reconnect_sync_delay",
            "HIGHSCORE_FOREGROUND_SYNC_DELAY": "foreground_sync_delay",
        }
        for env_key, field_name in _ENV_FLOAT_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                try:
                    config_kwargs[field_name] = float(val)
                except ValueError as exc:
                    raise HighscoreConfigError(f"{env_key} is not a number: {val!r}") from exc

        window_env = env.get("HIGHSCORE_DUPLICATE_WINDOW_MS")
        if window_env is not None and "duplicate_window_ms" not in overrides:
            try:
                config_kwargs["duplicate_window_ms"] = int(window_env)
            except ValueError as exc:
                raise HighscoreConfigError(f"HIGHSCORE_DUPLICATE_WINDOW_MS is not an integer: {window_env!r}") from exc

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
