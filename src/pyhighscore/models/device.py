"""Live sensor data models (``GET /api/data``)."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from pyhighscore.models._base import HighscoreBaseModel


class DeviceData(HighscoreBaseModel):
    """One ``/api/data`` response as reported by the firmware.

    ``today`` and ``total`` are required: a body without them is treated
    as malformed. ``total`` is the device's monotonic all-time hit
    counter; ``last_duration`` is the duration (seconds) of the most
    recent hit the device registered.
    """

    flame: bool = False
    is_inhaling: bool = False
    today: int
    total: int
    last_duration: float | None = None
    battery_voltage: float | None = None
    battery_percent: float | None = None
    min_session_duration: int | None = None
    max_session_duration: int | None = None
    time_sync: bool = False


class LiveData(BaseModel):
    """Snapshot of the sensor as of the last successful tick.

    Replaced wholesale on every tick; never patched field by field.
    """

    model_config = ConfigDict(frozen=True)

    flame_detected: bool = False
    inhaling: bool = False
    today_count: int = 0
    total_count: int = 0
    battery_voltage: float | None = None
    battery_percent: float | None = None
    min_session_duration_ms: int | None = None
    max_session_duration_ms: int | None = None
    device_time_synchronized: bool = False

    @classmethod
    def from_device(cls, data: DeviceData, *, manual_offset: int = 0) -> LiveData:
        """Build a snapshot from a device response, applying the manual offset to the counts."""
        return cls(
            flame_detected=data.flame,
            inhaling=data.is_inhaling,
            today_count=data.today + manual_offset,
            total_count=data.total + manual_offset,
            battery_voltage=data.battery_voltage,
            battery_percent=data.battery_percent,
            min_session_duration_ms=data.min_session_duration,
            max_session_duration_ms=data.max_session_duration,
            device_time_synchronized=data.time_sync,
        )
