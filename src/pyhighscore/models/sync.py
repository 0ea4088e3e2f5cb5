"""Offline sync payloads (``GET /api/sync``) and protocol results."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pyhighscore.models._base import HighscoreBaseModel


class PendingHitRecord(HighscoreBaseModel):
    """A hit the device recorded while nobody was polling.

    ``timestamp`` is wall-clock epoch ms when the batch reports
    ``timeSync``; otherwise it is milliseconds since device boot.
    """

    id: str | None = None
    timestamp: int
    duration: float | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        # Firmware builds disagree on whether ids are strings or integers.
        if isinstance(value, bool):
            raise ValueError("id must be a string or an integer")
        if isinstance(value, int):
            return str(value)
        if isinstance(value, float):
            if not value.is_integer():
                raise ValueError(f"id must be integral, got {value!r}")
            return str(int(value))
        if isinstance(value, str) and not value.strip():
            return None
        return value


class PendingBatch(HighscoreBaseModel):
    """The device's queue of pending hits at fetch time."""

    pending_hits: list[PendingHitRecord] = Field(default_factory=list)
    pending_count: int = 0
    esp_uptime: int = 0
    time_sync: bool = False

    @property
    def is_empty(self) -> bool:
        return self.pending_count <= 0 or not self.pending_hits


class SyncTrigger(StrEnum):
    """What asked for a sync run."""

    INITIAL = "initial"
    RECONNECT = "reconnect"
    FOREGROUND = "foreground"
    MANUAL = "manual"

    @property
    def is_automatic(self) -> bool:
        """Automatic triggers are suppressed once a sync has completed since the last reconnect."""
        return self in (SyncTrigger.INITIAL, SyncTrigger.RECONNECT)


class SyncOutcome(StrEnum):
    SYNCED = "synced"
    FAILED = "failed"
    ABANDONED = "abandoned"
    SKIPPED_ALREADY_SYNCED = "skipped_already_synced"
    SKIPPED_IN_FLIGHT = "skipped_in_flight"
    SKIPPED_NO_ADDRESS = "skipped_no_address"
    SKIPPED_SIMULATED = "skipped_simulated"


class SyncResult(BaseModel):
    """Summary of one sync trigger."""

    model_config = ConfigDict(frozen=True)

    trigger: SyncTrigger
    outcome: SyncOutcome
    pending_count: int = 0
    imported: int = 0
    live_duplicates: int = 0
    id_duplicates: int = 0
    clamped_durations: int = 0
    acknowledged: bool = False
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.outcome == SyncOutcome.SYNCED
