"""Canonical hit records handed to the hit store."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class HitOrigin(StrEnum):
    MANUAL = "manual"
    LIVE_SENSOR = "live-sensor"
    OFFLINE_SENSOR = "offline-sensor"


class HitTemplate(BaseModel):
    """Strain and bowl metadata stamped onto hits at merge time.

    Defaults match a fresh install with no strains configured.
    """

    model_config = ConfigDict(frozen=True)

    strain_id: int = 0
    strain_name: str = "?"
    strain_price: float = 0.0
    bowl_size: float = 0.3
    weed_ratio: float = 80.0


class Hit(BaseModel):
    """One consumption event.

    Parameters
    ----------
    id : str
        Unique among all hits known to the store.
    timestamp : int
        Wall-clock epoch milliseconds.
    origin : HitOrigin
        How the hit was captured.
    duration : float
        Draw duration in seconds; ``0`` when unknown or implausible.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    timestamp: int
    origin: HitOrigin
    strain_id: int
    strain_name: str
    strain_price: float
    duration: float = Field(default=0.0, ge=0)
    bowl_size: float
    weed_ratio: float

    @classmethod
    def from_template(
        cls,
        template: HitTemplate,
        *,
        id: str,  # noqa: A002
        timestamp: int,
        origin: HitOrigin,
        duration: float,
    ) -> Hit:
        return cls(
            id=id,
            timestamp=timestamp,
            origin=origin,
            duration=duration,
            **template.model_dump(),
        )

    @property
    def occurred_at(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp / 1000, tz=UTC)
