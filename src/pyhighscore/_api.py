"""Device endpoint helpers.

Each helper performs one request through a :class:`Transport` and turns the
JSON body into a typed model. Schema violations surface as
:class:`HighscoreResponseError` so callers can treat them exactly like a
network failure.

It is internal to pyhighscore and may change at any time.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, TypeVar

from pydantic import ValidationError

from pyhighscore._constants import DATA_ENDPOINT, SETTINGS_ENDPOINT, SYNC_COMPLETE_ENDPOINT, SYNC_ENDPOINT
from pyhighscore._transport import Transport
from pyhighscore.exceptions import HighscoreResponseError
from pyhighscore.models._base import HighscoreBaseModel
from pyhighscore.models.device import DeviceData
from pyhighscore.models.sync import PendingBatch

M = TypeVar("M", bound=HighscoreBaseModel)


def _parse(model: type[M], endpoint: str, body: dict[str, Any]) -> M:
    try:
        return model.model_validate(body)
    except ValidationError as exc:
        raise HighscoreResponseError(
            f"Unexpected payload from {endpoint}: {exc.error_count()} validation error(s)",
            status_code=200,
            endpoint=endpoint,
        ) from exc


async def fetch_device_data(transport: Transport, host: str, *, timeout: float) -> DeviceData:
    """Fetch the live sensor snapshot."""
    body = await transport.get_json(host, DATA_ENDPOINT, timeout=timeout)
    return _parse(DeviceData, DATA_ENDPOINT, body)


async def fetch_pending_batch(transport: Transport, host: str, *, timeout: float) -> PendingBatch:
    """Fetch the device's queue of hits recorded while offline."""
    body = await transport.get_json(host, SYNC_ENDPOINT, timeout=timeout)
    return _parse(PendingBatch, SYNC_ENDPOINT, body)


async def acknowledge_sync(transport: Transport, host: str, *, timeout: float) -> None:
    """Tell the device its pending queue has been consumed."""
    await transport.post(host, SYNC_COMPLETE_ENDPOINT, timeout=timeout)


async def push_settings(
    transport: Transport,
    host: str,
    settings: Mapping[str, Any],
    *,
    timeout: float,
) -> None:
    """Forward sensor settings (thresholds, session bounds) to the device unchanged."""
    await transport.post(host, SETTINGS_ENDPOINT, timeout=timeout, payload=settings)
