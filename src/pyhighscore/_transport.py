"""Plain-HTTP JSON transport for the sensor's local API."""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Mapping
from typing import Any, Protocol

import aiohttp

from pyhighscore.exceptions import (
    HighscoreNetworkError,
    HighscoreResponseError,
    HighscoreTimeoutError,
    HighscoreTransportError,
)

_logger = logging.getLogger(__name__)

_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)


def normalize_address(address: str | None) -> str:
    """Strip scheme and trailing slash from a user-entered device address.

    Returns ``""`` when nothing usable is left.
    """
    if not address or not isinstance(address, str):
        return ""
    value = _SCHEME_RE.sub("", address.strip())
    if value.endswith("/"):
        value = value[:-1]
    return value.strip()


class Transport(Protocol):
    """Structural transport interface used by the poller and sync orchestrator.

    Having a protocol here makes it easy to pass test doubles while keeping
    the production implementation (`HttpTransport`) concrete.
    """

    async def get_json(self, host: str, path: str, *, timeout: float) -> dict[str, Any]:
        ...

    async def post(
        self,
        host: str,
        path: str,
        *,
        timeout: float,
        payload: Mapping[str, Any] | None = None,
    ) -> None:
        ...


class HttpTransport:
    """aiohttp-backed transport; every request carries its own total timeout."""

    def __init__(self, http_session: aiohttp.ClientSession) -> None:
        self._http = http_session

    @staticmethod
    def _url(host: str, path: str) -> str:
        return f"http://{host}{path}"

    async def get_json(self, host: str, path: str, *, timeout: float) -> dict[str, Any]:
        url = self._url(host, path)
        _logger.debug("GET %s", url)

        try:
            async with self._http.get(url, timeout=aiohttp.ClientTimeout(total=timeout)) as resp:
                content = await resp.read()
                if resp.status != 200:
                    raise HighscoreTransportError(
                        f"HTTP {resp.status} from {path}",
                        status_code=resp.status,
                        endpoint=path,
                    )
        except HighscoreTransportError:
            raise
        except TimeoutError as exc:
            raise HighscoreTimeoutError(f"Request to {path} timed out after {timeout}s", endpoint=path) from exc
        except aiohttp.ClientConnectionError as exc:
            raise HighscoreNetworkError(f"Request to {path} failed: {exc}", endpoint=path) from exc
        except aiohttp.ClientError as exc:
            raise HighscoreTransportError(f"Request to {path} failed: {exc}", endpoint=path) from exc

        try:
            body = json.loads(content.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise HighscoreResponseError(
                f"Invalid JSON from {path}: {content[:200]!r}",
                status_code=200,
                endpoint=path,
            ) from exc

        if not isinstance(body, dict):
            raise HighscoreResponseError(f"Expected a JSON object from {path}", status_code=200, endpoint=path)
        return body

    async def post(
        self,
        host: str,
        path: str,
        *,
        timeout: float,
        payload: Mapping[str, Any] | None = None,
    ) -> None:
        url = self._url(host, path)
        _logger.debug("POST %s", url)

        try:
            async with self._http.post(
                url,
                json=dict(payload) if payload is not None else None,
                timeout=aiohttp.ClientTimeout(total=timeout),
            ) as resp:
                # Drain the body so the connection can be reused; its content is not meaningful.
                await resp.read()
                if resp.status >= 300:
                    raise HighscoreTransportError(
                        f"HTTP {resp.status} from {path}",
                        status_code=resp.status,
                        endpoint=path,
                    )
        except HighscoreTransportError:
            raise
        except TimeoutError as exc:
            raise HighscoreTimeoutError(f"Request to {path} timed out after {timeout}s", endpoint=path) from exc
        except aiohttp.ClientConnectionError as exc:
            raise HighscoreNetworkError(f"Request to {path} failed: {exc}", endpoint=path) from exc
        except aiohttp.ClientError as exc:
            raise HighscoreTransportError(f"Request to {path} failed: {exc}", endpoint=path) from exc
