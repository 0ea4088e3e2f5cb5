from __future__ import annotations

import asyncio
import socket
from typing import TYPE_CHECKING

import aiohttp
import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer as DeviceServer

from pyhighscore._api import acknowledge_sync, fetch_device_data, fetch_pending_batch, push_settings
from pyhighscore._transport import HttpTransport, normalize_address
from pyhighscore.config import HighscoreConfig
from pyhighscore.detector import HitDeltaDetector
from pyhighscore.diagnostics import DiagnosticsLog
from pyhighscore.exceptions import (
    HighscoreNetworkError,
    HighscoreResponseError,
    HighscoreTimeoutError,
    HighscoreTransportError,
)
from pyhighscore.models.diagnostics import LogKind, Severity
from pyhighscore.models.sync import SyncOutcome, SyncTrigger
from pyhighscore.poller import DevicePoller
from pyhighscore.store import InMemoryHitStore
from pyhighscore.sync import OfflineSyncOrchestrator

if TYPE_CHECKING:
    from conftest import RecordingNotifier


@pytest.mark.parametrize(
    ("address", "expected"),
    [
        ("192.168.4.1", "192.168.4.1"),
        ("http://192.168.4.1/", "192.168.4.1"),
        ("HTTPS://sensor.local:8080/", "sensor.local:8080"),
        ("  http://10.0.0.7  ", "10.0.0.7"),
        ("http://", ""),
        ("   ", ""),
        (None, ""),
    ],
)
def test_normalize_address(address: str | None, expected: str) -> None:
    assert normalize_address(address) == expected


def _device_app(received: list[tuple[str, object]]) -> web.Application:
    async def data(_request: web.Request) -> web.Response:
        return web.json_response({"flame": False, "isInhaling": False, "today": 2, "total": 17, "timeSync": True})

    async def sync(_request: web.Request) -> web.Response:
        return web.json_response(
            {
                "pendingHits": [{"id": 3, "timestamp": 90_000, "duration": 1.2}],
                "pendingCount": 1,
                "espUptime": 100_000,
                "timeSync": False,
            }
        )

    async def sync_complete(request: web.Request) -> web.Response:
        received.append((request.path, await request.text()))
        return web.Response(text="OK")

    async def settings(request: web.Request) -> web.Response:
        received.append((request.path, await request.json()))
        return web.Response(status=204)

    async def broken(_request: web.Request) -> web.Response:
        return web.Response(status=500, text="boom")

    async def not_json(_request: web.Request) -> web.Response:
        return web.Response(text="<html>captive portal</html>")

    async def array(_request: web.Request) -> web.Response:
        return web.json_response([1, 2, 3])

    async def bad_utf8(_request: web.Request) -> web.Response:
        return web.Response(body=b'{"pendingHits":[],"pendingCount":0,"x":"\xff"}', content_type="application/json")

    async def infinite_id(_request: web.Request) -> web.Response:
        return web.Response(
            text='{"pendingHits":[{"id":Infinity,"timestamp":1}],"pendingCount":1}',
            content_type="application/json",
        )

    async def slow(_request: web.Request) -> web.Response:
        await asyncio.sleep(1.0)
        return web.json_response({})

    app = web.Application()
    app.router.add_get("/api/data", data)
    app.router.add_get("/api/sync", sync)
    app.router.add_post("/api/sync-complete", sync_complete)
    app.router.add_post("/api/settings", settings)
    app.router.add_get("/broken", broken)
    app.router.add_post("/broken", broken)
    app.router.add_get("/not-json", not_json)
    app.router.add_get("/array", array)
    app.router.add_get("/slow", slow)
    app.router.add_get("/bad-utf8", bad_utf8)
    app.router.add_get("/infinite-id", infinite_id)
    return app


@pytest.mark.asyncio
async def test_endpoint_helpers_against_http_server() -> None:
    received: list[tuple[str, object]] = []
    async with DeviceServer(_device_app(received)) as server, aiohttp.ClientSession() as http:
        transport = HttpTransport(http)
        host = f"{server.host}:{server.port}"

        data = await fetch_device_data(transport, host, timeout=3.0)
        batch = await fetch_pending_batch(transport, host, timeout=5.0)
        await acknowledge_sync(transport, host, timeout=3.0)
        await push_settings(transport, host, {"threshold": 512}, timeout=3.0)

    assert (data.today, data.total, data.time_sync) == (2, 17, True)
    assert batch.pending_count == 1
    assert batch.pending_hits[0].id == "3"
    assert batch.esp_uptime == 100_000
    assert received == [("/api/sync-complete", ""), ("/api/settings", {"threshold": 512})]


@pytest.mark.asyncio
async def test_http_errors_map_to_transport_errors() -> None:
    async with DeviceServer(_device_app([])) as server, aiohttp.ClientSession() as http:
        transport = HttpTransport(http)
        host = f"{server.host}:{server.port}"

        with pytest.raises(HighscoreTransportError) as get_info:
            await transport.get_json(host, "/broken", timeout=3.0)
        with pytest.raises(HighscoreTransportError) as post_info:
            await transport.post(host, "/broken", timeout=3.0)
        with pytest.raises(HighscoreResponseError):
            await transport.get_json(host, "/not-json", timeout=3.0)
        with pytest.raises(HighscoreResponseError):
            await transport.get_json(host, "/array", timeout=3.0)
        with pytest.raises(HighscoreTimeoutError):
            await transport.get_json(host, "/slow", timeout=0.05)

    assert get_info.value.status_code == 500
    assert get_info.value.endpoint == "/broken"
    assert not isinstance(get_info.value, HighscoreNetworkError)
    assert post_info.value.status_code == 500


@pytest.mark.asyncio
async def test_unreachable_device_is_a_network_error() -> None:
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]

    async with aiohttp.ClientSession() as http:
        transport = HttpTransport(http)
        with pytest.raises(HighscoreNetworkError):
            await transport.get_json(f"127.0.0.1:{port}", "/api/data", timeout=3.0)



@pytest.mark.asyncio
async def test_undecodable_body_is_a_response_error() -> None:
    async with DeviceServer(_device_app([])) as server, aiohttp.ClientSession() as http:
        transport = HttpTransport(http)
        host = f"{server.host}:{server.port}"

        with pytest.raises(HighscoreResponseError) as info:
            await transport.get_json(host, "/bad-utf8", timeout=3.0)
        body = await transport.get_json(host, "/infinite-id", timeout=3.0)

    assert info.value.endpoint == "/bad-utf8"
    assert info.value.status_code == 200
    assert body["pendingHits"][0]["id"] == float("inf")


def _garbled_device_app() -> web.Application:
    async def garbled(_request: web.Request) -> web.Response:
        return web.Response(body=b'{"today":1,"total":2,"x":"\xff"}', content_type="application/json")

    async def infinite_id(_request: web.Request) -> web.Response:
        return web.Response(
            text='{"pendingHits":[{"id":Infinity,"timestamp":1}],"pendingCount":1}',
            content_type="application/json",
        )

    app = web.Application()
    app.router.add_get("/api/data", garbled)
    app.router.add_get("/api/sync", infinite_id)
    return app


@pytest.mark.asyncio
async def test_malformed_device_bodies_stay_inside_sync_and_poll(
    store: InMemoryHitStore, notifier: RecordingNotifier
) -> None:
    async with DeviceServer(_garbled_device_app()) as server, aiohttp.ClientSession() as http:
        transport = HttpTransport(http)
        config = HighscoreConfig(device_address=f"{server.host}:{server.port}")
        orchestrator = OfflineSyncOrchestrator(config, transport, store, notifier)
        detector = HitDeltaDetector(orchestrator.recent_live_hits, clock=lambda: 0)
        diagnostics = DiagnosticsLog()
        poller = DevicePoller(config, transport, detector=detector, orchestrator=orchestrator, diagnostics=diagnostics)

        result = await orchestrator.request_sync(SyncTrigger.MANUAL)
        assert await poller.tick() is True

    assert result.outcome == SyncOutcome.FAILED
    assert len(store) == 0
    assert notifier.notifications[0].severity == Severity.ERROR
    assert poller.error_count == 1
    assert poller.connected is False
    assert [entry.kind for entry in diagnostics.connection_log] == [LogKind.ERROR]
