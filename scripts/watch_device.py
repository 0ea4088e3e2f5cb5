#!/usr/bin/env python3
"""Watch a HighScore sensor from the command line.

Polls the device, prints every live hit as it is detected and the result
of each offline sync, and dumps the connection log on exit.

Usage
-----
Set the device address and run::

    export HIGHSCORE_DEVICE_ADDRESS="192.168.4.1"
    python scripts/watch_device.py

Options::

    --address HOST       Device address (overrides HIGHSCORE_DEVICE_ADDRESS)
    --simulated          Run against the built-in simulated sensor
    --duration SECONDS   Stop after this long (default: run until Ctrl-C)
    --sync               Force one offline sync right after connecting
    --json               Print the collected hits as JSON on exit
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from pyhighscore import (  # noqa: E402
    HighscoreClient,
    HighscoreConfig,
    Hit,
    HitOrigin,
    HitTemplate,
    InMemoryHitStore,
    LiveHitEvent,
)


def _print_live_hit(store: InMemoryHitStore, event: LiveHitEvent) -> None:
    store.add(
        Hit.from_template(
            HitTemplate(),
            id=str(event.timestamp),
            timestamp=event.timestamp,
            origin=HitOrigin.LIVE_SENSOR,
            duration=event.duration,
        )
    )
    print(f"  live hit   : total={event.total} duration={event.duration:.1f}s")


async def _wait_connected(client: HighscoreClient, timeout: float) -> bool:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not client.connected:
        if loop.time() > deadline:
            return False
        await asyncio.sleep(0.1)
    return True


async def main() -> None:
    parser = argparse.ArgumentParser(description="Watch a HighScore sensor and print what the library sees.")
    parser.add_argument("--address", help="Device address (overrides HIGHSCORE_DEVICE_ADDRESS)")
    parser.add_argument("--simulated", action="store_true", help="Use the simulated sensor")
    parser.add_argument("--duration", type=float, default=None, help="Stop after this many seconds")
    parser.add_argument("--sync", action="store_true", help="Force one offline sync after connecting")
    parser.add_argument("--json", action="store_true", dest="json_mode", help="Print collected hits as JSON on exit")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    overrides: dict[str, object] = {}
    if args.address:
        overrides["device_address"] = args.address
    if args.simulated:
        overrides["simulated"] = True
    config = HighscoreConfig.from_env(**overrides)

    store = InMemoryHitStore()
    print(f"Watching {'simulated sensor' if config.simulated else config.device_address or '<no address>'}")

    async with HighscoreClient(config, store=store) as client:
        client.add_live_hit_listener(lambda event: _print_live_hit(store, event))
        client.start()

        if args.sync:
            if await _wait_connected(client, timeout=10.0):
                result = await client.force_sync()
                print(
                    f"  sync       : {result.outcome} imported={result.imported} "
                    f"live_dupes={result.live_duplicates} id_dupes={result.id_duplicates}"
                )
            else:
                print(f"  sync       : skipped, device not reachable ({client.last_error})")

        try:
            if args.duration is not None:
                await asyncio.sleep(args.duration)
            else:
                await asyncio.Event().wait()
        finally:
            live = client.live_data
            print(
                f"  live data  : today={live.today_count} total={live.total_count} "
                f"battery={live.battery_percent}% flame={live.flame_detected}"
            )
            print("  connection log (newest first):")
            for entry in client.connection_log[:20]:
                print(f"    {entry.timestamp:%H:%M:%S} {entry.kind:<7} {entry.message}")

    if args.json_mode:
        print(json.dumps([hit.model_dump(mode="json") for hit in store.hits], indent=2))


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
