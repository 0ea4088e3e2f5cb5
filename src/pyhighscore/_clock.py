"""Wall-clock helper shared by the poller, sync orchestrator and client."""

from __future__ import annotations

import time


def now_ms() -> int:
    """Current epoch timestamp in milliseconds."""
    return int(time.time() * 1000)
