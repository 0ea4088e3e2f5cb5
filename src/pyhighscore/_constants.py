"""Internal constants shared across the library."""

DATA_ENDPOINT = "/api/data"
SYNC_ENDPOINT = "/api/sync"
SYNC_COMPLETE_ENDPOINT = "/api/sync-complete"
SETTINGS_ENDPOINT = "/api/settings"

# ------------------------------------------------------------------
# Polling cadence
# ------------------------------------------------------------------

DEFAULT_POLL_INTERVAL = 0.4
DEFAULT_BACKOFF_RECHECK_INTERVAL = 3.0
BACKOFF_STEP = 0.3
MAX_BACKOFF_FACTOR = 4.0

DEFAULT_DATA_TIMEOUT = 3.0
DEFAULT_SYNC_TIMEOUT = 5.0
DEFAULT_ACK_TIMEOUT = 3.0

DEFAULT_RECONNECT_SYNC_DELAY = 1.0
DEFAULT_FOREGROUND_SYNC_DELAY = 0.5

NETWORK_ERROR_MESSAGE = "Network error (check Wi-Fi)"
NO_ADDRESS_MESSAGE = "No device address configured"

# ------------------------------------------------------------------
# Reconciliation
# ------------------------------------------------------------------

DEFAULT_DUPLICATE_WINDOW_MS = 10_000
DEFAULT_LIVE_HIT_WINDOW_MS = 60_000
DEFAULT_BOOT_ANCHOR_TOLERANCE_MS = 5_000

#: Longest physically plausible single draw, in seconds.
MAX_PLAUSIBLE_DURATION = 8.0

FALLBACK_ID_PREFIX = "fallback_"

# ------------------------------------------------------------------
# Diagnostics
# ------------------------------------------------------------------

CONNECTION_LOG_LIMIT = 100
FLAME_HISTORY_LIMIT = 60  # ~2 minutes at nominal cadence

# ------------------------------------------------------------------
# Simulated device
# ------------------------------------------------------------------

SIMULATED_MIN_SESSION_MS = 800
SIMULATED_MAX_SESSION_MS = 4500
SIMULATED_FLICKER_THRESHOLD = 0.98

# ------------------------------------------------------------------
# Notifications
# ------------------------------------------------------------------

SYNC_SUCCESS_DISMISS_AFTER = 4.0
SYNC_ERROR_DISMISS_AFTER = 3.0
