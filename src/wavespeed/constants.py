"""
Project-wide constants for the WaveSpeed client
"""  # noqa: D200, D212, D415

# ==============================================================================
# Endpoint Configuration
# ==============================================================================

DEFAULT_BASE_URL = "https://api.wavespeed.ai"
API_PREFIX = "/api/v3"

SUBMIT_PATH = "/{model}"
RESULT_PATH = "/predictions/{task_id}/result"
UPLOAD_PATH = "/media/upload/binary"

# ==============================================================================
# Timeouts and Polling
# ==============================================================================

CONNECTION_TIMEOUT = 10.0  # seconds, per HTTP exchange
DEFAULT_TIMEOUT = 36000.0  # seconds, overall budget for one run
DEFAULT_POLL_INTERVAL = 1.0  # seconds

# ==============================================================================
# Retry Configuration
# ==============================================================================

MAX_RETRIES = 0  # task-level: full submit(+poll) attempts beyond the first
MAX_CONNECTION_RETRIES = 5  # connection-level: per HTTP exchange
RETRY_BASE_DELAY = 1.0  # seconds; delay = base * attempt number

RETRYABLE_STATUS_CODES = frozenset({429})  # in addition to every 5xx

# ==============================================================================
# Protocol
# ==============================================================================

ENVELOPE_OK = 200
SYNC_MODE_FIELD = "enable_sync_mode"
UNKNOWN_ERROR = "Unknown error"
UNKNOWN_TASK_ID = "unknown"
API_KEY_ENV_VAR = "WAVESPEED_API_KEY"
