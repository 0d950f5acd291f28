"""Application-wide constants.

These are fixed values that don't change between environments.
For configurable values, see config.py Settings.
"""

# ─────────────────────────────────────────────────────────────
# Live polling defaults (can be overridden in Settings)
# ─────────────────────────────────────────────────────────────
DEFAULT_POLL_INTERVAL_MS = 120_000  # 2 minutes
DEFAULT_FETCH_TIMEOUT_SECONDS = 30.0
HEARTBEAT_INTERVAL_SECONDS = 30.0  # Proxies drop idle connections around 60s
DEFAULT_SUBSCRIBER_QUEUE_SIZE = 256
MAX_CACHED_SUBJECTS = 1_000  # Last-known snapshots kept for unpolled subjects

# ─────────────────────────────────────────────────────────────
# Snapshot shape
# ─────────────────────────────────────────────────────────────
MAX_HEADLINES = 5
DEFAULT_FISCAL_YEAR_END_MONTH = 12

# ─────────────────────────────────────────────────────────────
# Redis keys / channels
# ─────────────────────────────────────────────────────────────
REDIS_PREFIX = "earnpulse"
EVENT_RELAY_CHANNEL = f"{REDIS_PREFIX}:live:events"

# ─────────────────────────────────────────────────────────────
# API URL Defaults (used as defaults in Settings)
# ─────────────────────────────────────────────────────────────
DEFAULT_PERPLEXITY_API_URL = "https://api.perplexity.ai"
DEFAULT_PERPLEXITY_MODEL = "sonar"
PERPLEXITY_HTTP_TIMEOUT = 60.0
