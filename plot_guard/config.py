"""Central configuration for the plot overlap guard.

All values are constants imported by the rest of the package. Adjust as needed
for your environment. Secrets are read from environment variables (optionally
via a local `.env`).
"""

from __future__ import annotations

import os

from dotenv import load_dotenv


def _env_float(key: str, default: float) -> float:
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_bool(key: str, default: bool) -> bool:
    value = os.getenv(key)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


# Load .env from the current directory or any parent folder.
load_dotenv()


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------
# SQLite database used by the CLI. Paths can be absolute or relative.
DATABASE_PATH = os.getenv("PLOT_GUARD_DATABASE_PATH", "plot_guard.sqlite3")

# JSON file describing where polygons, names and regions live inside a
# submission payload. A missing file falls back to the built-in defaults.
PLOT_EXTRACTION_CONFIG_FILE = os.getenv(
    "PLOT_EXTRACTION_CONFIG_FILE", "plot_extraction_config.json"
)


# ---------------------------------------------------------------------------
# Survey platform (KoboToolbox API v2)
# ---------------------------------------------------------------------------
KOBO_BASE_URL = os.getenv("KOBO_BASE_URL", "https://kf.kobotoolbox.org")

# Basic auth credentials pulled from the environment. Do not hardcode secrets.
KOBO_USERNAME = os.getenv("KOBO_USERNAME", "")
KOBO_PASSWORD = os.getenv("KOBO_PASSWORD", "")

# Records requested per page (`limit`); `start` advances by this amount.
SYNC_PAGE_SIZE = _env_int("SYNC_PAGE_SIZE", 300)

# HTTP session pool sizes.
HTTP_POOL_CONNECTIONS = 4
HTTP_POOL_MAXSIZE = 4

# Request timeout in seconds.
REQUEST_TIMEOUT = _env_int("REQUEST_TIMEOUT", 30)

# Retry/backoff behaviour for the page fetch loop.
# KOBO_MAX_RETRIES covers network failures, 5xx, or bad payloads.
KOBO_MAX_RETRIES = _env_int("KOBO_MAX_RETRIES", 3)
# KOBO_BACKOFF_MAX_SECONDS caps the exponential backoff per attempt.
KOBO_BACKOFF_MAX_SECONDS = _env_float("KOBO_BACKOFF_MAX_SECONDS", 8.0)
# Give up after this many consecutive 429 responses for the same page.
KOBO_MAX_RATE_LIMIT_RETRIES = _env_int("KOBO_MAX_RATE_LIMIT_RETRIES", 5)

# Rate limiter settings.
# RATE_LIMIT_MIN_INTERVAL_SECONDS spaces consecutive requests.
RATE_LIMIT_MIN_INTERVAL_SECONDS = _env_float("RATE_LIMIT_MIN_INTERVAL_SECONDS", 0.0)
# RATE_LIMIT_THROTTLE_SECONDS is the pause applied on 429s without Retry-After.
RATE_LIMIT_THROTTLE_SECONDS = _env_float("RATE_LIMIT_THROTTLE_SECONDS", 15.0)


# ---------------------------------------------------------------------------
# Polygon validation
# ---------------------------------------------------------------------------
# 3 distinct points + 1 closing point.
MIN_VERTICES = _env_int("MIN_VERTICES", 4)

# Smallest plot accepted, in square metres.
MIN_AREA_SQ_METERS = _env_float("MIN_AREA_SQ_METERS", 10.0)

# Metres per degree of latitude (and of longitude at the equator).
METERS_PER_DEGREE_AT_EQUATOR = 111320.0


# ---------------------------------------------------------------------------
# Overlap detection
# ---------------------------------------------------------------------------
# Only overlaps >= this share of the smaller polygon's area are reported.
OVERLAP_THRESHOLD_PERCENT = _env_float("OVERLAP_THRESHOLD_PERCENT", 5.0)

# Maximum number of parsed candidate polygons kept in memory.
PARSED_POLYGON_CACHE_SIZE = _env_int("PARSED_POLYGON_CACHE_SIZE", 2048)

# Hold a process-wide lock around overlap check + draft insert.
SERIALIZE_DRAFT_REGISTRATION = _env_bool("SERIALIZE_DRAFT_REGISTRATION", True)
