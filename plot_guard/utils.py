"""General utility helpers shared across modules."""

from __future__ import annotations

import json
import time
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Optional


def now_ms() -> int:
    """Current wall-clock time as epoch milliseconds."""

    return int(time.time() * 1000)


def parse_submission_time(value: Any) -> Optional[int]:
    """Parse an ISO-8601 ``_submission_time`` into epoch milliseconds.

    Timestamps without an offset are treated as UTC, which is how the
    survey platform reports them. Returns None for anything unparseable.
    """

    if not isinstance(value, str) or not value.strip():
        return None
    raw = value.strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(raw)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(round(dt.timestamp() * 1000))


def format_timestamp_iso(timestamp_ms: int) -> str:
    """Format epoch milliseconds as a naive UTC ISO-8601 string.

    Milliseconds are only emitted when non-zero (``2024-01-05T08:00:00`` vs
    ``2024-01-05T08:00:00.250``).
    """

    dt = datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc).replace(
        tzinfo=None
    )
    timespec = "milliseconds" if timestamp_ms % 1000 else "seconds"
    return dt.isoformat(timespec=timespec)


def _normalise_value(value: Any) -> Any:
    """Convert objects to JSON-friendly representations."""

    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="ignore")
    if isinstance(value, set):
        return sorted(_normalise_value(item) for item in value)
    if isinstance(value, (list, tuple)):
        return [_normalise_value(item) for item in value]
    if isinstance(value, dict):
        return {str(key): _normalise_value(val) for key, val in value.items()}
    return value


def json_dumps_sorted(value: Any) -> str:
    """Return canonical JSON for storage / comparisons."""

    normalised = _normalise_value(value)
    return json.dumps(normalised, sort_keys=True, separators=(",", ":"))
