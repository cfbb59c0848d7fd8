"""Request pacing for the survey platform API."""

from __future__ import annotations

import logging
import threading
import time
from typing import Mapping

from ..config import RATE_LIMIT_MIN_INTERVAL_SECONDS, RATE_LIMIT_THROTTLE_SECONDS

__all__ = ["RateLimiter"]


class RateLimiter:
    """Spaces requests and pauses after 429 responses (honouring Retry-After)."""

    def __init__(
        self,
        min_interval: float = RATE_LIMIT_MIN_INTERVAL_SECONDS,
        throttle_seconds: float = RATE_LIMIT_THROTTLE_SECONDS,
    ) -> None:
        if min_interval < 0:
            raise ValueError("min_interval must be >= 0")
        self._lock = threading.Lock()
        self._min_interval = min_interval
        self._throttle_seconds = throttle_seconds
        self._throttle_until: float = 0.0
        self._last_request: float = 0.0

    def before_request(self) -> None:
        with self._lock:
            now = time.monotonic()
            ready_at = max(self._throttle_until, self._last_request + self._min_interval)
            wait_for = max(0.0, ready_at - now)
            self._last_request = now + wait_for
        if wait_for > 0:
            time.sleep(wait_for)

    def after_response(
        self, headers: Mapping[str, object] | None, status_code: int | None
    ) -> bool:
        """Record a response; return True when a throttle was applied."""

        if status_code != 429:
            return False
        pause = self._retry_after(headers)
        logging.warning("Rate limit: 429. Throttling %ss.", pause)
        with self._lock:
            self._throttle_until = max(self._throttle_until, time.monotonic() + pause)
        return True

    def _retry_after(self, headers: Mapping[str, object] | None) -> float:
        raw = headers.get("Retry-After") if headers else None
        if raw is None:
            return self._throttle_seconds
        try:
            return max(0.0, float(str(raw)))
        except ValueError:
            logging.debug("Ignoring non-numeric Retry-After header %r", raw)
            return self._throttle_seconds

    def snapshot(self) -> dict[str, float]:
        """Return current limiter state (used by tests and diagnostics)."""

        with self._lock:
            return {
                "min_interval": self._min_interval,
                "throttle_until": self._throttle_until,
                "last_request": self._last_request,
            }
