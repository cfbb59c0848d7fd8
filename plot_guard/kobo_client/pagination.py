"""Shared pagination helpers for survey platform list endpoints."""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional, TypeAlias

import requests

from ..config import (
    KOBO_BACKOFF_MAX_SECONDS,
    KOBO_MAX_RATE_LIMIT_RETRIES,
    KOBO_MAX_RETRIES,
    REQUEST_TIMEOUT,
)
from ..errors import KoboAPIError
from .rate_limiter import RateLimiter
from .response_handling import classify_response_status

JSONObj: TypeAlias = Dict[str, Any]
JSONList: TypeAlias = List[JSONObj]

LOGGER = logging.getLogger(__name__)


def fetch_page_with_retries(
    *,
    url: str,
    params: Dict[str, Any],
    context_label: str,
    page: int,
    session: requests.Session,
    limiter: RateLimiter,
    timeout: int = REQUEST_TIMEOUT,
    max_retries: int = KOBO_MAX_RETRIES,
) -> JSONObj:
    """GET one page of a paginated endpoint with retry/backoff logic.

    Returns the decoded page envelope (``count``/``next``/``results``).
    Raises :class:`KoboAPIError` once retries are exhausted so a sync run
    never mistakes a failed page for the end of the data.
    """

    attempts = 0
    rate_limit_retries = 0
    backoff = 1.0
    while True:
        attempts += 1
        can_retry = attempts < max_retries
        limiter.before_request()
        resp: Optional[requests.Response] = None
        try:
            resp = session.get(url, params=params, timeout=timeout)
        except requests.RequestException as exc:
            if can_retry:
                _log_retry(context_label, page, attempts, backoff, exc.__class__.__name__)
                time.sleep(backoff)
                backoff = min(backoff * 2, KOBO_BACKOFF_MAX_SECONDS)
                continue
            message = (
                f"{context_label} network error page={page} after {attempts} "
                f"attempts: {exc.__class__.__name__}"
            )
            LOGGER.error(message)
            raise KoboAPIError(message) from exc

        limiter.after_response(resp.headers, resp.status_code)
        if resp.status_code == 429:
            # Rate limits are transient; they do not consume the retry budget.
            rate_limit_retries += 1
            if rate_limit_retries > KOBO_MAX_RATE_LIMIT_RETRIES:
                message = (
                    f"{context_label} page={page} exceeded max 429 retries "
                    f"({KOBO_MAX_RATE_LIMIT_RETRIES})"
                )
                LOGGER.error(message)
                raise KoboAPIError(message)
            attempts -= 1
            continue

        action, error = classify_response_status(
            resp,
            f"{context_label} page={page}",
            attempt=attempts,
            backoff=backoff,
            can_retry=can_retry,
        )
        if action == "retry":
            time.sleep(backoff)
            backoff = min(backoff * 2, KOBO_BACKOFF_MAX_SECONDS)
            continue
        if action == "raise" and error is not None:
            raise error

        try:
            data = resp.json()
        except ValueError as exc:
            if can_retry:
                LOGGER.warning(
                    "Non-JSON response (%s) page=%s attempt=%s; retrying in %.1fs",
                    context_label,
                    page,
                    attempts,
                    backoff,
                )
                time.sleep(backoff)
                backoff = min(backoff * 2, KOBO_BACKOFF_MAX_SECONDS)
                continue
            message = f"{context_label} page={page} returned non-JSON payload"
            LOGGER.error(message)
            raise KoboAPIError(message) from exc

        if not isinstance(data, dict) or not isinstance(data.get("results"), list):
            message = (
                f"Unexpected JSON shape for {context_label} page={page} "
                f"type={type(data).__name__}"
            )
            LOGGER.error(message)
            raise KoboAPIError(message)

        return data


def _log_retry(
    context_label: str,
    page: int,
    attempt: int,
    backoff: float,
    reason: str,
) -> None:
    LOGGER.warning(
        "%s network error page=%s attempt=%s err=%s; backoff %.1fs",
        context_label.capitalize(),
        page,
        attempt,
        reason,
        backoff,
    )
