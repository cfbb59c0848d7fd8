"""Shared HTTP response helpers for survey platform API interactions."""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Tuple

import requests

from ..errors import KoboAPIError, KoboPermissionError, KoboResourceNotFoundError

__all__ = [
    "classify_response_status",
    "extract_error",
]


def classify_response_status(
    response: requests.Response,
    context: str,
    *,
    attempt: int,
    backoff: float,
    can_retry: bool,
) -> Tuple[str, Optional[Exception]]:
    """Return action for a response status: ok, retry, or raise."""

    status = response.status_code
    if status < 400:
        return "ok", None

    detail = extract_error(response)

    def with_detail(message: str) -> str:
        return f"{message} | {detail}" if detail else message

    if status == 429:
        logging.warning(
            "%s rate limited (429) attempt=%s; sleeping %.1fs",
            context,
            attempt,
            backoff,
        )
        return "retry", None

    if status in (401, 403):
        message = with_detail(f"{context} forbidden (status {status})")
        logging.warning(message)
        return "raise", KoboPermissionError(message)

    if status == 404:
        message = with_detail(f"{context} not found")
        logging.info(message)
        return "raise", KoboResourceNotFoundError(message)

    if 500 <= status < 600 and can_retry:
        message = with_detail(f"{context} server error {status}")
        logging.warning("%s; retrying in %.1fs", message, backoff)
        return "retry", None

    message = with_detail(f"{context} request failed (status {status})")
    logging.error(message)
    return "raise", KoboAPIError(message)


def extract_error(resp: Optional[requests.Response]) -> Optional[str]:
    """Return compact string with the API error detail if present."""

    if resp is None:
        return None
    try:
        data = resp.json()
    except ValueError:
        return _extract_error_text(resp)
    if isinstance(data, dict):
        parts = _collect_error_parts(data)
        return " | ".join(parts) if parts else None
    return None


def _extract_error_text(resp: requests.Response) -> Optional[str]:
    """Best-effort plain-text extraction when JSON parsing fails."""

    text = getattr(resp, "text", "")
    if not isinstance(text, str):
        return None
    trimmed = text.strip()
    if not trimmed:
        return None
    return (trimmed[:297] + "...") if len(trimmed) > 300 else trimmed


def _collect_error_parts(data: dict[str, Any]) -> List[str]:
    """Build error snippets from DRF-style error bodies (``detail`` or field lists)."""

    parts: List[str] = []
    detail = data.get("detail")
    if detail:
        parts.append(str(detail))
    for key, value in data.items():
        if key == "detail":
            continue
        if isinstance(value, list) and value and all(isinstance(v, str) for v in value):
            parts.append(f"{key}:{'; '.join(value)}")
    return parts
