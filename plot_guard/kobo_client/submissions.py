"""Submission listing for a form (asset) and payload normalisation."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Iterator, List, Optional

import requests

from ..config import KOBO_BASE_URL, REQUEST_TIMEOUT, SYNC_PAGE_SIZE
from ..models import Submission
from ..utils import format_timestamp_iso, parse_submission_time
from .pagination import JSONList, JSONObj, fetch_page_with_retries
from .rate_limiter import RateLimiter
from .session import create_default_session

LOGGER = logging.getLogger(__name__)


def delta_query(since_ms: int) -> str:
    """Server-side filter selecting submissions newer than ``since_ms``."""

    return json.dumps({"_submission_time": {"$gt": format_timestamp_iso(since_ms)}})


class SubmissionsAPI:
    """Pages through ``/api/v2/assets/<form_id>/data.json``."""

    def __init__(
        self,
        *,
        base_url: str = KOBO_BASE_URL,
        session: requests.Session | None = None,
        limiter: RateLimiter | None = None,
        page_size: int = SYNC_PAGE_SIZE,
        timeout: int = REQUEST_TIMEOUT,
    ) -> None:
        if page_size < 1:
            raise ValueError("page_size must be >= 1")
        self.base_url = base_url.rstrip("/")
        self.page_size = page_size
        self._session = session or create_default_session()
        self._limiter = limiter or RateLimiter()
        self._timeout = timeout

    def data_url(self, form_id: str) -> str:
        return f"{self.base_url}/api/v2/assets/{form_id}/data.json"

    def iter_pages(
        self, form_id: str, *, since_ms: Optional[int] = None
    ) -> Iterator[JSONList]:
        """Yield each page's records until the server reports no next page.

        With ``since_ms`` only submissions newer than that timestamp are
        requested (delta fetch); otherwise every submission is listed.
        """

        url = self.data_url(form_id)
        context = "delta submissions" if since_ms is not None else "submissions"
        base_params: Dict[str, Any] = {"format": "json", "limit": self.page_size}
        if since_ms is not None:
            base_params["query"] = delta_query(since_ms)

        start = 0
        page = 1
        while True:
            params = dict(base_params)
            params["start"] = start
            data = fetch_page_with_retries(
                url=url,
                params=params,
                context_label=context,
                page=page,
                session=self._session,
                limiter=self._limiter,
                timeout=self._timeout,
            )
            results: JSONList = data["results"]
            LOGGER.debug(
                "%s form=%s page=%s start=%s records=%s",
                context,
                form_id,
                page,
                start,
                len(results),
            )
            yield results
            if not data.get("next"):
                break
            start += self.page_size
            page += 1


def submission_from_payload(form_id: str, payload: JSONObj) -> Optional[Submission]:
    """Map one raw API record to a Submission, or None if identity fields are missing."""

    uuid = _extract_string(payload, "_uuid")
    record_id = _extract_string(payload, "_id")
    submission_time = parse_submission_time(payload.get("_submission_time"))
    if not uuid or record_id is None or submission_time is None:
        LOGGER.debug(
            "Dropping record without uuid/id/submission time form=%s uuid=%s",
            form_id,
            uuid,
        )
        return None
    return Submission(
        uuid=uuid,
        form_id=form_id,
        submission_id=record_id,
        submission_time=submission_time,
        submitted_by=_extract_string(payload, "_submitted_by"),
        instance_name=_extract_string(payload, "meta/instanceName"),
        raw_data=dict(payload),
        system_data=_system_data(payload),
    )


def _system_data(payload: JSONObj) -> Optional[Dict[str, List[Any]]]:
    fields: Dict[str, List[Any]] = {}
    geolocation = payload.get("_geolocation")
    if isinstance(geolocation, list):
        coords = [
            float(value)
            for value in geolocation
            if isinstance(value, (int, float)) and not isinstance(value, bool)
        ]
        if coords:
            fields["geolocation"] = coords
    tags = payload.get("_tags")
    if isinstance(tags, list):
        cleaned = [str(tag) for tag in tags if isinstance(tag, (str, int, float))]
        if cleaned:
            fields["tags"] = cleaned
    return fields or None


def _extract_string(payload: JSONObj, key: str) -> Optional[str]:
    value = payload.get(key)
    if value is None or isinstance(value, (dict, list)):
        return None
    if isinstance(value, bool):
        return str(value).lower()
    return str(value)


__all__ = ["SubmissionsAPI", "delta_query", "submission_from_payload"]
