"""HTTP session factory for survey platform API calls."""

from __future__ import annotations

import requests
from requests import Session
from requests.adapters import HTTPAdapter
from requests.auth import HTTPBasicAuth
from urllib3.util.retry import Retry

from ..config import (
    HTTP_POOL_CONNECTIONS,
    HTTP_POOL_MAXSIZE,
    KOBO_PASSWORD,
    KOBO_USERNAME,
)

__all__ = ["create_default_session"]


def _build_retry() -> Retry:
    # 429 is handled by the page loop so it can coordinate with the RateLimiter.
    return Retry(
        total=3,
        backoff_factor=1.0,
        status_forcelist=[500, 502, 503, 504],
        allowed_methods=["GET"],
    )


def create_default_session(
    username: str | None = None, password: str | None = None
) -> Session:
    """Build a session with pooled connections, retries and basic auth."""

    session = requests.Session()
    adapter = HTTPAdapter(
        pool_connections=HTTP_POOL_CONNECTIONS,
        pool_maxsize=HTTP_POOL_MAXSIZE,
        max_retries=_build_retry(),
    )
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    session.headers.update(
        {
            "Accept-Encoding": "gzip, deflate",
            "Accept": "application/json",
        }
    )
    user = KOBO_USERNAME if username is None else username
    secret = KOBO_PASSWORD if password is None else password
    if user:
        session.auth = HTTPBasicAuth(user, secret)
    return session
