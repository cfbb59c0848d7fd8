import json

import pytest
import requests

from plot_guard.errors import (
    KoboAPIError,
    KoboPermissionError,
    KoboResourceNotFoundError,
)
from plot_guard.kobo_client import pagination, session as session_module
from plot_guard.kobo_client.response_handling import extract_error
from plot_guard.kobo_client.submissions import (
    SubmissionsAPI,
    delta_query,
    submission_from_payload,
)

_NOT_JSON = object()


class FakeResp:
    """Minimal fake response matching needed parts of requests.Response."""

    def __init__(self, status_code=200, data=None, headers=None):
        self.status_code = status_code
        self._data = data if data is not None else {}
        self.headers = headers or {}

    def json(self):
        if self._data is _NOT_JSON:
            raise ValueError("No JSON object could be decoded")
        return self._data

    @property
    def text(self):
        if self._data is _NOT_JSON:
            return "<html>bad gateway</html>"
        return json.dumps(self._data)


class FakeSession:
    def __init__(self, responses):
        self._responses = list(responses)
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append({"url": url, "params": dict(params or {}), "timeout": timeout})
        resp = self._responses.pop(0)
        if isinstance(resp, Exception):
            raise resp
        return resp


class NoopLimiter:
    def __init__(self):
        self.statuses = []

    def before_request(self):
        return

    def after_response(self, headers, status_code):
        self.statuses.append(status_code)
        return status_code == 429


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    sleeps = []
    monkeypatch.setattr(pagination.time, "sleep", sleeps.append)
    return sleeps


def _page(results, next_url=None):
    return FakeResp(200, {"count": len(results), "next": next_url, "results": results})


def _record(n, time="2024-01-05T08:00:00"):
    return {"_uuid": f"uuid-{n}", "_id": n, "_submission_time": time}


def _api(session, page_size=2):
    return SubmissionsAPI(
        base_url="https://kobo.example.org/",
        session=session,
        limiter=NoopLimiter(),
        page_size=page_size,
        timeout=5,
    )


# --- Pagination --------------------------------------------------------
def test_full_fetch_pages_until_next_is_null():
    session = FakeSession(
        [
            _page([_record(1), _record(2)], next_url="https://kobo.example.org/next"),
            _page([_record(3)]),
        ]
    )
    pages = list(_api(session).iter_pages("aForm"))

    assert [len(p) for p in pages] == [2, 1]
    assert session.calls[0]["url"] == "https://kobo.example.org/api/v2/assets/aForm/data.json"
    assert [c["params"]["start"] for c in session.calls] == [0, 2]
    assert all(c["params"]["limit"] == 2 for c in session.calls)
    assert all(c["params"]["format"] == "json" for c in session.calls)
    assert "query" not in session.calls[0]["params"]
    assert session.calls[0]["timeout"] == 5


def test_delta_fetch_sends_submission_time_filter():
    session = FakeSession([_page([])])
    since = 1704441600000  # 2024-01-05T08:00:00Z
    assert list(_api(session).iter_pages("aForm", since_ms=since)) == [[]]
    query = json.loads(session.calls[0]["params"]["query"])
    assert query == {"_submission_time": {"$gt": "2024-01-05T08:00:00"}}


def test_delta_query_keeps_milliseconds():
    assert delta_query(1704441600250) == json.dumps(
        {"_submission_time": {"$gt": "2024-01-05T08:00:00.250"}}
    )


def test_rate_limited_page_is_retried_without_spending_retries():
    session = FakeSession(
        [
            FakeResp(429, headers={"Retry-After": "1"}),
            FakeResp(429, headers={"Retry-After": "1"}),
            FakeResp(429, headers={"Retry-After": "1"}),
            _page([_record(1)]),
        ]
    )
    limiter = NoopLimiter()
    data = pagination.fetch_page_with_retries(
        url="u",
        params={},
        context_label="submissions",
        page=1,
        session=session,
        limiter=limiter,
        max_retries=1,
    )
    assert len(data["results"]) == 1
    assert limiter.statuses == [429, 429, 429, 200]


def test_too_many_rate_limits_raise(monkeypatch):
    monkeypatch.setattr(pagination, "KOBO_MAX_RATE_LIMIT_RETRIES", 2)
    session = FakeSession([FakeResp(429) for _ in range(3)])
    with pytest.raises(KoboAPIError, match="429"):
        pagination.fetch_page_with_retries(
            url="u",
            params={},
            context_label="submissions",
            page=1,
            session=session,
            limiter=NoopLimiter(),
        )


def test_server_error_is_retried_with_backoff(no_sleep):
    session = FakeSession([FakeResp(502), FakeResp(503), _page([_record(1)])])
    data = pagination.fetch_page_with_retries(
        url="u",
        params={},
        context_label="submissions",
        page=1,
        session=session,
        limiter=NoopLimiter(),
        max_retries=3,
    )
    assert len(data["results"]) == 1
    assert no_sleep == [1.0, 2.0]


def test_server_error_raises_once_retries_exhausted():
    session = FakeSession([FakeResp(500, {"detail": "boom"}) for _ in range(3)])
    with pytest.raises(KoboAPIError, match="boom"):
        pagination.fetch_page_with_retries(
            url="u",
            params={},
            context_label="submissions",
            page=1,
            session=session,
            limiter=NoopLimiter(),
            max_retries=3,
        )
    assert len(session.calls) == 3


def test_network_error_is_retried_then_raised():
    session = FakeSession(
        [requests.ConnectionError("down"), requests.Timeout("slow")]
    )
    with pytest.raises(KoboAPIError, match="network error"):
        pagination.fetch_page_with_retries(
            url="u",
            params={},
            context_label="submissions",
            page=2,
            session=session,
            limiter=NoopLimiter(),
            max_retries=2,
        )


def test_non_json_payload_raises_after_retries():
    session = FakeSession([FakeResp(200, _NOT_JSON), FakeResp(200, _NOT_JSON)])
    with pytest.raises(KoboAPIError, match="non-JSON"):
        pagination.fetch_page_with_retries(
            url="u",
            params={},
            context_label="submissions",
            page=1,
            session=session,
            limiter=NoopLimiter(),
            max_retries=2,
        )


def test_unexpected_shape_raises():
    session = FakeSession([FakeResp(200, [1, 2, 3])])
    with pytest.raises(KoboAPIError, match="Unexpected JSON shape"):
        pagination.fetch_page_with_retries(
            url="u",
            params={},
            context_label="submissions",
            page=1,
            session=session,
            limiter=NoopLimiter(),
        )


@pytest.mark.parametrize(
    "status, error_type",
    [
        (401, KoboPermissionError),
        (403, KoboPermissionError),
        (404, KoboResourceNotFoundError),
        (400, KoboAPIError),
    ],
)
def test_client_errors_are_not_retried(status, error_type):
    session = FakeSession([FakeResp(status, {"detail": "nope"})])
    with pytest.raises(error_type):
        pagination.fetch_page_with_retries(
            url="u",
            params={},
            context_label="submissions",
            page=1,
            session=session,
            limiter=NoopLimiter(),
        )
    assert len(session.calls) == 1


def test_extract_error_reads_field_lists_and_text():
    assert extract_error(FakeResp(400, {"detail": "bad", "query": ["invalid"]})) == (
        "bad | query:invalid"
    )
    assert extract_error(FakeResp(502, _NOT_JSON)) == "<html>bad gateway</html>"
    assert extract_error(None) is None


# --- Payload mapping ---------------------------------------------------
def test_submission_from_payload_maps_system_fields():
    payload = {
        "_uuid": "abc",
        "_id": 17,
        "_submission_time": "2024-01-05T08:00:00",
        "_submitted_by": "enumerator1",
        "meta/instanceName": "plot-2024-01-05",
        "_geolocation": [9.0, 38.7],
        "_tags": ["checked"],
        "First_Name": "Abebe",
    }
    sub = submission_from_payload("aForm", payload)

    assert sub.uuid == "abc"
    assert sub.submission_id == "17"
    assert sub.form_id == "aForm"
    assert sub.submission_time == 1704441600000
    assert sub.submitted_by == "enumerator1"
    assert sub.instance_name == "plot-2024-01-05"
    assert sub.system_data == {"geolocation": [9.0, 38.7], "tags": ["checked"]}
    assert sub.raw_data["First_Name"] == "Abebe"


@pytest.mark.parametrize(
    "payload",
    [
        {"_id": 1, "_submission_time": "2024-01-05T08:00:00"},
        {"_uuid": "a", "_submission_time": "2024-01-05T08:00:00"},
        {"_uuid": "a", "_id": 1, "_submission_time": "yesterday"},
    ],
)
def test_submission_without_identity_is_dropped(payload):
    assert submission_from_payload("aForm", payload) is None


# --- Session -------------------------------------------------------------
def test_session_uses_basic_auth_and_json_headers():
    sess = session_module.create_default_session("user", "secret")
    assert isinstance(sess.auth, requests.auth.HTTPBasicAuth)
    assert sess.auth.username == "user"
    assert sess.headers["Accept"] == "application/json"
    adapter = sess.get_adapter("https://kf.kobotoolbox.org")
    assert 503 in adapter.max_retries.status_forcelist


def test_session_without_username_has_no_auth(monkeypatch):
    monkeypatch.setattr(session_module, "KOBO_USERNAME", "")
    sess = session_module.create_default_session()
    assert sess.auth is None


def test_page_size_must_be_positive():
    with pytest.raises(ValueError):
        SubmissionsAPI(session=FakeSession([]), limiter=NoopLimiter(), page_size=0)
