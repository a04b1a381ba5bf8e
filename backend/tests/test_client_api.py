from __future__ import annotations

from types import SimpleNamespace

import pytest
import requests

from frontend_app.utils import api, storage
from frontend_app.utils.search_store import SearchFilterState


class _FakeResponse:
    def __init__(self, status_code: int, data):
        self.status_code = status_code
        self._data = data
        self.text = str(data)

    def json(self):
        return self._data


@pytest.fixture()
def calls(monkeypatch, tmp_path):
    monkeypatch.setenv("APP_SESSION_PATH", str(tmp_path / "session.json"))
    monkeypatch.setenv("API_BASE_URL", "http://api.test/")
    seen: list[dict] = []
    responses: list[_FakeResponse] = []

    def fake_request(method, url, **kwargs):
        seen.append({"method": method, "url": url, **kwargs})
        return responses.pop(0) if responses else _FakeResponse(200, {"ok": True})

    monkeypatch.setattr(api.requests, "request", fake_request)
    return SimpleNamespace(seen=seen, responses=responses)


def test_search_omits_absent_filters(calls):
    state = SearchFilterState()
    state.set_filter("city", "Pune")
    state.set_filter("amenities", ["Gym", "Lift"])
    state.set_filter("minPrice", "")
    api.api_search_properties(state, page=2)

    call = calls.seen[0]
    assert call["method"] == "GET"
    assert call["url"] == "http://api.test/properties"
    params = call["params"]
    assert ("city", "Pune") in params
    assert ("amenities", "Gym") in params and ("amenities", "Lift") in params
    assert ("page", "2") in params
    assert not any(k == "minPrice" for k, _ in params)


def test_token_is_sent_when_logged_in(calls):
    storage.set_session(token="abc", user={"id": "1"})
    api.api_wishlist()
    assert calls.seen[0]["headers"]["Authorization"] == "Bearer abc"

    storage.clear_session()
    api.api_wishlist()
    assert "Authorization" not in calls.seen[1]["headers"]


def test_error_carries_status_and_message(calls):
    calls.responses.append(_FakeResponse(409, {"detail": "Property already in wishlist"}))
    with pytest.raises(api.ApiError) as exc:
        api.api_wishlist_add("p1")
    assert exc.value.status == 409
    assert exc.value.message == "Property already in wishlist"
    # No retry.
    assert len(calls.seen) == 1


def test_validation_errors_fall_back_to_status(calls):
    calls.responses.append(_FakeResponse(422, {"detail": [{"msg": "field required"}]}))
    with pytest.raises(api.ApiError) as exc:
        api.api_login(email="a@b.co", password="x")
    assert exc.value.message == "HTTP 422"


def test_network_failure_is_api_error(monkeypatch, tmp_path):
    monkeypatch.setenv("APP_SESSION_PATH", str(tmp_path / "session.json"))

    def boom(*args, **kwargs):
        raise requests.ConnectionError("down")

    monkeypatch.setattr(api.requests, "request", boom)
    with pytest.raises(api.ApiError) as exc:
        api.api_admin_dashboard()
    assert exc.value.status == 0
