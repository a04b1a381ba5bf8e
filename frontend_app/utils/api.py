from __future__ import annotations

import os
from typing import Any, Mapping

import requests

from frontend_app.utils.search_store import SearchFilterState, filters_to_params
from frontend_app.utils.storage import get_token


class ApiError(Exception):
    """Non-2xx response (or a transport failure, status 0)."""

    def __init__(self, status: int, message: str) -> None:
        super().__init__(message)
        self.status = int(status)
        self.message = message


def _base_url() -> str:
    return (os.environ.get("API_BASE_URL") or "http://127.0.0.1:8000").rstrip("/")


def _headers() -> dict[str, str]:
    h = {"Accept": "application/json"}
    token = get_token()
    if token:
        h["Authorization"] = f"Bearer {token}"
    return h


def _handle(resp: requests.Response) -> dict[str, Any]:
    try:
        data = resp.json()
    except ValueError:
        data = {"detail": resp.text}
    if resp.status_code >= 400:
        detail = data.get("detail") if isinstance(data, dict) else None
        if not isinstance(detail, str):
            detail = f"HTTP {resp.status_code}"
        raise ApiError(resp.status_code, detail)
    return data


def _request(method: str, path: str, **kwargs: Any) -> dict[str, Any]:
    kwargs.setdefault("headers", _headers())
    kwargs.setdefault("timeout", 15)
    try:
        resp = requests.request(method, f"{_base_url()}{path}", **kwargs)
    except requests.RequestException as e:
        raise ApiError(0, f"Network error: {e.__class__.__name__}") from e
    return _handle(resp)


# -----------------------
# Auth
# -----------------------
def api_register(*, name: str, email: str, password: str, phone: str = "") -> dict[str, Any]:
    body = {"name": name, "email": email, "password": password}
    if phone:
        body["phone"] = phone
    return _request("POST", "/auth/register", json=body)


def api_login(*, email: str, password: str) -> dict[str, Any]:
    return _request("POST", "/auth/login", json={"email": email, "password": password})


def api_profile() -> dict[str, Any]:
    return _request("GET", "/auth/profile")


def api_update_profile(*, name: str | None = None, phone: str | None = None) -> dict[str, Any]:
    body = {k: v for k, v in {"name": name, "phone": phone}.items() if v is not None}
    return _request("PUT", "/auth/profile", json=body)


# -----------------------
# Properties
# -----------------------
def api_search_properties(
    filters: SearchFilterState | Mapping[str, Any] | None = None,
    *,
    page: int = 1,
    limit: int | None = None,
) -> dict[str, Any]:
    if isinstance(filters, SearchFilterState):
        params = filters.to_query_params()
    else:
        params = filters_to_params(dict(filters or {}))
    params.append(("page", str(int(page))))
    if limit is not None:
        params.append(("limit", str(int(limit))))
    return _request("GET", "/properties", params=params)


def api_get_property(property_id: str) -> dict[str, Any]:
    return _request("GET", f"/properties/{property_id}")


def api_similar_properties(property_id: str, *, limit: int = 4) -> dict[str, Any]:
    return _request("GET", f"/properties/{property_id}/similar", params={"limit": int(limit)})


# -----------------------
# Wishlist
# -----------------------
def api_wishlist() -> dict[str, Any]:
    return _request("GET", "/wishlist")


def api_wishlist_add(property_id: str) -> dict[str, Any]:
    return _request("POST", "/wishlist", json={"property_id": property_id})


def api_wishlist_remove(property_id: str) -> dict[str, Any]:
    return _request("DELETE", f"/wishlist/{property_id}")


# -----------------------
# Leads
# -----------------------
def api_submit_lead(
    *,
    name: str,
    email: str,
    phone: str,
    property_id: str | None = None,
    message: str | None = None,
) -> dict[str, Any]:
    body: dict[str, Any] = {"name": name, "email": email, "phone": phone}
    if property_id:
        body["property_id"] = property_id
    if message:
        body["message"] = message
    return _request("POST", "/leads", json=body)


# -----------------------
# Admin
# -----------------------
def api_admin_dashboard() -> dict[str, Any]:
    return _request("GET", "/admin/dashboard")
