from __future__ import annotations

import json
import logging
import os
from typing import Any


logger = logging.getLogger(__name__)


def _store_path() -> str:
    """
    Writable path for small client state (session/filters).
    Override with APP_SESSION_PATH; defaults to the working directory.
    """
    override = (os.environ.get("APP_SESSION_PATH") or "").strip()
    if override:
        return override
    return os.path.join(os.getcwd(), ".session.json")


def _read() -> dict[str, Any]:
    path = _store_path()
    if not os.path.exists(path):
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f) or {}
    except (OSError, ValueError):
        logger.warning("Ignoring unreadable session file %s", path)
        return {}


def _write(data: dict[str, Any]) -> None:
    with open(_store_path(), "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)


def set_session(*, token: str, user: dict[str, Any]) -> None:
    d = _read()
    d["token"] = token or ""
    d["user"] = dict(user or {})
    _write(d)


def get_session() -> dict[str, Any]:
    d = _read()
    return {"token": d.get("token") or "", "user": d.get("user") or {}}


def get_token() -> str:
    return str(_read().get("token") or "")


def get_user() -> dict[str, Any]:
    return dict(_read().get("user") or {})


def clear_session() -> None:
    d = _read()
    d.pop("token", None)
    d.pop("user", None)
    _write(d)


def save_filters(filters: dict[str, Any]) -> None:
    d = _read()
    d["filters"] = dict(filters or {})
    _write(d)


def load_filters() -> dict[str, Any]:
    return dict(_read().get("filters") or {})
