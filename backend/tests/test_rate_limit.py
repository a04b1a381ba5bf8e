from __future__ import annotations

import pytest
from fastapi import HTTPException

from app import rate_limit
from app.rate_limit import RateLimiter


@pytest.fixture()
def clock(monkeypatch):
    now = [1000.0]
    monkeypatch.setattr(rate_limit.time, "monotonic", lambda: now[0])
    return now


def test_window_slides(clock):
    rl = RateLimiter()
    rl.hit(key="auth:1.2.3.4", limit=2, window_seconds=10)
    rl.hit(key="auth:1.2.3.4", limit=2, window_seconds=10)
    with pytest.raises(HTTPException) as exc:
        rl.hit(key="auth:1.2.3.4", limit=2, window_seconds=10)
    assert exc.value.status_code == 429

    clock[0] += 11
    rl.hit(key="auth:1.2.3.4", limit=2, window_seconds=10)


def test_idle_clients_are_forgotten(clock):
    rl = RateLimiter()
    rl.SWEEP_EVERY = 3
    rl.hit(key="leads:10.0.0.1", limit=5, window_seconds=10)
    rl.hit(key="leads:10.0.0.2", limit=5, window_seconds=10)
    assert rl.tracked_keys() == 2

    clock[0] += 60
    rl.hit(key="leads:10.0.0.3", limit=5, window_seconds=10)
    assert rl.tracked_keys() == 1
