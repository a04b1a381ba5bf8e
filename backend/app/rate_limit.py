from __future__ import annotations

import time
from collections import defaultdict, deque
from threading import Lock

from fastapi import HTTPException, Request


class RateLimiter:
    """
    Very small in-memory rate limiter (per-process).

    Production note: for multi-instance deployments, replace with Redis-based limits.
    """

    SWEEP_EVERY = 500

    def __init__(self) -> None:
        self._lock = Lock()
        self._events: dict[str, deque[float]] = defaultdict(deque)
        self._windows: dict[str, float] = {}
        self._hits = 0

    def hit(self, *, key: str, limit: int, window_seconds: int, detail: str = "Too many requests") -> None:
        now = time.monotonic()
        win_start = now - float(window_seconds)
        with self._lock:
            self._hits += 1
            if self._hits % self.SWEEP_EVERY == 0:
                self._sweep(now)
            q = self._events[key]
            self._windows[key] = float(window_seconds)
            while q and q[0] < win_start:
                q.popleft()
            if len(q) >= int(limit):
                raise HTTPException(status_code=429, detail=detail)
            q.append(now)

    def _sweep(self, now: float) -> None:
        # Forget clients whose newest event has left their window.
        for key in list(self._events):
            q = self._events[key]
            if not q or q[-1] < now - self._windows.get(key, 0.0):
                del self._events[key]
                self._windows.pop(key, None)

    def tracked_keys(self) -> int:
        with self._lock:
            return len(self._events)

    def reset(self) -> None:
        with self._lock:
            self._events.clear()
            self._windows.clear()
            self._hits = 0


def client_key(request: Request, scope: str) -> str:
    host = request.client.host if request.client else "unknown"
    return f"{scope}:{host}"


limiter = RateLimiter()
