"""
POST a throwaway registration to a running API and print the outcome.

  API_URL=http://127.0.0.1:8000 python scripts/smoke_register.py
"""

from __future__ import annotations

import os
import uuid

import requests


def main() -> int:
    base = (os.environ.get("API_URL") or "http://127.0.0.1:8000").rstrip("/")
    email = f"smoke-{uuid.uuid4().hex[:10]}@example.com"
    body = {"name": "Smoke Test", "email": email, "password": "Smoke1234"}
    try:
        resp = requests.post(f"{base}/auth/register", json=body, timeout=15)
    except requests.RequestException as e:
        print(f"FAILED: cannot reach {base}: {e}")
        return 1
    print(f"{resp.status_code} {resp.text[:500]}")
    return 0 if resp.status_code == 201 else 1


if __name__ == "__main__":
    raise SystemExit(main())
