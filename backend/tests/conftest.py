from __future__ import annotations

import datetime as dt
import os
import tempfile

# Point the app at a throwaway sqlite file before anything imports app.config.
_TMP_DIR = tempfile.mkdtemp(prefix="realty-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'test.db')}"
os.environ["APP_ENV"] = "test"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["JWT_SECRET"] = "test-secret"
os.environ.pop("ADMIN_EMAIL", None)
os.environ.pop("ADMIN_PASSWORD", None)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from app.db import ENGINE, session_scope  # noqa: E402
from app.main import app  # noqa: E402
from app.models import Base, Lead, Property, User  # noqa: E402
from app.payload import parse_payload  # noqa: E402
from app.rate_limit import limiter  # noqa: E402
from app.security import create_access_token, hash_password  # noqa: E402


Base.metadata.create_all(ENGINE)

BASE_TIME = dt.datetime(2026, 1, 1, tzinfo=dt.timezone.utc)
PASSWORD = "Passw0rd1"
LOCATION_KEYS = ("state", "locality", "address", "pincode", "coordinates")


@pytest.fixture(autouse=True)
def _clean_db():
    with ENGINE.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())
    limiter.reset()
    yield


@pytest.fixture()
def client() -> TestClient:
    return TestClient(app)


def mk_user(email: str = "user@example.com", *, role: str = "user", is_active: bool = True, name: str = "Test User") -> User:
    with session_scope() as db:
        u = User(
            name=name,
            email=email,
            role=role,
            is_active=is_active,
            password_hash=hash_password(PASSWORD),
        )
        db.add(u)
        db.flush()
        return u


def auth_headers(user: User) -> dict[str, str]:
    token = create_access_token(user_id=user.id, email=user.email, role=user.role)
    return {"Authorization": f"Bearer {token}"}


def mk_payload(
    *,
    price: float = 150000,
    city: str = "Pune",
    category: str = "Residential",
    purpose: str = "Buy",
    subtype: str = "Apartment",
    area: float = 1000,
    **extra,
) -> dict:
    payload = {
        "category": category,
        "purpose": purpose,
        "subtype": subtype,
        "price": price,
        "area": area,
        "location": {"city": city},
    }
    for key in LOCATION_KEYS:
        if key in extra:
            payload["location"][key] = extra.pop(key)
    payload.update(extra)
    return payload


def mk_property(
    title: str = "Sunny flat",
    *,
    status: str = "Active",
    views: int = 0,
    minutes: int = 0,
    **payload_kwargs,
) -> Property:
    """`minutes` offsets created_at from a fixed base so ordering is deterministic."""
    with session_scope() as db:
        p = Property(
            title=title,
            payload=parse_payload(mk_payload(**payload_kwargs)),
            status=status,
            views=views,
            created_at=BASE_TIME + dt.timedelta(minutes=minutes),
        )
        db.add(p)
        db.flush()
        return p


def mk_lead(
    *,
    status: str = "New",
    property_id: str | None = None,
    created_at: dt.datetime | None = None,
    name: str = "Asha Rao",
    email: str = "asha@example.com",
) -> Lead:
    with session_scope() as db:
        lead = Lead(
            name=name,
            email=email,
            phone="9876543210",
            status=status,
            property_id=property_id,
            created_at=created_at or dt.datetime.now(dt.timezone.utc),
        )
        db.add(lead)
        db.flush()
        return lead
