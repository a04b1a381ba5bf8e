from __future__ import annotations

import time

import jwt

from conftest import PASSWORD, auth_headers, mk_property, mk_user


def test_register_then_login(client):
    r = client.post(
        "/auth/register",
        json={"name": "Priya", "email": "Priya@Example.com", "password": "Str0ngPass"},
    )
    assert r.status_code == 201
    body = r.json()
    assert body["user"]["email"] == "priya@example.com"
    assert body["user"]["role"] == "user"
    assert body["token"]

    r = client.post("/auth/login", json={"email": "priya@example.com", "password": "Str0ngPass"})
    assert r.status_code == 200
    token = r.json()["token"]
    r = client.get("/auth/profile", headers={"Authorization": f"Bearer {token}"})
    assert r.json()["user"]["name"] == "Priya"


def test_register_rejects_duplicate_and_weak_password(client):
    mk_user("taken@example.com")
    r = client.post("/auth/register", json={"name": "Dup", "email": "taken@example.com", "password": "Str0ngPass"})
    assert r.status_code == 409

    r = client.post("/auth/register", json={"name": "Weak", "email": "weak@example.com", "password": "alllower1"})
    assert r.status_code == 400

    r = client.post("/auth/register", json={"name": "X", "email": "short@example.com", "password": "Str0ngPass"})
    assert r.status_code == 400


def test_login_does_not_reveal_which_part_was_wrong(client):
    mk_user("known@example.com")
    wrong_pw = client.post("/auth/login", json={"email": "known@example.com", "password": "Nope12345"})
    unknown = client.post("/auth/login", json={"email": "ghost@example.com", "password": PASSWORD})
    assert wrong_pw.status_code == unknown.status_code == 401
    assert wrong_pw.json() == unknown.json() == {"detail": "Invalid email or password"}


def test_admin_routes_are_gated(client):
    user = mk_user("user@example.com")
    admin = mk_user("admin@example.com", role="admin")

    r = client.get("/admin/dashboard")
    assert r.status_code == 401
    assert r.json()["detail"] == "Not authenticated"

    r = client.get("/admin/dashboard", headers=auth_headers(user))
    assert r.status_code == 403
    assert r.json()["detail"] == "Admin access required"

    assert client.get("/admin/dashboard", headers=auth_headers(admin)).status_code == 200


def test_bad_and_expired_tokens(client):
    user = mk_user()
    r = client.get("/auth/verify", headers={"Authorization": "Bearer garbage"})
    assert r.status_code == 401
    assert r.json()["detail"] == "Invalid token"

    expired = jwt.encode(
        {"sub": user.id, "email": user.email, "role": user.role, "exp": int(time.time()) - 60},
        "test-secret",
        algorithm="HS256",
    )
    r = client.get("/auth/verify", headers={"Authorization": f"Bearer {expired}"})
    assert r.status_code == 401
    assert r.json()["detail"] == "Token expired"


def test_deactivated_account_is_refused(client):
    user = mk_user("off@example.com", is_active=False)
    assert client.get("/auth/profile", headers=auth_headers(user)).status_code == 403
    r = client.post("/auth/login", json={"email": "off@example.com", "password": PASSWORD})
    assert r.status_code == 403


def test_profile_update_and_password_change(client):
    user = mk_user()
    h = auth_headers(user)
    r = client.put("/auth/profile", json={"name": "Renamed", "phone": "12345678"}, headers=h)
    assert r.status_code == 200
    assert r.json()["user"]["name"] == "Renamed"

    r = client.put("/auth/password", json={"currentPassword": "wrong", "newPassword": "N3wPassword"}, headers=h)
    assert r.status_code == 400
    r = client.put("/auth/password", json={"current_password": PASSWORD, "new_password": "N3wPassword"}, headers=h)
    assert r.status_code == 200
    r = client.post("/auth/login", json={"email": user.email, "password": "N3wPassword"})
    assert r.status_code == 200


def test_auth_rate_limit(client, monkeypatch):
    monkeypatch.setenv("AUTH_RATE_LIMIT", "2")
    body = {"email": "nobody@example.com", "password": "Whatever1"}
    assert client.post("/auth/login", json=body).status_code == 401
    assert client.post("/auth/login", json=body).status_code == 401
    assert client.post("/auth/login", json=body).status_code == 429


def test_public_routes_treat_unusable_tokens_as_anonymous(client):
    p = mk_property("open listing")
    user = mk_user("gone@example.com", is_active=False)
    expired = jwt.encode(
        {"sub": "someone", "email": "x@example.com", "role": "user", "exp": int(time.time()) - 60},
        "test-secret",
        algorithm="HS256",
    )
    for headers in (
        {"Authorization": f"Bearer {expired}"},
        {"Authorization": "Bearer garbage"},
        auth_headers(user),
    ):
        r = client.get("/properties", headers=headers)
        assert r.status_code == 200
        assert [x["id"] for x in r.json()["properties"]] == [p.id]
        assert client.get(f"/properties/{p.id}", headers=headers).status_code == 200

    lead = {"name": "Asha Rao", "email": "asha@example.com", "phone": "9876543210"}
    r = client.post("/leads", json=lead, headers={"Authorization": "Bearer garbage"})
    assert r.status_code == 201
    assert r.json()["lead"]["userId"] is None

    # Protected routes stay strict.
    assert client.get("/wishlist", headers={"Authorization": f"Bearer {expired}"}).status_code == 401
