"""Login and password reset."""

import re

from conftest import auth_headers


RESET_RE = re.compile(r"reset-password/confirm\?token=(\S+)")


def test_login_and_me(client, admin):
    res = client.post("/api/auth/login", json={"email": "admin@example.com", "password": "admin-password-123"})

    assert res.status_code == 200
    token = res.json()["access_token"]
    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.json()["role"] == "admin"


def test_wrong_password(client, admin):
    res = client.post("/api/auth/login", json={"email": "admin@example.com", "password": "nope"})
    assert res.status_code == 401
    assert res.json() == {"error": "Invalid credentials"}


def test_garbage_token(client):
    res = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert res.status_code == 401


def test_reset_flow_is_single_use(client, admin, mailer):
    requested = client.post("/api/auth/reset-password", json={"email": "admin@example.com"})
    assert requested.status_code == 200
    token = RESET_RE.search(mailer.sent[-1]["text"]).group(1)

    # A recovery token is not a session token
    assert client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"}).status_code == 401

    confirm = client.post("/api/auth/reset-password/confirm", json={"token": token, "password": "brand-new-password"})
    assert confirm.status_code == 200
    login = client.post("/api/auth/login", json={"email": "admin@example.com", "password": "brand-new-password"})
    assert login.status_code == 200

    reused = client.post("/api/auth/reset-password/confirm", json={"token": token, "password": "another-password-1"})
    assert reused.status_code == 400


def test_reset_for_unknown_email_looks_the_same(client, mailer):
    res = client.post("/api/auth/reset-password", json={"email": "ghost@example.com"})
    assert res.status_code == 200
    assert mailer.sent == []


def test_auth_actions_are_rate_limited(client, admin):
    statuses = [
        client.post("/api/auth/login", json={"email": "admin@example.com", "password": "wrong"}).status_code
        for _ in range(11)
    ]
    assert statuses[:10] == [401] * 10
    assert statuses[10] == 429


def test_therapist_routes_need_therapist_role(client, admin):
    res = client.get("/api/therapists/me", headers=auth_headers(admin))
    assert res.status_code == 403
