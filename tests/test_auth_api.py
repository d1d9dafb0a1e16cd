from __future__ import annotations

from datetime import timedelta

from articlehub.security import create_access_token


def _register(client, username="alice", email="Alice@Example.com", password="secret123", **extra):
    return client.post(
        "/api/auth/register",
        json={"username": username, "email": email, "password": password, **extra},
    )


def test_register_login_and_profile(client):
    resp = _register(client)
    assert resp.status_code == 201
    user = resp.json()["data"]["user"]
    assert user["email"] == "alice@example.com"
    assert user["role"] == "user"
    assert "passwordHash" not in user

    resp = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "secret123"})
    assert resp.status_code == 200
    token = resp.json()["data"]["token"]

    profile = client.get("/api/auth/profile", headers={"Authorization": f"Bearer {token}"})
    assert profile.status_code == 200
    assert profile.json()["data"]["user"]["username"] == "alice"


def test_duplicate_email_and_username(client):
    assert _register(client).status_code == 201

    resp = _register(client, username="alice2")
    assert resp.status_code == 400
    assert resp.json()["message"] == "Email already registered."

    resp = _register(client, email="other@example.com")
    assert resp.status_code == 400
    assert resp.json()["message"] == "Username already taken."


def test_register_validation(client):
    resp = _register(client, email="not-an-email")
    assert resp.status_code == 400
    resp = _register(client, password="123")
    assert resp.status_code == 400


def test_admin_role_needs_role_selection_enabled(client, app):
    resp = _register(client, username="root", email="root@example.com", role="admin")
    assert resp.status_code == 201
    assert resp.json()["data"]["user"]["role"] == "admin"

    app.state.ctx.settings.auth.allow_role_selection = False
    resp = _register(client, username="root2", email="root2@example.com", role="admin")
    assert resp.status_code == 403


def test_wrong_password_is_unauthenticated(client):
    _register(client)
    resp = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "nope-nope"})
    assert resp.status_code == 401
    assert resp.json()["message"] == "Invalid email or password."


def test_token_errors_are_distinguished(client, run, make_user, settings):
    user, _ = run(make_user("alice"))

    resp = client.get("/api/auth/profile")
    assert resp.json()["message"] == "Access denied. No token provided."

    expired = create_access_token(user.id, settings.auth, expires_delta=timedelta(hours=-1))
    resp = client.get("/api/auth/profile", headers={"Authorization": f"Bearer {expired}"})
    assert resp.status_code == 401
    assert resp.json()["message"] == "Token expired."

    resp = client.get("/api/auth/profile", headers={"Authorization": "Bearer garbage.token.here"})
    assert resp.status_code == 401
    assert resp.json()["message"] == "Invalid token."


def test_update_profile_keeps_role(client, run, make_user):
    _, headers = run(make_user("alice"))
    resp = client.put("/api/auth/profile", json={"username": "alicia", "role": "admin"}, headers=headers)
    assert resp.status_code == 200
    user = resp.json()["data"]["user"]
    assert user["username"] == "alicia"
    assert user["role"] == "user"


def test_auth_endpoints_are_rate_limited(client, settings):
    limit = settings.rate_limits.auth.limit
    for _ in range(limit):
        client.post("/api/auth/login", json={"email": "ghost@example.com", "password": "whatever"})

    resp = client.post("/api/auth/login", json={"email": "ghost@example.com", "password": "whatever"})
    assert resp.status_code == 429
    assert resp.json()["retryAfter"] > 0
