import sqlite3

import pytest

from api import create_app
from config import Settings
from errors import ConfigurationError


def _register(client, name, email, password="password123"):
    response = client.post("/api/auth/register", json={"fullName": name, "email": email, "password": password})
    assert response.status_code == 201
    return response.json()["data"]


def _auth(token):
    return {"Authorization": f"Bearer {token}"}


def _edge_count(db_file):
    conn = sqlite3.connect(db_file)
    try:
        return conn.execute("SELECT COUNT(*) FROM friends").fetchone()[0]
    finally:
        conn.close()


def test_create_app_without_secret_fails(db_file):
    with pytest.raises(ConfigurationError):
        create_app(Settings(database_file=db_file, jwt_secret_key=None))


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["db"] is True


def test_register_returns_tokens(client):
    body = client.post(
        "/api/auth/register",
        json={"fullName": "Alice Reader", "email": "alice@example.com", "password": "password123"},
    ).json()
    assert body["status"] == 201
    assert body["message"] == "User registered successfully"
    data = body["data"]
    assert data["user"]["email"] == "alice@example.com"
    assert data["accessToken"] and data["refreshToken"]


def test_register_duplicate_is_conflict(client):
    _register(client, "Alice Reader", "alice@example.com")
    response = client.post(
        "/api/auth/register",
        json={"fullName": "Alice Again", "email": "alice@example.com", "password": "password456"},
    )
    assert response.status_code == 409
    assert response.json() == {
        "error": "Email already in use",
        "status": 409,
        "message": "An account with this email already exists",
    }


def test_register_missing_fields_is_bad_request(client):
    response = client.post("/api/auth/register", json={"email": "a@example.com"})
    assert response.status_code == 400
    assert response.json()["error"] == "Missing required fields"


def test_register_without_body_is_bad_request(client):
    response = client.post("/api/auth/register")
    assert response.status_code == 400


def test_login(client):
    _register(client, "Alice Reader", "alice@example.com")
    response = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "password123"})
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["user"]["fullName"] == "Alice Reader"
    assert "accessToken" in data and "refreshToken" in data


def test_login_bad_credentials(client):
    _register(client, "Alice Reader", "alice@example.com")
    wrong = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "wrong-password"})
    unknown = client.post("/api/auth/login", json={"email": "who@example.com", "password": "password123"})
    assert wrong.status_code == unknown.status_code == 401
    assert wrong.json() == unknown.json()


def test_verify_endpoint(client, clock):
    tokens = _register(client, "Alice Reader", "alice@example.com")

    response = client.post("/api/auth/verify", json={"token": tokens["accessToken"]})
    assert response.status_code == 200
    assert response.json()["data"] == {"verified": True}

    clock.advance(minutes=16)
    expired = client.post("/api/auth/verify", json={"token": tokens["accessToken"]})
    garbage = client.post("/api/auth/verify", json={"token": "garbage"})
    assert expired.status_code == garbage.status_code == 401
    assert expired.json() == garbage.json()

    assert client.post("/api/auth/verify", json={"token": tokens["refreshToken"]}).status_code == 200


def test_verify_without_token(client):
    response = client.post("/api/auth/verify", json={})
    assert response.status_code == 401
    assert response.json()["error"] == "Token is required"


@pytest.mark.parametrize(
    "method,path",
    [
        ("post", "/api/friends/invitations"),
        ("post", "/api/friends/invitations/1/accept"),
        ("get", "/api/friends"),
        ("get", "/api/friends/1"),
    ],
)
@pytest.mark.parametrize("headers", [{}, {"Authorization": "Token abc"}, {"Authorization": "Bearer bogus"}])
def test_protected_endpoints_require_bearer(client, method, path, headers):
    response = getattr(client, method)(path, headers=headers)
    assert response.status_code == 401
    assert response.json()["status"] == 401


def test_invitation_accept_scenario(client, app_settings):
    alice = _register(client, "Alice Reader", "alice@example.com")
    bob = _register(client, "Bob Reader", "bob@example.com")

    created = client.post(
        "/api/friends/invitations", json={"email": "bob@example.com"}, headers=_auth(alice["accessToken"])
    )
    assert created.status_code == 201
    invitation = created.json()["data"]

    preview = client.get(f"/api/friends/invitations/{invitation['token']}")
    assert preview.status_code == 200
    assert preview.json()["data"]["invite"]["inviter_name"] == "Alice Reader"
    assert preview.json()["data"]["expired"] is False

    first = client.post(f"/api/friends/invitations/{invitation['id']}/accept", headers=_auth(bob["accessToken"]))
    assert first.status_code == 200
    assert first.json()["data"] == {"accepted": True}
    assert _edge_count(app_settings.database_file) == 2

    second = client.post(f"/api/friends/invitations/{invitation['id']}/accept", headers=_auth(bob["accessToken"]))
    assert second.status_code == 200
    assert second.json()["data"] == {"accepted": True, "alreadyAccepted": True}
    assert _edge_count(app_settings.database_file) == 2

    friends = client.get("/api/friends", headers=_auth(alice["accessToken"])).json()["data"]["friends"]
    assert [f["full_name"] for f in friends] == ["Bob Reader"]

    profile = client.get(f"/api/friends/{bob['user']['id']}", headers=_auth(alice["accessToken"]))
    assert profile.status_code == 200
    assert profile.json()["data"]["profile"]["full_name"] == "Bob Reader"
    assert profile.json()["data"]["books"] == []


def test_accept_after_expiry_is_forbidden(client, clock, app_settings):
    alice = _register(client, "Alice Reader", "alice@example.com")
    invitation = client.post(
        "/api/friends/invitations", json={"email": "bob@example.com"}, headers=_auth(alice["accessToken"])
    ).json()["data"]

    clock.advance(days=8)
    # yeni giriş: önceki belirteçlerin süresi doldu
    bob = _register(client, "Bob Reader", "bob@example.com")
    response = client.post(f"/api/friends/invitations/{invitation['id']}/accept", headers=_auth(bob["accessToken"]))
    assert response.status_code == 403
    assert response.json()["error"] == "Invitation has expired"
    assert _edge_count(app_settings.database_file) == 0


def test_accept_by_wrong_user_and_by_inviter(client):
    alice = _register(client, "Alice Reader", "alice@example.com")
    carol = _register(client, "Carol Reader", "carol@example.com")
    invitation = client.post(
        "/api/friends/invitations", json={"email": "bob@example.com"}, headers=_auth(alice["accessToken"])
    ).json()["data"]

    wrong = client.post(f"/api/friends/invitations/{invitation['id']}/accept", headers=_auth(carol["accessToken"]))
    assert wrong.status_code == 403

    own = client.post(
        "/api/friends/invitations", json={"email": "alice@example.com"}, headers=_auth(alice["accessToken"])
    ).json()["data"]
    self_accept = client.post(f"/api/friends/invitations/{own['id']}/accept", headers=_auth(alice["accessToken"]))
    assert self_accept.status_code == 403


def test_accept_unknown_invitation_is_not_found(client):
    bob = _register(client, "Bob Reader", "bob@example.com")
    response = client.post("/api/friends/invitations/999/accept", headers=_auth(bob["accessToken"]))
    assert response.status_code == 404


def test_invitation_requires_email(client):
    alice = _register(client, "Alice Reader", "alice@example.com")
    response = client.post("/api/friends/invitations", json={}, headers=_auth(alice["accessToken"]))
    assert response.status_code == 400
    assert response.json()["error"] == "Email is required"


def test_unknown_invitation_token_is_not_found(client):
    assert client.get("/api/friends/invitations/nope").status_code == 404


def test_profile_of_non_friend_is_forbidden(client):
    alice = _register(client, "Alice Reader", "alice@example.com")
    bob = _register(client, "Bob Reader", "bob@example.com")
    response = client.get(f"/api/friends/{bob['user']['id']}", headers=_auth(alice["accessToken"]))
    assert response.status_code == 403


def test_oversized_ids_are_not_server_errors(client):
    alice = _register(client, "Alice Reader", "alice@example.com")
    huge = "99999999999999999999"

    accept = client.post(f"/api/friends/invitations/{huge}/accept", headers=_auth(alice["accessToken"]))
    assert accept.status_code == 404
    assert accept.json()["error"] == "Invitation not found"

    profile = client.get(f"/api/friends/{huge}", headers=_auth(alice["accessToken"]))
    assert profile.status_code == 403
