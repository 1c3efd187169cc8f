"""Tests for authentication routes."""

import pytest

from conftest import headers_for
from skoolife.api import deps
from skoolife.api.routes import auth as auth_routes


@pytest.fixture
def google_token(monkeypatch):
    """Accept any id_token and answer with the claims set on the fixture."""
    claims = {
        "iss": "https://accounts.google.com",
        "sub": "google-123",
        "email": "Lea.Durand@example.com",
        "email_verified": True,
        "name": "Léa Durand",
        "given_name": "Léa",
        "family_name": "Durand",
    }

    def verify(token, request, audience):
        if token != "valid-token":
            raise ValueError("Token used too late")
        return claims

    monkeypatch.setattr(auth_routes.google_id_token, "verify_oauth2_token", verify)
    return claims


async def test_me_requires_token(client):
    response = await client.get("/auth/me")
    assert response.status_code == 401


async def test_me_rejects_bad_token(client):
    response = await client.get("/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


async def test_me(client, user):
    response = await client.get("/auth/me", headers=headers_for(user))

    assert response.status_code == 200
    assert response.json()["email"] == "alice@example.com"
    assert response.json()["signed_up_via_invite"] is False


async def test_token_round_trip(user):
    assert deps.decode_access_token(deps.create_access_token(user.id)) == user.id


async def test_google_login_creates_user(client, google_token):
    response = await client.post("/auth/google", json={"id_token": "valid-token"})

    assert response.status_code == 200
    token = response.json()["access_token"]
    assert "access_token" in response.cookies

    me = (await client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})).json()
    assert me["email"] == "lea.durand@example.com"
    assert me["first_name"] == "Léa"
    assert me["last_name"] == "Durand"


async def test_google_login_is_idempotent(client, google_token):
    first = await client.post("/auth/google", json={"id_token": "valid-token"})
    second = await client.post("/auth/google", json={"id_token": "valid-token"})

    user_id = deps.decode_access_token(first.json()["access_token"])
    assert deps.decode_access_token(second.json()["access_token"]) == user_id


async def test_google_login_links_existing_account(client, make_user, google_token):
    existing = await make_user("lea.durand@example.com", "Léa")

    response = await client.post("/auth/google", json={"id_token": "valid-token"})

    assert deps.decode_access_token(response.json()["access_token"]) == existing.id


async def test_google_login_rejects_invalid_token(client, google_token):
    response = await client.post("/auth/google", json={"id_token": "forged"})
    assert response.status_code == 401


async def test_logout(client):
    response = await client.post("/auth/logout")
    assert response.status_code == 204
