"""
Auth API & session holder.

Tests cover:
  - Password hashing (bcrypt + werkzeug fallback)
  - Login: success, wrong password, unconfirmed and inactive accounts
  - Missing profile → VISUALIZADOR, login not blocked
  - Refresh rotation, logout revocation
  - /me, /menu and protected-route 401
"""

from werkzeug.security import generate_password_hash

from ase_fidel.models import db
from ase_fidel.models.auth import Session, UserAccount
from ase_fidel.services.session_service import (
    MSG_INVALID_CREDENTIALS,
    MSG_UNCONFIRMED,
    create_user,
)
from ase_fidel.utils.crypto import hash_password, verify_password


# ═══════════════════════════════════════════════════════════════
# Password hashing
# ═══════════════════════════════════════════════════════════════

def test_bcrypt_round_trip():
    hashed = hash_password("correct horse", rounds=4)
    assert hashed.startswith("$2b$")
    assert verify_password("correct horse", hashed)
    assert not verify_password("wrong", hashed)


def test_werkzeug_hash_still_verifies():
    assert verify_password("legacy-pass", generate_password_hash("legacy-pass"))


def test_empty_hash_never_verifies():
    assert verify_password("anything", "") is False


# ═══════════════════════════════════════════════════════════════
# Login
# ═══════════════════════════════════════════════════════════════

def test_login_returns_tokens_profile_and_menu(login, make_user):
    user = make_user("GERENTE", email="gerente@example.com")
    data = login("GERENTE@example.com")
    assert data["token_type"] == "Bearer"
    assert data["access_token"] and data["refresh_token"]
    assert data["user"]["id"] == user.id
    assert data["profile"] == {
        "id": user.id, "email": "gerente@example.com", "role": "GERENTE", "has_profile": True,
    }
    assert "ase_all" in [i["key"] for i in data["menu"]]
    assert Session.query.filter_by(user_id=user.id, is_active=True).count() == 1


def test_login_wrong_password(client, make_user):
    user = make_user("ADMIN")
    res = client.post("/api/v1/auth/login", json={"email": user.email, "password": "nope-nope"})
    assert res.status_code == 401
    assert res.get_json()["error"] == MSG_INVALID_CREDENTIALS
    assert res.get_json()["code"] == "ERR_AUTH_REQUIRED"


def test_login_unknown_email(client):
    res = client.post("/api/v1/auth/login", json={"email": "ghost@example.com", "password": "x" * 10})
    assert res.status_code == 401
    assert res.get_json()["code"] == "ERR_AUTH_REQUIRED"


def test_login_requires_both_fields(client):
    res = client.post("/api/v1/auth/login", json={"email": "a@example.com"})
    assert res.status_code == 400
    assert res.get_json()["code"] == "ERR_VALIDATION_REQUIRED"


def test_login_unconfirmed_account(client, default_password):
    create_user("pending@example.com", default_password, role="ENCARREGADO", confirmed=False)
    res = client.post(
        "/api/v1/auth/login", json={"email": "pending@example.com", "password": default_password},
    )
    assert res.status_code == 403
    assert res.get_json()["error"] == MSG_UNCONFIRMED


def test_login_inactive_account(client, make_user, default_password):
    user = make_user("ENCARREGADO")
    user.status = "inactive"
    db.session.commit()
    res = client.post("/api/v1/auth/login", json={"email": user.email, "password": default_password})
    assert res.status_code == 403


def test_missing_profile_defaults_to_visualizador(login, make_user):
    user = make_user(role=None)
    data = login(user.email)
    assert data["profile"]["role"] == "VISUALIZADOR"
    assert data["profile"]["has_profile"] is False
    assert "ase_all" not in [i["key"] for i in data["menu"]]


# ═══════════════════════════════════════════════════════════════
# Refresh / logout
# ═══════════════════════════════════════════════════════════════

def test_refresh_rotates_session(client, login, make_user):
    user = make_user("ENCARREGADO")
    first = login(user.email)

    res = client.post("/api/v1/auth/refresh", json={"refresh_token": first["refresh_token"]})
    assert res.status_code == 200
    second = res.get_json()
    assert second["refresh_token"] != first["refresh_token"]

    # The old refresh token is single-use
    res = client.post("/api/v1/auth/refresh", json={"refresh_token": first["refresh_token"]})
    assert res.status_code == 401


def test_refresh_rejects_access_token(client, login, make_user):
    user = make_user("ENCARREGADO")
    tokens = login(user.email)
    res = client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["access_token"]})
    assert res.status_code == 401


def test_logout_revokes_session(client, login, make_user):
    user = make_user("ENCARREGADO")
    tokens = login(user.email)
    headers = {"Authorization": f"Bearer {tokens['access_token']}"}

    res = client.post("/api/v1/auth/logout", json={"refresh_token": tokens["refresh_token"]}, headers=headers)
    assert res.status_code == 200
    assert Session.query.filter_by(user_id=user.id, is_active=True).count() == 0

    res = client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert res.status_code == 401


# ═══════════════════════════════════════════════════════════════
# Identity endpoints
# ═══════════════════════════════════════════════════════════════

def test_me(client, auth_headers):
    res = client.get("/api/v1/auth/me", headers=auth_headers("COORDENADOR"))
    assert res.status_code == 200
    body = res.get_json()
    assert body["profile"]["role"] == "COORDENADOR"
    assert "cadastros.manage" in body["features"]


def test_menu_filtered_by_role(client, auth_headers):
    res = client.get("/api/v1/auth/menu", headers=auth_headers("ENCARREGADO"))
    keys = [i["key"] for i in res.get_json()["items"]]
    assert "ase_all" not in keys and "logs" not in keys
    assert "ase_new" in keys


def test_protected_route_without_token(client):
    res = client.get("/api/v1/auth/me")
    assert res.status_code == 401
    assert res.get_json()["code"] == "ERR_AUTH_REQUIRED"


def test_garbage_token_is_anonymous(client):
    res = client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert res.status_code == 401


def test_role_change_applies_without_relogin(client, login, make_user):
    user = make_user("ENCARREGADO")
    tokens = login(user.email)
    headers = {"Authorization": f"Bearer {tokens['access_token']}"}
    assert client.get("/api/v1/ase?mode=all", headers=headers).status_code == 403

    db.session.get(UserAccount, user.id).profile.role = "ADMIN"
    db.session.commit()
    assert client.get("/api/v1/ase?mode=all", headers=headers).status_code == 200
