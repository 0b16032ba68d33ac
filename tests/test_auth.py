"""Tests for registration, login and the token-protected profile endpoint."""
from __future__ import annotations

from itsdangerous import URLSafeTimedSerializer

from glamlink.models import AuthAccount, User

NEW_USER_PAYLOAD = {
    "name": "Test Shopper",
    "email": "Shopper@Example.com",
    "password": "securepassword123",
    "phone": "555-1234",
}


def test_register_user_success(client):
    response = client.post("/auth/register", json=NEW_USER_PAYLOAD)
    data = response.get_json()

    assert response.status_code == 201
    assert data["token"]
    assert data["user"]["email"] == "shopper@example.com"
    assert data["user"]["role"] == "user"

    user = User.query.filter_by(email="shopper@example.com").first()
    assert user is not None
    assert AuthAccount.query.get(user.user_id) is not None


def test_register_professional_role(client):
    payload = dict(NEW_USER_PAYLOAD, email="pro@example.com", role="professional")

    response = client.post("/auth/register", json=payload)

    assert response.status_code == 201
    assert response.get_json()["user"]["role"] == "professional"


def test_register_rejects_admin_role(client):
    payload = dict(NEW_USER_PAYLOAD, role="admin")

    response = client.post("/auth/register", json=payload)

    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid_role"


def test_register_missing_fields(client):
    response = client.post("/auth/register", json={"name": "Incomplete"})

    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid_payload"
    assert "name, email, and password are required" in response.get_json()["message"]


def test_register_invalid_email(client):
    response = client.post("/auth/register", json=dict(NEW_USER_PAYLOAD, email="not-an-email"))

    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid_email"


def test_register_duplicate_email(client, make_user):
    make_user(email="taken@example.com")

    response = client.post("/auth/register", json=dict(NEW_USER_PAYLOAD, email="taken@example.com"))

    assert response.status_code == 409
    assert response.get_json()["error"] == "conflict"


def test_login_success_stamps_last_login(client, make_user):
    user = make_user(email="login@example.com", password="hunter22")

    response = client.post("/auth/login", json={"email": "LOGIN@example.com", "password": "hunter22"})
    data = response.get_json()

    assert response.status_code == 200
    assert data["token"]
    assert data["user"]["user_id"] == user.user_id
    assert data["user"]["is_admin"] is False
    assert AuthAccount.query.get(user.user_id).last_login_at is not None


def test_login_wrong_password(client, make_user):
    make_user(email="login@example.com", password="hunter22")

    response = client.post("/auth/login", json={"email": "login@example.com", "password": "wrong"})

    assert response.status_code == 401
    assert response.get_json()["error"] == "unauthorized"


def test_login_unknown_email(client):
    response = client.post("/auth/login", json={"email": "ghost@example.com", "password": "whatever"})

    assert response.status_code == 401


def test_login_missing_fields(client):
    response = client.post("/auth/login", json={"email": "someone@example.com"})

    assert response.status_code == 400


def test_me_requires_token(client):
    response = client.get("/auth/me")

    assert response.status_code == 401
    assert response.get_json()["error"] == "unauthorized"


def test_me_rejects_tampered_token(client, user_headers):
    headers = {"Authorization": user_headers["Authorization"] + "tampered"}

    response = client.get("/auth/me", headers=headers)

    assert response.status_code == 401


def test_me_rejects_token_signed_with_other_key(client, user):
    token = URLSafeTimedSerializer("another-secret", salt="auth-token").dumps({"user_id": user.user_id})

    response = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401


def test_me_returns_profile(client, user, user_headers):
    response = client.get("/auth/me", headers=user_headers)

    assert response.status_code == 200
    assert response.get_json()["user"]["email"] == user.email


def test_admin_emails_config_grants_admin(app, client, make_user):
    from conftest import auth_headers

    app.config["ADMIN_EMAILS"] = ["boss@example.com"]
    boss = make_user(email="boss@example.com")

    response = client.get("/auth/me", headers=auth_headers(boss))

    assert response.status_code == 200
    assert response.get_json()["user"]["is_admin"] is True
