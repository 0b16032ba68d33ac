"""Shared pytest fixtures: app, client and authenticated users."""
from __future__ import annotations

import sys
from pathlib import Path

import pytest
from werkzeug.security import generate_password_hash

# Ensure the project root is available on sys.path so tests can import the app package.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from glamlink import create_app  # noqa: E402
from glamlink.auth import build_token  # noqa: E402
from glamlink.config import TestingConfig  # noqa: E402
from glamlink.extensions import db  # noqa: E402
from glamlink.models import AuthAccount, Brand, User  # noqa: E402
from glamlink.rate_limit import support_message_limiter  # noqa: E402


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()
    support_message_limiter.reset()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    """Factory creating a user with a password; returns the ``User``."""
    counter = {"n": 0}

    def _make_user(role: str = "user", name: str | None = None, email: str | None = None,
                   password: str = "password123") -> User:
        counter["n"] += 1
        user = User(
            name=name or f"{role.title()} {counter['n']}",
            email=email or f"{role}{counter['n']}@example.com",
            role=role,
        )
        db.session.add(user)
        db.session.flush()
        db.session.add(AuthAccount(user_id=user.user_id, password_hash=generate_password_hash(password)))
        db.session.commit()
        return user

    return _make_user


def auth_headers(user: User) -> dict[str, str]:
    token = build_token({"user_id": user.user_id, "role": user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def user(make_user):
    return make_user("user")


@pytest.fixture
def admin(make_user):
    return make_user("admin", name="Ada Admin")


@pytest.fixture
def user_headers(user):
    return auth_headers(user)


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)


@pytest.fixture
def brand(user):
    brand = Brand(owner_id=user.user_id, name="Glow Studio")
    db.session.add(brand)
    db.session.commit()
    return brand
