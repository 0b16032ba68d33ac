"""Tests for the set_user_password maintenance script."""
from __future__ import annotations

import pytest

from glamlink.models import User
from scripts.set_user_password import parse_args, set_password


def test_creates_admin_account_that_can_log_in(app, client):
    set_password("editor@glamlink.net", "issue103!", role="admin", name="Issue Editor", app=app)

    user = User.query.filter_by(email="editor@glamlink.net").one()
    assert user.role == "admin"
    assert user.name == "Issue Editor"

    login = client.post("/auth/login", json={"email": "editor@glamlink.net", "password": "issue103!"})
    assert login.status_code == 200
    assert login.get_json()["user"]["role"] == "admin"


def test_existing_account_keeps_role_without_flag(app, client, make_user):
    pro = make_user("professional", email="pro@example.com")

    set_password("pro@example.com", "brandnew123", app=app)

    assert User.query.get(pro.user_id).role == "professional"
    login = client.post("/auth/login", json={"email": "pro@example.com", "password": "brandnew123"})
    assert login.status_code == 200


def test_new_account_defaults(app):
    set_password("fan@example.com", "password123", app=app)

    user = User.query.filter_by(email="fan@example.com").one()
    assert user.role == "user"
    assert user.name == "fan"


def test_parse_args_normalizes_email():
    args = parse_args(["  Editor@Glamlink.NET ", "password123", "--role", "admin"])

    assert args.email == "editor@glamlink.net"
    assert args.role == "admin"
    assert args.name is None


@pytest.mark.parametrize("argv", [
    ["not-an-email", "password123"],
    ["editor@glamlink.net", "short"],
    ["editor@glamlink.net", "password123", "--role", "vendor"],
])
def test_parse_args_rejects_bad_input(argv):
    with pytest.raises(SystemExit):
        parse_args(argv)
