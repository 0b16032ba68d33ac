"""Smoke tests for the health endpoints."""
from __future__ import annotations

from unittest.mock import patch

from sqlalchemy.exc import OperationalError

from glamlink import create_app
from glamlink.extensions import db


def test_health_endpoint() -> None:
    app = create_app({"TESTING": True, "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:"})
    client = app.test_client()

    response = client.get("/health")

    assert response.status_code == 200
    assert response.json == {"status": "ok"}


def test_database_health_endpoint_ok() -> None:
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
    })
    client = app.test_client()

    response = client.get("/db-health")

    assert response.status_code == 200
    assert response.json == {"database": "ok"}


def test_database_health_endpoint_unavailable(client) -> None:
    with patch.object(db.session, "execute", side_effect=OperationalError("SELECT 1", {}, Exception("down"))):
        response = client.get("/db-health")

    assert response.status_code == 500
    assert response.json == {"database": "unavailable"}
