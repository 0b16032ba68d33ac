"""Tests for the site-wide CTA alert and its modal templates."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

from glamlink.models import CTAAlertConfig


def _today():
    return datetime.now(timezone.utc).date()


def test_defaults_before_first_save(client, admin_headers):
    response = client.get("/content-settings/cta-alert", headers=admin_headers)
    data = response.get_json()
    today = _today()

    assert response.status_code == 200
    assert data["initialized"] is False
    assert data["config"]["is_active"] is False
    assert data["config"]["button_text"] == "Learn More"
    assert data["config"]["start_date"] == today.isoformat()
    assert data["config"]["end_date"] == (today + timedelta(days=30)).isoformat()


def test_settings_are_admin_only(client, user_headers):
    assert client.get("/content-settings/cta-alert").status_code == 401
    assert client.put("/content-settings/cta-alert", json={}, headers=user_headers).status_code == 403


def test_save_and_merge(client, admin_headers):
    first = client.put(
        "/content-settings/cta-alert",
        json={"message": "Issue 103 is live!", "is_active": True, "dismiss_after_hours": 48},
        headers=admin_headers,
    )
    assert first.status_code == 200
    assert first.get_json()["initialized"] is True

    second = client.put("/content-settings/cta-alert", json={"button_text": "Read now"}, headers=admin_headers)
    config = second.get_json()["config"]

    assert config["message"] == "Issue 103 is live!"
    assert config["button_text"] == "Read now"
    assert config["dismiss_after_hours"] == 48
    assert config["is_active"] is True
    assert CTAAlertConfig.query.count() == 1

    fetched = client.get("/content-settings/cta-alert", headers=admin_headers).get_json()
    assert fetched["initialized"] is True
    assert fetched["config"]["button_text"] == "Read now"


def test_save_rejects_bad_values(client, admin_headers):
    today = _today()

    reversed_dates = client.put(
        "/content-settings/cta-alert",
        json={"start_date": today.isoformat(), "end_date": (today - timedelta(days=1)).isoformat()},
        headers=admin_headers,
    )
    bad_hours = client.put("/content-settings/cta-alert", json={"dismiss_after_hours": -3}, headers=admin_headers)
    bad_date = client.put("/content-settings/cta-alert", json={"start_date": "next week"}, headers=admin_headers)
    bad_string = client.put("/content-settings/cta-alert", json={"message": 42}, headers=admin_headers)

    assert reversed_dates.status_code == 400
    assert bad_hours.status_code == 400
    assert bad_date.status_code == 400
    assert bad_string.status_code == 400
    assert CTAAlertConfig.query.count() == 0


def test_active_alert_respects_flag_and_dates(client, admin_headers):
    assert client.get("/cta-alert/active").get_json() == {"alert": None}

    client.put(
        "/content-settings/cta-alert",
        json={"message": "Spring sale", "is_active": True, "modal_type": "custom"},
        headers=admin_headers,
    )
    alert = client.get("/cta-alert/active").get_json()["alert"]
    assert alert["message"] == "Spring sale"
    assert alert["modal_type"] == "custom"
    # Scheduling fields are not exposed publicly
    assert "start_date" not in alert
    assert "is_active" not in alert

    today = _today()
    client.put(
        "/content-settings/cta-alert",
        json={
            "start_date": (today + timedelta(days=2)).isoformat(),
            "end_date": (today + timedelta(days=9)).isoformat(),
        },
        headers=admin_headers,
    )
    assert client.get("/cta-alert/active").get_json() == {"alert": None}


def test_deactivate(client, admin_headers):
    assert client.post("/content-settings/cta-alert/deactivate", headers=admin_headers).status_code == 404

    client.put("/content-settings/cta-alert", json={"message": "Hi", "is_active": True}, headers=admin_headers)
    response = client.post("/content-settings/cta-alert/deactivate", headers=admin_headers)

    assert response.status_code == 200
    assert response.get_json()["config"]["is_active"] is False
    assert client.get("/cta-alert/active").get_json() == {"alert": None}


def test_template_crud(client, admin_headers):
    base = "/content-settings/cta-alert/templates"

    created = client.post(
        base,
        json={"name": "Launch modal", "modal_title": "We launched", "modal_html_content": "<p>Hello</p>"},
        headers=admin_headers,
    )
    assert created.status_code == 201
    template_id = created.get_json()["template"]["id"]

    listed = client.get(base, headers=admin_headers).get_json()
    assert [t["name"] for t in listed["templates"]] == ["Launch modal"]

    updated = client.put(f"{base}/{template_id}", json={"modal_title": "Now live"}, headers=admin_headers)
    assert updated.get_json()["template"]["modal_title"] == "Now live"
    assert updated.get_json()["template"]["modal_html_content"] == "<p>Hello</p>"

    assert client.get(f"{base}/{template_id}", headers=admin_headers).status_code == 200
    assert client.delete(f"{base}/{template_id}", headers=admin_headers).status_code == 200

    missing = client.get(f"{base}/{template_id}", headers=admin_headers)
    assert missing.status_code == 404
    assert missing.get_json()["error"] == "template_not_found"


def test_template_requires_name(client, admin_headers):
    base = "/content-settings/cta-alert/templates"

    assert client.post(base, json={"modal_title": "No name"}, headers=admin_headers).status_code == 400

    template_id = client.post(base, json={"name": "Keep"}, headers=admin_headers).get_json()["template"]["id"]
    blanked = client.put(f"{base}/{template_id}", json={"name": "  "}, headers=admin_headers)
    assert blanked.status_code == 400
