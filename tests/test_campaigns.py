"""Tests for marketing campaigns and the aggregate marketing stats."""
from __future__ import annotations

import pytest


@pytest.fixture
def campaigns_url(brand):
    return f"/brands/{brand.brand_id}/campaigns"


def _create(client, url, headers, **payload):
    body = {"name": "Spring Launch", "type": "email"}
    body.update(payload)
    return client.post(url, json=body, headers=headers)


def test_create_campaign_defaults(client, campaigns_url, user_headers):
    response = _create(client, campaigns_url, user_headers, subject="New lashes are here")
    campaign = response.get_json()["campaign"]

    assert response.status_code == 201
    assert campaign["status"] == "draft"
    assert campaign["type"] == "email"
    assert campaign["stats"] == {"sent": 0, "opened": 0, "clicked": 0, "revenue": 0}


def test_create_campaign_requires_name_and_type(client, campaigns_url, user_headers):
    response = client.post(campaigns_url, json={"name": "Nameless type"}, headers=user_headers)

    assert response.status_code == 400
    assert response.get_json()["message"] == "name and type are required"


def test_create_campaign_rejects_unknown_type(client, campaigns_url, user_headers):
    response = _create(client, campaigns_url, user_headers, type="fax")

    assert response.status_code == 400


def test_schedule_campaign(client, campaigns_url, user_headers):
    campaign_id = _create(client, campaigns_url, user_headers).get_json()["campaign"]["id"]

    response = client.put(
        f"{campaigns_url}/{campaign_id}",
        json={"status": "scheduled", "scheduled_at": "2026-11-01T09:00:00Z"},
        headers=user_headers,
    )
    campaign = response.get_json()["campaign"]

    assert response.status_code == 200
    assert campaign["status"] == "scheduled"
    assert campaign["scheduled_at"] == "2026-11-01T09:00:00+00:00"


def test_update_campaign_bad_timestamp(client, campaigns_url, user_headers):
    campaign_id = _create(client, campaigns_url, user_headers).get_json()["campaign"]["id"]

    response = client.put(f"{campaigns_url}/{campaign_id}", json={"sent_at": "soon"}, headers=user_headers)

    assert response.status_code == 400


def test_list_campaigns_filters(client, campaigns_url, user_headers):
    _create(client, campaigns_url, user_headers, name="Email One")
    _create(client, campaigns_url, user_headers, name="Text Blast", type="sms", status="active")

    sms = client.get(f"{campaigns_url}?type=sms", headers=user_headers).get_json()
    drafts = client.get(f"{campaigns_url}?status=draft", headers=user_headers).get_json()

    assert [c["name"] for c in sms["campaigns"]] == ["Text Blast"]
    assert [c["name"] for c in drafts["campaigns"]] == ["Email One"]


def test_list_campaigns_rejects_unknown_status(client, campaigns_url, user_headers):
    response = client.get(f"{campaigns_url}?status=archived", headers=user_headers)

    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid_parameters"


def test_get_and_delete_campaign(client, campaigns_url, user_headers):
    campaign_id = _create(client, campaigns_url, user_headers).get_json()["campaign"]["id"]

    assert client.get(f"{campaigns_url}/{campaign_id}", headers=user_headers).status_code == 200
    assert client.delete(f"{campaigns_url}/{campaign_id}", headers=user_headers).status_code == 200

    missing = client.get(f"{campaigns_url}/{campaign_id}", headers=user_headers)
    assert missing.status_code == 404
    assert missing.get_json()["error"] == "campaign_not_found"


def test_marketing_stats(client, brand, campaigns_url, user_headers):
    _create(
        client, campaigns_url, user_headers,
        status="sent", stats={"sent": 200, "opened": 50, "clicked": 10, "revenue": 120.5},
    )
    _create(
        client, campaigns_url, user_headers, name="Promo SMS", type="sms",
        status="active", stats={"sent": 50, "opened": 0, "clicked": 5, "revenue": 30},
    )
    _create(client, campaigns_url, user_headers, name="Draft", status="draft")

    response = client.get(f"/brands/{brand.brand_id}/marketing/stats", headers=user_headers)
    stats = response.get_json()["stats"]

    assert response.status_code == 200
    assert stats == {
        "totalCampaigns": 3,
        "activeCampaigns": 1,
        "totalSent": 250,
        "openRate": 20.0,
        "clickRate": 6.0,
        "revenue": 150.5,
    }


def test_marketing_stats_without_sends(client, brand, user_headers):
    stats = client.get(f"/brands/{brand.brand_id}/marketing/stats", headers=user_headers).get_json()["stats"]

    assert stats["totalCampaigns"] == 0
    assert stats["openRate"] == 0
