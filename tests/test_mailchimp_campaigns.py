"""Tests for the admin Mailchimp campaign endpoints."""
from __future__ import annotations

from unittest.mock import Mock, patch

import pytest
import requests

URL = "/mailchimp/campaigns"


def _response(status_code: int, body: dict | None = None) -> Mock:
    response = Mock(status_code=status_code, ok=200 <= status_code < 300)
    response.json.return_value = body or {}
    return response


def _payload(**overrides) -> dict:
    payload = {
        "campaignName": "Issue 103 launch",
        "subjectLine": "Issue 103 is here",
        "previewText": "Brows, lashes and more",
        "htmlContent": "<h1>Issue 103</h1>",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def mailchimp_config(app):
    app.config["MAILCHIMP_API_KEY"] = "abc123-us21"
    app.config["MAILCHIMP_LIST_ID"] = "list42"
    app.config["MAILCHIMP_SERVER_PREFIX"] = None
    return app.config


@pytest.fixture
def mailchimp_api():
    with patch("glamlink.mailchimp.requests.request") as request:
        yield request


def _calls(mock) -> list[tuple[str, str]]:
    return [(c.args[0], c.args[1].split("/3.0", 1)[1]) for c in mock.call_args_list]


def test_campaigns_are_admin_only(client, user_headers):
    assert client.post(URL, json=_payload()).status_code == 401
    assert client.post(URL, json=_payload(), headers=user_headers).status_code == 403
    assert client.get(URL, headers=user_headers).status_code == 403
    assert client.delete(f"{URL}/abc", headers=user_headers).status_code == 403


# Development mode

def test_create_requires_name_subject_and_html(client, admin_headers):
    response = client.post(URL, json=_payload(htmlContent="  "), headers=admin_headers)

    assert response.status_code == 400
    assert response.get_json()["message"] == "Missing required fields: campaignName, subjectLine, htmlContent"


def test_create_in_development_mode(client, admin_headers, mailchimp_api):
    response = client.post(URL, json=_payload(sendNow=True), headers=admin_headers)
    data = response.get_json()

    assert response.status_code == 201
    assert data["campaignId"].startswith("dev-campaign-")
    assert data["status"] == "save"
    mailchimp_api.assert_not_called()


def test_list_in_development_mode(client, admin_headers):
    campaigns = client.get(URL, headers=admin_headers).get_json()
    segments = client.get(f"{URL}?action=segments", headers=admin_headers).get_json()

    assert campaigns["campaigns"] == []
    assert [s["id"] for s in segments["segments"]] == ["users", "pros"]


def test_update_and_delete_in_development_mode(client, admin_headers, mailchimp_api):
    updated = client.put(f"{URL}/abc", json={"htmlContent": "<p>v2</p>"}, headers=admin_headers)
    deleted = client.delete(f"{URL}/abc", headers=admin_headers)

    assert updated.get_json()["message"] == "Campaign updated successfully! (Development mode)"
    assert deleted.get_json()["message"] == "Campaign deleted successfully! (Development mode)"
    mailchimp_api.assert_not_called()


@pytest.mark.parametrize("overrides", [
    {"targetAudience": "everyone"},
    {"testEmails": ["qa@glamlink.net", "nope"]},
    {"testEmails": "qa@glamlink.net"},
    {"scheduleTime": "tomorrow morning"},
    {"recipientEmail": "not-an-email"},
])
def test_create_rejects_bad_options(client, admin_headers, overrides):
    response = client.post(URL, json=_payload(**overrides), headers=admin_headers)

    assert response.status_code == 400


# Against the API

def test_create_draft_for_pros(client, admin_headers, mailchimp_config, mailchimp_api):
    mailchimp_api.side_effect = [
        _response(200, {"id": 77, "type": "user"}),
        _response(200, {"id": "c1", "web_id": 9, "status": "save"}),
        _response(200, {}),
    ]

    response = client.post(URL, json=_payload(targetAudience="pros"), headers=admin_headers)
    data = response.get_json()

    assert response.status_code == 201
    assert data["status"] == "saved"
    assert data["campaignId"] == "c1"
    assert data["editUrl"] == "https://us21.admin.mailchimp.com/campaigns/edit?id=9"
    assert _calls(mailchimp_api) == [
        ("POST", "/templates"),
        ("POST", "/campaigns"),
        ("PUT", "/campaigns/c1/content"),
    ]

    template_call, campaign_call, content_call = mailchimp_api.call_args_list
    assert template_call.kwargs["json"]["html"] == "<h1>Issue 103</h1>"
    assert template_call.kwargs["auth"] == ("anystring", "abc123-us21")

    campaign = campaign_call.kwargs["json"]
    assert campaign["recipients"]["list_id"] == "list42"
    assert campaign["recipients"]["segment_opts"]["conditions"][0]["value"] == "pros"
    assert campaign["settings"]["subject_line"] == "Issue 103 is here"
    assert campaign["settings"]["from_name"] == "Glamlink"
    assert content_call.kwargs["json"] == {"template": {"id": 77, "sections": {}}}


def test_create_test_and_send_now(client, admin_headers, mailchimp_config, mailchimp_api):
    mailchimp_api.side_effect = [
        _response(200, {"id": 77}),
        _response(200, {"id": "c1", "web_id": 9, "archive_url": "https://eepurl.com/x"}),
        _response(200, {}),
        _response(204),
        _response(204),
    ]

    response = client.post(
        URL,
        json=_payload(sendNow=True, testEmails=["qa@glamlink.net"], targetAudience="both"),
        headers=admin_headers,
    )
    data = response.get_json()

    assert response.status_code == 201
    assert data["status"] == "sent"
    assert data["archiveUrl"] == "https://eepurl.com/x"
    assert _calls(mailchimp_api)[3:] == [
        ("POST", "/campaigns/c1/actions/test"),
        ("POST", "/campaigns/c1/actions/send"),
    ]
    assert mailchimp_api.call_args_list[3].kwargs["json"] == {"test_emails": ["qa@glamlink.net"], "send_type": "html"}
    assert "segment_opts" not in mailchimp_api.call_args_list[1].kwargs["json"]["recipients"]


def test_create_and_schedule(client, admin_headers, mailchimp_config, mailchimp_api):
    mailchimp_api.side_effect = [
        _response(200, {"id": 77}),
        _response(200, {"id": "c1", "web_id": 9}),
        _response(200, {}),
        _response(204),
    ]

    response = client.post(URL, json=_payload(scheduleTime="2026-11-01T15:00:00Z"), headers=admin_headers)
    data = response.get_json()

    assert data["status"] == "scheduled"
    assert data["scheduleTime"] == "2026-11-01T15:00:00+00:00"
    assert _calls(mailchimp_api)[-1] == ("POST", "/campaigns/c1/actions/schedule")
    assert mailchimp_api.call_args_list[-1].kwargs["json"] == {"schedule_time": "2026-11-01T15:00:00+00:00"}


def test_single_recipient_campaign(client, admin_headers, mailchimp_config, mailchimp_api):
    mailchimp_api.side_effect = [
        _response(200, {"id": 77}),
        _response(200, {"id": "c1", "web_id": 9}),
        _response(200, {}),
    ]

    client.post(
        URL,
        json=_payload(campaignName="Welcome Email - fan", recipientEmail="fan@example.com", targetAudience="pros"),
        headers=admin_headers,
    )

    segment = mailchimp_api.call_args_list[1].kwargs["json"]["recipients"]["segment_opts"]
    assert segment["match"] == "all"
    assert segment["conditions"][0]["value"] == "fan@example.com"


def test_template_mode_replicates_and_sends(app, client, admin_headers, mailchimp_config, mailchimp_api):
    app.config["MAILCHIMP_TEMPLATE_CAMPAIGN_ID"] = "tmpl-1"
    mailchimp_api.side_effect = [
        _response(200, {"id": "c9", "web_id": 5}),
        _response(200, {}),
        _response(200, {}),
        _response(204),
    ]

    response = client.post(
        URL,
        json={"useTemplateMode": True, "sendNow": True, "recipientEmail": "fan@example.com"},
        headers=admin_headers,
    )
    data = response.get_json()

    assert response.status_code == 201
    assert data["status"] == "sent"
    assert data["templateUsed"] == "tmpl-1"
    assert _calls(mailchimp_api) == [
        ("POST", "/campaigns/tmpl-1/actions/replicate"),
        ("PATCH", "/campaigns/c9"),
        ("PATCH", "/campaigns/c9"),
        ("POST", "/campaigns/c9/actions/send"),
    ]
    assert mailchimp_api.call_args_list[1].kwargs["json"]["settings"]["subject_line"] == "Welcome to Glamlink Magazine!"


def test_template_mode_falls_back_to_regular_campaign(app, client, admin_headers, mailchimp_config, mailchimp_api):
    app.config["MAILCHIMP_TEMPLATE_CAMPAIGN_ID"] = "tmpl-1"
    app.config["MAILCHIMP_USE_TEMPLATE_MODE"] = True
    mailchimp_api.side_effect = [
        _response(404, {"title": "Resource Not Found"}),
        _response(200, {"id": 77}),
        _response(200, {"id": "c1", "web_id": 9}),
        _response(200, {}),
    ]

    response = client.post(URL, json=_payload(), headers=admin_headers)

    assert response.status_code == 201
    assert response.get_json()["status"] == "saved"
    assert _calls(mailchimp_api)[1] == ("POST", "/templates")


def test_mailchimp_error_is_reported(client, admin_headers, mailchimp_config, mailchimp_api):
    mailchimp_api.side_effect = [_response(400, {"title": "Invalid Resource", "detail": "HTML is too large"})]

    response = client.post(URL, json=_payload(), headers=admin_headers)

    assert response.status_code == 502
    assert response.get_json() == {"error": "mailchimp_error", "message": "HTML is too large"}
    assert mailchimp_api.call_count == 1


def test_mailchimp_unreachable(client, admin_headers, mailchimp_config, mailchimp_api):
    mailchimp_api.side_effect = requests.Timeout("slow")

    response = client.post(URL, json=_payload(), headers=admin_headers)

    assert response.status_code == 502
    assert response.get_json()["error"] == "mailchimp_unavailable"


def test_list_recent_campaigns_and_segments(client, admin_headers, mailchimp_config, mailchimp_api):
    mailchimp_api.side_effect = [
        _response(200, {"campaigns": [{"id": "c1"}], "total_items": 1}),
        _response(200, {"segments": [{"id": 3, "name": "Pros"}], "total_items": 1}),
    ]

    campaigns = client.get(URL, headers=admin_headers).get_json()
    segments = client.get(f"{URL}?action=segments", headers=admin_headers).get_json()

    assert campaigns == {"campaigns": [{"id": "c1"}], "total_items": 1}
    assert segments["segments"] == [{"id": 3, "name": "Pros"}]
    assert mailchimp_api.call_args_list[0].kwargs["params"] == {
        "count": 10, "sort_field": "create_time", "sort_dir": "DESC",
    }
    assert _calls(mailchimp_api)[1] == ("GET", "/lists/list42/segments")


def test_update_campaign(client, admin_headers, mailchimp_config, mailchimp_api):
    mailchimp_api.side_effect = [_response(200, {}), _response(200, {})]

    response = client.put(
        f"{URL}/c1",
        json={"settings": {"subject_line": "Issue 103, updated"}, "htmlContent": "<p>v2</p>"},
        headers=admin_headers,
    )

    assert response.status_code == 200
    assert response.get_json()["campaignId"] == "c1"
    assert _calls(mailchimp_api) == [("PATCH", "/campaigns/c1"), ("PUT", "/campaigns/c1/content")]
    assert mailchimp_api.call_args_list[1].kwargs["json"] == {"html": "<p>v2</p>"}


def test_update_needs_changes(client, admin_headers):
    assert client.put(f"{URL}/c1", json={}, headers=admin_headers).status_code == 400
    assert client.put(f"{URL}/c1", json={"settings": "x"}, headers=admin_headers).status_code == 400


def test_delete_campaign(client, admin_headers, mailchimp_config, mailchimp_api):
    mailchimp_api.return_value = _response(204)

    response = client.delete(f"{URL}/c1", headers=admin_headers)

    assert response.status_code == 200
    assert _calls(mailchimp_api) == [("DELETE", "/campaigns/c1")]


def test_delete_missing_campaign(client, admin_headers, mailchimp_config, mailchimp_api):
    mailchimp_api.return_value = _response(404, {"title": "Resource Not Found", "detail": "The requested resource could not be found."})

    response = client.delete(f"{URL}/c1", headers=admin_headers)

    assert response.status_code == 502
    assert response.get_json()["message"] == "The requested resource could not be found."
