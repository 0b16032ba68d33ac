"""Tests for the newsletter sign-up and the Mailchimp client helpers."""
from __future__ import annotations

from unittest.mock import Mock, patch

import pytest
import requests

from glamlink import mailchimp
from glamlink.models import NewsletterSubscriber


def _response(status_code: int, body: dict) -> Mock:
    response = Mock(status_code=status_code, ok=200 <= status_code < 300)
    response.json.return_value = body
    return response


@pytest.fixture
def mailchimp_config(app):
    app.config["MAILCHIMP_API_KEY"] = "abc123-us21"
    app.config["MAILCHIMP_LIST_ID"] = "list42"
    app.config["MAILCHIMP_SERVER_PREFIX"] = None
    return app.config


def test_invalid_email(client):
    response = client.post("/newsletter/subscribe", json={"email": "nope"})

    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid_email"


def test_development_mode_records_locally(client):
    with patch("glamlink.mailchimp.add_member") as add_member:
        response = client.post(
            "/newsletter/subscribe",
            json={"email": "Fan@Example.com", "firstName": "Lee", "lastName": "Park", "userType": "pros"},
        )

    data = response.get_json()
    assert response.status_code == 200
    assert data["message"] == "Successfully subscribed! (Development mode)"
    assert data["email"] == "fan@example.com"
    assert data["firstName"] == "Lee"
    add_member.assert_not_called()

    subscriber = NewsletterSubscriber.query.filter_by(email="fan@example.com").one()
    assert subscriber.user_type == "pros"


def test_subscribe_through_mailchimp(client, mailchimp_config):
    with patch("glamlink.mailchimp.add_member", return_value=_response(200, {
        "id": "mc-1", "email_address": "fan@example.com",
    })) as add_member:
        response = client.post("/newsletter/subscribe", json={"email": "fan@example.com", "firstName": "Lee"})

    assert response.status_code == 200
    assert response.get_json()["message"] == "Successfully subscribed to Glamlink newsletter!"
    member = add_member.call_args[0][0]
    assert member["merge_fields"] == {"FNAME": "Lee", "LNAME": ""}
    assert member["tags"] == ["users"]
    assert NewsletterSubscriber.query.filter_by(email="fan@example.com").one().mailchimp_id == "mc-1"


def test_existing_member_is_resubscribed(client, mailchimp_config):
    with patch("glamlink.mailchimp.add_member", return_value=_response(400, {"title": "Member Exists"})), \
            patch("glamlink.mailchimp.upsert_member", return_value=_response(200, {"id": "mc-2"})) as upsert:
        response = client.post("/newsletter/subscribe", json={"email": "fan@example.com"})

    data = response.get_json()
    assert response.status_code == 200
    assert data["resubscribed"] is True
    assert data["message"] == "Successfully resubscribed to Glamlink newsletter!"
    upsert.assert_called_once()


def test_existing_member_when_resubscribe_fails(client, mailchimp_config):
    with patch("glamlink.mailchimp.add_member", return_value=_response(400, {"title": "Member Exists"})), \
            patch("glamlink.mailchimp.upsert_member", side_effect=requests.ConnectionError("down")):
        response = client.post("/newsletter/subscribe", json={"email": "fan@example.com"})

    assert response.status_code == 200
    assert response.get_json()["message"] == "You're already subscribed!"


def test_mailchimp_error_is_passed_through(client, mailchimp_config):
    body = {"title": "Invalid Resource", "detail": "fan@example.com looks fake or invalid"}
    with patch("glamlink.mailchimp.add_member", return_value=_response(400, body)):
        response = client.post("/newsletter/subscribe", json={"email": "fan@example.com"})

    assert response.status_code == 400
    assert response.get_json()["error"] == "fan@example.com looks fake or invalid"
    assert NewsletterSubscriber.query.count() == 0


def test_mailchimp_unreachable(client, mailchimp_config):
    with patch("glamlink.mailchimp.add_member", side_effect=requests.Timeout("slow")):
        response = client.post("/newsletter/subscribe", json={"email": "fan@example.com"})

    assert response.status_code == 502
    assert response.get_json()["error"] == "newsletter_unavailable"


def test_subscribe_rejects_get(client):
    assert client.get("/newsletter/subscribe").status_code == 405


# Client helpers

def test_members_url_from_key_suffix(app, mailchimp_config):
    assert mailchimp.members_url() == "https://us21.api.mailchimp.com/3.0/lists/list42/members"

    mailchimp_config["MAILCHIMP_SERVER_PREFIX"] = "us6"
    assert mailchimp.members_url() == "https://us6.api.mailchimp.com/3.0/lists/list42/members"


def test_subscriber_hash_is_case_insensitive():
    assert mailchimp.subscriber_hash("Fan@Example.com") == mailchimp.subscriber_hash("fan@example.com")
    assert len(mailchimp.subscriber_hash("fan@example.com")) == 32


def test_upsert_member_puts_to_hashed_url(app, mailchimp_config):
    member = mailchimp.build_member("fan@example.com", "Lee", None, "pros")

    with patch("glamlink.mailchimp.requests.put") as put:
        mailchimp.upsert_member(member)

    url = put.call_args[0][0]
    assert url.endswith(f"/members/{mailchimp.subscriber_hash('fan@example.com')}")
    assert put.call_args.kwargs["auth"] == ("anystring", "abc123-us21")
    assert put.call_args.kwargs["json"]["status"] == "subscribed"
