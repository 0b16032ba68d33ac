"""Thin Mailchimp Marketing API client for newsletter sign-ups and campaigns."""
from __future__ import annotations

import hashlib
from datetime import datetime, timezone

import requests
from flask import current_app


class MailchimpError(Exception):
    """Mailchimp answered with a non-2xx status."""

    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def is_configured() -> bool:
    config = current_app.config
    return bool(config.get("MAILCHIMP_API_KEY") and config.get("MAILCHIMP_LIST_ID"))


def data_center() -> str:
    """``MAILCHIMP_SERVER_PREFIX`` or, failing that, the API key suffix (``<key>-us21`` -> ``us21``)."""
    config = current_app.config
    return config.get("MAILCHIMP_SERVER_PREFIX") or config["MAILCHIMP_API_KEY"].rsplit("-", 1)[-1]


def api_url(path: str) -> str:
    return f"https://{data_center()}.api.mailchimp.com/3.0{path}"


def members_url() -> str:
    return api_url(f"/lists/{current_app.config['MAILCHIMP_LIST_ID']}/members")


def edit_url(web_id) -> str:
    return f"https://{data_center()}.admin.mailchimp.com/campaigns/edit?id={web_id}"


def subscriber_hash(email: str) -> str:
    return hashlib.md5(email.lower().encode("utf-8")).hexdigest()


def build_member(email: str, first_name: str, last_name: str, user_type: str) -> dict[str, object]:
    return {
        "email_address": email.lower(),
        "status": "subscribed",
        "merge_fields": {"FNAME": first_name or "", "LNAME": last_name or ""},
        "tags": [user_type or "users"],
    }


def _auth() -> tuple[str, str]:
    # Mailchimp ignores the username for basic auth
    return ("anystring", current_app.config["MAILCHIMP_API_KEY"])


def add_member(member: dict[str, object]) -> requests.Response:
    """POST a new list member. Raises ``requests.RequestException`` on transport errors."""
    return requests.post(
        members_url(),
        json=member,
        auth=_auth(),
        timeout=current_app.config["MAILCHIMP_TIMEOUT"],
    )


def upsert_member(member: dict[str, object]) -> requests.Response:
    """PUT the member by subscriber hash, which also resubscribes them."""
    url = f"{members_url()}/{subscriber_hash(str(member['email_address']))}"
    return requests.put(
        url,
        json=member,
        auth=_auth(),
        timeout=current_app.config["MAILCHIMP_TIMEOUT"],
    )


# Campaigns

def _request(method: str, path: str, payload: dict | None = None, params: dict | None = None) -> dict:
    """Call the API and return the decoded body.

    204 responses come back as ``{}``. Raises ``MailchimpError`` on API
    errors and lets ``requests.RequestException`` propagate.
    """
    current_app.logger.info(f"Mailchimp {method} {path}")
    response = requests.request(
        method,
        api_url(path),
        json=payload,
        params=params,
        auth=_auth(),
        timeout=current_app.config["MAILCHIMP_TIMEOUT"],
    )

    if response.status_code == 204:
        return {}

    try:
        body = response.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}

    if not response.ok:
        message = body.get("detail") or body.get("title") or "Mailchimp API error"
        current_app.logger.error(f"Mailchimp {method} {path} failed with {response.status_code}: {message}")
        raise MailchimpError(message, response.status_code)
    return body


def single_recipient_segment(email: str) -> dict[str, object]:
    return {
        "match": "all",
        "conditions": [
            {"condition_type": "EmailAddress", "field": "EMAIL", "op": "is", "value": email},
        ],
    }


def audience_segment(audience: str | None) -> dict[str, object] | None:
    """Static segment for ``users`` or ``pros``; None targets the whole list."""
    if not audience or audience == "both":
        return None
    return {
        "conditions": [
            {
                "condition_type": "StaticSegment",
                "field": "static_segment",
                "op": "static_is",
                "value": "pros" if audience == "pros" else "users",
            },
        ],
    }


def build_campaign(name: str, subject: str, preview_text: str | None,
                   segment: dict[str, object] | None = None) -> dict[str, object]:
    config = current_app.config
    recipients: dict[str, object] = {"list_id": config["MAILCHIMP_LIST_ID"]}
    if segment:
        recipients["segment_opts"] = segment

    return {
        "type": "regular",
        "recipients": recipients,
        "settings": {
            "subject_line": subject,
            "preview_text": preview_text or "",
            "title": name,
            "from_name": config["MAILCHIMP_FROM_NAME"],
            "reply_to": config["MAILCHIMP_FROM_EMAIL"],
            "to_name": "*|FNAME|*",
            "authenticate": True,
            "auto_footer": False,
            "inline_css": True,
            "track_opens": True,
            "track_clicks": True,
        },
    }


def create_template(name: str, html: str) -> dict:
    stamp = datetime.now(timezone.utc).isoformat()
    return _request("POST", "/templates", {"name": f"{name} - {stamp}", "html": html})


def create_campaign(campaign: dict[str, object]) -> dict:
    return _request("POST", "/campaigns", campaign)


def replicate_campaign(campaign_id: str) -> dict:
    return _request("POST", f"/campaigns/{campaign_id}/actions/replicate")


def update_campaign(campaign_id: str, changes: dict[str, object]) -> dict:
    return _request("PATCH", f"/campaigns/{campaign_id}", changes)


def set_campaign_content(campaign_id: str, template_id=None, html: str | None = None) -> dict:
    if template_id is not None:
        content = {"template": {"id": template_id, "sections": {}}}
    else:
        content = {"html": html}
    return _request("PUT", f"/campaigns/{campaign_id}/content", content)


def send_test(campaign_id: str, emails: list[str]) -> dict:
    return _request("POST", f"/campaigns/{campaign_id}/actions/test", {"test_emails": emails, "send_type": "html"})


def send_campaign(campaign_id: str) -> dict:
    return _request("POST", f"/campaigns/{campaign_id}/actions/send")


def schedule_campaign(campaign_id: str, schedule_time: str) -> dict:
    return _request("POST", f"/campaigns/{campaign_id}/actions/schedule", {"schedule_time": schedule_time})


def delete_campaign(campaign_id: str) -> dict:
    return _request("DELETE", f"/campaigns/{campaign_id}")


def list_campaigns(count: int = 10) -> dict:
    return _request("GET", "/campaigns", params={"count": count, "sort_field": "create_time", "sort_dir": "DESC"})


def list_segments() -> dict:
    return _request("GET", f"/lists/{current_app.config['MAILCHIMP_LIST_ID']}/segments")
