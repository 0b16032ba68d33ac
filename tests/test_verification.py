"""Tests for business verification submissions and admin review."""
from __future__ import annotations

import copy

import pytest

from conftest import auth_headers
from glamlink.models import VerificationSubmission

VALID_VERIFICATION = {
    "businessInfo": {
        "businessName": "Glow Studio",
        "businessType": "salon",
        "businessAddress": "12 Main St",
        "city": "Austin",
        "state": "TX",
        "zipCode": "73301",
    },
    "ownerIdentity": {
        "ownerFullName": "Maya Lopez",
        "ownerIdFront": "https://cdn.example.com/id-front.jpg",
    },
    "businessDocs": {
        "businessLicense": "https://cdn.example.com/license.pdf",
    },
    "agreedToTerms": True,
}


def _payload(**changes) -> dict:
    payload = copy.deepcopy(VALID_VERIFICATION)
    for key, value in changes.items():
        payload[key] = value
    return payload


def _submit(client, headers, payload=None):
    return client.post("/verification/submit", json=payload or _payload(), headers=headers)


def test_status_not_submitted(client, user_headers):
    response = client.get("/verification/status", headers=user_headers)

    assert response.get_json() == {"status": "not_submitted"}


def test_submit_verification(client, user, user_headers):
    response = _submit(client, user_headers)
    submission = response.get_json()["submission"]

    assert response.status_code == 201
    assert submission["status"] == "pending"
    assert submission["user_id"] == user.user_id
    assert submission["business_info"]["city"] == "Austin"

    status = client.get("/verification/status", headers=user_headers).get_json()
    assert status["status"] == "pending"
    assert status["submission"]["id"] == submission["id"]


def test_submit_requires_auth(client):
    assert _submit(client, {}).status_code == 401


def test_step_one_errors(client, user_headers):
    payload = _payload()
    payload["businessInfo"]["city"] = "  "
    payload["businessInfo"]["zipCode"] = ""

    response = _submit(client, user_headers, payload)

    assert response.status_code == 400
    assert response.get_json()["message"] == "Step 1 has errors: City is required, ZIP code is required"


def test_step_two_errors(client, user_headers):
    response = _submit(client, user_headers, _payload(ownerIdentity={"ownerFullName": "Maya"}))

    assert response.get_json()["message"] == "Step 2 has errors: Government-issued ID (front) is required"


def test_step_three_errors(client, user_headers):
    response = _submit(client, user_headers, _payload(businessDocs={}))

    assert response.get_json()["message"].startswith("Step 3 has errors")


@pytest.mark.parametrize("agreed", [False, "yes", None])
def test_terms_must_be_accepted(client, user_headers, agreed):
    response = _submit(client, user_headers, _payload(agreedToTerms=agreed))

    assert response.status_code == 400
    assert response.get_json()["message"].startswith("Step 4 has errors")
    assert VerificationSubmission.query.count() == 0


def test_duplicate_pending_submission(client, user_headers):
    _submit(client, user_headers)

    response = _submit(client, user_headers)

    assert response.status_code == 409
    assert response.get_json()["error"] == "conflict"


def test_admin_lists_submissions_with_user(client, user, user_headers, admin_headers):
    _submit(client, user_headers)

    data = client.get("/admin/verification?status=pending", headers=admin_headers).get_json()

    assert data["pagination"]["total"] == 1
    assert data["submissions"][0]["user"]["email"] == user.email

    assert client.get("/admin/verification?status=unknown", headers=admin_headers).status_code == 400
    assert client.get("/admin/verification", headers=user_headers).status_code == 403


def test_reject_requires_reason(client, user_headers, admin_headers):
    submission_id = _submit(client, user_headers).get_json()["submission"]["id"]

    response = client.post(
        f"/admin/verification/{submission_id}/review", json={"status": "rejected"}, headers=admin_headers
    )

    assert response.status_code == 400
    assert response.get_json()["message"] == "A rejection reason is required"


def test_rejected_user_can_resubmit(client, user_headers, admin, admin_headers):
    submission_id = _submit(client, user_headers).get_json()["submission"]["id"]

    review = client.post(
        f"/admin/verification/{submission_id}/review",
        json={"status": "rejected", "notes": "License is blurry"},
        headers=admin_headers,
    )
    assert review.status_code == 200
    assert review.get_json()["submission"]["reviewed_by"] == admin.user_id
    assert review.get_json()["submission"]["review_notes"] == "License is blurry"

    again = _submit(client, user_headers)
    assert again.status_code == 201
    assert client.get("/verification/status", headers=user_headers).get_json()["submission"]["id"] == (
        again.get_json()["submission"]["id"]
    )


def test_approved_user_cannot_resubmit(client, make_user, admin_headers):
    owner = make_user("professional")
    headers = auth_headers(owner)
    submission_id = _submit(client, headers).get_json()["submission"]["id"]

    client.post(f"/admin/verification/{submission_id}/review", json={"status": "approved"}, headers=admin_headers)

    assert client.get("/verification/status", headers=headers).get_json()["status"] == "approved"
    assert _submit(client, headers).status_code == 409


def test_review_bad_status(client, admin_headers):
    response = client.post("/admin/verification/1/review", json={"status": "pending"}, headers=admin_headers)

    assert response.status_code == 400
