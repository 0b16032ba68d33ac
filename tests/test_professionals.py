"""Tests for the public professionals directory and its admin management."""
from __future__ import annotations

import pytest

from glamlink.extensions import db
from glamlink.models import Professional


@pytest.fixture
def professionals():
    rows = [
        Professional(name="Bella Brows", specialty="Brows", city="Austin", featured=True, sort_order=2),
        Professional(name="Ana Lashes", specialty="Lash Extensions", city="Dallas", sort_order=1),
        Professional(name="Hidden Pro", specialty="Brows", city="Austin", is_visible=False, sort_order=3),
    ]
    db.session.add_all(rows)
    db.session.commit()
    return rows


def test_list_professionals_only_visible_in_sort_order(client, professionals):
    response = client.get("/professionals")
    data = response.get_json()

    assert response.status_code == 200
    assert data["total"] == 2
    assert [p["name"] for p in data["professionals"]] == ["Ana Lashes", "Bella Brows"]


def test_list_professionals_filters(client, professionals):
    by_city = client.get("/professionals?city=austin").get_json()
    featured = client.get("/professionals?featured=true").get_json()
    search = client.get("/professionals?query=lash").get_json()

    assert [p["name"] for p in by_city["professionals"]] == ["Bella Brows"]
    assert [p["name"] for p in featured["professionals"]] == ["Bella Brows"]
    assert [p["name"] for p in search["professionals"]] == ["Ana Lashes"]


def test_get_hidden_professional_is_404(client, professionals):
    hidden = professionals[2]

    response = client.get(f"/professionals/{hidden.professional_id}")

    assert response.status_code == 404
    assert response.get_json()["error"] == "professional_not_found"


def test_create_professional_requires_admin(client, user_headers):
    response = client.post("/admin/professionals", json={"name": "New Pro"}, headers=user_headers)

    assert response.status_code == 403


def test_create_professional_appends_to_order(client, admin_headers, professionals):
    response = client.post(
        "/admin/professionals",
        json={"name": "New Pro", "specialties": ["Nails", " ", "Pedicure"], "years_experience": 4},
        headers=admin_headers,
    )
    data = response.get_json()

    assert response.status_code == 201
    assert data["professional"]["sort_order"] == 4
    assert data["professional"]["specialties"] == ["Nails", "Pedicure"]


def test_create_professional_missing_name(client, admin_headers):
    response = client.post("/admin/professionals", json={"title": "Stylist"}, headers=admin_headers)

    assert response.status_code == 400
    assert response.get_json()["message"] == "name is required"


def test_update_and_delete_professional(client, admin_headers, professionals):
    pro_id = professionals[0].professional_id

    update = client.put(f"/admin/professionals/{pro_id}", json={"rating": 4.5}, headers=admin_headers)
    assert update.status_code == 200
    assert update.get_json()["professional"]["rating"] == 4.5

    bad = client.put(f"/admin/professionals/{pro_id}", json={"rating": 9}, headers=admin_headers)
    assert bad.status_code == 400

    delete = client.delete(f"/admin/professionals/{pro_id}", headers=admin_headers)
    assert delete.status_code == 200
    assert Professional.query.get(pro_id) is None

    missing = client.delete(f"/admin/professionals/{pro_id}", headers=admin_headers)
    assert missing.status_code == 404


def test_reorder_professionals(client, admin_headers, professionals):
    ids = [p.professional_id for p in professionals]
    new_order = [ids[2], ids[0], ids[1]]

    response = client.post("/admin/professionals/reorder", json={"ids": new_order}, headers=admin_headers)

    assert response.status_code == 200
    assert [p["id"] for p in response.get_json()["professionals"]] == new_order
    assert Professional.query.get(ids[2]).sort_order == 1


def test_reorder_professionals_unknown_id(client, admin_headers, professionals):
    response = client.post("/admin/professionals/reorder", json={"ids": [999]}, headers=admin_headers)

    assert response.status_code == 400
    assert response.get_json()["error"] == "professional_not_found"


def test_batch_create_professionals(client, admin_headers):
    response = client.post(
        "/admin/professionals/batch",
        json={"professionals": [{"name": "One"}, {"name": "Two"}]},
        headers=admin_headers,
    )

    assert response.status_code == 201
    assert response.get_json()["created"] == 2
    assert Professional.query.count() == 2


def test_batch_create_rejects_entry_without_name(client, admin_headers):
    response = client.post(
        "/admin/professionals/batch",
        json={"professionals": [{"name": "One"}, {"title": "No name"}]},
        headers=admin_headers,
    )

    assert response.status_code == 400
    assert Professional.query.count() == 0
