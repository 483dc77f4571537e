"""Tests for equipment CRUD, search, images and popularity."""

from __future__ import annotations

from io import BytesIO

import pytest

from models import db
from models.equipment import Equipment
from models.saved_equipment import SavedEquipment

EQUIPMENT = {
    "name": "Portable Ultrasound",
    "description": "Handheld ultrasound scanner.",
    "category": "Imaging",
    "specification": "128 elements, 3.5 MHz",
    "use_cases": "Point-of-care diagnostics.",
    "tags": ["ultrasound", "portable"],
}

PNG = b"\x89PNG\r\n\x1a\n" + b"0" * 64


def _png(name: str = "scan.png"):
    return (BytesIO(PNG), name, "image/png")


@pytest.fixture()
def admin_headers(make_user, auth_headers):
    return auth_headers(make_user("admin@example.com", role="admin"))


@pytest.fixture()
def user_headers(make_user, auth_headers):
    return auth_headers(make_user("member@example.com"))


def _create(client, headers, **overrides):
    response = client.post("/api/equipment", json={**EQUIPMENT, **overrides}, headers=headers)
    assert response.status_code == 201, response.get_json()
    return response.get_json()


def test_admin_creates_equipment_from_json(client, admin_headers):
    created = _create(client, admin_headers)

    assert created["name"] == "Portable Ultrasound"
    assert created["tags"] == ["ultrasound", "portable"]
    assert created["images"] == []
    assert created["save_count"] == 0
    assert created["owner"]["email"] == "admin@example.com"


def test_create_with_multipart_images(app, client, admin_headers):
    response = client.post(
        "/api/equipment",
        data={
            "name": "ECG Monitor",
            "description": "12-lead ECG.",
            "category": "Cardiology",
            "useCases": "Ward monitoring.",
            "tags": ["ecg", "monitor", "ecg"],
            "images": [_png("front.png"), (BytesIO(PNG), "side.jpg", "image/jpeg")],
        },
        headers=admin_headers,
        content_type="multipart/form-data",
    )

    assert response.status_code == 201
    created = response.get_json()
    assert created["use_cases"] == "Ward monitoring."
    assert created["tags"] == ["ecg", "monitor"]
    assert len(created["images"]) == 2
    assert created["images"][0].startswith("/uploads/equipment/")
    assert created["images"][0].endswith(".png")
    assert created["images"][1].endswith(".jpg")

    storage = app.extensions["blob_storage"]
    stored = sorted(p.name for p in (storage.base_directory / "equipment").iterdir())
    assert len(stored) == 2
    assert client.get(created["images"][0]).data == PNG


@pytest.mark.parametrize(
    "image",
    [
        (BytesIO(b"GIF89a"), "anim.gif", "image/gif"),
        (BytesIO(b"%PDF"), "scan.pdf", "application/pdf"),
        (BytesIO(PNG), "scan.png", "application/octet-stream"),
        (BytesIO(b"0" * (5 * 1024 * 1024 + 1)), "huge.png", "image/png"),
    ],
)
def test_create_rejects_invalid_images(app, client, admin_headers, image):
    response = client.post(
        "/api/equipment",
        data={**{k: v for k, v in EQUIPMENT.items() if k != "tags"}, "images": [image]},
        headers=admin_headers,
        content_type="multipart/form-data",
    )

    assert response.status_code == 400
    with app.app_context():
        assert Equipment.query.count() == 0


def test_create_requires_fields(client, admin_headers):
    response = client.post(
        "/api/equipment", json={"name": "Only a name"}, headers=admin_headers
    )
    assert response.status_code == 400
    assert "description is required" in response.get_json()["detail"]


def test_non_admin_cannot_modify_equipment(client, admin_headers, user_headers):
    created = _create(client, admin_headers)
    url = f"/api/equipment/{created['id']}"

    assert client.post("/api/equipment", json=EQUIPMENT, headers=user_headers).status_code == 403
    assert client.put(url, json={"name": "Hacked"}, headers=user_headers).status_code == 403
    assert client.delete(url, headers=user_headers).status_code == 403

    assert client.post("/api/equipment", json=EQUIPMENT).status_code == 401
    assert client.get(url).get_json()["name"] == "Portable Ultrasound"


def test_super_can_manage_equipment(client, make_user, auth_headers):
    headers = auth_headers(make_user("root@example.com", role="super"))
    created = _create(client, headers)

    assert client.delete(f"/api/equipment/{created['id']}", headers=headers).status_code == 204


def test_get_equipment(client, admin_headers):
    created = _create(client, admin_headers)

    response = client.get(f"/api/equipment/{created['id']}")
    assert response.status_code == 200
    assert response.get_json()["owner"]["firstname"] == "Test"

    assert client.get("/api/equipment/4040").status_code == 404


def test_update_equipment(client, admin_headers):
    created = _create(client, admin_headers)

    response = client.put(
        f"/api/equipment/{created['id']}",
        json={"name": "Ultrasound Pro", "tags": "doppler, portable"},
        headers=admin_headers,
    )

    assert response.status_code == 200
    updated = response.get_json()
    assert updated["name"] == "Ultrasound Pro"
    assert updated["category"] == "Imaging"
    assert updated["tags"] == ["doppler", "portable"]

    assert (
        client.put(f"/api/equipment/{created['id']}", json={"name": ""}, headers=admin_headers).status_code
        == 400
    )
    assert client.put("/api/equipment/999", json={"name": "x"}, headers=admin_headers).status_code == 404


def test_update_replaces_images(app, client, admin_headers):
    first = client.post(
        "/api/equipment",
        data={**{k: v for k, v in EQUIPMENT.items() if k != "tags"}, "images": [_png("old.png")]},
        headers=admin_headers,
        content_type="multipart/form-data",
    ).get_json()

    response = client.put(
        f"/api/equipment/{first['id']}",
        data={"images": [_png("new.png")]},
        headers=admin_headers,
        content_type="multipart/form-data",
    )

    assert response.status_code == 200
    images = response.get_json()["images"]
    assert len(images) == 1
    assert images != first["images"]
    storage = app.extensions["blob_storage"]
    assert len(list((storage.base_directory / "equipment").iterdir())) == 1


def test_delete_equipment_clears_saved_lists(app, client, admin_headers, make_user, auth_headers):
    created = _create(client, admin_headers)
    other = _create(client, admin_headers, name="Defibrillator")
    member = auth_headers(make_user("saver@example.com"))
    client.put(f"/api/equipment/save/{created['id']}", headers=member)
    client.put(f"/api/equipment/save/{other['id']}", headers=member)

    response = client.delete(f"/api/equipment/{created['id']}", headers=admin_headers)

    assert response.status_code == 204
    assert client.get(f"/api/equipment/{created['id']}").status_code == 404
    with app.app_context():
        saved = SavedEquipment.query.one()
        assert saved.equipment_ids == [other["id"]]
        assert db.session.get(Equipment, other["id"]).save_count == 1
    assert client.delete(f"/api/equipment/{created['id']}", headers=admin_headers).status_code == 404


def test_search_filters(client, admin_headers):
    _create(client, admin_headers, name="Portable Ultrasound", category="Imaging")
    _create(client, admin_headers, name="MRI Scanner", category="Imaging")
    _create(client, admin_headers, name="Infusion Pump", category="Therapy")
    _create(client, admin_headers, name="100% Oxygen Mask", category="Respiratory")

    def names(query):
        response = client.get(f"/api/equipment{query}")
        assert response.status_code == 200
        return sorted(item["name"] for item in response.get_json()["results"])

    assert len(names("")) == 4
    assert names("?name=ULTRA") == ["Portable Ultrasound"]
    assert names("?category=imag") == ["MRI Scanner", "Portable Ultrasound"]
    assert names("?searchTerm=therapy") == ["Infusion Pump"]
    assert names("?searchTerm=scan") == ["MRI Scanner"]
    assert names("?q=pump") == ["Infusion Pump"]
    assert names("?name=scanner&category=therapy") == []
    assert names("?name=100%25") == ["100% Oxygen Mask"]
    assert names("?name=%25") == ["100% Oxygen Mask"]


def test_popular_ranks_by_save_count(client, admin_headers, make_user, auth_headers):
    low = _create(client, admin_headers, name="Low")
    high = _create(client, admin_headers, name="High")
    _create(client, admin_headers, name="None")

    for index in range(3):
        headers = auth_headers(make_user(f"fan{index}@example.com"))
        client.put(f"/api/equipment/save/{high['id']}", headers=headers)
        if index == 0:
            client.put(f"/api/equipment/save/{low['id']}", headers=headers)

    response = client.get("/api/equipment/popular")
    assert response.status_code == 200
    results = response.get_json()["results"]
    assert [item["name"] for item in results[:2]] == ["High", "Low"]
    assert results[0]["save_count"] == 3

    limited = client.get("/api/equipment/popular?limit=1").get_json()
    assert [item["name"] for item in limited["results"]] == ["High"]
    assert client.get("/api/equipment/popular?limit=0").status_code == 400


def test_equipment_owner_is_persisted(app, client, admin_headers):
    created = _create(client, admin_headers)
    with app.app_context():
        equipment = db.session.get(Equipment, created["id"])
        assert equipment.owner.email == "admin@example.com"


def test_delete_equipment_leaves_unrelated_lists_alone(app, client, admin_headers, make_user, auth_headers):
    doomed = _create(client, admin_headers)
    kept = _create(client, admin_headers, name="Infusion Pump")
    first = auth_headers(make_user("first@example.com"))
    second = auth_headers(make_user("second@example.com"))
    client.put(f"/api/equipment/save/{doomed['id']}", headers=first)
    client.put(f"/api/equipment/save/{kept['id']}", headers=first)
    client.put(f"/api/equipment/save/{kept['id']}", headers=second)

    assert client.delete(f"/api/equipment/{doomed['id']}", headers=admin_headers).status_code == 204

    assert client.get("/api/equipment/view/saved", headers=first).get_json()["count"] == 1
    second_list = client.get("/api/equipment/view/saved", headers=second).get_json()
    assert [item["id"] for item in second_list["results"]] == [kept["id"]]
    with app.app_context():
        assert db.session.get(Equipment, kept["id"]).save_count == 2
