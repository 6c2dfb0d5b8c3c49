from __future__ import annotations

import json
from unittest.mock import AsyncMock, patch

import pytest

from app.services.employee_service import MissingIndexError, PermissionDeniedError
from tests.fakes import STORAGE_BASE_URL, employee_doc, make_image_bytes, update_form_data


def _seed(store, count: int, **overrides) -> None:
    for i in range(1, count + 1):
        doc = employee_doc(i, **overrides)
        store.docs[doc["id"]] = doc


def test_directory_requires_authentication(public_client):
    response = public_client.get("/api/v1/employees")
    assert response.status_code == 401


def test_directory_requires_admin_role(guard_client):
    response = guard_client.get("/api/v1/employees")
    assert response.status_code == 403


def test_directory_first_page(admin_client, fake_store):
    _seed(fake_store, 25)

    response = admin_client.get("/api/v1/employees")

    assert response.status_code == 200
    data = response.json()
    assert data["mode"] == "listing"
    assert data["page"] == 1
    assert data["pageSize"] == 10
    assert data["hasNext"] is True
    assert data["hasPrevious"] is False
    assert len(data["items"]) == 10
    assert data["items"][0]["id"] == "emp-025"
    assert data["items"][0]["fullName"] == "Guard25 Kumar"
    assert data["nextCursor"]


def test_directory_follows_cursor(admin_client, fake_store):
    _seed(fake_store, 25)

    first = admin_client.get("/api/v1/employees").json()
    second = admin_client.get("/api/v1/employees", params={"page": 2, "cursor": first["nextCursor"]}).json()

    first_ids = {item["id"] for item in first["items"]}
    second_ids = {item["id"] for item in second["items"]}
    assert len(second_ids) == 10
    assert not first_ids & second_ids
    assert second["hasPrevious"] is True


def test_directory_filters(admin_client, fake_store):
    _seed(fake_store, 3)
    fake_store.docs["emp-002"]["status"] = "Exited"

    data = admin_client.get("/api/v1/employees", params={"status": "Exited", "client": "TCS"}).json()

    assert [item["id"] for item in data["items"]] == ["emp-002"]
    assert fake_store.queries[-1].equalities == {"status": "Exited", "clientName": "TCS"}


def test_directory_search_mode(admin_client, fake_store):
    _seed(fake_store, 3)

    data = admin_client.get("/api/v1/employees", params={"search": "guard2"}).json()

    assert data["mode"] == "search"
    assert data["totalMatches"] == 1
    assert data["items"][0]["id"] == "emp-002"


def test_directory_invalid_cursor_is_400(admin_client):
    response = admin_client.get("/api/v1/employees", params={"cursor": "%%%"})
    assert response.status_code == 400


def test_directory_invalid_status_is_422(admin_client):
    response = admin_client.get("/api/v1/employees", params={"status": "Retired"})
    assert response.status_code == 422


def test_directory_missing_index_is_409(admin_client, fake_store):
    fake_store.query = AsyncMock(side_effect=MissingIndexError("The database needs a composite index"))
    response = admin_client.get("/api/v1/employees")
    assert response.status_code == 409
    assert "composite index" in response.json()["detail"]


def test_directory_permission_denied_is_403(admin_client, fake_store):
    fake_store.query = AsyncMock(side_effect=PermissionDeniedError("Permission denied"))
    assert admin_client.get("/api/v1/employees").status_code == 403


def test_directory_store_not_configured_is_503(authenticated_client):
    # No store override: the real singleton has no Cosmos DB credentials.
    response = authenticated_client.get("/api/v1/employees")
    assert response.status_code == 503


def test_unexpected_error_is_generic_500(admin_client, fake_store):
    fake_store.query = AsyncMock(side_effect=RuntimeError("socket closed"))
    response = admin_client.get("/api/v1/employees")
    assert response.status_code == 500
    assert response.json()["detail"] == "Failed to retrieve employees"


def test_get_employee(admin_client, fake_store):
    _seed(fake_store, 1)

    response = admin_client.get("/api/v1/employees/emp-001")

    assert response.status_code == 200
    data = response.json()
    assert data["employeeId"] == "CISS/TCS/2024-25/001"
    assert data["joiningDate"] == "2024-06-01"


def test_get_unknown_employee_is_404(admin_client):
    response = admin_client.get("/api/v1/employees/nope")
    assert response.status_code == 404


def test_edit_form(admin_client, fake_store):
    _seed(fake_store, 1)

    data = admin_client.get("/api/v1/employees/emp-001/edit-form").json()

    assert data["firstName"] == "Guard1"
    assert data["panNumber"] == ""


def test_update_without_changes(admin_client, fake_store):
    _seed(fake_store, 1)
    payload = update_form_data(fake_store.docs["emp-001"])

    response = admin_client.patch("/api/v1/employees/emp-001", data={"payload": json.dumps(payload)})

    assert response.status_code == 200
    assert response.json()["message"] == "No changes"
    assert fake_store.patches == []


def test_update_with_document(admin_client, fake_store, fake_storage):
    _seed(fake_store, 1)
    payload = update_form_data(fake_store.docs["emp-001"], district="Kollam")

    response = admin_client.patch(
        "/api/v1/employees/emp-001",
        data={"payload": json.dumps(payload)},
        files={"signature": ("sig.png", make_image_bytes(), "image/png")},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["changedFields"] == ["district", "signatureUrl"]
    assert fake_store.docs["emp-001"]["district"] == "Kollam"
    assert fake_store.docs["emp-001"]["signatureUrl"].startswith(STORAGE_BASE_URL)


def test_update_rejects_oversized_document(admin_client, fake_store, fake_storage):
    _seed(fake_store, 1)
    payload = update_form_data(fake_store.docs["emp-001"])

    response = admin_client.patch(
        "/api/v1/employees/emp-001",
        data={"payload": json.dumps(payload)},
        files={"signature": ("sig.jpg", b"\xff" * (5 * 1024 * 1024 + 1), "image/jpeg")},
    )

    assert response.status_code == 400
    assert "too large" in response.json()["detail"]
    assert fake_storage.uploads == []


def test_update_invalid_payload_is_422(admin_client, fake_store):
    _seed(fake_store, 1)
    payload = update_form_data(fake_store.docs["emp-001"], status="Exited")

    response = admin_client.patch("/api/v1/employees/emp-001", data={"payload": json.dumps(payload)})

    assert response.status_code == 422


def test_update_missing_payload_is_422(admin_client):
    response = admin_client.patch("/api/v1/employees/emp-001", data={"other": "x"})
    assert response.status_code == 422


def test_status_change_to_exited(admin_client, fake_store):
    _seed(fake_store, 1)

    response = admin_client.patch(
        "/api/v1/employees/emp-001/status",
        json={"status": "Exited", "exitDate": "2024-09-30"},
    )

    assert response.status_code == 200
    assert response.json()["exitDate"] == "2024-09-30"


def test_status_change_exited_without_date_is_400(admin_client, fake_store):
    _seed(fake_store, 1)

    response = admin_client.patch("/api/v1/employees/emp-001/status", json={"status": "Exited"})

    assert response.status_code == 400
    assert fake_store.patches == []


def test_delete_employee(admin_client, fake_store, fake_storage):
    _seed(fake_store, 1, profilePictureUrl=STORAGE_BASE_URL + "p.jpg")

    response = admin_client.delete("/api/v1/employees/emp-001")

    assert response.status_code == 200
    assert response.json()["warnings"] == []
    assert fake_store.docs == {}
    assert fake_storage.deleted == [STORAGE_BASE_URL + "p.jpg"]


def test_delete_employee_with_storage_failure_warns(admin_client, fake_store, fake_storage):
    _seed(fake_store, 1, profilePictureUrl=STORAGE_BASE_URL + "p.jpg")
    fake_storage.delete_errors[STORAGE_BASE_URL + "p.jpg"] = RuntimeError("denied")

    response = admin_client.delete("/api/v1/employees/emp-001")

    assert response.status_code == 200
    assert len(response.json()["warnings"]) == 1
    assert fake_store.docs == {}


def test_delete_unknown_employee_is_404(admin_client):
    assert admin_client.delete("/api/v1/employees/nope").status_code == 404


def test_regenerate_qr(admin_client, fake_store):
    _seed(fake_store, 1)

    response = admin_client.post("/api/v1/employees/emp-001/qr")

    assert response.status_code == 200
    assert response.json()["qrCodeUrl"].startswith("data:image/png;base64,")


def test_regenerate_employee_id(admin_client, fake_store):
    _seed(fake_store, 1)

    with patch("app.services.employee_id.random.randint", return_value=555):
        response = admin_client.post("/api/v1/employees/emp-001/employee-id")

    assert response.status_code == 200
    assert response.json()["employeeId"].endswith("/555")


def test_profile_kit_download(admin_client, fake_store):
    _seed(fake_store, 1)

    response = admin_client.get("/api/v1/employees/emp-001/profile-kit")

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert "Guard1%20Kumar_Profile_Kit.pdf" in response.headers["content-disposition"]
    assert response.content.startswith(b"%PDF")


def test_profile_kit_broken_photo_is_500(admin_client, fake_store):
    _seed(fake_store, 1, profilePictureUrl=STORAGE_BASE_URL + "missing.jpg")

    response = admin_client.get("/api/v1/employees/emp-001/profile-kit")

    assert response.status_code == 500
    assert "profile picture" in response.json()["detail"]


@pytest.mark.parametrize(
    ("method", "path"),
    [
        ("get", "/api/v1/employees/emp-001"),
        ("delete", "/api/v1/employees/emp-001"),
        ("post", "/api/v1/employees/emp-001/qr"),
        ("get", "/api/v1/employees/emp-001/profile-kit"),
        ("get", "/api/v1/employees/export"),
    ],
)
def test_admin_routes_reject_anonymous(public_client, method, path):
    assert getattr(public_client, method)(path).status_code == 401
