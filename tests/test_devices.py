import uuid

from viking.api import app
from viking.auth import get_caller
from viking.security import Caller


def save_device(client, serial, brand="Samsung", model="Galaxy S21"):
    resp = client.post(
        "/device/save", json={"serialNumber": serial, "brand": brand, "model": model}
    )
    assert resp.status_code == 200, resp.text
    return resp.json()


def test_save_and_search_device(client):
    saved = save_device(client, "SN-001")
    assert saved["serialNumber"] == "SN-001"

    resp = client.get("/device/search", params={"query": "by-serial-number", "serialNumber": "SN-001"})
    assert resp.status_code == 200
    assert resp.json()["id"] == saved["id"]

    resp = client.get("/device/search", params={"query": "by-id", "id": saved["id"]})
    assert resp.json()["model"] == "Galaxy S21"


def test_search_devices_by_brand(client):
    save_device(client, "SN-001", brand="Samsung")
    save_device(client, "SN-002", brand="Samsung")
    save_device(client, "SN-003", brand="Motorola")

    resp = client.get("/device/search", params={"query": "by-brand", "brand": "Samsung"})
    assert resp.status_code == 200
    assert sorted(d["serialNumber"] for d in resp.json()) == ["SN-001", "SN-002"]

    resp = client.get("/device/search", params={"query": "ALL"})
    assert len(resp.json()) == 3


def test_device_search_errors(client):
    assert client.get("/device/search").status_code == 400
    assert client.get("/device/search", params={"query": "by-colour"}).status_code == 400

    resp = client.get("/device/search", params={"query": "by-brand"})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Brand is required for 'by-brand' query"

    resp = client.get("/device/search", params={"query": "by-serial-number", "serialNumber": "nope"})
    assert resp.status_code == 404


def test_save_device_requires_all_fields(client):
    resp = client.post("/device/save", json={"serialNumber": "SN-009", "brand": "Nokia"})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Serial number, brand, and model are required"


def test_save_device_rejects_duplicate_serial(client):
    save_device(client, "SN-001")

    resp = client.post(
        "/device/save", json={"serialNumber": "SN-001", "brand": "Apple", "model": "iPhone"}
    )
    assert resp.status_code == 400


def test_roles_search_and_save(client):
    resp = client.get("/api/role/search", params={"query": "all"})
    assert sorted(r["name"] for r in resp.json()) == ["admin", "client", "staff"]

    resp = client.post("/api/role/save", json={"name": "technician", "permission": "TECH"})
    assert resp.status_code == 200
    role_id = resp.json()["id"]

    resp = client.get("/api/role/search", params={"query": "by-id", "id": role_id})
    assert resp.json()["permission"] == "TECH"

    resp = client.post("/api/role/save", json={"name": "technician", "permission": "TECH"})
    assert resp.status_code == 400

    resp = client.get("/api/role/search", params={"query": "by-id", "id": str(uuid.uuid4())})
    assert resp.status_code == 404


def test_role_save_requires_admin(client):
    app.dependency_overrides[get_caller] = lambda: Caller(
        user_id=uuid.uuid4(), email="staff@viking.test", permission="STAFF"
    )
    resp = client.post("/api/role/save", json={"name": "intern", "permission": "NONE"})
    assert resp.status_code == 403


def test_diagnostic_points_by_work_order(client):
    for description in ("Cracked screen", "Battery swelling"):
        resp = client.post(
            "/api/diagnostic-point/save",
            json={"workOrderId": 12, "description": description},
        )
        assert resp.status_code == 200
    client.post("/api/diagnostic-point/save", json={"workOrderId": 13})

    resp = client.get("/api/diagnostic-point/search", params={"workOrderId": 12})
    assert resp.status_code == 200
    assert [p["description"] for p in resp.json()] == ["Cracked screen", "Battery swelling"]

    resp = client.get("/api/diagnostic-point/search", params={"workOrderId": 99})
    assert resp.json() == []


def test_diagnostic_point_requires_work_order(client):
    assert client.post("/api/diagnostic-point/save", json={"description": "x"}).status_code == 400
    assert client.get("/api/diagnostic-point/search").status_code == 400
