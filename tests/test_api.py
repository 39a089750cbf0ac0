"""HTTP endpoints through FastAPI's TestClient."""
import pytest
from fastapi.testclient import TestClient

import main
from config import settings


@pytest.fixture
def client():
    main.engine.reset()
    yield TestClient(main.app)
    main.engine.reset()


@pytest.fixture
def sharma(client):
    """Dr. Sharma with two single-seat slots."""
    client.post("/doctors", json={"name": "Sharma"})
    client.post("/doctors/Sharma/slots", json={"start": "9:00 AM", "end": "10:00 AM", "capacity": 1})
    client.post("/doctors/Sharma/slots", json={"start": "10:00 AM", "end": "11:00 AM", "capacity": 1})
    return "Sharma"


def book(client, patient, token_type, slot=0, doctor="Sharma"):
    return client.post(
        "/tokens",
        json={"doctor": doctor, "slot": slot, "patient": patient, "type": token_type},
    )


def test_create_and_list_doctors(client):
    resp = client.post("/doctors", json={"name": "Sharma"})
    assert resp.status_code == 201
    assert resp.json() == {"name": "Sharma"}

    resp = client.get("/doctors")
    assert resp.status_code == 200
    assert resp.json() == [
        {"name": "Sharma", "slots": [], "waiting_count": 0, "waiting_list": []}
    ]


def test_duplicate_doctor_conflicts(client):
    client.post("/doctors", json={"name": "Sharma"})

    resp = client.post("/doctors", json={"name": "Sharma"})

    assert resp.status_code == 409


def test_add_slot_uses_default_capacity(client):
    client.post("/doctors", json={"name": "Gupta"})

    resp = client.post("/doctors/Gupta/slots", json={"start": "9:00 AM", "end": "10:00 AM"})

    assert resp.status_code == 201
    body = resp.json()
    assert body["capacity"] == settings.default_slot_capacity
    assert body["time"] == "9:00 AM - 10:00 AM"
    assert body["status"] == "EMPTY"


def test_add_slot_errors(client):
    resp = client.post("/doctors/Nobody/slots", json={"start": "9", "end": "10", "capacity": 2})
    assert resp.status_code == 404

    client.post("/doctors", json={"name": "Gupta"})
    resp = client.post("/doctors/Gupta/slots", json={"start": "9", "end": "10", "capacity": 0})
    assert resp.status_code == 422


def test_get_unknown_doctor(client):
    assert client.get("/doctors/Nobody").status_code == 404


def test_book_reports_slot_and_bumping(client, sharma):
    resp = book(client, "Priya", "ONLINE")
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["token"]["id"] == "T001"
    assert body["slot_index"] == 0
    assert body["waitlisted"] is False

    resp = book(client, "Critical", "EMERGENCY")
    assert resp.json()["slot_index"] == 0

    doctor = client.get("/doctors/Sharma").json()
    assert [t["patient_name"] for t in doctor["slots"][0]["tokens"]] == ["Critical"]
    assert [t["patient_name"] for t in doctor["slots"][1]["tokens"]] == ["Priya"]
    assert doctor["slots"][0]["status"] == "FULL"


def test_book_overflow_is_waitlisted(client, sharma):
    book(client, "Priya", "ONLINE")
    book(client, "Raj", "ONLINE")

    body = book(client, "Kavita", "ONLINE").json()

    assert body["waitlisted"] is True
    assert body["slot_index"] is None
    assert body["token"]["allocated_at"] is None
    doctor = client.get("/doctors/Sharma").json()
    assert doctor["waiting_count"] == 1
    assert [t["patient_name"] for t in doctor["waiting_list"]] == ["Kavita"]


def test_book_errors(client, sharma):
    assert book(client, "Test", "ONLINE", doctor="Nobody").status_code == 404
    assert book(client, "Test", "ONLINE", slot=5).status_code == 400
    assert book(client, "Test", "VIP").status_code == 422


def test_cancel_and_backfill(client, sharma):
    token_id = book(client, "Priya", "ONLINE").json()["token"]["id"]
    book(client, "Raj", "ONLINE")
    book(client, "Kavita", "ONLINE")

    resp = client.delete(f"/tokens/{token_id}", params={"doctor": "Sharma"})

    assert resp.json() == {"success": True}
    doctor = client.get("/doctors/Sharma").json()
    assert [t["patient_name"] for t in doctor["slots"][0]["tokens"]] == ["Kavita"]
    assert doctor["waiting_count"] == 0
    assert doctor["waiting_list"] == []


def test_cancel_unknown_token(client, sharma):
    resp = client.delete("/tokens/T999", params={"doctor": "Sharma"})
    assert resp.json() == {"success": False}

    resp = client.delete("/tokens/T999", params={"doctor": "Nobody"})
    assert resp.status_code == 404


def test_no_show(client, sharma):
    token_id = book(client, "Priya", "ONLINE").json()["token"]["id"]

    resp = client.put(f"/tokens/{token_id}/noshow", params={"doctor": "Sharma"})

    assert resp.json() == {"success": True}
    assert client.get("/doctors/Sharma").json()["slots"][0]["current"] == 0


def test_delay_slot(client, sharma):
    book(client, "Priya", "ONLINE")

    resp = client.put("/doctors/Sharma/delay/0")

    assert resp.status_code == 200
    slots = resp.json()["slots"]
    assert slots[0]["tokens"] == []
    assert [t["patient_name"] for t in slots[1]["tokens"]] == ["Priya"]

    assert client.put("/doctors/Sharma/delay/9").status_code == 400
    assert client.put("/doctors/Nobody/delay/0").status_code == 404


def test_admin_reset(client, sharma, monkeypatch):
    assert client.post("/admin/reset").json() == {"detail": "State cleared"}
    assert client.get("/doctors").json() == []

    monkeypatch.setattr(settings, "allow_admin_reset", False)
    assert client.post("/admin/reset").status_code == 403


def test_docs_page_uses_app_title(client):
    resp = client.get("/docs")
    assert resp.status_code == 200
    assert settings.app_title in resp.text
