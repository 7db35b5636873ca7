"""HTTP tests for /api/appointments."""

import pytest


def _create(client, headers, pet, service, start="09:00", day="2024-03-10", **extra):
    body = {
        "pet_id": pet.id,
        "service_id": service.id,
        "appointment_date": day,
        "start_time": start,
        **extra,
    }
    return client.post("/api/appointments", json=body, headers=headers)


class TestCreate:

    def test_bath_scenario(self, client, owner_headers_a, large_pet, bath_service):
        resp = _create(client, owner_headers_a, large_pet, bath_service)

        assert resp.status_code == 201
        data = resp.json
        assert data["start_time"] == "09:00"
        assert data["end_time"] == "10:00"
        assert data["price_cents"] == 5000
        assert data["status"] == "pending"

    def test_conflict_returns_409(self, client, owner_headers_a, large_pet, small_pet, bath_service):
        first = _create(client, owner_headers_a, large_pet, bath_service).json

        resp = _create(client, owner_headers_a, small_pet, bath_service, start="09:30")

        assert resp.status_code == 409
        assert resp.json["code"] == "slot_conflict"
        assert resp.json["details"]["conflicting_appointment_ids"] == [first["id"]]

    def test_missing_fields(self, client, owner_headers_a):
        resp = client.post("/api/appointments", json={"pet_id": 1}, headers=owner_headers_a)

        assert resp.status_code == 400
        assert resp.json["details"]["fields"] == ["appointment_date", "service_id", "start_time"]

    def test_bad_time(self, client, owner_headers_a, large_pet, bath_service):
        resp = _create(client, owner_headers_a, large_pet, bath_service, start="9 o'clock")
        assert resp.status_code == 400

    def test_foreign_pet(self, client, owner_headers_a, pet_b, bath_service):
        resp = _create(client, owner_headers_a, pet_b, bath_service)
        assert resp.status_code == 404

    def test_requires_auth(self, client, db_session):
        assert client.post("/api/appointments", json={}).status_code == 401


class TestLifecycle:

    def test_confirm_complete_and_reject(self, client, owner_headers_a, large_pet, bath_service):
        appt = _create(client, owner_headers_a, large_pet, bath_service).json
        url = f"/api/appointments/{appt['id']}/status"

        assert client.post(url, json={"status": "confirmed"}, headers=owner_headers_a).status_code == 200
        assert client.post(url, json={"status": "completed"}, headers=owner_headers_a).json["status"] == "completed"

        resp = client.post(url, json={"status": "cancelled"}, headers=owner_headers_a)
        assert resp.status_code == 409
        assert resp.json["code"] == "invalid_transition"

    def test_status_required(self, client, owner_headers_a, large_pet, bath_service):
        appt = _create(client, owner_headers_a, large_pet, bath_service).json
        resp = client.post(f"/api/appointments/{appt['id']}/status", json={}, headers=owner_headers_a)
        assert resp.status_code == 400

    def test_reschedule(self, client, owner_headers_a, large_pet, bath_service):
        appt = _create(client, owner_headers_a, large_pet, bath_service).json

        resp = client.post(
            f"/api/appointments/{appt['id']}/reschedule",
            json={"appointment_date": "2024-03-10", "start_time": "23:30"},
            headers=owner_headers_a,
        )

        assert resp.status_code == 200
        assert resp.json["end_time"] == "00:30"
        assert resp.json["ends_next_day"] is True

    def test_get_and_list(self, client, owner_headers_a, large_pet, bath_service):
        appt = _create(client, owner_headers_a, large_pet, bath_service).json

        assert client.get(f"/api/appointments/{appt['id']}", headers=owner_headers_a).json["id"] == appt["id"]

        listing = client.get("/api/appointments?date=2024-03-10", headers=owner_headers_a).json
        assert listing["count"] == 1

        empty = client.get("/api/appointments?date=2024-03-11", headers=owner_headers_a).json
        assert empty["count"] == 0

    def test_list_bad_status(self, client, owner_headers_a):
        resp = client.get("/api/appointments?status=lost", headers=owner_headers_a)
        assert resp.status_code == 400


class TestSlots:

    def test_slots(self, client, owner_headers_a, large_pet, bath_service):
        _create(client, owner_headers_a, large_pet, bath_service, start="09:00")

        resp = client.get(
            f"/api/appointments/slots?service_id={bath_service.id}&date=2024-03-10"
            "&opens_at=08:00&closes_at=11:00&step=60",
            headers=owner_headers_a,
        )

        assert resp.status_code == 200
        assert resp.json["slots"] == ["08:00", "10:00"]

    def test_slots_need_service(self, client, owner_headers_a):
        resp = client.get("/api/appointments/slots?date=2024-03-10", headers=owner_headers_a)
        assert resp.status_code == 400


class TestMalformedIds:

    @pytest.mark.parametrize("bad", [[1, 2], {"x": 1}, "abc", 1.5, True])
    def test_pet_id(self, client, owner_headers_a, bath_service, bad):
        body = {
            "pet_id": bad,
            "service_id": bath_service.id,
            "appointment_date": "2024-03-10",
            "start_time": "09:00",
        }
        resp = client.post("/api/appointments", json=body, headers=owner_headers_a)

        assert resp.status_code == 400
        assert resp.json["code"] == "validation_error"
        assert "pet_id" in resp.json["error"]

    @pytest.mark.parametrize("field", ["service_id", "customer_id"])
    def test_other_ids(self, client, owner_headers_a, large_pet, bath_service, field):
        resp = _create(client, owner_headers_a, large_pet, bath_service, **{field: [1, 2]})

        assert resp.status_code == 400
        assert field in resp.json["error"]

    def test_numeric_string_is_accepted(self, client, owner_headers_a, large_pet, bath_service):
        body = {
            "pet_id": str(large_pet.id),
            "service_id": str(bath_service.id),
            "appointment_date": "2024-03-10",
            "start_time": "09:00",
        }
        resp = client.post("/api/appointments", json=body, headers=owner_headers_a)

        assert resp.status_code == 201
        assert resp.json["pet_id"] == large_pet.id
