"""HTTP tests for /api/v1/slots."""

from datetime import time, timedelta

import pytest


@pytest.fixture
def day(upcoming):
    return upcoming()


def _slot_body(consultant_id, day, start="10:00:00", end="11:00:00"):
    return {"consultant_id": consultant_id, "date": day.isoformat(), "start_time": start, "end_time": end}


def test_create_and_read(client, admin_headers, customer_headers, consultant, day):
    created = client.post("/api/v1/slots", json=_slot_body(consultant.id, day), headers=admin_headers)
    assert created.status_code == 201
    slot_id = created.json()["id"]
    assert created.json()["duration"] == 60

    fetched = client.get(f"/api/v1/slots/{slot_id}", headers=customer_headers)
    assert fetched.status_code == 200
    assert fetched.json()["start_time"] == "10:00:00"


def test_overlap_is_409(client, admin_headers, consultant, day):
    client.post("/api/v1/slots", json=_slot_body(consultant.id, day), headers=admin_headers)
    response = client.post(
        "/api/v1/slots", json=_slot_body(consultant.id, day, "10:30:00", "11:30:00"), headers=admin_headers
    )
    assert response.status_code == 409
    detail = response.json()["detail"]
    assert detail["code"] == "SLOT_OVERLAP"
    assert detail["details"]["conflicting_slot"] == "10:00-11:00"


def test_inverted_range_is_400(client, admin_headers, consultant, day):
    response = client.post(
        "/api/v1/slots", json=_slot_body(consultant.id, day, "11:00:00", "10:00:00"), headers=admin_headers
    )
    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "INVALID_TIME_RANGE"


def test_beyond_window_is_400(client, admin_headers, consultant, day, test_settings):
    far = day + timedelta(days=test_settings.booking_window_days + 1)
    response = client.post("/api/v1/slots", json=_slot_body(consultant.id, far), headers=admin_headers)
    assert response.status_code == 400


def test_list_filters(client, admin_headers, customer_headers, consultant, make_consultant, day, make_slot):
    make_slot(consultant, day, time(9), time(10))
    make_slot(consultant, day, time(10), time(11), is_blocked=True, is_available=False)
    make_slot(make_consultant(), day, time(9), time(10))

    listing = client.get(
        "/api/v1/slots",
        params={"consultant_id": consultant.id, "available_only": "true"},
        headers=customer_headers,
    ).json()
    assert listing["meta"]["total"] == 1

    everything = client.get("/api/v1/slots", headers=customer_headers).json()
    assert everything["meta"]["total"] == 3


def test_delete_booked_slot_is_409(client, admin_headers, customer_headers, consultant, day, make_slot):
    slot = make_slot(consultant, day)
    client.post(
        "/api/v1/bookings",
        json={"slot_id": slot.id, "customer_name": "Ada", "customer_email": "ada@example.com"},
        headers=customer_headers,
    )

    response = client.delete(f"/api/v1/slots/{slot.id}", headers=admin_headers)
    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "SLOT_OCCUPIED"

    block = client.patch(f"/api/v1/slots/{slot.id}", json={"is_blocked": True}, headers=admin_headers)
    assert block.status_code == 409


def test_block_and_delete_free_slot(client, admin_headers, customer_headers, consultant, day, make_slot):
    slot = make_slot(consultant, day)
    blocked = client.patch(
        f"/api/v1/slots/{slot.id}",
        json={"is_blocked": True, "block_reason": "Maintenance"},
        headers=admin_headers,
    )
    assert blocked.status_code == 200
    assert blocked.json()["is_available"] is False

    booking = client.post(
        "/api/v1/bookings",
        json={"slot_id": slot.id, "customer_name": "Ada", "customer_email": "ada@example.com"},
        headers=customer_headers,
    )
    assert booking.status_code == 409

    deleted = client.delete(f"/api/v1/slots/{slot.id}", headers=admin_headers)
    assert deleted.status_code == 200
    assert deleted.json()["success"] is True
    assert client.get(f"/api/v1/slots/{slot.id}", headers=customer_headers).status_code == 404


def test_generate_rejects_large_range(client, admin_headers, consultant, day, make_availability, test_settings):
    window = make_availability(consultant, day_of_week=0)
    response = client.post(
        "/api/v1/slots/generate",
        json={
            "availability_id": window.id,
            "date_from": day.isoformat(),
            "date_to": (day + timedelta(days=test_settings.max_generation_days + 1)).isoformat(),
        },
        headers=admin_headers,
    )
    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "GENERATION_RANGE_TOO_LARGE"
