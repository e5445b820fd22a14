"""End-to-end booking flows over HTTP."""

from datetime import time, timedelta

from conftest import _upcoming


def _book(client, headers, slot_id, name="Ada Lovelace"):
    return client.post(
        "/api/v1/bookings",
        json={"slot_id": slot_id, "customer_name": name, "customer_email": "ada@example.com"},
        headers=headers,
    )


def _slot(client, headers, slot_id):
    response = client.get(f"/api/v1/slots/{slot_id}", headers=headers)
    assert response.status_code == 200
    return response.json()


def _consultant(client, admin_headers):
    response = client.post(
        "/api/v1/consultants",
        json={"name": "Sam Carter", "email": "sam@example.com", "timezone": "UTC"},
        headers=admin_headers,
    )
    assert response.status_code == 201
    return response.json()["id"]


def test_generate_book_cancel_rebook(client, admin_headers, customer_headers, other_customer_headers):
    consultant_id = _consultant(client, admin_headers)
    monday = _upcoming(weekday=0)

    window = client.post(
        "/api/v1/availability",
        json={
            "consultant_id": consultant_id,
            "day_of_week": 0,
            "start_time": "09:00:00",
            "end_time": "17:00:00",
        },
        headers=admin_headers,
    )
    assert window.status_code == 201

    generated = client.post(
        "/api/v1/slots/generate",
        json={
            "availability_id": window.json()["id"],
            "date_from": monday.isoformat(),
            "date_to": (monday + timedelta(days=6)).isoformat(),
            "slot_duration": 60,
        },
        headers=admin_headers,
    )
    assert generated.status_code == 201
    slots = generated.json()["created"]
    assert len(slots) == 8
    first = slots[0]["id"]

    booking = _book(client, customer_headers, first)
    assert booking.status_code == 201
    booking_id = booking.json()["id"]

    second = _book(client, other_customer_headers, first, name="Grace Hopper")
    assert second.status_code == 409
    assert second.json()["detail"]["code"] == "SLOT_UNAVAILABLE"

    cancelled = client.post(
        f"/api/v1/bookings/{booking_id}/cancel",
        json={"reason": "Change of plans"},
        headers=customer_headers,
    )
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "CANCELLED"
    assert _slot(client, customer_headers, first)["is_available"] is True

    rebooked = _book(client, other_customer_headers, first, name="Grace Hopper")
    assert rebooked.status_code == 201
    assert rebooked.json()["slot_id"] == first


def test_reschedule_swaps_slot_occupancy(client, admin_headers, customer_headers):
    consultant_id = _consultant(client, admin_headers)
    day = _upcoming()
    created = client.post(
        "/api/v1/slots/bulk",
        json={
            "consultant_id": consultant_id,
            "slots": [
                {"date": day.isoformat(), "start_time": "10:00:00", "end_time": "11:00:00"},
                {"date": day.isoformat(), "start_time": "11:00:00", "end_time": "12:00:00"},
            ],
        },
        headers=admin_headers,
    )
    assert created.status_code == 201
    slot_1, slot_2 = (slot["id"] for slot in created.json())

    booking_id = _book(client, customer_headers, slot_1).json()["id"]
    moved = client.post(
        f"/api/v1/bookings/{booking_id}/reschedule",
        json={"new_slot_id": slot_2, "reason": "Running late"},
        headers=customer_headers,
    )
    assert moved.status_code == 200
    assert moved.json()["slot_id"] == slot_2
    assert moved.json()["rescheduled_from_slot_id"] == slot_1

    assert _slot(client, customer_headers, slot_1)["is_available"] is True
    assert _slot(client, customer_headers, slot_2)["is_available"] is False

    history = client.get(
        "/api/v1/reschedules", params={"booking_id": booking_id}, headers=customer_headers
    )
    assert history.status_code == 200
    assert history.json()["meta"]["total"] == 1
    assert history.json()["data"][0]["reason"] == "Running late"


def test_overlapping_bulk_batch_creates_nothing(client, admin_headers):
    consultant_id = _consultant(client, admin_headers)
    day = _upcoming().isoformat()
    response = client.post(
        "/api/v1/slots/bulk",
        json={
            "consultant_id": consultant_id,
            "slots": [
                {"date": day, "start_time": "09:00:00", "end_time": "10:00:00"},
                {"date": day, "start_time": "09:30:00", "end_time": "10:30:00"},
            ],
        },
        headers=admin_headers,
    )
    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "SLOT_OVERLAP"

    listing = client.get(
        "/api/v1/slots", params={"consultant_id": consultant_id}, headers=admin_headers
    )
    assert listing.json()["meta"]["total"] == 0
