"""HTTP tests for /api/v1/bookings and /api/v1/reschedules."""

from datetime import time

import pytest

from conftest import CUSTOMER_ID, OTHER_CUSTOMER_ID

MISSING_ID = "01HF4G12ABCDEF3456789XYZAB"


@pytest.fixture
def slots(consultant, upcoming, make_slot):
    day = upcoming()
    return [
        make_slot(consultant, day, time(9), time(10)),
        make_slot(consultant, day, time(10), time(11)),
    ]


def _book(client, headers, slot_id, **extra):
    body = {"slot_id": slot_id, "customer_name": "Ada Lovelace", "customer_email": "ada@example.com"}
    body.update(extra)
    return client.post("/api/v1/bookings", json=body, headers=headers)


def test_create_booking(client, customer_headers, slots):
    response = _book(client, customer_headers, slots[0].id)
    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "PENDING"
    assert body["customer_id"] == CUSTOMER_ID
    assert body["slot_id"] == slots[0].id
    assert body["appointment_type"] == "consultation"


def test_invalid_email_is_422(client, customer_headers, slots):
    response = _book(client, customer_headers, slots[0].id, customer_email="not-an-email")
    assert response.status_code == 422


def test_unknown_field_is_422(client, customer_headers, slots):
    response = _book(client, customer_headers, slots[0].id, priority="high")
    assert response.status_code == 422


def test_unknown_slot_is_404(client, customer_headers):
    response = _book(client, customer_headers, MISSING_ID)
    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "SLOT_NOT_FOUND"


def test_customer_cannot_book_for_other(client, customer_headers, slots):
    response = _book(client, customer_headers, slots[0].id, customer_id=OTHER_CUSTOMER_ID)
    assert response.status_code == 403


def test_list_only_shows_own_bookings(client, customer_headers, other_customer_headers, admin_headers, slots):
    _book(client, customer_headers, slots[0].id)
    _book(client, other_customer_headers, slots[1].id)

    mine = client.get("/api/v1/bookings", headers=customer_headers).json()
    assert mine["meta"]["total"] == 1
    assert mine["data"][0]["customer_id"] == CUSTOMER_ID

    # A customer asking for someone else's bookings still only sees their own
    spoofed = client.get(
        "/api/v1/bookings", params={"customer_id": OTHER_CUSTOMER_ID}, headers=customer_headers
    ).json()
    assert [b["customer_id"] for b in spoofed["data"]] == [CUSTOMER_ID]

    everything = client.get("/api/v1/bookings", params={"limit": 1}, headers=admin_headers).json()
    assert everything["meta"] == {"page": 1, "limit": 1, "total": 2, "totalPages": 2}


def test_get_booking_ownership(client, customer_headers, other_customer_headers, slots):
    booking_id = _book(client, customer_headers, slots[0].id).json()["id"]
    assert client.get(f"/api/v1/bookings/{booking_id}", headers=customer_headers).status_code == 200
    assert client.get(f"/api/v1/bookings/{booking_id}", headers=other_customer_headers).status_code == 403


def test_malformed_id_is_422(client, customer_headers):
    response = client.get("/api/v1/bookings/not-a-ulid", headers=customer_headers)
    assert response.status_code == 422


def test_cancel_twice(client, customer_headers, slots):
    booking_id = _book(client, customer_headers, slots[0].id).json()["id"]
    url = f"/api/v1/bookings/{booking_id}/cancel"

    first = client.post(url, json={"reason": "Change of plans"}, headers=customer_headers)
    assert first.status_code == 200
    assert first.json()["cancellation_reason"] == "Change of plans"

    second = client.post(url, json={"reason": "Change of plans"}, headers=customer_headers)
    assert second.status_code == 409
    assert second.json()["detail"]["code"] == "BOOKING_ALREADY_CANCELLED"


def test_cancel_requires_reason(client, customer_headers, slots):
    booking_id = _book(client, customer_headers, slots[0].id).json()["id"]
    response = client.post(
        f"/api/v1/bookings/{booking_id}/cancel", json={"reason": " "}, headers=customer_headers
    )
    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "REASON_REQUIRED"


def test_reschedule_to_taken_slot(client, customer_headers, other_customer_headers, slots):
    booking_id = _book(client, customer_headers, slots[0].id).json()["id"]
    _book(client, other_customer_headers, slots[1].id)

    response = client.post(
        f"/api/v1/bookings/{booking_id}/reschedule",
        json={"new_slot_id": slots[1].id, "reason": "Later please"},
        headers=customer_headers,
    )
    assert response.status_code == 409
    assert client.get(f"/api/v1/bookings/{booking_id}", headers=customer_headers).json()["slot_id"] == slots[0].id


def test_confirm_is_admin_only(client, customer_headers, admin_headers, slots):
    booking_id = _book(client, customer_headers, slots[0].id).json()["id"]
    url = f"/api/v1/bookings/{booking_id}/confirm"

    assert client.post(url, headers=customer_headers).status_code == 403
    confirmed = client.post(url, headers=admin_headers)
    assert confirmed.status_code == 200
    assert confirmed.json()["status"] == "CONFIRMED"
    assert client.post(url, headers=admin_headers).status_code == 409


def test_reschedule_history_visibility(client, customer_headers, other_customer_headers, slots):
    booking_id = _book(client, customer_headers, slots[0].id).json()["id"]
    client.post(
        f"/api/v1/bookings/{booking_id}/reschedule",
        json={"new_slot_id": slots[1].id, "reason": "Later please"},
        headers=customer_headers,
    )

    mine = client.get("/api/v1/reschedules", headers=customer_headers).json()
    assert mine["meta"]["total"] == 1
    reschedule_id = mine["data"][0]["id"]

    theirs = client.get("/api/v1/reschedules", headers=other_customer_headers).json()
    assert theirs["meta"]["total"] == 0

    assert client.get(f"/api/v1/reschedules/{reschedule_id}", headers=customer_headers).status_code == 200
    assert client.get(f"/api/v1/reschedules/{reschedule_id}", headers=other_customer_headers).status_code == 403
