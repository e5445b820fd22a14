"""HTTP tests for /api/v1/availability and /api/v1/consultants."""


def _window(consultant_id, **extra):
    body = {"consultant_id": consultant_id, "day_of_week": 2, "start_time": "09:00:00", "end_time": "12:00:00"}
    body.update(extra)
    return body


def test_consultant_crud(client, admin_headers, customer_headers):
    created = client.post(
        "/api/v1/consultants",
        json={"name": "Sam Carter", "email": "sam@example.com", "timezone": "America/New_York"},
        headers=admin_headers,
    )
    assert created.status_code == 201
    consultant_id = created.json()["id"]

    duplicate = client.post(
        "/api/v1/consultants",
        json={"name": "Other Sam", "email": "SAM@example.com"},
        headers=admin_headers,
    )
    assert duplicate.status_code == 409

    patched = client.patch(
        f"/api/v1/consultants/{consultant_id}", json={"phone": "+15550100"}, headers=admin_headers
    )
    assert patched.json()["phone"] == "+15550100"

    listing = client.get("/api/v1/consultants", headers=customer_headers).json()
    assert listing["meta"]["total"] == 1

    assert client.delete(f"/api/v1/consultants/{consultant_id}", headers=admin_headers).status_code == 200
    assert client.get(f"/api/v1/consultants/{consultant_id}", headers=customer_headers).status_code == 404


def test_bad_timezone_is_422(client, admin_headers):
    response = client.post(
        "/api/v1/consultants",
        json={"name": "Sam", "email": "sam@example.com", "timezone": "Nowhere/Land"},
        headers=admin_headers,
    )
    assert response.status_code == 422


def test_availability_overlap(client, admin_headers, consultant):
    first = client.post("/api/v1/availability", json=_window(consultant.id), headers=admin_headers)
    assert first.status_code == 201
    assert first.json()["is_recurring"] is True

    clash = client.post(
        "/api/v1/availability",
        json=_window(consultant.id, start_time="11:00:00", end_time="13:00:00"),
        headers=admin_headers,
    )
    assert clash.status_code == 409
    assert clash.json()["detail"]["code"] == "AVAILABILITY_OVERLAP"
    assert clash.json()["detail"]["details"]["conflicting_id"] == first.json()["id"]

    touching = client.post(
        "/api/v1/availability",
        json=_window(consultant.id, start_time="12:00:00", end_time="13:00:00"),
        headers=admin_headers,
    )
    assert touching.status_code == 201


def test_availability_needs_exactly_one_day_key(client, admin_headers, consultant, upcoming):
    neither = client.post(
        "/api/v1/availability", json=_window(consultant.id, day_of_week=None), headers=admin_headers
    )
    assert neither.status_code == 400

    both = client.post(
        "/api/v1/availability",
        json=_window(consultant.id, specific_date=upcoming().isoformat()),
        headers=admin_headers,
    )
    assert both.status_code == 400


def test_availability_update_and_delete(client, admin_headers, customer_headers, consultant):
    window_id = client.post(
        "/api/v1/availability", json=_window(consultant.id), headers=admin_headers
    ).json()["id"]

    updated = client.patch(
        f"/api/v1/availability/{window_id}",
        json={"is_blocked": True, "block_reason": "Holiday"},
        headers=admin_headers,
    )
    assert updated.status_code == 200
    assert updated.json()["block_reason"] == "Holiday"

    listing = client.get(
        "/api/v1/availability",
        params={"consultant_id": consultant.id, "include_blocked": "false"},
        headers=customer_headers,
    ).json()
    assert listing["meta"]["total"] == 0

    assert client.patch(
        f"/api/v1/availability/{window_id}", json={"is_blocked": False}, headers=customer_headers
    ).status_code == 403
    assert client.delete(f"/api/v1/availability/{window_id}", headers=admin_headers).status_code == 200
    assert client.get(f"/api/v1/availability/{window_id}", headers=customer_headers).status_code == 404
