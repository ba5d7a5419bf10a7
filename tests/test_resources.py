def test_admin_creates_resource(client, resource_payload, admin_headers):
    response = client.post("/resources", json=resource_payload, headers=admin_headers)

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    data = body["data"]
    assert data["name"] == "Grand Horizon"
    assert data["isActive"] is True
    assert data["minLeadTimeHours"] == 0
    assert data["specs"] == {"Capacity": "50 Pax", "Floor": "10th"}
    assert [field["id"] for field in data["formFields"]] == ["title", "attendees"]


def test_member_cannot_create_resource(client, resource_payload, member_headers):
    response = client.post("/resources", json=resource_payload, headers=member_headers)

    assert response.status_code == 403
    assert response.json() == {"success": False, "error": "Insufficient permissions"}


def test_requests_without_token_are_rejected(client):
    response = client.get("/resources")

    assert response.status_code == 401
    assert response.json()["success"] is False


def test_invalid_resource_payload(client, admin_headers):
    response = client.post("/resources", json={"name": "", "type": "Room"}, headers=admin_headers)

    assert response.status_code == 422
    assert response.json()["error"] == "Invalid request data"


def test_list_resources_in_creation_order(client, resource_payload, admin_headers, member_headers):
    for name in ("Grand Horizon", "Tesla Model 3", "Parking A1"):
        client.post("/resources", json={**resource_payload, "name": name}, headers=admin_headers)

    response = client.get("/resources", headers=member_headers)

    assert response.status_code == 200
    assert [r["name"] for r in response.json()["data"]] == ["Grand Horizon", "Tesla Model 3", "Parking A1"]


def test_api_prefix_serves_same_routes(client, resource, member_headers):
    response = client.get("/api/resources", headers=member_headers)

    assert response.status_code == 200
    assert response.json()["data"][0]["id"] == resource["id"]


def test_update_resource(client, resource_payload, resource, admin_headers):
    payload = {**resource_payload, "name": "Grand Horizon East", "isActive": False, "minLeadTimeHours": 2}
    response = client.put(f"/resources/{resource['id']}", json=payload, headers=admin_headers)

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["name"] == "Grand Horizon East"
    assert data["isActive"] is False
    assert data["minLeadTimeHours"] == 2


def test_update_unknown_resource(client, resource_payload, admin_headers):
    response = client.put("/resources/missing", json=resource_payload, headers=admin_headers)

    assert response.status_code == 404
    assert response.json() == {"success": False, "error": "Resource not found"}


def test_inactive_resource_cannot_be_booked(client, resource_payload, resource, admin_headers, member_headers, slot):
    client.put(f"/resources/{resource['id']}", json={**resource_payload, "isActive": False}, headers=admin_headers)

    response = client.post(
        "/bookings",
        json={"resourceId": resource["id"], "start": slot(9), "end": slot(10)},
        headers=member_headers,
    )

    assert response.status_code == 400
    assert response.json()["success"] is False


def test_delete_resource_cancels_bookings(client, resource, admin_headers, member_headers, slot):
    booking = client.post(
        "/bookings",
        json={"resourceId": resource["id"], "start": slot(9), "end": slot(10)},
        headers=member_headers,
    ).json()["data"]

    response = client.delete(f"/resources/{resource['id']}", headers=admin_headers)

    assert response.status_code == 200
    assert response.json() == {"success": True, "data": True, "error": None}
    assert client.get("/resources", headers=admin_headers).json()["data"] == []
    cancelled = client.get(f"/bookings/{booking['id']}", headers=admin_headers).json()["data"]
    assert cancelled["status"] == "cancelled"


def test_delete_unknown_resource_succeeds(client, admin_headers):
    response = client.delete("/resources/r1", headers=admin_headers)

    assert response.status_code == 200
    assert response.json()["data"] is True
