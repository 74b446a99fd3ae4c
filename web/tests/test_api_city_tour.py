# Import testing tools
import pytest


# --- Test Cases ---

async def test_city_tour_scenario(client, city_tour):
    """A virtual slot becomes a persisted one after the first booking."""
    params = {"date": "2024-06-01", "activityId": "city-tour"}

    response = await client.get("/api/capacity", params=params)
    assert response.status_code == 200
    slots = response.json()
    assert len(slots) == 1
    assert slots[0]["isVirtual"] is True
    assert slots[0]["id"] is None
    assert slots[0]["remainingSeats"] == 10

    booking = {
        "activityId": "city-tour",
        "date": "2024-06-01",
        "quantity": 3,
        "customerName": "Mehmet Kaya",
        "customerPhone": "05321234567",
    }
    response = await client.post("/api/reservations", json=booking)
    assert response.status_code == 201
    data = response.json()
    assert data["quantity"] == 3
    assert data["status"] == "pending"
    assert data["time"] is None

    response = await client.get("/api/capacity", params=params)
    slots = response.json()
    assert len(slots) == 1
    assert slots[0]["isVirtual"] is False
    assert slots[0]["id"] == data["capacityId"]
    assert slots[0]["totalSeats"] == 10
    assert slots[0]["reservedSeats"] == 3
    assert slots[0]["remainingSeats"] == 7


async def test_over_capacity_is_400_on_quantity(client, city_tour):
    booking = {
        "activityId": city_tour.id,
        "date": "2024-06-01",
        "quantity": 11,
        "customerName": "Mehmet Kaya",
        "customerPhone": "05321234567",
    }
    response = await client.post("/api/reservations", json=booking)
    assert response.status_code == 400
    assert response.json()["field"] == "quantity"


async def test_malformed_body_is_400(client, city_tour):
    response = await client.post("/api/reservations", json={"activityId": "city-tour", "date": "01.06.2024"})
    assert response.status_code == 400
    assert "message" in response.json()


async def test_unknown_activity_is_404(client):
    booking = {
        "activityId": "nowhere",
        "date": "2024-06-01",
        "quantity": 1,
        "customerName": "Mehmet Kaya",
        "customerPhone": "05321234567",
    }
    response = await client.post("/api/reservations", json=booking)
    assert response.status_code == 404


async def test_capacity_range_and_bad_date(client, city_tour):
    response = await client.get("/api/capacity", params={"startDate": "2024-06-01", "endDate": "2024-06-07"})
    assert response.status_code == 200
    assert len(response.json()) == 7

    response = await client.get("/api/capacity", params={"date": "2024-13-01"})
    assert response.status_code == 400
    assert response.json()["field"] == "date"


# --- Operator surface ---

@pytest.mark.parametrize("method,path", [
    ("get", "/api/reservations"),
    ("post", "/api/reservations/1/cancel"),
    ("post", "/api/capacity"),
    ("get", "/api/system-logs"),
    ("get", "/api/settings"),
])
async def test_operator_routes_require_token(client, method, path):
    response = await getattr(client, method)(path)
    assert response.status_code == 401


async def test_wrong_role_is_forbidden(client):
    from tourbook.security import create_token

    headers = {"Authorization": f"Bearer {create_token('7', 'customer')}"}
    response = await client.get("/api/reservations", headers=headers)
    assert response.status_code == 403


async def test_operator_cancel_is_idempotent(client, city_tour, operator_headers):
    booking = {
        "activityId": "city-tour",
        "date": "2024-06-01",
        "quantity": 2,
        "customerName": "Mehmet Kaya",
        "customerPhone": "05321234567",
    }
    created = (await client.post("/api/reservations", json=booking)).json()

    for _ in range(2):
        response = await client.post(f"/api/reservations/{created['id']}/cancel", headers=operator_headers)
        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"

    slots = (await client.get("/api/capacity", params={"date": "2024-06-01"})).json()
    assert slots[0]["reservedSeats"] == 0


async def test_operator_slot_maintenance(client, city_tour, operator_headers):
    payload = {"activityId": city_tour.id, "date": "2024-06-02", "time": "18:00", "totalSeats": 4}
    response = await client.post("/api/capacity", json=payload, headers=operator_headers)
    assert response.status_code == 201
    slot = response.json()
    assert slot["isVirtual"] is False
    assert slot["remainingSeats"] == 4

    # Same key twice
    response = await client.post("/api/capacity", json=payload, headers=operator_headers)
    assert response.status_code == 400
    assert response.json()["field"] == "time"

    response = await client.patch(f"/api/capacity/{slot['id']}", json={"totalSeats": 6}, headers=operator_headers)
    assert response.status_code == 200
    assert response.json()["totalSeats"] == 6

    response = await client.delete(f"/api/capacity/{slot['id']}", headers=operator_headers)
    assert response.status_code == 204


async def test_reservation_stats(client, city_tour, operator_headers):
    booking = {
        "activityId": "city-tour",
        "date": "2024-06-01",
        "quantity": 2,
        "customerName": "Mehmet Kaya",
        "customerPhone": "05321234567",
    }
    await client.post("/api/reservations", json=booking)

    response = await client.get("/api/reservations/stats", headers=operator_headers)
    assert response.status_code == 200
    stats = response.json()
    assert stats["totalReservations"] == 1
    assert stats["popularActivities"][0]["seats"] == 2


async def test_healthz(client):
    response = await client.get("/healthz")
    assert response.status_code == 200
    assert response.json()["redis"] == "ok"
