import pytest

from tourbook.core import ConflictError, ValidationError
from tourbook.services import ActivityService, ReservationService
from tourbook.services.activity_service import slugify

from conftest import add_activity


def test_slugify():
    assert slugify("Kapadokya Balon Turu") == "kapadokya-balon-turu"


async def test_create_derives_slug_and_cleans_schedule(session):
    activity = await ActivityService(session).create({
        "name": "Boğaz Turu",
        "price": 250,
        "default_times": ["14:00", "09:30", "14:00"],
        "default_weekdays": [6, 0, 6],
    })

    assert activity.slug == "bogaz-turu"
    assert activity.default_times == ["09:30", "14:00"]
    assert activity.default_weekdays == [0, 6]
    assert activity.currency == "TRY"


async def test_create_rejects_bad_schedule(session):
    with pytest.raises(ValidationError) as exc:
        await ActivityService(session).create({"name": "Boat", "default_weekdays": [7]})
    assert exc.value.details["field"] == "defaultWeekdays"


async def test_duplicate_slug(session, city_tour):
    with pytest.raises(ValidationError):
        await ActivityService(session).create({"name": "City Tour"})


async def test_booked_activity_only_accepts_non_booking_changes(session, city_tour):
    await ReservationService(session).create(
        activity_id=city_tour.id, date="2024-06-01", quantity=1,
        customer_name="John Doe", customer_phone="+905321234567",
    )
    service = ActivityService(session)

    with pytest.raises(ConflictError):
        await service.update(city_tour.id, {"price": 999})

    updated = await service.update(city_tour.id, {"description": "Old town highlights", "featured": True})
    assert updated.featured is True

    with pytest.raises(ConflictError):
        await service.delete(city_tour.id)


async def test_unbooked_activity_can_be_deleted(session, city_tour):
    await ActivityService(session).delete("city-tour")
    await session.commit()
    assert await ActivityService(session).list() == []


async def test_all_digit_slug_is_reachable(session, city_tour):
    """Numeric refs fall back to the slug when no activity has that id."""
    festival = await add_activity(session, slug="2024", name="Festival 2024")
    service = ActivityService(session)

    assert (await service.get("2024")).id == festival.id
    assert (await service.get(str(city_tour.id))).id == city_tour.id

    reservation = await ReservationService(session).create(
        activity_id="2024", date="2024-06-01", quantity=1,
        customer_name="John Doe", customer_phone="+905321234567",
    )
    assert reservation.activity_id == festival.id


async def test_catalogue_endpoints(client, operator_headers):
    payload = {"name": "Balloon Flight", "price": "120.50", "defaultTimes": ["05:30"], "featured": True}
    response = await client.post("/api/activities", json=payload, headers=operator_headers)
    assert response.status_code == 201
    created = response.json()
    assert created["slug"] == "balloon-flight"
    assert created["defaultCapacity"] == 10

    response = await client.get("/api/activities/balloon-flight")
    assert response.status_code == 200
    assert response.json()["id"] == created["id"]

    response = await client.get("/api/activities", params={"search": "ball"})
    assert [a["slug"] for a in response.json()] == ["balloon-flight"]

    response = await client.put(f"/api/activities/{created['id']}", json={"defaultCapacity": 12},
                                headers=operator_headers)
    assert response.json()["defaultCapacity"] == 12

    response = await client.get("/api/activities/999")
    assert response.status_code == 404


async def test_settings_endpoints(client, operator_headers):
    response = await client.get("/api/settings", headers=operator_headers)
    assert response.json()["bot_enabled"] is True

    response = await client.put("/api/settings/bot_enabled", json={"value": False}, headers=operator_headers)
    assert response.status_code == 200
    assert response.json() == {"key": "bot_enabled", "value": False}

    response = await client.put("/api/settings/bot_enabled", json={"value": "no"}, headers=operator_headers)
    assert response.status_code == 400

    response = await client.put("/api/settings/unknown", json={"value": 1}, headers=operator_headers)
    assert response.status_code == 404
