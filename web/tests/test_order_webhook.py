import asyncio
import json

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy import func, select

from tourbook.core import ConflictError, get_settings
from tourbook.infrastructure.events import publish_capacity_invalidated
from tourbook.models import Capacity, Reservation, SystemLog
from tourbook.security import woocommerce_signature
from tourbook.services import OrderWebhookService, ReservationService
from tourbook.services.order_webhook_service import parse_booking_date, parse_booking_time

from conftest import add_activity


def make_order(order_id=1234, status="processing", quantity=2, **overrides):
    order = {
        "id": order_id,
        "status": status,
        "currency": "EUR",
        "billing": {
            "first_name": "Anna",
            "last_name": "Schmidt",
            "phone": "+49 151 23456789",
            "email": "anna@example.com",
        },
        "line_items": [
            {
                "id": 55,
                "name": "Istanbul City Tour - Full Day",
                "quantity": quantity,
                "total": "90.00",
                "meta_data": [
                    {"key": "Booking Date", "value": "01.06.2024"},
                ],
            }
        ],
    }
    order.update(overrides)
    return json.dumps(order).encode()


async def _count(session, model, *where):
    return await session.scalar(select(func.count()).select_from(model).where(*where))


@pytest.fixture
async def istanbul_tour(session):
    return await add_activity(session, name="Istanbul City Tour", name_aliases=["Old Town Walk"])


# --- Parsing helpers ---

@pytest.mark.parametrize("raw,expected", [
    ("2024-06-01", "2024-06-01"),
    ("1.6.2024", "2024-06-01"),
    ("01/06/2024", "2024-06-01"),
    (None, None),
])
def test_parse_booking_date(raw, expected):
    assert parse_booking_date(raw) == expected


def test_parse_booking_time():
    assert parse_booking_time("9.30") == "09:30"
    assert parse_booking_time("14:00 - 16:00") == "14:00"


# --- Processing ---

async def test_order_becomes_confirmed_reservation(session, istanbul_tour):
    result = await OrderWebhookService(session).handle(make_order())

    assert result == {"received": True, "processed": 1, "skipped": 0}
    reservation = await session.scalar(select(Reservation))
    assert reservation.status == "confirmed"
    assert reservation.source == "woocommerce"
    assert reservation.external_id == "1234"
    assert reservation.external_item_id == "55"
    assert reservation.customer_name == "Anna Schmidt"
    assert reservation.currency == "EUR"
    assert str(reservation.total_price) == "90.00"
    assert reservation.date == "2024-06-01"


async def test_replayed_order_is_stored_once(session, istanbul_tour):
    service = OrderWebhookService(session)
    body = make_order()

    await service.handle(body)
    replay = await service.handle(body)

    assert replay["duplicate"] is True
    assert await _count(session, Reservation) == 1
    slot = (await session.execute(select(Capacity).execution_options(populate_existing=True))).scalar_one()
    assert slot.booked_slots == 2


async def test_cancelled_order_releases_seats(session, istanbul_tour):
    service = OrderWebhookService(session)
    await service.handle(make_order())

    result = await service.handle(make_order(status="cancelled"))

    assert result == {"received": True, "cancelled": 1}
    assert await _count(session, Reservation, Reservation.status == "cancelled") == 1
    slot = (await session.execute(select(Capacity).execution_options(populate_existing=True))).scalar_one()
    assert slot.booked_slots == 0


async def test_unmatched_product_is_skipped_and_logged(session, istanbul_tour):
    body = make_order(line_items=[{"id": 1, "name": "Gift Card", "quantity": 1,
                                   "meta_data": [{"key": "date", "value": "2024-06-01"}]}])

    result = await OrderWebhookService(session).handle(body)

    assert result == {"received": True, "processed": 0, "skipped": 1}
    assert await _count(session, Reservation) == 0
    assert await _count(session, SystemLog, SystemLog.level == "warn") == 1


async def test_item_over_capacity_is_skipped(session, istanbul_tour):
    result = await OrderWebhookService(session).handle(make_order(quantity=11))
    assert result["skipped"] == 1
    assert await _count(session, Reservation) == 0


async def test_malformed_body_is_acknowledged_without_processing(session):
    result = await OrderWebhookService(session).handle(b"{not json")
    assert result == {"received": False}
    assert await _count(session, SystemLog) == 1


async def test_delivery_test_ping(session):
    result = await OrderWebhookService(session).handle(json.dumps({"webhook_id": 9}).encode())
    assert result == {"received": True, "processed": 0, "skipped": 0}


async def test_order_without_items_is_rejected(session):
    result = await OrderWebhookService(session).handle(make_order(line_items=[]))
    assert result == {"received": False}


async def test_held_lock_rejects_concurrent_delivery(session, istanbul_tour, fake_redis, mocker):
    fake_redis.store["lock:woocommerce:order:1234"] = "someone-else"
    settings = get_settings()
    mocker.patch.object(settings, "WEBHOOK_LOCK_TIMEOUT", 0.05)

    result = await OrderWebhookService(session).handle(make_order())

    assert result == {"received": False}
    assert await _count(session, Reservation) == 0


# --- Signature ---

async def test_signature_checked_when_secret_configured(session, istanbul_tour, mocker):
    settings = get_settings()
    mocker.patch.object(settings, "WOOCOMMERCE_WEBHOOK_SECRET", "shh")
    body = make_order()

    rejected = await OrderWebhookService(session).handle(body, "bogus")
    assert rejected == {"received": False}

    accepted = await OrderWebhookService(session).handle(body, woocommerce_signature(body, "shh"))
    assert accepted["processed"] == 1


async def test_webhook_endpoint_always_answers_200(client, istanbul_tour):
    response = await client.post("/api/webhooks/woocommerce", content=b"garbage")
    assert response.status_code == 200
    assert response.json() == {"received": False}

    response = await client.post("/api/webhooks/woocommerce", content=make_order())
    assert response.status_code == 200
    assert response.json()["processed"] == 1


async def test_zero_quantity_item_is_skipped(session, istanbul_tour):
    result = await OrderWebhookService(session).handle(make_order(quantity=0))

    assert result == {"received": True, "processed": 0, "skipped": 1}
    assert await _count(session, Reservation) == 0
    assert await _count(session, Capacity) == 0


# --- Redis unavailable ---

async def test_concurrent_replays_without_redis_store_order_once(session, session_factory, istanbul_tour,
                                                                 fake_redis, mocker):
    """With Redis down the lock is skipped and the order is still admitted once."""
    mocker.patch.object(fake_redis, "set", side_effect=RedisConnectionError("redis is down"))
    mocker.patch.object(fake_redis, "publish", side_effect=RedisConnectionError("redis is down"))
    body = make_order()

    async def deliver():
        async with session_factory() as s:
            return await OrderWebhookService(s).handle(body)

    results = await asyncio.gather(*(deliver() for _ in range(4)))

    assert all(r["received"] for r in results)
    admitted = [r for r in results if r.get("processed") == 1 and not r.get("duplicate")]
    assert len(admitted) == 1
    for other in results:
        if other is not admitted[0]:
            assert other.get("duplicate") is True or other.get("skipped") == 1

    async with session_factory() as s:
        assert await _count(s, Reservation) == 1
        slot = (await s.execute(select(Capacity))).scalar_one()
        assert slot.booked_slots == 2


async def test_unique_external_item_backstops_duplicate_admission(session, istanbul_tour):
    await OrderWebhookService(session).handle(make_order())

    with pytest.raises(ConflictError):
        await ReservationService(session).create(
            activity_id=istanbul_tour.id, date="2024-06-01", quantity=2,
            customer_name="Anna Schmidt", customer_phone="+49 151 23456789",
            status="confirmed", source="woocommerce", external_id="1234", external_item_id="55",
        )

    assert await _count(session, Reservation) == 1
    slot = (await session.execute(select(Capacity).execution_options(populate_existing=True))).scalar_one()
    assert slot.booked_slots == 2


async def test_capacity_event_reports_failed_publish(fake_redis, mocker):
    mocker.patch.object(fake_redis, "publish", side_effect=RedisConnectionError("redis is down"))

    assert await publish_capacity_invalidated(1, "2024-06-01", None, 7) is False
    assert fake_redis.published == []
