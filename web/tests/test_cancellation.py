import pytest
from sqlalchemy import select

from tourbook.core import ConflictError, NotFoundError
from tourbook.models import Capacity
from tourbook.services import CapacityService, ReservationService


CUSTOMER = {"customer_name": "John Doe", "customer_phone": "+90 532 123 45 67"}


async def _booked(session, capacity_id):
    slot = await session.get(Capacity, capacity_id, populate_existing=True)
    return slot.booked_slots


async def test_cancel_releases_seats_once(session, city_tour, fake_redis):
    service = ReservationService(session)
    reservation = await service.create(activity_id=city_tour.id, date="2024-06-01", quantity=4, **CUSTOMER)
    assert await _booked(session, reservation.capacity_id) == 4

    first = await service.cancel(reservation.id)
    assert first.status == "cancelled"
    assert first.cancelled_at is not None
    assert await _booked(session, reservation.capacity_id) == 0
    published = len(fake_redis.published)

    # Second cancel changes nothing
    second = await service.cancel(reservation.id)
    assert second.status == "cancelled"
    assert await _booked(session, reservation.capacity_id) == 0
    assert len(fake_redis.published) == published


async def test_cancel_frees_seats_for_next_booking(session, city_tour):
    service = ReservationService(session)
    full = await service.create(activity_id=city_tour.id, date="2024-06-01", quantity=10, **CUSTOMER)
    await service.cancel(full.id)

    again = await service.create(activity_id=city_tour.id, date="2024-06-01", quantity=10, **CUSTOMER)
    assert again.capacity_id == full.capacity_id


async def test_cancel_unknown_reservation(session):
    with pytest.raises(NotFoundError):
        await ReservationService(session).cancel(999)


async def test_confirm_pending_and_refuse_cancelled(session, city_tour):
    service = ReservationService(session)
    reservation = await service.create(activity_id=city_tour.id, date="2024-06-01", quantity=1, **CUSTOMER)

    assert (await service.confirm(reservation.id)).status == "confirmed"

    await service.cancel(reservation.id)
    with pytest.raises(ConflictError):
        await service.confirm(reservation.id)


async def test_capacity_cannot_drop_below_booked(session, city_tour):
    reservation = await ReservationService(session).create(
        activity_id=city_tour.id, date="2024-06-01", quantity=6, **CUSTOMER
    )
    service = CapacityService(session)

    with pytest.raises(ConflictError):
        await service.update_total(reservation.capacity_id, 5)

    slot = await service.update_total(reservation.capacity_id, 6)
    assert (slot.total_slots, slot.booked_slots) == (6, 6)


async def test_slot_with_reservations_cannot_be_deleted(session, city_tour):
    reservation = await ReservationService(session).create(
        activity_id=city_tour.id, date="2024-06-01", quantity=1, **CUSTOMER
    )
    await ReservationService(session).cancel(reservation.id)

    with pytest.raises(ConflictError):
        await CapacityService(session).delete_slot(reservation.capacity_id)

    rows = (await session.execute(select(Capacity))).scalars().all()
    assert len(rows) == 1
