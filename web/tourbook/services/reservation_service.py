"""Reservation admission, confirmation and cancellation."""

from __future__ import annotations

import logging
import re
from decimal import Decimal
from typing import Any, Dict, List, Optional

import phonenumbers
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core import (
    BaseService,
    CapacityExceededError,
    ConflictError,
    NotFoundError,
    StorageError,
    ValidationError,
    get_settings,
)
from ..infrastructure.events import publish_capacity_invalidated
from ..infrastructure.repositories import ActivityRepository, CapacityRepository, ReservationRepository
from ..models import Capacity, Reservation
from .capacity_service import CapacityService, normalize_time, parse_date

logger = logging.getLogger(__name__)

STATUSES = ("pending", "confirmed", "cancelled")
SOURCES = ("direct", "manual", "woocommerce", "whatsapp")

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def normalize_phone(raw: str, region: str) -> str:
    """E.164 form of *raw* when parseable, otherwise ``+`` and its digits"""
    value = (raw or "").strip()
    if value.lower().startswith("whatsapp:"):
        value = value.split(":", 1)[1]
    try:
        parsed = phonenumbers.parse(value, region)
        if phonenumbers.is_valid_number(parsed):
            return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)
    except phonenumbers.NumberParseException:
        pass
    digits = re.sub(r"\D", "", value)
    return f"+{digits}" if digits else ""


def phone_suffix(phone: str, length: int = 10) -> str:
    """Trailing national digits used to correlate differently formatted numbers"""
    return re.sub(r"\D", "", phone or "")[-length:]


class ReservationService(BaseService):
    """Creates reservations against live capacity.

    The seat check and the seat increment are one conditional UPDATE on the
    slot row; each public method ends in its own commit or rollback.
    """

    def __init__(self, session: AsyncSession):
        super().__init__(session)
        self.reservation_repo = ReservationRepository(session)
        self.capacity_repo = CapacityRepository(session)
        self.activity_repo = ActivityRepository(session)
        self.capacity_service = CapacityService(session)
        self.settings = get_settings()

    async def create(
        self,
        *,
        activity_id: int | str,
        date: str,
        time: Optional[str] = None,
        quantity: int,
        customer_name: Optional[str],
        customer_phone: Optional[str],
        customer_email: Optional[str] = None,
        notes: Optional[str] = None,
        status: str = "pending",
        source: str = "direct",
        currency: Optional[str] = None,
        total_price: Optional[Decimal] = None,
        external_id: Optional[str] = None,
        external_item_id: Optional[str] = None,
    ) -> Reservation:
        """Admit a reservation.

        Raises:
            NotFoundError: activity or slot does not exist
            CapacityExceededError: fewer remaining seats than requested
            ValidationError: malformed or missing fields
        """
        if status not in ("pending", "confirmed"):
            raise ValidationError(f"Cannot create a reservation with status {status}", field="status")
        if source not in SOURCES:
            raise ValidationError(f"Unknown reservation source {source}", field="source")

        day = parse_date(date).isoformat()
        start = normalize_time(time) if time is not None else None
        if not isinstance(quantity, int) or quantity < 1:
            raise ValidationError("quantity must be at least 1", field="quantity")
        if quantity > self.settings.MAX_RESERVATION_QUANTITY:
            raise ValidationError(
                f"quantity must not exceed {self.settings.MAX_RESERVATION_QUANTITY}", field="quantity"
            )

        try:
            slot = await self._resolve_slot(activity_id, day, start)

            if not await self.capacity_repo.try_reserve(slot.id, quantity):
                await self.capacity_repo.refresh_counts(slot)
                logger.warning(
                    "admission rejected for slot %s: requested %s, remaining %s",
                    slot.id, quantity, slot.remaining_slots,
                )
                raise CapacityExceededError(self._slot_label(slot), quantity, slot.remaining_slots)

            name, phone, email = self._validate_customer(customer_name, customer_phone, customer_email)

            activity = slot.activity
            reservation = Reservation(
                activity=activity,
                capacity_id=slot.id,
                date=slot.date,
                time=slot.time,
                quantity=quantity,
                customer_name=name,
                customer_phone=phone,
                customer_email=email,
                total_price=total_price if total_price is not None else Decimal(activity.price or 0) * quantity,
                currency=(currency or activity.currency or self.settings.DEFAULT_CURRENCY).upper(),
                status=status,
                source=source,
                external_id=external_id,
                external_item_id=external_item_id or "",
                notes=notes,
            )
            self.session.add(reservation)
            try:
                await self.session.flush()
            except IntegrityError as exc:
                raise ConflictError(
                    f"Reservation for {source} order {external_id} item {external_item_id} already recorded"
                ) from exc

            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info(
            "reservation %s admitted: %s seat(s) on slot %s (%s)",
            reservation.id, quantity, slot.id, source,
        )
        await publish_capacity_invalidated(slot.activity_id, slot.date, slot.time, slot.id)
        return reservation

    async def _resolve_slot(self, activity_ref: int | str, day: str, time: Optional[str]) -> Capacity:
        """Find the persisted slot for a booking, materialising a virtual one"""
        activity = await self.activity_repo.get_by_ref(activity_ref)
        if activity is None:
            raise NotFoundError("Activity", activity_ref)
        # inactive activities keep their persisted slots; nothing virtual is offered for them

        candidates = await self.capacity_service.resolve_for_booking(activity, day, time)
        if not candidates:
            raise NotFoundError("Slot", f"{activity.slug} {day} {time or ''}".strip())
        if len(candidates) > 1:
            raise ValidationError(
                f"{activity.name} has several departures on {day}; choose a time",
                field="time",
            )

        chosen = candidates[0]
        if not chosen.is_virtual:
            return await self.capacity_repo.get(chosen.id)

        slot = await self.capacity_repo.materialize(
            activity, chosen.date, chosen.time or "", chosen.total_seats
        )
        logger.info("materialised slot %s for activity %s on %s %s", slot.id, activity.id, day, chosen.time or "")
        return slot

    def _validate_customer(self, name, phone, email):
        name = (name or "").strip()
        if len(name) < 2:
            raise ValidationError("Customer name is required", field="customerName")

        digits = re.sub(r"\D", "", phone or "")
        if len(digits) < 10:
            raise ValidationError("A phone number with at least 10 digits is required", field="customerPhone")

        email = (email or "").strip() or None
        if email is not None and not _EMAIL_RE.match(email):
            raise ValidationError("Invalid e-mail address", field="customerEmail")

        return name, normalize_phone(phone, self.settings.DEFAULT_PHONE_REGION), email

    @staticmethod
    def _slot_label(slot: Capacity) -> str:
        return f"{slot.activity.slug} {slot.date} {slot.time}".strip()

    async def cancel(self, reservation_id: int) -> Reservation:
        """Cancel and release seats; cancelling twice is a no-op"""
        reservation = await self.get(reservation_id)

        try:
            changed = await self.reservation_repo.mark_cancelled(reservation_id)
            if changed and not await self.capacity_repo.release(reservation.capacity_id, reservation.quantity):
                logger.error(
                    "slot %s holds fewer booked seats than reservation %s",
                    reservation.capacity_id, reservation_id,
                )
                raise StorageError(f"Seat counter of slot {reservation.capacity_id} is inconsistent")
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        await self.session.refresh(reservation)
        if changed:
            logger.info("reservation %s cancelled, %s seat(s) released", reservation_id, reservation.quantity)
            await publish_capacity_invalidated(
                reservation.activity_id, reservation.date, reservation.time, reservation.capacity_id
            )
        return reservation

    async def confirm(self, reservation_id: int) -> Reservation:
        reservation = await self.get(reservation_id)
        if reservation.status == "cancelled":
            raise ConflictError(f"Reservation {reservation_id} is cancelled")

        if await self.reservation_repo.mark_confirmed(reservation_id):
            await self.session.commit()
            await self.session.refresh(reservation)
        return reservation

    async def get(self, reservation_id: int) -> Reservation:
        reservation = await self.reservation_repo.get(reservation_id)
        if reservation is None:
            raise NotFoundError("Reservation", reservation_id)
        return reservation

    async def list(
        self,
        *,
        status: Optional[str] = None,
        activity_id: Optional[int] = None,
        date: Optional[str] = None,
        source: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Reservation]:
        if status is not None and status not in STATUSES:
            raise ValidationError(f"Unknown status {status}", field="status")
        if date is not None:
            date = parse_date(date).isoformat()
        return await self.reservation_repo.list_reservations(
            status=status,
            activity_id=activity_id,
            date=date,
            source=source,
            skip=skip,
            limit=limit,
        )

    async def stats(self) -> Dict[str, Any]:
        return await self.reservation_repo.get_stats()
