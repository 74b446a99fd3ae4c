from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..core import BaseService, ConflictError, NotFoundError, ValidationError, get_settings
from ..infrastructure.repositories import MessageRepository, ReservationRepository, SupportRequestRepository
from ..models import Message, SupportRequest, utcnow
from .reservation_service import normalize_phone, phone_suffix

CONVERSATION_FILTERS = ("all", "with_reservation", "human_intervention")


class ConversationService(BaseService):
    """Operator view of WhatsApp threads and hand-off requests"""

    def __init__(self, session: AsyncSession):
        super().__init__(session)
        self.message_repo = MessageRepository(session)
        self.reservation_repo = ReservationRepository(session)
        self.support_repo = SupportRequestRepository(session)
        self.settings = get_settings()

    async def conversations(self, *, filter: str = "all", limit: int = 50) -> List[Dict[str, Any]]:
        """One summary per phone, most recent thread first.

        ``with_reservation`` keeps threads whose phone matches a reservation
        on its last ten digits; ``human_intervention`` keeps threads with a
        flagged message or an open support request.
        """
        if filter not in CONVERSATION_FILTERS:
            raise ValidationError(f"Unknown conversation filter {filter}", field="filter")

        latest = await self.message_repo.latest_per_phone(limit=limit if filter == "all" else None)
        phones = [m.phone for m in latest]
        flagged = await self.message_repo.flagged_phones(phones)
        open_requests = await self.support_repo.open_for_phones(phones)

        summaries = []
        for message in latest:
            suffix = phone_suffix(message.phone)
            reservation = None
            if len(suffix) == 10:
                reservation = await self.reservation_repo.find_for_contact(phone_suffix=suffix)
            summary = {
                "phone": message.phone,
                "last_message": message,
                "last_message_time": message.timestamp,
                "has_reservation": reservation is not None,
                "reservation_id": reservation.id if reservation else None,
                "requires_human_intervention": message.phone in flagged,
                "support_request": open_requests.get(message.phone),
            }
            if filter == "with_reservation" and not summary["has_reservation"]:
                continue
            if filter == "human_intervention" and not (
                summary["requires_human_intervention"] or summary["support_request"] is not None
            ):
                continue
            summaries.append(summary)
        return summaries[:limit]

    async def thread(self, phone: str, *, skip: int = 0, limit: int = 200) -> List[Message]:
        return await self.message_repo.thread(phone, skip=skip, limit=limit)

    async def support_requests(self, *, status: Optional[str] = None, skip: int = 0, limit: int = 100) -> List[SupportRequest]:
        if status is not None and status not in ("open", "resolved"):
            raise ValidationError(f"Unknown status {status}", field="status")
        return await self.support_repo.list_requests(status=status, skip=skip, limit=limit)

    async def open_support_request(
        self,
        phone: str,
        *,
        reservation_id: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> SupportRequest:
        """Hand a thread to an operator; an already open request is returned as is"""
        normalized = normalize_phone(phone, self.settings.DEFAULT_PHONE_REGION)
        if not normalized:
            raise ValidationError("phone is required", field="phone")
        if reservation_id is not None and await self.reservation_repo.get(reservation_id) is None:
            raise NotFoundError("Reservation", reservation_id)

        existing = await self.support_repo.get_open(normalized)
        if existing is not None:
            return existing
        return await self.support_repo.create(obj_in={
            "phone": normalized,
            "status": "open",
            "reservation_id": reservation_id,
            "reason": (reason or "").strip()[:500] or None,
        })

    async def resolve(self, request_id: int) -> SupportRequest:
        """Close a hand-off so the bot answers the customer again"""
        request = await self.support_repo.get(request_id)
        if request is None:
            raise NotFoundError("Support request", request_id)
        if request.status == "resolved":
            raise ConflictError(f"Support request {request_id} is already resolved")
        request.status = "resolved"
        request.resolved_at = utcnow()
        await self.session.flush()
        return request
