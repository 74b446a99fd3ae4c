"""Inbound WhatsApp (Twilio) messages: store, correlate, answer."""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Mapping, Optional
from xml.sax.saxutils import escape

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core import get_settings
from ..core.unit_of_work import UnitOfWork
from ..models import Message, Reservation, SupportRequest
from .bot_service import ConversationContext, ConversationHandler, get_conversation_handler
from .reservation_service import normalize_phone, phone_suffix
from .settings_service import DEFAULT_SETTINGS
from .system_log_service import SystemLogService

logger = logging.getLogger(__name__)

EMPTY_TWIML = '<?xml version="1.0" encoding="UTF-8"?><Response></Response>'
HISTORY_LENGTH = 5

_ORDER_NUMBER = re.compile(r"\b(\d{4,})\b")


def twiml_message(text: str) -> str:
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        f"<Response><Message>{escape(text)}</Message></Response>"
    )


def _reservation_summary(reservation: Reservation) -> Dict[str, Any]:
    return {
        "id": reservation.id,
        "activity_name": reservation.activity.name,
        "date": reservation.date,
        "time": reservation.time,
        "quantity": reservation.quantity,
        "status": reservation.status,
    }


class WhatsAppWebhookService:
    """Handles one inbound message per call; conversation state lives in the bot"""

    def __init__(self, session: AsyncSession, handler: Optional[ConversationHandler] = None):
        self.uow = UnitOfWork(session)
        self.handler = handler or get_conversation_handler()
        self.system_log = SystemLogService(session)
        self.settings = get_settings()

    async def handle(self, fields: Mapping[str, Any]) -> str:
        """Return the TwiML document to send back to Twilio"""
        body = str(fields.get("Body") or "").strip()
        sender = str(fields.get("From") or "").strip()
        if not body or not sender:
            await self._log("warn", "message without body or sender ignored", {"fields": sorted(fields.keys())})
            return EMPTY_TWIML

        phone = normalize_phone(sender, self.settings.DEFAULT_PHONE_REGION) or sender
        message_sid = str(fields.get("MessageSid") or fields.get("SmsMessageSid") or "").strip() or None

        try:
            async with self.uow:
                return await self._handle(phone, body, message_sid)
        except IntegrityError:
            logger.info("message %s already stored", message_sid)
            return EMPTY_TWIML
        except Exception as exc:
            logger.exception("whatsapp message from %s could not be handled", phone_suffix(phone, 4))
            await self._log("error", f"message handling failed: {exc.__class__.__name__}", {}, phone)
            return EMPTY_TWIML

    async def _handle(self, phone: str, body: str, message_sid: Optional[str]) -> str:
        uow = self.uow
        if message_sid and await uow.messages.external_id_seen(message_sid):
            logger.info("duplicate delivery of message %s ignored", message_sid)
            return EMPTY_TWIML

        order_match = _ORDER_NUMBER.search(body)
        reservation = await uow.reservations.find_for_contact(
            phone_suffix=phone_suffix(phone),
            order_number=order_match.group(1) if order_match else None,
        )
        reservation_id = reservation.id if reservation else None

        inbound = Message(
            phone=phone,
            content=body,
            role="user",
            external_id=message_sid,
            reservation_id=reservation_id,
        )
        uow.session.add(inbound)
        await uow.session.flush()
        inbound_id = inbound.id

        bot_enabled = await uow.settings.get_value("bot_enabled", DEFAULT_SETTINGS["bot_enabled"])
        if not bot_enabled or await uow.support_requests.get_open(phone) is not None:
            await uow.commit()
            return EMPTY_TWIML

        history = await uow.messages.recent(phone, limit=HISTORY_LENGTH)
        activities = await uow.activities.list_activities(active=True)
        keywords = await uow.settings.get_value("bot_handoff_keywords", DEFAULT_SETTINGS["bot_handoff_keywords"])
        ctx = ConversationContext(
            phone=phone,
            body=body,
            history=[{"role": m.role, "content": m.content} for m in history],
            reservation=_reservation_summary(reservation) if reservation else None,
            activities=[
                {"id": a.id, "slug": a.slug, "name": a.name, "price": str(a.price), "currency": a.currency}
                for a in activities
            ],
        )
        # No transaction stays open across the bot call
        await uow.commit()

        reply = await self.handler.reply(ctx)

        lowered = reply.text.lower()
        if reply.needs_human or any(k in lowered for k in keywords):
            if await uow.support_requests.get_open(phone) is None:
                uow.session.add(SupportRequest(phone=phone, reservation_id=reservation_id, reason=body[:500]))
            await uow.messages.flag_for_human(inbound_id)
            await self.system_log.record("info", "whatsapp-webhook", "conversation handed to an operator", phone=phone)

        uow.session.add(Message(
            phone=phone,
            content=reply.text,
            role="assistant",
            reservation_id=reservation_id,
        ))
        await uow.commit()
        return twiml_message(reply.text)

    async def _log(self, level: str, message: str, details: Dict[str, Any], phone: Optional[str] = None) -> None:
        await self.system_log.record(level, "whatsapp-webhook", message, details, phone)
        await self.uow.commit()
