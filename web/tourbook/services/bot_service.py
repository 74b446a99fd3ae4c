"""Conversation handlers that answer inbound WhatsApp messages.

The production bot runs as a separate orchestrator reached over HTTP; the
built-in handler keeps the channel usable when it is not configured or not
reachable.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from ..core import ExternalServiceError, get_settings
from .activity_matcher import normalize

logger = logging.getLogger(__name__)

HANDOFF_WORDS = ("yetkili", "insan", "operator", "temsilci", "human", "agent")
_STATUS_TR = {"pending": "beklemede", "confirmed": "onaylandı", "cancelled": "iptal edildi"}


@dataclass
class ConversationContext:
    phone: str
    body: str
    history: List[Dict[str, str]] = field(default_factory=list)   # [{"role", "content"}], oldest first
    reservation: Optional[Dict[str, Any]] = None
    activities: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class BotReply:
    text: str
    needs_human: bool = False


class ConversationHandler(ABC):
    """Produces the assistant reply for one inbound message"""

    @abstractmethod
    async def reply(self, ctx: ConversationContext) -> BotReply:
        ...


class DefaultConversationHandler(ConversationHandler):
    """Rule-based replies in Turkish covering the common questions"""

    async def reply(self, ctx: ConversationContext) -> BotReply:
        words = normalize(ctx.body).split()

        if any(w in words for w in HANDOFF_WORDS):
            return BotReply(
                "Talebinizi bir yetkiliye iletiyorum, en kısa sürede size dönüş yapılacak.",
                needs_human=True,
            )

        if ctx.reservation:
            r = ctx.reservation
            when = f"{r['date']} {r['time']}".strip()
            return BotReply(
                f"Rezervasyonunuz #{r['id']}: {r['activity_name']}, {when}, "
                f"{r['quantity']} kişi. Durum: {_STATUS_TR.get(r['status'], r['status'])}."
            )

        if not ctx.activities:
            return BotReply("Merhaba! Şu anda rezervasyona açık turumuz bulunmuyor.")

        lines = ["Merhaba! Turlarımız:"]
        for activity in ctx.activities[:10]:
            lines.append(f"- {activity['name']}: {activity['price']} {activity['currency']}")
        lines.append("Rezervasyon için tur adı, tarih ve kişi sayısını yazabilirsiniz.")
        return BotReply("\n".join(lines))


class HttpConversationHandler(ConversationHandler):
    """Delegates to the external orchestrator, falling back on failure"""

    def __init__(self, url: str, timeout: float, fallback: ConversationHandler):
        self.url = url
        self.timeout = timeout
        self.fallback = fallback

    async def _call(self, ctx: ConversationContext) -> BotReply:
        payload = {
            "phone": ctx.phone,
            "message": ctx.body,
            "history": ctx.history,
            "reservation": ctx.reservation,
        }
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                response = await client.post(self.url, json=payload)
                response.raise_for_status()
                data = response.json()
            except (httpx.HTTPError, ValueError) as exc:
                raise ExternalServiceError("bot-orchestrator", str(exc)) from exc

        text = data.get("reply") if isinstance(data, dict) else None
        if not isinstance(text, str) or not text.strip():
            raise ExternalServiceError("bot-orchestrator", "response has no reply text")
        return BotReply(text.strip(), needs_human=bool(data.get("needsHuman", False)))

    async def reply(self, ctx: ConversationContext) -> BotReply:
        try:
            return await self._call(ctx)
        except ExternalServiceError as exc:
            logger.warning("%s; using built-in replies", exc.message)
            return await self.fallback.reply(ctx)


def get_conversation_handler() -> ConversationHandler:
    settings = get_settings()
    default = DefaultConversationHandler()
    if settings.BOT_ORCHESTRATOR_URL:
        return HttpConversationHandler(settings.BOT_ORCHESTRATOR_URL, settings.BOT_ORCHESTRATOR_TIMEOUT, default)
    return default
