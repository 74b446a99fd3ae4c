from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core import BaseService, ValidationError
from ..infrastructure.repositories import SystemLogRepository
from ..models import SystemLog

logger = logging.getLogger(__name__)

LEVELS = ("debug", "info", "warn", "error")
MAX_MESSAGE_LENGTH = 1000
REDACTED = "[REDACTED]"

_SENSITIVE_KEYS = re.compile(r"(api[_-]?key|auth[_-]?token|password|secret|authorization|signature|token)", re.I)
_PATTERNS = [
    (re.compile(r"(?i)bearer\s+[a-z0-9._~+/=-]+"), "Bearer " + REDACTED),
    (re.compile(r"(?i)(api[_-]?key|auth[_-]?token|password|secret)(\s*[=:]\s*)[^\s,;&]+"), r"\1\2" + REDACTED),
    (re.compile(r"\b(AC|SK|SM|MM)[0-9a-fA-F]{32}\b"), "[TWILIO_SID]"),
    (re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}"), "[EMAIL]"),
    (re.compile(r"\+?\d{10,15}"), "[PHONE]"),
]
_LOG_LEVELS = {"debug": logging.DEBUG, "info": logging.INFO, "warn": logging.WARNING, "error": logging.ERROR}


def sanitize_text(text: str) -> str:
    for pattern, replacement in _PATTERNS:
        text = pattern.sub(replacement, text)
    return text


def sanitize(value: Any) -> Any:
    """Redact credentials, phone numbers and e-mail addresses in nested data"""
    if isinstance(value, dict):
        return {
            key: REDACTED if isinstance(key, str) and _SENSITIVE_KEYS.search(key) else sanitize(item)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [sanitize(item) for item in value]
    if isinstance(value, str):
        return sanitize_text(value)
    if value is None or isinstance(value, (int, float, bool)):
        return value
    return sanitize_text(str(value))


class SystemLogService(BaseService):
    """Operator-visible event log stored next to the business data.

    Writing never raises; when the database refuses the row the event still
    reaches the process logger.
    """

    def __init__(self, session: AsyncSession):
        super().__init__(session)
        self.repo = SystemLogRepository(session)

    async def record(
        self,
        level: str,
        source: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        phone: Optional[str] = None,
    ) -> Optional[SystemLog]:
        level = level if level in LEVELS else "info"
        text = sanitize_text(str(message))[:MAX_MESSAGE_LENGTH]
        clean = sanitize(details) if details else None

        logger.log(_LOG_LEVELS[level], "[%s] %s", source, text)
        try:
            async with self.session.begin_nested():
                entry = SystemLog(level=level, source=source, message=text, details=clean, phone=phone)
                self.session.add(entry)
            return entry
        except SQLAlchemyError:
            logger.exception("could not store system log entry from %s", source)
            return None

    async def list(
        self,
        *,
        level: Optional[str] = None,
        source: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[SystemLog]:
        if level is not None and level not in LEVELS:
            raise ValidationError(f"Unknown log level {level}", field="level")
        return await self.repo.list_logs(level=level, source=source, skip=skip, limit=limit)
