from typing import Any, Optional
from datetime import datetime

from pydantic import Field

from .base import CamelModel


class MessageOut(CamelModel):
    id: int
    phone: str
    content: str
    role: str
    reservation_id: Optional[int] = None
    requires_human_intervention: bool
    timestamp: Optional[datetime] = None


class SupportRequestOut(CamelModel):
    id: int
    phone: str
    status: str
    reservation_id: Optional[int] = None
    reason: Optional[str] = None
    created_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None


class SupportRequestIn(CamelModel):
    phone: str = Field(..., min_length=3, max_length=32)
    reservation_id: Optional[int] = None
    reason: Optional[str] = Field(None, max_length=500)


class ConversationOut(CamelModel):
    phone: str
    last_message: MessageOut
    last_message_time: Optional[datetime] = None
    has_reservation: bool
    reservation_id: Optional[int] = None
    requires_human_intervention: bool
    support_request: Optional[SupportRequestOut] = None


class SystemLogOut(CamelModel):
    id: int
    level: str
    source: str
    message: str
    details: Optional[Any] = None
    phone: Optional[str] = None
    created_at: Optional[datetime] = None


class SettingIn(CamelModel):
    value: Any
