from typing import Dict, List, Literal, Optional, Union
from datetime import datetime
from decimal import Decimal
from pydantic import Field, field_validator

from .base import CamelModel


class ReservationIn(CamelModel):
    """Booking request. Customer fields are checked after the seat check."""
    activity_id: Union[int, str]
    date: str = Field(..., pattern=r"^\d{4}-\d{2}-\d{2}$")
    time: Optional[str] = Field(None, pattern=r"^\d{2}:\d{2}$")
    quantity: int = Field(..., ge=1)
    customer_name: Optional[str] = Field(None, max_length=120)
    customer_phone: Optional[str] = Field(None, max_length=32)
    customer_email: Optional[str] = Field(None, max_length=254)
    notes: Optional[str] = Field(None, max_length=1000)

    @field_validator("time", mode="before")
    @classmethod
    def _blank_time(cls, value):
        return value or None


class ManualReservationIn(ReservationIn):
    """Operator-entered booking (phone, walk-in)"""
    status: Literal["pending", "confirmed"] = "confirmed"


class ReservationOut(CamelModel):
    id: int
    activity_id: int
    activity_name: str
    capacity_id: int
    date: str
    time: Optional[str] = None
    quantity: int
    customer_name: str
    customer_phone: str
    customer_email: Optional[str] = None
    total_price: Decimal
    currency: str
    status: str
    source: str
    external_id: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    @field_validator("time", mode="before")
    @classmethod
    def _blank_time(cls, value):
        return value or None


class PopularActivity(CamelModel):
    activity_id: int
    name: str
    seats: int
    reservations: int


class ReservationStats(CamelModel):
    total_reservations: int
    total_revenue: Dict[str, Decimal]
    popular_activities: List[PopularActivity]
