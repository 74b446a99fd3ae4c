from typing import Optional
from pydantic import Field, field_validator

from .base import CamelModel


class CapacitySlotOut(CamelModel):
    """Resolved slot; ``id`` is null and ``isVirtual`` true until first booked"""
    id: Optional[int] = None
    activity_id: int
    activity_name: str
    date: str
    time: Optional[str] = None
    total_seats: int
    reserved_seats: int
    remaining_seats: int
    is_virtual: bool


class CapacityIn(CamelModel):
    """Schema for creating an explicit slot"""
    activity_id: int = Field(..., gt=0)
    date: str = Field(..., pattern=r"^\d{4}-\d{2}-\d{2}$")
    time: Optional[str] = Field(None, pattern=r"^\d{2}:\d{2}$")
    total_seats: int = Field(..., ge=0)

    @field_validator("time", mode="before")
    @classmethod
    def _blank_time(cls, value):
        return value or None


class CapacityUpdate(CamelModel):
    total_seats: int = Field(..., ge=0)
