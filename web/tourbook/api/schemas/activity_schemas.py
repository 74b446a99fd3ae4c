from typing import List, Optional
from datetime import datetime
from decimal import Decimal
from pydantic import Field

from .base import CamelModel

_TIME = r"^([01]\d|2[0-3]):[0-5]\d$"


class ActivityIn(CamelModel):
    """Schema for creating activities"""
    name: str = Field(..., min_length=2, max_length=200)
    slug: Optional[str] = Field(None, max_length=120)
    name_aliases: List[str] = []
    description: Optional[str] = None
    price: Decimal = Field(Decimal("0"), ge=0)
    original_price: Optional[Decimal] = Field(None, ge=0)
    currency: Optional[str] = Field(None, pattern=r"^[A-Za-z]{3}$")
    duration_minutes: int = Field(60, gt=0)
    default_times: List[str] = Field(default_factory=list)
    default_capacity: int = Field(10, ge=0)
    default_weekdays: List[int] = Field(default_factory=list)
    featured: bool = False
    active: bool = True
    rating: Optional[float] = Field(None, ge=0, le=5)
    review_count: int = Field(0, ge=0)
    image_urls: List[str] = []


class ActivityUpdate(CamelModel):
    """Partial update; unset fields are left alone"""
    name: Optional[str] = Field(None, min_length=2, max_length=200)
    slug: Optional[str] = Field(None, max_length=120)
    name_aliases: Optional[List[str]] = None
    description: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0)
    original_price: Optional[Decimal] = Field(None, ge=0)
    currency: Optional[str] = Field(None, pattern=r"^[A-Za-z]{3}$")
    duration_minutes: Optional[int] = Field(None, gt=0)
    default_times: Optional[List[str]] = None
    default_capacity: Optional[int] = Field(None, ge=0)
    default_weekdays: Optional[List[int]] = None
    featured: Optional[bool] = None
    active: Optional[bool] = None
    rating: Optional[float] = Field(None, ge=0, le=5)
    review_count: Optional[int] = Field(None, ge=0)
    image_urls: Optional[List[str]] = None


class ActivityOut(CamelModel):
    id: int
    slug: str
    name: str
    name_aliases: List[str]
    description: Optional[str] = None
    price: Decimal
    original_price: Optional[Decimal] = None
    currency: str
    duration_minutes: int
    default_times: List[str]
    default_capacity: int
    default_weekdays: List[int]
    featured: bool
    active: bool
    rating: Optional[float] = None
    review_count: int
    image_urls: List[str]
    created_at: Optional[datetime] = None
