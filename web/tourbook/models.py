from sqlalchemy import (
    String, Integer, ForeignKey, Numeric, DateTime, Text,
    func, UniqueConstraint, CheckConstraint, JSON, Index, Boolean, Float
)
from datetime import datetime, timezone

from sqlalchemy.orm import mapped_column, relationship, DeclarativeBase


def utcnow() -> datetime:
    """Naive UTC timestamp matching the DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase): ...


# ---------- Catalogue ----------
class Activity(Base):
    __tablename__ = "activities"
    id               = mapped_column(Integer, primary_key=True)
    slug             = mapped_column(String(120), unique=True, nullable=False)
    name             = mapped_column(String(200), nullable=False)
    # Alternative product names used when matching external orders
    name_aliases     = mapped_column(JSON, nullable=False, default=list)
    description      = mapped_column(Text)
    price            = mapped_column(Numeric(10, 2), nullable=False, default=0)
    original_price   = mapped_column(Numeric(10, 2), nullable=True)
    currency         = mapped_column(String(3), nullable=False, default="TRY")
    duration_minutes = mapped_column(Integer, nullable=False, default=60)
    # Recurring schedule template for virtual slots
    default_times    = mapped_column(JSON, nullable=False, default=list,
                                     comment="Start times as HH:MM; empty means one all-day slot")
    default_capacity = mapped_column(Integer, nullable=False, default=10,
                                     comment="Seats per virtual slot; 0 disables synthesis")
    default_weekdays = mapped_column(JSON, nullable=False, default=list,
                                     comment="Weekdays 0=Mon..6=Sun; empty means every day")
    featured         = mapped_column(Boolean, nullable=False, default=False)
    active           = mapped_column(Boolean, nullable=False, default=True)
    rating           = mapped_column(Float, nullable=True)
    review_count     = mapped_column(Integer, nullable=False, default=0)
    image_urls       = mapped_column(JSON, nullable=False, default=list)
    created_at       = mapped_column(DateTime, default=utcnow, server_default=func.now())

    slots        = relationship("Capacity", back_populates="activity")
    reservations = relationship("Reservation", back_populates="activity")


# ---------- Inventory ----------
class Capacity(Base):
    __tablename__ = "capacity"
    id           = mapped_column(Integer, primary_key=True)
    activity_id  = mapped_column(ForeignKey("activities.id", ondelete="CASCADE"), nullable=False)
    date         = mapped_column(String(10), nullable=False)            # YYYY-MM-DD
    time         = mapped_column(String(5), nullable=False, default="")  # HH:MM, "" = all day
    total_slots  = mapped_column(Integer, nullable=False)
    booked_slots = mapped_column(Integer, nullable=False, default=0)

    activity = relationship("Activity", back_populates="slots", lazy="joined", innerjoin=True)

    __table_args__ = (
        UniqueConstraint("activity_id", "date", "time", name="uq_capacity_slot"),
        CheckConstraint("booked_slots >= 0", name="ck_capacity_booked_nonneg"),
        CheckConstraint("booked_slots <= total_slots", name="ck_capacity_no_overbooking"),
        CheckConstraint("total_slots >= 0", name="ck_capacity_total_nonneg"),
        Index("ix_capacity_date", "date"),
    )

    @property
    def remaining_slots(self) -> int:
        return self.total_slots - self.booked_slots


# ---------- Bookings ----------
class Reservation(Base):
    __tablename__ = "reservations"
    id               = mapped_column(Integer, primary_key=True)
    activity_id      = mapped_column(ForeignKey("activities.id"), nullable=False)
    capacity_id      = mapped_column(ForeignKey("capacity.id"), nullable=False)
    date             = mapped_column(String(10), nullable=False)
    time             = mapped_column(String(5), nullable=False, default="")
    quantity         = mapped_column(Integer, nullable=False)
    customer_name    = mapped_column(String(120), nullable=False)
    customer_phone   = mapped_column(String(32), nullable=False)
    customer_email   = mapped_column(String(254))
    total_price      = mapped_column(Numeric(12, 2), nullable=False, default=0)
    currency         = mapped_column(String(3), nullable=False, default="TRY")
    status           = mapped_column(String(16), nullable=False, default="pending")    # pending|confirmed|cancelled
    source           = mapped_column(String(16), nullable=False, default="direct")     # direct|manual|woocommerce|whatsapp
    # Correlation with the external system that produced the booking
    external_id      = mapped_column(String(64), nullable=True)
    external_item_id = mapped_column(String(64), nullable=False, default="")
    notes            = mapped_column(Text)
    created_at       = mapped_column(DateTime, default=utcnow, server_default=func.now())
    cancelled_at     = mapped_column(DateTime, nullable=True)

    activity = relationship("Activity", back_populates="reservations", lazy="joined", innerjoin=True)
    slot     = relationship("Capacity")

    __table_args__ = (
        UniqueConstraint("source", "external_id", "external_item_id", name="uq_reservation_external"),
        CheckConstraint("quantity > 0", name="ck_reservation_quantity_positive"),
        Index("ix_reservations_phone", "customer_phone"),
        Index("ix_reservations_external", "source", "external_id"),
    )

    @property
    def activity_name(self) -> str:
        return self.activity.name


# ---------- Messaging ----------
class Message(Base):
    __tablename__ = "messages"
    id             = mapped_column(Integer, primary_key=True)
    phone          = mapped_column(String(32), nullable=False, index=True)
    content        = mapped_column(Text, nullable=False)
    role           = mapped_column(String(16), nullable=False)   # user|assistant|system
    # Platform message id (Twilio MessageSid) for replay detection
    external_id    = mapped_column(String(64), unique=True, nullable=True)
    reservation_id = mapped_column(ForeignKey("reservations.id"), nullable=True)
    requires_human_intervention = mapped_column(Boolean, nullable=False, default=False)
    timestamp      = mapped_column(DateTime, default=utcnow, server_default=func.now())


class SupportRequest(Base):
    __tablename__ = "support_requests"
    id             = mapped_column(Integer, primary_key=True)
    phone          = mapped_column(String(32), nullable=False, index=True)
    status         = mapped_column(String(16), nullable=False, default="open")  # open|resolved
    reservation_id = mapped_column(ForeignKey("reservations.id"), nullable=True)
    reason         = mapped_column(Text)
    created_at     = mapped_column(DateTime, default=utcnow, server_default=func.now())
    resolved_at    = mapped_column(DateTime, nullable=True)


# ---------- Operations ----------
class SystemLog(Base):
    __tablename__ = "system_logs"
    id         = mapped_column(Integer, primary_key=True)
    level      = mapped_column(String(8), nullable=False)    # debug|info|warn|error
    source     = mapped_column(String(64), nullable=False)
    message    = mapped_column(String(1000), nullable=False)
    details    = mapped_column(JSON, nullable=True)
    phone      = mapped_column(String(32), nullable=True)
    created_at = mapped_column(DateTime, default=utcnow, server_default=func.now(), index=True)


class Setting(Base):
    __tablename__ = "settings"
    key   = mapped_column(String(64), primary_key=True)
    value = mapped_column(JSON, nullable=False)
