from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, Enum, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql.sqltypes import BigInteger, DateTime, Float, Integer, String, Text


class Base(DeclarativeBase):
    pass


class AttendanceStatus(StrEnum):
    CONFIRMED = "confirmed"
    WAITLISTED = "waitlisted"


class DinnerBookingStatus(StrEnum):
    NONE = "none"
    CONFIRMED = "confirmed"
    WAITLIST = "waitlist"
    COCKTAILS = "cocktails"
    COCKTAILS_WAITLIST = "cocktails_waitlist"


class DinnerOverflowAction(StrEnum):
    WAITLIST = "waitlist"
    COCKTAILS = "cocktails"
    BOTH = "both"


def _str_enum(enum_cls: type[StrEnum]) -> Enum:
    return Enum(
        enum_cls,
        values_callable=lambda cls: [e.value for e in cls],
        native_enum=False,
    )


class Event(Base):
    __tablename__ = "events"
    __table_args__ = (
        CheckConstraint("max_attendees IS NULL OR max_attendees >= 0", name="chk_events_max_attendees"),
        CheckConstraint(
            "dinner_max_seats_per_slot IS NULL OR dinner_max_seats_per_slot >= 0",
            name="chk_events_dinner_seats",
        ),
        Index("idx_events_host", "host_id"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    host_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    max_attendees: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    waitlist_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    dinner_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    dinner_start_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), nullable=True)
    dinner_end_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), nullable=True)
    dinner_seating_interval_hours: Mapped[float] = mapped_column(Float, nullable=False, default=2.0)
    dinner_max_seats_per_slot: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    dinner_overflow_action: Mapped[DinnerOverflowAction] = mapped_column(
        _str_enum(DinnerOverflowAction),
        nullable=False,
        default=DinnerOverflowAction.WAITLIST,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    rsvps: Mapped[list["Rsvp"]] = relationship(back_populates="event")


class Rsvp(Base):
    __tablename__ = "rsvps"
    __table_args__ = (
        CheckConstraint("plus_ones >= 0", name="chk_rsvps_plus_ones"),
        CheckConstraint("dinner_party_size IS NULL OR dinner_party_size >= 1", name="chk_rsvps_dinner_party"),
        CheckConstraint("held_general_units >= 0 AND held_slot_units >= 0", name="chk_rsvps_held_units"),
        Index("idx_rsvps_event", "event_id"),
        Index("idx_rsvps_waitlist_link_expires_at", "waitlist_link_expires_at"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    event_id: Mapped[str] = mapped_column(ForeignKey("events.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    plus_ones: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    wants_dinner: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    dinner_time_slot: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), nullable=True)
    dinner_party_size: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    attendance_status: Mapped[AttendanceStatus] = mapped_column(_str_enum(AttendanceStatus), nullable=False)
    dinner_booking_status: Mapped[DinnerBookingStatus] = mapped_column(
        _str_enum(DinnerBookingStatus),
        nullable=False,
        default=DinnerBookingStatus.NONE,
    )
    # units this rsvp holds on the capacity counters
    held_general_units: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    held_slot_units: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    waitlist_link_generated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), nullable=True)
    waitlist_link_expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), nullable=True)
    waitlist_link_used_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), nullable=True)
    waitlist_link_token: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    event: Mapped["Event"] = relationship(back_populates="rsvps")

    @property
    def party_size(self) -> int:
        return 1 + self.plus_ones


class CapacityCounter(Base):
    """General capacity (slot_time NULL) or one dinner slot of an event."""

    __tablename__ = "capacity_counters"
    __table_args__ = (
        CheckConstraint("used >= 0", name="chk_counters_used"),
        CheckConstraint("capacity IS NULL OR used <= capacity", name="chk_counters_capacity"),
        UniqueConstraint("event_id", "slot_time", name="uq_counters_event_slot"),
        Index("idx_counters_event", "event_id"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    event_id: Mapped[str] = mapped_column(ForeignKey("events.id"), nullable=False)
    slot_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), nullable=True)
    capacity: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)


class WaitlistOfferRedemption(Base):
    __tablename__ = "waitlist_offer_redemptions"
    __table_args__ = (
        UniqueConstraint("jti", name="uq_offer_redemptions_jti"),
        Index("idx_offer_redemptions_rsvp", "rsvp_id"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    jti: Mapped[str] = mapped_column(String(64), nullable=False)
    rsvp_id: Mapped[str] = mapped_column(ForeignKey("rsvps.id"), nullable=False)
    payment_reference: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
