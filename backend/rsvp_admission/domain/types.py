from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Union

from ..models import AttendanceStatus, DinnerBookingStatus, DinnerOverflowAction


@dataclass(frozen=True)
class EventCapacityConfig:
    """Capacity settings of one event, as owned by the event store."""

    event_id: str
    max_attendees: int | None = None
    waitlist_enabled: bool = True
    dinner_enabled: bool = False
    dinner_start_time: datetime | None = None
    dinner_end_time: datetime | None = None
    dinner_seating_interval_hours: float = 2.0
    dinner_max_seats_per_slot: int | None = None
    dinner_overflow_action: DinnerOverflowAction = DinnerOverflowAction.WAITLIST
    host_id: int | None = None


class RejectionReason(StrEnum):
    GENERAL_FULL = "general_full"
    SLOT_FULL = "slot_full"
    BOTH_FULL = "both_full"
    CONTENTION = "contention"


@dataclass(frozen=True)
class Reserved:
    general_units: int
    slot_time: datetime | None = None
    slot_units: int = 0


@dataclass(frozen=True)
class Rejected:
    reason: RejectionReason


ReservationOutcome = Union[Reserved, Rejected]


@dataclass(frozen=True)
class AdmissionRequest:
    event: EventCapacityConfig
    party_size: int
    wants_dinner: bool = False
    dinner_time_slot: datetime | None = None
    dinner_party_size: int | None = None


@dataclass(frozen=True)
class AdmissionResult:
    attendance_status: AttendanceStatus
    dinner_booking_status: DinnerBookingStatus
    dinner_time_slot: datetime | None = None
    dinner_party_size: int | None = None
    reserved_general_units: int = 0
    reserved_slot_units: int = 0


@dataclass(frozen=True)
class DinnerSlotAvailability:
    time: datetime
    capacity: int | None
    remaining: int | None

    @property
    def available(self) -> bool:
        return self.remaining is None or self.remaining > 0
