from __future__ import annotations

from datetime import datetime
from typing import Protocol

from ..models import AttendanceStatus, DinnerBookingStatus, Rsvp
from .types import AdmissionResult, EventCapacityConfig, ReservationOutcome


class CapacityLedger(Protocol):
    async def configure_event(self, config: EventCapacityConfig) -> None: ...

    async def remaining_general(self, event_id: str) -> int | None: ...

    async def remaining_slot(self, event_id: str, slot_time: datetime) -> int | None: ...

    async def try_reserve(
        self,
        event_id: str,
        *,
        general_units: int,
        slot_time: datetime | None = None,
        slot_units: int | None = None,
    ) -> ReservationOutcome: ...

    async def release(
        self,
        event_id: str,
        *,
        general_units: int,
        slot_time: datetime | None = None,
        slot_units: int | None = None,
    ) -> None: ...


class EventRepository(Protocol):
    async def get_config(self, event_id: str) -> EventCapacityConfig | None: ...


class RsvpRepository(Protocol):
    async def get(self, rsvp_id: str) -> Rsvp | None: ...

    async def get_for_update(self, rsvp_id: str) -> Rsvp | None:
        """Load the rsvp and lock it until the surrounding transaction ends."""
        ...

    async def create(
        self,
        *,
        event_id: str,
        name: str,
        email: str,
        plus_ones: int,
        wants_dinner: bool,
        result: AdmissionResult,
    ) -> Rsvp: ...

    async def record_offer_issued(
        self,
        rsvp: Rsvp,
        *,
        token: str,
        generated_at: datetime,
        expires_at: datetime,
    ) -> Rsvp: ...

    async def confirm_from_offer(
        self,
        rsvp: Rsvp,
        *,
        attendance_status: AttendanceStatus,
        dinner_booking_status: DinnerBookingStatus,
        held_general_units: int,
        held_slot_units: int,
        used_at: datetime,
    ) -> Rsvp: ...


class OfferRedemptionStore(Protocol):
    async def is_consumed(self, jti: str) -> bool: ...

    async def mark_consumed(self, jti: str, *, rsvp_id: str, payment_reference: str | None) -> bool:
        """Atomically record the offer as used. False if it already was."""
        ...
