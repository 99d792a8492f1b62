from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.errors import UnknownResourceError
from ..domain.repositories import CapacityLedger, EventRepository, OfferRedemptionStore, RsvpRepository
from ..domain.services import CounterSnapshot, check_reservation, generate_dinner_slots
from ..domain.types import AdmissionResult, EventCapacityConfig, Rejected, Reserved, ReservationOutcome
from ..models import (
    AttendanceStatus,
    CapacityCounter,
    DinnerBookingStatus,
    Event,
    Rsvp,
    WaitlistOfferRedemption,
)
from ..utils.time import ensure_utc, to_utc_naive, utc_naive_to_aware

logger = logging.getLogger(__name__)


def _now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _naive(dt: datetime) -> datetime:
    return to_utc_naive(ensure_utc(dt))


class SqlAlchemyCapacityLedger(CapacityLedger):
    """
    Counters stored in `capacity_counters`. Rows are locked with
    SELECT ... FOR UPDATE in id order, so the general and slot counters of one
    party are checked and written inside the caller's transaction.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def configure_event(self, config: EventCapacityConfig) -> None:
        rows = await self.session.scalars(
            select(CapacityCounter).where(CapacityCounter.event_id == config.event_id).with_for_update()
        )
        existing = {row.slot_time: row for row in rows}
        now = _now_naive()
        wanted: dict[Optional[datetime], Optional[int]] = {None: config.max_attendees}
        for slot_time in generate_dinner_slots(config):
            wanted[_naive(slot_time)] = config.dinner_max_seats_per_slot

        for slot_time, capacity in wanted.items():
            row = existing.get(slot_time)
            if row is None:
                self.session.add(
                    CapacityCounter(
                        event_id=config.event_id,
                        slot_time=slot_time,
                        capacity=capacity,
                        used=0,
                        version=1,
                        updated_at=now,
                    )
                )
            elif row.capacity != capacity:
                row.capacity = capacity
                row.version += 1
                row.updated_at = now
        await self.session.flush()

    async def _get(self, event_id: str, slot_time: datetime | None) -> CapacityCounter:
        stmt = select(CapacityCounter).where(CapacityCounter.event_id == event_id)
        if slot_time is None:
            stmt = stmt.where(CapacityCounter.slot_time.is_(None))
        else:
            stmt = stmt.where(CapacityCounter.slot_time == _naive(slot_time))
        row = await self.session.scalar(stmt)
        if row is None:
            raise UnknownResourceError(f"no capacity counter for event {event_id} slot {slot_time}")
        return row

    async def _lock(self, event_id: str, slot_time: datetime | None) -> Tuple[CapacityCounter, CapacityCounter | None]:
        condition = CapacityCounter.slot_time.is_(None)
        if slot_time is not None:
            condition = or_(condition, CapacityCounter.slot_time == _naive(slot_time))
        stmt = (
            select(CapacityCounter)
            .where(CapacityCounter.event_id == event_id, condition)
            .order_by(CapacityCounter.id)
            .with_for_update()
        )
        rows: List[CapacityCounter] = list(await self.session.scalars(stmt))
        general = next((row for row in rows if row.slot_time is None), None)
        slot = next((row for row in rows if row.slot_time is not None), None)
        if general is None:
            raise UnknownResourceError(f"no capacity configured for event {event_id}")
        if slot_time is not None and slot is None:
            raise UnknownResourceError(f"no dinner slot {slot_time.isoformat()} for event {event_id}")
        return general, slot

    async def remaining_general(self, event_id: str) -> int | None:
        row = await self._get(event_id, None)
        return CounterSnapshot(capacity=row.capacity, used=row.used).remaining

    async def remaining_slot(self, event_id: str, slot_time: datetime) -> int | None:
        row = await self._get(event_id, slot_time)
        return CounterSnapshot(capacity=row.capacity, used=row.used).remaining

    async def try_reserve(
        self,
        event_id: str,
        *,
        general_units: int,
        slot_time: datetime | None = None,
        slot_units: int | None = None,
    ) -> ReservationOutcome:
        seats = slot_units or 0
        general, slot = await self._lock(event_id, slot_time)
        reason = check_reservation(
            CounterSnapshot(capacity=general.capacity, used=general.used),
            CounterSnapshot(capacity=slot.capacity, used=slot.used) if slot is not None else None,
            general_units=general_units,
            slot_units=seats,
        )
        if reason is not None:
            return Rejected(reason)

        now = _now_naive()
        for row, units in ((general, general_units), (slot, seats)):
            if row is None:
                continue
            row.used += units
            row.version += 1
            row.updated_at = now
        await self.session.flush()
        return Reserved(
            general_units=general_units,
            slot_time=ensure_utc(slot_time) if slot_time is not None else None,
            slot_units=seats,
        )

    async def release(
        self,
        event_id: str,
        *,
        general_units: int,
        slot_time: datetime | None = None,
        slot_units: int | None = None,
    ) -> None:
        general, slot = await self._lock(event_id, slot_time)
        now = _now_naive()
        for row, units in ((general, general_units), (slot, slot_units or 0)):
            if row is None:
                continue
            if units > row.used:
                logger.warning("release of %d units exceeds %d held on counter %s; clamping", units, row.used, row.id)
            row.used = max(row.used - units, 0)
            row.version += 1
            row.updated_at = now
        await self.session.flush()


class SqlAlchemyEventRepository(EventRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_config(self, event_id: str) -> EventCapacityConfig | None:
        event = await self.session.get(Event, event_id)
        if event is None:
            return None
        return EventCapacityConfig(
            event_id=event.id,
            max_attendees=event.max_attendees,
            waitlist_enabled=event.waitlist_enabled,
            dinner_enabled=event.dinner_enabled,
            dinner_start_time=utc_naive_to_aware(event.dinner_start_time),
            dinner_end_time=utc_naive_to_aware(event.dinner_end_time),
            dinner_seating_interval_hours=event.dinner_seating_interval_hours,
            dinner_max_seats_per_slot=event.dinner_max_seats_per_slot,
            dinner_overflow_action=event.dinner_overflow_action,
            host_id=event.host_id,
        )


class SqlAlchemyRsvpRepository(RsvpRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, rsvp_id: str) -> Rsvp | None:
        return await self.session.get(Rsvp, rsvp_id)

    async def get_for_update(self, rsvp_id: str) -> Rsvp | None:
        return await self.session.scalar(select(Rsvp).where(Rsvp.id == rsvp_id).with_for_update())

    async def create(
        self,
        *,
        event_id: str,
        name: str,
        email: str,
        plus_ones: int,
        wants_dinner: bool,
        result: AdmissionResult,
    ) -> Rsvp:
        now = _now_naive()
        rsvp = Rsvp(
            id=uuid.uuid4().hex,
            event_id=event_id,
            name=name,
            email=email,
            plus_ones=plus_ones,
            wants_dinner=wants_dinner,
            dinner_time_slot=_naive(result.dinner_time_slot) if result.dinner_time_slot is not None else None,
            dinner_party_size=result.dinner_party_size,
            attendance_status=result.attendance_status,
            dinner_booking_status=result.dinner_booking_status,
            held_general_units=result.reserved_general_units,
            held_slot_units=result.reserved_slot_units,
            created_at=now,
            updated_at=now,
        )
        self.session.add(rsvp)
        await self.session.flush()
        return rsvp

    async def record_offer_issued(
        self,
        rsvp: Rsvp,
        *,
        token: str,
        generated_at: datetime,
        expires_at: datetime,
    ) -> Rsvp:
        rsvp.waitlist_link_generated_at = _naive(generated_at)
        rsvp.waitlist_link_expires_at = _naive(expires_at)
        rsvp.waitlist_link_token = token
        rsvp.updated_at = _now_naive()
        self.session.add(rsvp)
        await self.session.flush()
        return rsvp

    async def confirm_from_offer(
        self,
        rsvp: Rsvp,
        *,
        attendance_status: AttendanceStatus,
        dinner_booking_status: DinnerBookingStatus,
        held_general_units: int,
        held_slot_units: int,
        used_at: datetime,
    ) -> Rsvp:
        rsvp.attendance_status = attendance_status
        rsvp.dinner_booking_status = dinner_booking_status
        rsvp.held_general_units = held_general_units
        rsvp.held_slot_units = held_slot_units
        rsvp.waitlist_link_used_at = _naive(used_at)
        rsvp.updated_at = _now_naive()
        await self.session.flush()
        return rsvp


class SqlAlchemyOfferRedemptionStore(OfferRedemptionStore):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def is_consumed(self, jti: str) -> bool:
        stmt = select(WaitlistOfferRedemption.id).where(WaitlistOfferRedemption.jti == jti)
        return await self.session.scalar(stmt) is not None

    async def mark_consumed(self, jti: str, *, rsvp_id: str, payment_reference: str | None) -> bool:
        try:
            async with self.session.begin_nested():
                self.session.add(
                    WaitlistOfferRedemption(
                        jti=jti,
                        rsvp_id=rsvp_id,
                        payment_reference=payment_reference,
                        created_at=_now_naive(),
                    )
                )
                await self.session.flush()
        except IntegrityError:
            logger.info("waitlist offer %s already consumed", jti)
            return False
        return True
