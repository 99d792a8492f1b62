from __future__ import annotations

import logging
import threading
from dataclasses import replace
from datetime import datetime
from typing import TYPE_CHECKING, Optional, Tuple

from ..domain.errors import UnknownResourceError
from ..domain.services import CounterSnapshot, check_reservation, generate_dinner_slots
from ..domain.types import EventCapacityConfig, Rejected, RejectionReason, Reserved, ReservationOutcome
from ..utils.time import ensure_utc

if TYPE_CHECKING:
    from ..config import Settings

logger = logging.getLogger(__name__)

CounterKey = Tuple[str, Optional[datetime]]


def _key(event_id: str, slot_time: datetime | None = None) -> CounterKey:
    return (event_id, ensure_utc(slot_time) if slot_time is not None else None)


def _check_units(general_units: int, slot_time: datetime | None, slot_units: int | None) -> int:
    if general_units < 0:
        raise ValueError("general_units must not be negative")
    if slot_time is None:
        if slot_units:
            raise ValueError("slot_units given without slot_time")
        return 0
    if slot_units is None or slot_units < 0:
        raise ValueError("slot_units must be given with slot_time")
    return slot_units


class InMemoryCapacityLedger:
    """
    Process-local counters keyed by (event_id, slot_time). A reservation reads
    both counters, checks them, then commits both with a single
    compare-and-swap; a lost race is retried up to `max_retries` times.
    """

    def __init__(self, *, max_retries: int = 3) -> None:
        if max_retries < 1:
            raise ValueError("max_retries must be >= 1")
        self.max_retries = max_retries
        self._counters: dict[CounterKey, CounterSnapshot] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: "Settings") -> "InMemoryCapacityLedger":
        return cls(max_retries=settings.ledger_max_retries)

    async def configure_event(self, config: EventCapacityConfig) -> None:
        with self._lock:
            self._configure(_key(config.event_id), config.max_attendees)
            for slot_time in generate_dinner_slots(config):
                self._configure(_key(config.event_id, slot_time), config.dinner_max_seats_per_slot)

    def _configure(self, key: CounterKey, capacity: int | None) -> None:
        current = self._counters.get(key)
        used = current.used if current is not None else 0
        self._counters[key] = CounterSnapshot(capacity=capacity, used=used)

    def snapshot(self, event_id: str, slot_time: datetime | None = None) -> CounterSnapshot:
        key = _key(event_id, slot_time)
        current = self._counters.get(key)
        if current is None:
            if slot_time is None:
                raise UnknownResourceError(f"no capacity configured for event {event_id}")
            raise UnknownResourceError(f"no dinner slot {key[1].isoformat()} for event {event_id}")
        return current

    async def remaining_general(self, event_id: str) -> int | None:
        return self.snapshot(event_id).remaining

    async def remaining_slot(self, event_id: str, slot_time: datetime) -> int | None:
        return self.snapshot(event_id, slot_time).remaining

    def _compare_and_set(self, updates: dict[CounterKey, tuple[CounterSnapshot, CounterSnapshot]]) -> bool:
        with self._lock:
            # identity, not equality: every commit stores a fresh snapshot
            if any(self._counters.get(key) is not expected for key, (expected, _) in updates.items()):
                return False
            for key, (_, new) in updates.items():
                self._counters[key] = new
            return True

    async def try_reserve(
        self,
        event_id: str,
        *,
        general_units: int,
        slot_time: datetime | None = None,
        slot_units: int | None = None,
    ) -> ReservationOutcome:
        seats = _check_units(general_units, slot_time, slot_units)
        general_key = _key(event_id)
        slot_key = _key(event_id, slot_time) if slot_time is not None else None

        for attempt in range(1, self.max_retries + 1):
            general = self.snapshot(event_id)
            slot = self.snapshot(event_id, slot_time) if slot_time is not None else None
            reason = check_reservation(general, slot, general_units=general_units, slot_units=seats)
            if reason is not None:
                return Rejected(reason)

            updates = {general_key: (general, replace(general, used=general.used + general_units))}
            if slot_key is not None and slot is not None:
                updates[slot_key] = (slot, replace(slot, used=slot.used + seats))
            if self._compare_and_set(updates):
                return Reserved(general_units=general_units, slot_time=slot_key[1] if slot_key else None, slot_units=seats)
            logger.debug("ledger conflict on event %s (attempt %d/%d)", event_id, attempt, self.max_retries)

        logger.warning("ledger gave up on event %s after %d conflicting attempts", event_id, self.max_retries)
        return Rejected(RejectionReason.CONTENTION)

    async def release(
        self,
        event_id: str,
        *,
        general_units: int,
        slot_time: datetime | None = None,
        slot_units: int | None = None,
    ) -> None:
        seats = _check_units(general_units, slot_time, slot_units)
        with self._lock:
            self._decrement(_key(event_id), general_units)
            if slot_time is not None:
                self._decrement(_key(event_id, slot_time), seats)

    def _decrement(self, key: CounterKey, units: int) -> None:
        current = self._counters.get(key)
        if current is None:
            raise UnknownResourceError(f"no counter for {key!r}")
        if units > current.used:
            logger.warning("release of %d units exceeds %d held on %r; clamping to zero", units, current.used, key)
        self._counters[key] = replace(current, used=max(current.used - units, 0))


class InMemoryOfferRedemptionStore:
    def __init__(self) -> None:
        self._consumed: dict[str, tuple[str, str | None]] = {}
        self._lock = threading.Lock()

    async def is_consumed(self, jti: str) -> bool:
        return jti in self._consumed

    async def mark_consumed(self, jti: str, *, rsvp_id: str, payment_reference: str | None) -> bool:
        with self._lock:
            if jti in self._consumed:
                return False
            self._consumed[jti] = (rsvp_id, payment_reference)
            return True
