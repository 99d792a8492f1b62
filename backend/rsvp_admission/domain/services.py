from dataclasses import dataclass, replace
from datetime import datetime, timedelta

from ..utils.time import ensure_utc
from .errors import InvalidAdmissionRequest
from .types import AdmissionRequest, EventCapacityConfig, RejectionReason

DEFAULT_SEATING_INTERVAL_HOURS = 2.0


@dataclass(frozen=True)
class CounterSnapshot:
    capacity: int | None
    used: int

    @property
    def remaining(self) -> int | None:
        if self.capacity is None:
            return None
        return max(self.capacity - self.used, 0)

    def fits(self, units: int) -> bool:
        remaining = self.remaining
        return remaining is None or units <= remaining


def check_reservation(
    general: CounterSnapshot,
    slot: CounterSnapshot | None,
    *,
    general_units: int,
    slot_units: int,
) -> RejectionReason | None:
    """
    Pure capacity check for one party across both resources.
    Returns None when everything fits, otherwise which resource is short.
    """
    if general_units < 0 or slot_units < 0:
        raise ValueError("units must not be negative")
    general_ok = general.fits(general_units)
    slot_ok = slot is None or slot.fits(slot_units)
    if general_ok and slot_ok:
        return None
    if not general_ok and not slot_ok:
        return RejectionReason.BOTH_FULL
    if not general_ok:
        return RejectionReason.GENERAL_FULL
    return RejectionReason.SLOT_FULL


def generate_dinner_slots(config: EventCapacityConfig) -> list[datetime]:
    """Seating times from dinner start to dinner end inclusive, one per interval."""
    if not config.dinner_enabled or config.dinner_start_time is None or config.dinner_end_time is None:
        return []
    hours = config.dinner_seating_interval_hours or DEFAULT_SEATING_INTERVAL_HOURS
    if hours <= 0:
        raise ValueError("dinner_seating_interval_hours must be positive")
    step = timedelta(hours=hours)
    current = ensure_utc(config.dinner_start_time)
    end = ensure_utc(config.dinner_end_time)
    slots: list[datetime] = []
    while current <= end:
        slots.append(current)
        current += step
    return slots


def cocktails_only_portion(party_size: int, *, wants_dinner: bool, dinner_party_size: int | None) -> int:
    if not wants_dinner:
        return party_size
    return party_size - (dinner_party_size or 0)


def normalize_admission_request(request: AdmissionRequest) -> AdmissionRequest:
    """Validate a raw request and fill dinner defaults. Raises InvalidAdmissionRequest."""
    if request.party_size < 1:
        raise InvalidAdmissionRequest("party_size must be >= 1")
    if not request.wants_dinner:
        return replace(request, dinner_time_slot=None, dinner_party_size=None)

    event = request.event
    if not event.dinner_enabled:
        raise InvalidAdmissionRequest("dinner is not offered for this event")
    if request.dinner_time_slot is None:
        raise InvalidAdmissionRequest("dinner_time_slot is required when dinner is requested")
    slot_time = ensure_utc(request.dinner_time_slot)
    known_slots = generate_dinner_slots(event)
    if known_slots and slot_time not in known_slots:
        raise InvalidAdmissionRequest("dinner_time_slot is not a seating time of this event")

    dinner_party_size = request.dinner_party_size
    if dinner_party_size is None:
        dinner_party_size = request.party_size
    if dinner_party_size < 1 or dinner_party_size > request.party_size:
        raise InvalidAdmissionRequest("dinner_party_size must be between 1 and party_size")
    return replace(request, dinner_time_slot=slot_time, dinner_party_size=dinner_party_size)
