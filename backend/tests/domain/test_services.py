from datetime import datetime, timedelta, timezone

import pytest
from rsvp_admission.domain.errors import InvalidAdmissionRequest
from rsvp_admission.domain.services import (
    CounterSnapshot,
    check_reservation,
    cocktails_only_portion,
    generate_dinner_slots,
    normalize_admission_request,
)
from rsvp_admission.domain.types import AdmissionRequest, EventCapacityConfig, RejectionReason

DINNER_START = datetime(2026, 12, 31, 18, 0, tzinfo=timezone.utc)


def _dinner_event(**overrides: object) -> EventCapacityConfig:
    values: dict = dict(
        event_id="evt_1",
        max_attendees=10,
        dinner_enabled=True,
        dinner_start_time=DINNER_START,
        dinner_end_time=DINNER_START + timedelta(hours=4),
        dinner_seating_interval_hours=2,
        dinner_max_seats_per_slot=2,
    )
    values.update(overrides)
    return EventCapacityConfig(**values)


def test_counter_remaining_never_negative() -> None:
    assert CounterSnapshot(capacity=2, used=5).remaining == 0
    assert CounterSnapshot(capacity=None, used=5).remaining is None


def test_check_reservation_accepts_when_both_fit() -> None:
    general = CounterSnapshot(capacity=10, used=9)
    slot = CounterSnapshot(capacity=2, used=1)
    assert check_reservation(general, slot, general_units=1, slot_units=1) is None


def test_check_reservation_reports_which_resource_is_short() -> None:
    full = CounterSnapshot(capacity=2, used=2)
    roomy = CounterSnapshot(capacity=10, used=0)
    assert check_reservation(full, roomy, general_units=1, slot_units=1) == RejectionReason.GENERAL_FULL
    assert check_reservation(roomy, full, general_units=1, slot_units=1) == RejectionReason.SLOT_FULL
    assert check_reservation(full, full, general_units=1, slot_units=1) == RejectionReason.BOTH_FULL


def test_check_reservation_unlimited_never_rejects() -> None:
    unlimited = CounterSnapshot(capacity=None, used=1000)
    assert check_reservation(unlimited, unlimited, general_units=500, slot_units=500) is None


def test_zero_units_fit_a_full_counter() -> None:
    full = CounterSnapshot(capacity=3, used=3)
    assert check_reservation(full, None, general_units=0, slot_units=0) is None


def test_generate_dinner_slots_includes_end_time() -> None:
    slots = generate_dinner_slots(_dinner_event())
    assert slots == [DINNER_START, DINNER_START + timedelta(hours=2), DINNER_START + timedelta(hours=4)]


def test_generate_dinner_slots_empty_without_dinner() -> None:
    assert generate_dinner_slots(_dinner_event(dinner_enabled=False)) == []
    assert generate_dinner_slots(_dinner_event(dinner_end_time=None)) == []


def test_generate_dinner_slots_treats_naive_times_as_utc() -> None:
    naive_start = DINNER_START.replace(tzinfo=None)
    slots = generate_dinner_slots(_dinner_event(dinner_start_time=naive_start, dinner_end_time=naive_start))
    assert slots == [DINNER_START]


def test_cocktails_only_portion() -> None:
    assert cocktails_only_portion(4, wants_dinner=False, dinner_party_size=None) == 4
    assert cocktails_only_portion(4, wants_dinner=True, dinner_party_size=3) == 1


def test_normalize_drops_dinner_fields_when_not_wanted() -> None:
    request = AdmissionRequest(
        event=_dinner_event(),
        party_size=2,
        wants_dinner=False,
        dinner_time_slot=DINNER_START,
        dinner_party_size=2,
    )
    normalized = normalize_admission_request(request)
    assert normalized.dinner_time_slot is None
    assert normalized.dinner_party_size is None


def test_normalize_defaults_dinner_party_to_whole_party() -> None:
    request = AdmissionRequest(event=_dinner_event(), party_size=3, wants_dinner=True, dinner_time_slot=DINNER_START)
    assert normalize_admission_request(request).dinner_party_size == 3


@pytest.mark.parametrize(
    "overrides",
    [
        {"party_size": 0},
        {"dinner_time_slot": None},
        {"dinner_time_slot": DINNER_START + timedelta(minutes=30)},
        {"dinner_party_size": 5},
        {"dinner_party_size": 0},
    ],
)
def test_normalize_rejects_invalid_dinner_requests(overrides: dict) -> None:
    values: dict = dict(
        event=_dinner_event(),
        party_size=2,
        wants_dinner=True,
        dinner_time_slot=DINNER_START,
        dinner_party_size=2,
    )
    values.update(overrides)
    with pytest.raises(InvalidAdmissionRequest):
        normalize_admission_request(AdmissionRequest(**values))


def test_normalize_rejects_dinner_on_event_without_dinner() -> None:
    request = AdmissionRequest(
        event=_dinner_event(dinner_enabled=False),
        party_size=1,
        wants_dinner=True,
        dinner_time_slot=DINNER_START,
    )
    with pytest.raises(InvalidAdmissionRequest):
        normalize_admission_request(request)
