import logging
from datetime import datetime

from ..domain.errors import CapacityExceeded, EventNotFoundError, InvalidAdmissionRequest
from ..domain.overflow import resolve_overflow
from ..domain.repositories import CapacityLedger, EventRepository, RsvpRepository
from ..domain.services import cocktails_only_portion, normalize_admission_request
from ..domain.types import AdmissionRequest, AdmissionResult, EventCapacityConfig, Rejected, RejectionReason, Reserved
from ..models import AttendanceStatus, DinnerBookingStatus, Rsvp

logger = logging.getLogger(__name__)


async def decide_admission(ledger: CapacityLedger, request: AdmissionRequest) -> AdmissionResult:
    """
    Decide confirmed vs waitlisted for one RSVP request and hold the capacity
    it was granted. Raises InvalidAdmissionRequest for malformed requests and
    CapacityExceeded when the event is full and its waitlist is disabled.
    """
    request = normalize_admission_request(request)
    event = request.event

    if not request.wants_dinner:
        outcome = await ledger.try_reserve(event.event_id, general_units=request.party_size)
        if isinstance(outcome, Reserved):
            return AdmissionResult(
                attendance_status=AttendanceStatus.CONFIRMED,
                dinner_booking_status=DinnerBookingStatus.NONE,
                reserved_general_units=outcome.general_units,
            )
        return _waitlist_or_reject(request, outcome)

    slot_time, dinner_party_size = request.dinner_time_slot, request.dinner_party_size
    if slot_time is None or dinner_party_size is None:
        raise InvalidAdmissionRequest("dinner requests need a time slot and a party size")
    cocktails_only = cocktails_only_portion(
        request.party_size,
        wants_dinner=True,
        dinner_party_size=dinner_party_size,
    )
    outcome = await ledger.try_reserve(
        event.event_id,
        general_units=cocktails_only,
        slot_time=slot_time,
        slot_units=dinner_party_size,
    )
    if isinstance(outcome, Reserved):
        return AdmissionResult(
            attendance_status=AttendanceStatus.CONFIRMED,
            dinner_booking_status=DinnerBookingStatus.CONFIRMED,
            dinner_time_slot=slot_time,
            dinner_party_size=dinner_party_size,
            reserved_general_units=outcome.general_units,
            reserved_slot_units=outcome.slot_units,
        )
    if outcome.reason == RejectionReason.SLOT_FULL:
        return await _apply_overflow(ledger, request, outcome, dinner_party_size=dinner_party_size)
    return _waitlist_or_reject(request, outcome)


async def _apply_overflow(
    ledger: CapacityLedger,
    request: AdmissionRequest,
    outcome: Rejected,
    *,
    dinner_party_size: int,
) -> AdmissionResult:
    event = request.event
    remaining_general = await ledger.remaining_general(event.event_id)
    decision = resolve_overflow(
        event.dinner_overflow_action,
        party_size=request.party_size,
        dinner_party_size=dinner_party_size,
        remaining_general=remaining_general,
    )
    if not decision.fits:
        return _waitlist_or_reject(request, outcome)

    held = await ledger.try_reserve(event.event_id, general_units=decision.general_units)
    if isinstance(held, Rejected):
        # general capacity went between the read and the reservation
        return _waitlist_or_reject(request, held)

    logger.info(
        "dinner slot %s full for event %s; applied overflow action %s",
        request.dinner_time_slot,
        event.event_id,
        event.dinner_overflow_action,
    )
    return AdmissionResult(
        attendance_status=AttendanceStatus.CONFIRMED,
        dinner_booking_status=decision.dinner_booking_status,
        dinner_time_slot=request.dinner_time_slot,
        dinner_party_size=dinner_party_size,
        reserved_general_units=held.general_units,
    )


def _waitlist_or_reject(request: AdmissionRequest, outcome: Rejected) -> AdmissionResult:
    if not request.event.waitlist_enabled:
        raise CapacityExceeded("event is full and waitlist is disabled", reason=outcome.reason.value)
    return AdmissionResult(
        attendance_status=AttendanceStatus.WAITLISTED,
        dinner_booking_status=DinnerBookingStatus.WAITLIST if request.wants_dinner else DinnerBookingStatus.NONE,
        dinner_time_slot=request.dinner_time_slot,
        dinner_party_size=request.dinner_party_size,
    )


async def admit_for_event(
    event_repo: EventRepository,
    ledger: CapacityLedger,
    *,
    event_id: str,
    party_size: int,
    wants_dinner: bool,
    dinner_time_slot: datetime | None = None,
    dinner_party_size: int | None = None,
) -> tuple[EventCapacityConfig, AdmissionResult]:
    event = await event_repo.get_config(event_id)
    if event is None:
        raise EventNotFoundError("event not found")
    # keep the counters in step with host edits to the capacity settings
    await ledger.configure_event(event)
    result = await decide_admission(
        ledger,
        AdmissionRequest(
            event=event,
            party_size=party_size,
            wants_dinner=wants_dinner,
            dinner_time_slot=dinner_time_slot,
            dinner_party_size=dinner_party_size,
        ),
    )
    return event, result


async def admit_rsvp(
    event_repo: EventRepository,
    rsvp_repo: RsvpRepository,
    ledger: CapacityLedger,
    *,
    event_id: str,
    name: str,
    email: str,
    plus_ones: int,
    wants_dinner: bool,
    dinner_time_slot: datetime | None = None,
    dinner_party_size: int | None = None,
) -> tuple[Rsvp, AdmissionResult]:
    """
    Admit a guest and store their rsvp with the statuses and units it was granted.
    Run inside one transaction so the row and the counters commit together.
    """
    _, result = await admit_for_event(
        event_repo,
        ledger,
        event_id=event_id,
        party_size=1 + plus_ones,
        wants_dinner=wants_dinner,
        dinner_time_slot=dinner_time_slot,
        dinner_party_size=dinner_party_size,
    )
    rsvp = await rsvp_repo.create(
        event_id=event_id,
        name=name,
        email=email,
        plus_ones=plus_ones,
        wants_dinner=wants_dinner,
        result=result,
    )
    logger.info("rsvp %s stored as %s for event %s", rsvp.id, result.attendance_status, event_id)
    return rsvp, result
