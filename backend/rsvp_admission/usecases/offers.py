from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from ..domain.errors import (
    CapacityExceededAtRedemption,
    EventNotFoundError,
    InvalidTokenError,
    NotEventHostError,
    OfferNotAllowedError,
    PaymentFailed,
    RsvpNotFoundError,
    TokenAlreadyRedeemed,
    TokenExpiredError,
)
from ..domain.offer_tokens import IssuedOffer, OfferClaims, RsvpDetails, WaitlistOfferTokenService
from ..domain.payments import PaymentCollaborator, PaymentResult, PaymentStatus
from ..domain.repositories import CapacityLedger, EventRepository, OfferRedemptionStore, RsvpRepository
from ..domain.services import cocktails_only_portion
from ..domain.types import Rejected
from ..models import AttendanceStatus, DinnerBookingStatus, Rsvp
from ..utils.time import utc_naive_to_aware

logger = logging.getLogger(__name__)

OFFER_NO_LONGER_VALID = "This offer is no longer valid"
SPOT_ALREADY_CLAIMED = "Someone else claimed this spot"


class OfferState(StrEnum):
    ISSUED = "issued"
    REDEEMING = "redeeming"
    CONFIRMED = "confirmed"
    EXPIRED = "expired"
    REJECTED = "rejected"


@dataclass(frozen=True)
class RedemptionResult:
    state: OfferState
    event_id: str
    rsvp_id: str
    attendance_status: AttendanceStatus
    dinner_booking_status: DinnerBookingStatus
    payment_reference: str | None = None


@dataclass(frozen=True)
class _Hold:
    general_units: int
    slot_time: datetime | None
    slot_units: int | None


def snapshot_rsvp(rsvp: Rsvp) -> RsvpDetails:
    return RsvpDetails(
        name=rsvp.name,
        email=rsvp.email,
        party_size=rsvp.party_size,
        plus_ones=rsvp.plus_ones,
        wants_dinner=rsvp.wants_dinner,
        dinner_time_slot=utc_naive_to_aware(rsvp.dinner_time_slot) if rsvp.wants_dinner else None,
        dinner_party_size=rsvp.dinner_party_size if rsvp.wants_dinner else None,
    )


def _hold_for(details: RsvpDetails) -> _Hold:
    if details.wants_dinner and details.dinner_time_slot is not None:
        dinner_party_size = details.dinner_party_size or details.party_size
        return _Hold(
            general_units=cocktails_only_portion(
                details.party_size, wants_dinner=True, dinner_party_size=dinner_party_size
            ),
            slot_time=details.dinner_time_slot,
            slot_units=dinner_party_size,
        )
    return _Hold(general_units=details.party_size, slot_time=None, slot_units=None)


async def issue_offer(
    event_repo: EventRepository,
    rsvp_repo: RsvpRepository,
    token_service: WaitlistOfferTokenService,
    *,
    rsvp_id: str,
    host_id: int | None = None,
) -> IssuedOffer:
    rsvp = await rsvp_repo.get(rsvp_id)
    if rsvp is None:
        raise RsvpNotFoundError("rsvp not found")
    event = await event_repo.get_config(rsvp.event_id)
    if event is None:
        raise EventNotFoundError("event not found")
    if host_id is not None and event.host_id != host_id:
        raise NotEventHostError("only the event host can extend waitlist offers")
    if rsvp.attendance_status != AttendanceStatus.WAITLISTED:
        raise OfferNotAllowedError("only waitlisted rsvps can receive an offer")

    issued = token_service.issue(
        event_id=rsvp.event_id,
        rsvp_id=rsvp.id,
        email=rsvp.email,
        rsvp_details=snapshot_rsvp(rsvp),
    )
    await rsvp_repo.record_offer_issued(
        rsvp,
        token=issued.token,
        generated_at=token_service.now(),
        expires_at=issued.claims.expires_at,
    )
    return issued


async def redeem_offer(
    ledger: CapacityLedger,
    offer_store: OfferRedemptionStore,
    rsvp_repo: RsvpRepository,
    token_service: WaitlistOfferTokenService,
    *,
    token: str,
    payment: PaymentCollaborator,
    payment_timeout: float = 30.0,
) -> RedemptionResult:
    """
    Issued -> Redeeming -> Confirmed. Expired and tampered tokens never touch
    the ledger; capacity is re-checked against the signed snapshot, and any
    hold is released again unless the offer ends up consumed.
    """
    claims = token_service.verify(token)
    if await offer_store.is_consumed(claims.jti):
        raise TokenAlreadyRedeemed("offer already redeemed")

    rsvp = await rsvp_repo.get_for_update(claims.rsvp_id)
    if rsvp is None:
        raise RsvpNotFoundError("rsvp not found")
    if rsvp.attendance_status != AttendanceStatus.WAITLISTED or rsvp.waitlist_link_used_at is not None:
        raise TokenAlreadyRedeemed("rsvp already left the waitlist")
    if rsvp.waitlist_link_token != token:
        # a newer offer was issued for this rsvp
        raise InvalidTokenError("offer was superseded")

    hold = _hold_for(claims.rsvp_details)
    outcome = await ledger.try_reserve(
        claims.event_id,
        general_units=hold.general_units,
        slot_time=hold.slot_time,
        slot_units=hold.slot_units,
    )
    if isinstance(outcome, Rejected):
        raise CapacityExceededAtRedemption("capacity claimed before redemption", reason=outcome.reason.value)

    try:
        result = await asyncio.wait_for(payment.collect(claims), timeout=payment_timeout)
    except asyncio.TimeoutError:
        result = PaymentResult(status=PaymentStatus.ABANDONED, reason="payment timed out")
    except BaseException:
        await _release(ledger, claims, hold)
        raise

    if not result.succeeded:
        await _release(ledger, claims, hold)
        raise PaymentFailed(result.reason or f"payment {result.status.value}", reference=result.reference)

    consumed = await offer_store.mark_consumed(
        claims.jti,
        rsvp_id=claims.rsvp_id,
        payment_reference=result.reference,
    )
    if not consumed:
        await _release(ledger, claims, hold)
        raise TokenAlreadyRedeemed("offer already redeemed")

    dinner_status = DinnerBookingStatus.CONFIRMED if hold.slot_time is not None else DinnerBookingStatus.NONE
    await rsvp_repo.confirm_from_offer(
        rsvp,
        attendance_status=AttendanceStatus.CONFIRMED,
        dinner_booking_status=dinner_status,
        held_general_units=hold.general_units,
        held_slot_units=hold.slot_units or 0,
        used_at=token_service.now(),
    )
    logger.info("waitlist offer %s redeemed for rsvp %s", claims.jti, claims.rsvp_id)
    return RedemptionResult(
        state=OfferState.CONFIRMED,
        event_id=claims.event_id,
        rsvp_id=claims.rsvp_id,
        attendance_status=AttendanceStatus.CONFIRMED,
        dinner_booking_status=dinner_status,
        payment_reference=result.reference,
    )


async def _release(ledger: CapacityLedger, claims: OfferClaims, hold: _Hold) -> None:
    await ledger.release(
        claims.event_id,
        general_units=hold.general_units,
        slot_time=hold.slot_time,
        slot_units=hold.slot_units,
    )
    logger.info("released hold for waitlist offer %s on event %s", claims.jti, claims.event_id)


def state_after(exc: Exception) -> OfferState:
    """Offer state a failed redemption leaves behind."""
    if isinstance(exc, TokenExpiredError):
        return OfferState.EXPIRED
    if isinstance(exc, PaymentFailed):
        return OfferState.ISSUED
    return OfferState.REJECTED


def guest_message(exc: Exception) -> str:
    """Expired, tampered and used offers all read the same to the guest."""
    if isinstance(exc, CapacityExceededAtRedemption):
        return SPOT_ALREADY_CLAIMED
    if isinstance(exc, PaymentFailed):
        return "Payment did not complete. You can retry while the offer is valid"
    return OFFER_NO_LONGER_VALID
