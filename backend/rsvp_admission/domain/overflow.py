"""Dinner overflow policy: what happens when a seating is full but the event is not."""

from dataclasses import dataclass

from ..models import DinnerBookingStatus, DinnerOverflowAction


@dataclass(frozen=True)
class OverflowDecision:
    dinner_booking_status: DinnerBookingStatus
    # Units to hold against general capacity for the whole party.
    general_units: int
    fits: bool


def resolve_overflow(
    action: DinnerOverflowAction,
    *,
    party_size: int,
    dinner_party_size: int,
    remaining_general: int | None,
) -> OverflowDecision:
    """
    Pure function of the configured action, the requested resources and the
    general capacity left. `waitlist` keeps the dinner portion pending and only
    holds the cocktails-only guests; `cocktails` and `both` stand the whole
    party at cocktails, `both` additionally keeping it on the dinner waitlist.
    """
    if action == DinnerOverflowAction.WAITLIST:
        status = DinnerBookingStatus.WAITLIST
        units = party_size - dinner_party_size
    elif action == DinnerOverflowAction.COCKTAILS:
        status = DinnerBookingStatus.COCKTAILS
        units = party_size
    elif action == DinnerOverflowAction.BOTH:
        status = DinnerBookingStatus.COCKTAILS_WAITLIST
        units = party_size
    else:
        raise ValueError(f"unknown dinner overflow action: {action!r}")

    fits = remaining_general is None or units <= remaining_general
    return OverflowDecision(dinner_booking_status=status, general_units=units, fits=fits)
