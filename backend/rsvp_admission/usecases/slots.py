from typing import List

from ..domain.errors import EventNotFoundError
from ..domain.repositories import CapacityLedger, EventRepository
from ..domain.services import generate_dinner_slots
from ..domain.types import DinnerSlotAvailability


async def list_dinner_availability(
    event_repo: EventRepository,
    ledger: CapacityLedger,
    *,
    event_id: str,
) -> List[DinnerSlotAvailability]:
    event = await event_repo.get_config(event_id)
    if event is None:
        raise EventNotFoundError("event not found")
    items: List[DinnerSlotAvailability] = []
    for slot_time in generate_dinner_slots(event):
        remaining = await ledger.remaining_slot(event_id, slot_time)
        items.append(
            DinnerSlotAvailability(
                time=slot_time,
                capacity=event.dinner_max_seats_per_slot,
                remaining=remaining,
            )
        )
    return items
