from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest
from rsvp_admission.domain.errors import EventNotFoundError
from rsvp_admission.domain.types import EventCapacityConfig
from rsvp_admission.infrastructure.ledger import InMemoryCapacityLedger
from rsvp_admission.usecases import slots as uc

START = datetime(2026, 12, 31, 18, 0, tzinfo=timezone.utc)


class FakeEventRepo:
    def __init__(self, config: Optional[EventCapacityConfig]) -> None:
        self.config = config

    async def get_config(self, event_id: str) -> Optional[EventCapacityConfig]:
        return self.config


def _config(**overrides: object) -> EventCapacityConfig:
    values: dict = dict(
        event_id="evt_1",
        max_attendees=20,
        dinner_enabled=True,
        dinner_start_time=START,
        dinner_end_time=START + timedelta(hours=3),
        dinner_seating_interval_hours=1.5,
        dinner_max_seats_per_slot=4,
    )
    values.update(overrides)
    return EventCapacityConfig(**values)


@pytest.mark.asyncio
async def test_lists_each_seating_with_remaining_seats() -> None:
    config = _config()
    ledger = InMemoryCapacityLedger()
    await ledger.configure_event(config)
    await ledger.try_reserve("evt_1", general_units=0, slot_time=START, slot_units=4)
    await ledger.try_reserve("evt_1", general_units=0, slot_time=START + timedelta(hours=1.5), slot_units=1)

    rows = await uc.list_dinner_availability(FakeEventRepo(config), ledger, event_id="evt_1")

    assert [row.time for row in rows] == [START, START + timedelta(hours=1.5), START + timedelta(hours=3)]
    assert [row.remaining for row in rows] == [0, 3, 4]
    assert [row.available for row in rows] == [False, True, True]
    assert all(row.capacity == 4 for row in rows)


@pytest.mark.asyncio
async def test_unlimited_seats_are_always_available() -> None:
    config = _config(dinner_max_seats_per_slot=None)
    ledger = InMemoryCapacityLedger()
    await ledger.configure_event(config)

    rows = await uc.list_dinner_availability(FakeEventRepo(config), ledger, event_id="evt_1")

    assert rows
    assert all(row.remaining is None and row.available for row in rows)


@pytest.mark.asyncio
async def test_event_without_dinner_has_no_slots() -> None:
    config = _config(dinner_enabled=False)
    ledger = InMemoryCapacityLedger()
    await ledger.configure_event(config)

    assert await uc.list_dinner_availability(FakeEventRepo(config), ledger, event_id="evt_1") == []


@pytest.mark.asyncio
async def test_unknown_event_raises() -> None:
    with pytest.raises(EventNotFoundError):
        await uc.list_dinner_availability(FakeEventRepo(None), InMemoryCapacityLedger(), event_id="missing")
