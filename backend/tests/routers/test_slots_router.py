from datetime import datetime, timezone
from typing import cast

import pytest
from rsvp_admission.domain.errors import EventNotFoundError
from rsvp_admission.domain.types import DinnerSlotAvailability
from rsvp_admission.main import app
from rsvp_admission.routers import slots as router
from fastapi import HTTPException
from fastapi.routing import APIRoute
from sqlalchemy.ext.asyncio import AsyncSession

SLOT = datetime(2026, 12, 31, 18, 0, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_list_dinner_slots_serializes_availability(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_list(*args: object, **kwargs: object) -> list[DinnerSlotAvailability]:
        return [
            DinnerSlotAvailability(time=SLOT, capacity=4, remaining=0),
            DinnerSlotAvailability(time=SLOT.replace(hour=20), capacity=None, remaining=None),
        ]

    monkeypatch.setattr(router, "SqlAlchemyEventRepository", lambda s: s)  # type: ignore[assignment]
    monkeypatch.setattr(router, "SqlAlchemyCapacityLedger", lambda s: s)  # type: ignore[assignment]
    monkeypatch.setattr(router.slot_usecase, "list_dinner_availability", fake_list)  # type: ignore[attr-defined]

    rows = await router.list_dinner_slots(event_id="evt_1", session=cast(AsyncSession, object()))

    assert [row.available for row in rows] == [False, True]
    assert rows[0].model_dump()["time"] == "2026-12-31T18:00:00+00:00"


@pytest.mark.asyncio
async def test_list_dinner_slots_unknown_event(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_list(*args: object, **kwargs: object) -> list[DinnerSlotAvailability]:
        raise EventNotFoundError("event not found")

    monkeypatch.setattr(router, "SqlAlchemyEventRepository", lambda s: s)  # type: ignore[assignment]
    monkeypatch.setattr(router, "SqlAlchemyCapacityLedger", lambda s: s)  # type: ignore[assignment]
    monkeypatch.setattr(router.slot_usecase, "list_dinner_availability", fake_list)  # type: ignore[attr-defined]

    with pytest.raises(HTTPException) as excinfo:
        await router.list_dinner_slots(event_id="missing", session=cast(AsyncSession, object()))
    assert excinfo.value.status_code == 404


def test_app_exposes_admission_and_offer_routes() -> None:
    paths = {(route.path, method) for route in app.routes if isinstance(route, APIRoute) for method in route.methods}
    assert ("/events/{event_id}/dinner-slots", "GET") in paths
    assert ("/events/{event_id}/admission", "POST") in paths
    assert ("/rsvps/{rsvp_id}/waitlist-offer", "POST") in paths
    assert ("/waitlist-offers/redeem", "POST") in paths
    assert ("/health", "GET") in paths
