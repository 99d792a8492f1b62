from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_session
from ..domain.errors import EventNotFoundError
from ..infrastructure.repositories import SqlAlchemyCapacityLedger, SqlAlchemyEventRepository
from ..schemas import DinnerSlotRead
from ..usecases import slots as slot_usecase

router = APIRouter(prefix="/events", tags=["dinner-slots"])


@router.get("/{event_id}/dinner-slots", response_model=List[DinnerSlotRead])
async def list_dinner_slots(
    event_id: str,
    session: AsyncSession = Depends(get_session),
) -> list[DinnerSlotRead]:
    event_repo = SqlAlchemyEventRepository(session)
    ledger = SqlAlchemyCapacityLedger(session)
    try:
        rows = await slot_usecase.list_dinner_availability(event_repo, ledger, event_id=event_id)
    except EventNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="event not found")
    return [DinnerSlotRead.from_domain(slot) for slot in rows]
