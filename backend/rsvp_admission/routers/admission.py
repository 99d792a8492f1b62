from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_session
from ..domain.errors import CapacityExceeded, EventNotFoundError, InvalidAdmissionRequest, UnknownResourceError
from ..infrastructure.repositories import SqlAlchemyCapacityLedger, SqlAlchemyEventRepository, SqlAlchemyRsvpRepository
from ..models import AttendanceStatus
from ..schemas import AdmissionCreate, AdmissionRead
from ..usecases import admission as admission_usecase
from ..utils.audit_log import emit_audit_log

router = APIRouter(prefix="/events", tags=["admission"])


@router.post("/{event_id}/admission", response_model=AdmissionRead)
async def decide_admission(
    event_id: str,
    payload: AdmissionCreate,
    session: AsyncSession = Depends(get_session),
) -> AdmissionRead:
    event_repo = SqlAlchemyEventRepository(session)
    rsvp_repo = SqlAlchemyRsvpRepository(session)
    ledger = SqlAlchemyCapacityLedger(session)
    async with session.begin():
        try:
            rsvp, result = await admission_usecase.admit_rsvp(
                event_repo,
                rsvp_repo,
                ledger,
                event_id=event_id,
                name=payload.name,
                email=payload.email,
                plus_ones=payload.plus_ones,
                wants_dinner=payload.wants_dinner,
                dinner_time_slot=payload.dinner_time_slot,
                dinner_party_size=payload.dinner_party_size,
            )
        except EventNotFoundError:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="event not found")
        except (InvalidAdmissionRequest, UnknownResourceError) as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
        except CapacityExceeded:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail={"error": "full", "message": "Event is full and waitlist is disabled"},
            )

    try:
        emit_audit_log(
            action="rsvp.admitted" if result.attendance_status == AttendanceStatus.CONFIRMED else "rsvp.waitlisted",
            initiator="guest",
            event_id=event_id,
            rsvp_id=rsvp.id,
            party_size=payload.party_size,
            attendance_status=result.attendance_status,
            dinner_booking_status=result.dinner_booking_status,
        )
    except RuntimeError:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="audit log failed")
    return AdmissionRead.from_result(rsvp.id, result)
