import logging

from fastapi import APIRouter, Depends, HTTPException, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_settings
from ..deps import get_current_user_id, get_session, get_token_service
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
    UnknownResourceError,
)
from ..domain.offer_tokens import WaitlistOfferTokenService
from ..domain.payments import ReportedPayment
from ..infrastructure.repositories import (
    SqlAlchemyCapacityLedger,
    SqlAlchemyEventRepository,
    SqlAlchemyOfferRedemptionStore,
    SqlAlchemyRsvpRepository,
)
from ..schemas import OfferRead, OfferRedeem, RedemptionRead
from ..usecases import offers as offer_usecase
from ..utils.audit_log import AuditAction, emit_audit_log

logger = logging.getLogger(__name__)

router = APIRouter(prefix="", tags=["waitlist-offers"])


@router.post("/rsvps/{rsvp_id}/waitlist-offer", response_model=OfferRead, status_code=status.HTTP_201_CREATED)
async def issue_offer(
    rsvp_id: str = Path(..., min_length=1),
    session: AsyncSession = Depends(get_session),
    user_id: int = Depends(get_current_user_id),
    token_service: WaitlistOfferTokenService = Depends(get_token_service),
) -> OfferRead:
    event_repo = SqlAlchemyEventRepository(session)
    rsvp_repo = SqlAlchemyRsvpRepository(session)
    async with session.begin():
        try:
            issued = await offer_usecase.issue_offer(
                event_repo,
                rsvp_repo,
                token_service,
                rsvp_id=rsvp_id,
                host_id=user_id,
            )
        except (RsvpNotFoundError, EventNotFoundError):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="rsvp not found")
        except NotEventHostError:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You don't have access to this event")
        except OfferNotAllowedError:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="rsvp is not on the waitlist")

    try:
        emit_audit_log(
            action="offer.issued",
            initiator="host",
            event_id=issued.claims.event_id,
            rsvp_id=issued.claims.rsvp_id,
            party_size=issued.claims.rsvp_details.party_size,
            extra={"expires_at": issued.claims.expires_at.isoformat()},
        )
    except RuntimeError:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="audit log failed")
    return OfferRead.from_issued(issued)


@router.post("/waitlist-offers/redeem", response_model=RedemptionRead)
async def redeem_offer(
    payload: OfferRedeem,
    session: AsyncSession = Depends(get_session),
    token_service: WaitlistOfferTokenService = Depends(get_token_service),
) -> RedemptionRead:
    ledger = SqlAlchemyCapacityLedger(session)
    offer_store = SqlAlchemyOfferRedemptionStore(session)
    rsvp_repo = SqlAlchemyRsvpRepository(session)
    try:
        async with session.begin():
            result = await offer_usecase.redeem_offer(
                ledger,
                offer_store,
                rsvp_repo,
                token_service,
                token=payload.token,
                payment=ReportedPayment(payload.payment.to_result()),
                payment_timeout=get_settings().payment_timeout_seconds,
            )
    except (TokenExpiredError, InvalidTokenError, TokenAlreadyRedeemed, UnknownResourceError) as exc:
        logger.info("waitlist offer refused: %s", exc)
        raise HTTPException(status_code=status.HTTP_410_GONE, detail=_failure_detail(exc))
    except CapacityExceededAtRedemption as exc:
        _audit_failure("offer.rejected", exc)
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=_failure_detail(exc))
    except PaymentFailed as exc:
        _audit_failure("offer.payment_failed", exc)
        raise HTTPException(status_code=status.HTTP_402_PAYMENT_REQUIRED, detail=_failure_detail(exc))
    except RsvpNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="rsvp not found")

    try:
        emit_audit_log(
            action="offer.redeemed",
            initiator="guest",
            event_id=result.event_id,
            rsvp_id=result.rsvp_id,
            attendance_status=result.attendance_status,
            dinner_booking_status=result.dinner_booking_status,
            extra={"payment_reference": result.payment_reference},
        )
    except RuntimeError:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="audit log failed")
    return RedemptionRead.from_result(result)


def _failure_detail(exc: Exception) -> dict[str, str]:
    return {
        "message": offer_usecase.guest_message(exc),
        "state": offer_usecase.state_after(exc).value,
    }


def _audit_failure(action: AuditAction, exc: Exception) -> None:
    try:
        emit_audit_log(action=action, initiator="guest", event_id=None, message=str(exc))
    except RuntimeError:
        logger.exception("failed to audit %s", action)
