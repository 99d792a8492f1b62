from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field, field_serializer

from .domain.offer_tokens import IssuedOffer
from .domain.payments import PaymentResult, PaymentStatus
from .domain.types import AdmissionResult, DinnerSlotAvailability
from .models import AttendanceStatus, DinnerBookingStatus
from .usecases.offers import OfferState, RedemptionResult


def _iso_utc(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat()


class DinnerSlotRead(BaseModel):
    time: datetime
    capacity: Optional[int]
    remaining: Optional[int]
    available: bool

    @field_serializer("time")
    def _ser_datetime(self, dt: datetime) -> str:
        return _iso_utc(dt)

    @classmethod
    def from_domain(cls, slot: DinnerSlotAvailability) -> "DinnerSlotRead":
        return cls(time=slot.time, capacity=slot.capacity, remaining=slot.remaining, available=slot.available)


class AdmissionCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    email: str = Field(min_length=3, max_length=255)
    plus_ones: int = Field(default=0, ge=0)
    wants_dinner: bool = False
    dinner_time_slot: Optional[datetime] = None
    dinner_party_size: Optional[int] = Field(default=None, ge=1)

    @property
    def party_size(self) -> int:
        return 1 + self.plus_ones


class AdmissionRead(BaseModel):
    rsvp_id: str
    attendance_status: AttendanceStatus
    dinner_booking_status: DinnerBookingStatus
    dinner_time_slot: Optional[datetime]
    dinner_party_size: Optional[int]
    reserved_general_units: int
    reserved_slot_units: int

    @field_serializer("dinner_time_slot")
    def _ser_datetime(self, dt: Optional[datetime]) -> Optional[str]:
        return _iso_utc(dt) if dt is not None else None

    @classmethod
    def from_result(cls, rsvp_id: str, result: AdmissionResult) -> "AdmissionRead":
        return cls(
            rsvp_id=rsvp_id,
            attendance_status=result.attendance_status,
            dinner_booking_status=result.dinner_booking_status,
            dinner_time_slot=result.dinner_time_slot,
            dinner_party_size=result.dinner_party_size,
            reserved_general_units=result.reserved_general_units,
            reserved_slot_units=result.reserved_slot_units,
        )


class OfferRead(BaseModel):
    token: str
    event_id: str
    rsvp_id: str
    expires_at: datetime

    @field_serializer("expires_at")
    def _ser_datetime(self, dt: datetime) -> str:
        return _iso_utc(dt)

    @classmethod
    def from_issued(cls, issued: IssuedOffer) -> "OfferRead":
        return cls(
            token=issued.token,
            event_id=issued.claims.event_id,
            rsvp_id=issued.claims.rsvp_id,
            expires_at=issued.claims.expires_at,
        )


class PaymentReport(BaseModel):
    status: PaymentStatus
    reference: Optional[str] = None
    reason: Optional[str] = None

    def to_result(self) -> PaymentResult:
        return PaymentResult(status=self.status, reference=self.reference, reason=self.reason)


class OfferRedeem(BaseModel):
    token: str = Field(min_length=1)
    payment: PaymentReport


class RedemptionRead(BaseModel):
    state: OfferState
    event_id: str
    rsvp_id: str
    attendance_status: AttendanceStatus
    dinner_booking_status: DinnerBookingStatus
    payment_reference: Optional[str] = None

    @classmethod
    def from_result(cls, result: RedemptionResult) -> "RedemptionRead":
        return cls(
            state=result.state,
            event_id=result.event_id,
            rsvp_id=result.rsvp_id,
            attendance_status=result.attendance_status,
            dinner_booking_status=result.dinner_booking_status,
            payment_reference=result.payment_reference,
        )
