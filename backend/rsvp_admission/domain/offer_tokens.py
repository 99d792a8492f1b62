from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Callable, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..utils.signing import JwtSigner, Signer
from ..utils.time import ensure_utc, utc_now
from .errors import ConfigurationError, InvalidTokenError, TokenExpiredError

if TYPE_CHECKING:
    from ..config import Settings

logger = logging.getLogger(__name__)

OFFER_TYPE = "waitlist_offer"
DEFAULT_OFFER_TTL = timedelta(hours=48)


class RsvpDetails(BaseModel):
    """Frozen copy of what the guest originally asked for."""

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="forbid")

    name: str
    email: str
    party_size: int = Field(alias="partySize", ge=1)
    plus_ones: int = Field(alias="plusOnes", ge=0)
    wants_dinner: bool = Field(alias="wantsDinner")
    dinner_time_slot: Optional[datetime] = Field(default=None, alias="dinnerTimeSlot")
    dinner_party_size: Optional[int] = Field(default=None, alias="dinnerPartySize", ge=1)

    @field_validator("dinner_time_slot")
    @classmethod
    def _utc_slot(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value) if value is not None else None


class OfferClaims(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="forbid")

    event_id: str = Field(alias="eventId")
    rsvp_id: str = Field(alias="rsvpId")
    email: str
    type: Literal["waitlist_offer"] = OFFER_TYPE
    expires_at: datetime = Field(alias="expiresAt")
    rsvp_details: RsvpDetails = Field(alias="rsvpDetails")
    jti: str
    iat: int

    @field_validator("expires_at")
    @classmethod
    def _utc_expiry(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    def to_payload(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


@dataclass(frozen=True)
class IssuedOffer:
    token: str
    claims: OfferClaims


class WaitlistOfferTokenService:
    def __init__(
        self,
        signer: Signer,
        *,
        ttl: timedelta = DEFAULT_OFFER_TTL,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._signer = signer
        self.ttl = ttl
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: "Settings", *, clock: Callable[[], datetime] = utc_now) -> "WaitlistOfferTokenService":
        if not settings.waitlist_token_secret:
            raise ConfigurationError(f"{settings.missing_secret_hint()} must be set")
        signer = JwtSigner(settings.waitlist_token_secret, algorithm=settings.waitlist_token_algorithm)
        return cls(signer, ttl=timedelta(hours=settings.waitlist_offer_ttl_hours), clock=clock)

    def now(self) -> datetime:
        return ensure_utc(self._clock())

    def issue(self, *, event_id: str, rsvp_id: str, email: str, rsvp_details: RsvpDetails) -> IssuedOffer:
        issued_at = self.now()
        claims = OfferClaims(
            event_id=event_id,
            rsvp_id=rsvp_id,
            email=email,
            expires_at=issued_at + self.ttl,
            rsvp_details=rsvp_details,
            jti=uuid.uuid4().hex,
            iat=int(issued_at.timestamp()),
        )
        token = self._signer.sign(claims.to_payload())
        logger.debug("issued waitlist offer %s for rsvp %s", claims.jti, rsvp_id)
        return IssuedOffer(token=token, claims=claims)

    def verify(self, token: str) -> OfferClaims:
        """
        Check signature, shape and expiry of a presented offer token.
        Raises InvalidTokenError or TokenExpiredError; never returns a payload
        whose signature did not match.
        """
        payload = self._signer.verify(token)
        try:
            claims = OfferClaims.model_validate(payload)
        except ValidationError as exc:
            raise InvalidTokenError("malformed waitlist offer") from exc
        if self.now() >= claims.expires_at:
            raise TokenExpiredError("token expired")
        return claims
