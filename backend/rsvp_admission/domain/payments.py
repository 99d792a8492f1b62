from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol

from .offer_tokens import OfferClaims


class PaymentStatus(StrEnum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    ABANDONED = "abandoned"


@dataclass(frozen=True)
class PaymentResult:
    status: PaymentStatus
    reference: str | None = None
    reason: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == PaymentStatus.SUCCEEDED


class PaymentCollaborator(Protocol):
    async def collect(self, claims: OfferClaims) -> PaymentResult: ...


class ReportedPayment:
    """Payment outcome already known to the caller, e.g. from a processor webhook."""

    def __init__(self, result: PaymentResult) -> None:
        self.result = result

    async def collect(self, claims: OfferClaims) -> PaymentResult:
        return self.result
