class DomainError(Exception):
    """Base class for admission and waitlist offer errors."""


class CapacityExceeded(DomainError):
    def __init__(self, message: str = "capacity exceeded", *, reason: str | None = None) -> None:
        super().__init__(message)
        self.reason = reason


class CapacityExceededAtRedemption(CapacityExceeded):
    """Capacity was claimed by someone else between offer issuance and redemption."""


class TokenExpiredError(DomainError):
    pass


class InvalidTokenError(DomainError):
    pass


class TokenAlreadyRedeemed(DomainError):
    pass


class ConfigurationError(DomainError):
    pass


class PaymentFailed(DomainError):
    def __init__(self, message: str = "payment failed", *, reference: str | None = None) -> None:
        super().__init__(message)
        self.reference = reference


class InvalidAdmissionRequest(DomainError, ValueError):
    pass


class UnknownResourceError(DomainError, ValueError):
    pass


class EventNotFoundError(DomainError):
    pass


class RsvpNotFoundError(DomainError):
    pass


class OfferNotAllowedError(DomainError):
    pass


class NotEventHostError(DomainError):
    pass
