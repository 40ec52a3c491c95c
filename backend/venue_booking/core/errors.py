"""Domain errors for occasion ticketing.

Every error carries a code, a user-safe message and the HTTP status the API
layer renders it with. ``after_payment`` marks failures that happen once the
card has been charged: those are the ones that need a human.
"""

from enum import Enum
from typing import Optional


class ErrorCode(Enum):
    """Domain error codes."""

    INVALID_REQUEST = "INVALID_REQUEST"
    OCCASION_NOT_FOUND = "OCCASION_NOT_FOUND"
    INACTIVE_OCCASION = "INACTIVE_OCCASION"
    CAPACITY_EXCEEDED = "CAPACITY_EXCEEDED"
    PAYMENT_FAILED = "PAYMENT_FAILED"
    PAYMENT_OUTCOME_UNKNOWN = "PAYMENT_OUTCOME_UNKNOWN"
    PERSISTENCE_FAILURE = "PERSISTENCE_FAILURE"
    NOTIFY_FAILURE = "NOTIFY_FAILURE"
    BOOKING_NOT_FOUND = "BOOKING_NOT_FOUND"
    CONFIGURATION_MISSING = "CONFIGURATION_MISSING"


class DomainError(Exception):
    """Base domain error with code and user-safe message."""

    code: ErrorCode = ErrorCode.INVALID_REQUEST
    status_code: int = 400
    after_payment: bool = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class InvalidRequest(DomainError):
    """Malformed input. Raised before any lookup or external call."""

    code = ErrorCode.INVALID_REQUEST


class OccasionNotFound(DomainError):
    code = ErrorCode.OCCASION_NOT_FOUND

    def __init__(self, message: str = "Invalid or inactive occasion") -> None:
        super().__init__(message)


class InactiveOccasion(OccasionNotFound):
    """The share token resolves, but the occasion is not taking purchases."""

    code = ErrorCode.INACTIVE_OCCASION

    def __init__(self, status: str) -> None:
        super().__init__("Invalid or inactive occasion")
        self.occasion_status = status


class CapacityExceeded(DomainError):
    code = ErrorCode.CAPACITY_EXCEEDED

    def __init__(self, remaining: int, requested: int) -> None:
        super().__init__(
            f"Only {max(remaining, 0)} spots remaining. Requested {requested}."
        )
        self.remaining = max(remaining, 0)
        self.requested = requested


class PaymentFailed(DomainError):
    """Gateway declined or errored. No booking exists."""

    code = ErrorCode.PAYMENT_FAILED

    def __init__(self, message: str = "Payment processing failed") -> None:
        super().__init__(message)


class PaymentOutcomeUnknown(DomainError):
    """The gateway did not answer in time; the charge may or may not exist."""

    code = ErrorCode.PAYMENT_OUTCOME_UNKNOWN
    status_code = 502
    after_payment = True

    def __init__(self, idempotency_key: str) -> None:
        super().__init__(
            "Payment status could not be confirmed. "
            f"Retry with idempotency key {idempotency_key} to avoid a second charge."
        )
        self.idempotency_key = idempotency_key


class PersistenceFailure(DomainError):
    """The card was charged but the booking could not be written."""

    code = ErrorCode.PERSISTENCE_FAILURE
    status_code = 500
    after_payment = True

    def __init__(self, payment_id: Optional[str]) -> None:
        super().__init__(
            "Payment was taken but the booking could not be saved. "
            f"Our team has been alerted (payment {payment_id})."
        )
        self.payment_id = payment_id


class NotifyFailure(DomainError):
    """Confirmation could not be delivered. Never fails the admission."""

    code = ErrorCode.NOTIFY_FAILURE
    status_code = 502


class BookingNotFound(DomainError):
    code = ErrorCode.BOOKING_NOT_FOUND
    status_code = 404

    def __init__(self) -> None:
        super().__init__("Booking not found")


class ConfigurationMissing(DomainError):
    code = ErrorCode.CONFIGURATION_MISSING
    status_code = 500
