"""
Payment gateway interface.
The admission service only sees this contract; the Square adapter and the
test fakes implement it.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ChargeRequest:
    source_id: str          # card nonce / payment token from the checkout form
    amount_cents: int
    currency: str
    idempotency_key: str
    location_id: str
    reference_id: Optional[str] = None
    note: Optional[str] = None


@dataclass(frozen=True)
class ChargeResult:
    payment_id: str
    status: str
    amount_cents: int


class PaymentGateway(ABC):
    """
    Interface for card payment providers.

    Implementations:
    - SquarePaymentGateway: Square Payments API over httpx
    """

    @abstractmethod
    async def charge(self, request: ChargeRequest) -> ChargeResult:
        """
        Take a payment. One call, one idempotency key.

        Raises:
            PaymentFailed: declined, rejected or provider error (no charge)
            PaymentOutcomeUnknown: no answer within the timeout
        """
        pass

    @abstractmethod
    async def refund(self, payment_id: str, amount_cents: int, currency: str, idempotency_key: str) -> str:
        """
        Refund a completed payment in full. Returns the refund id.

        Raises:
            PaymentFailed: the provider did not accept the refund
        """
        pass
