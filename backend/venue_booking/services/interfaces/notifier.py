"""
Notification capability.
One method per message kind; the core never knows how messages are delivered.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from typing import Optional


@dataclass(frozen=True)
class TicketPurchaseNotice:
    customer_name: str
    customer_email: Optional[str]
    customer_phone: Optional[str]
    reference_code: str
    occasion_name: str
    occasion_date: date
    venue: str
    ticket_quantity: int
    ticket_price_cents: int
    total_amount_cents: int
    guest_list_url: str
    organiser_name: Optional[str]


@dataclass(frozen=True)
class OccasionCreatedNotice:
    organiser_name: Optional[str]
    organiser_email: str
    occasion_name: str
    occasion_date: date
    venue: str
    capacity: int
    organiser_url: str


class Notifier(ABC):
    """
    Interface for customer-facing notifications.

    Implementations:
    - EmailNotifier: renders templates and sends through Resend

    Raises NotifyFailure when a message could not be handed off.
    """

    @abstractmethod
    async def ticket_purchased(self, notice: TicketPurchaseNotice) -> None:
        pass

    @abstractmethod
    async def occasion_created(self, notice: OccasionCreatedNotice) -> None:
        pass
