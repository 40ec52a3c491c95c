"""
Service interfaces for dependency inversion.
Allows swapping implementations without changing business logic.
"""

from .notifier import Notifier, OccasionCreatedNotice, TicketPurchaseNotice
from .payment import ChargeRequest, ChargeResult, PaymentGateway

__all__ = [
    'ChargeRequest', 'ChargeResult', 'PaymentGateway',
    'Notifier', 'OccasionCreatedNotice', 'TicketPurchaseNotice',
]
