from venue_booking.schemas.booking import (
    GuestEntryResponse, GuestListResponse, GuestRename,
    OccasionPurchaseRequest, OccasionPurchaseResponse, TicketBookingResponse,
)
from venue_booking.schemas.email import SendEmailRequest
from venue_booking.schemas.occasion import (
    OccasionCreate, OccasionListResponse, OccasionResponse, OccasionUpdate,
)

__all__ = [
    "OccasionPurchaseRequest", "OccasionPurchaseResponse",
    "GuestEntryResponse", "GuestListResponse", "GuestRename", "TicketBookingResponse",
    "OccasionCreate", "OccasionUpdate", "OccasionResponse", "OccasionListResponse",
    "SendEmailRequest",
]
