"""
Pydantic schemas for ticket purchases and booking read models.

The purchase endpoint speaks the booking site's camelCase JSON; dashboard
read models use snake_case like the rest of the API.
"""

from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, ValidationError, model_validator
from pydantic_core import PydanticCustomError

from venue_booking.core.errors import InvalidRequest

# Square rejects idempotency keys longer than 45 characters
MAX_IDEMPOTENCY_KEY_LENGTH = 45


def _invalid(message: str) -> PydanticCustomError:
    return PydanticCustomError("invalid_request", message)


class OccasionPurchaseRequest(BaseModel):
    share_token: Optional[str] = Field(None, alias="shareToken")
    customer_name: Optional[str] = Field(None, alias="customerName")
    customer_email: Optional[str] = Field(None, alias="customerEmail")
    customer_phone: Optional[str] = Field(None, alias="customerPhone")
    ticket_quantity: Optional[int] = Field(None, alias="ticketQuantity")
    payment_token: Optional[str] = Field(None, alias="paymentToken")
    idempotency_key: Optional[str] = Field(
        None, alias="idempotencyKey", max_length=MAX_IDEMPOTENCY_KEY_LENGTH
    )

    model_config = {"populate_by_name": True, "str_strip_whitespace": True}

    @model_validator(mode="after")
    def check_purchase_fields(self) -> "OccasionPurchaseRequest":
        # Same order and wording the booking site already shows to customers
        if not self.share_token:
            raise _invalid("Share token is required")
        if not self.customer_name:
            raise _invalid("Customer name is required")
        if not self.customer_email and not self.customer_phone:
            raise _invalid("Email or phone is required")
        if self.ticket_quantity is None or self.ticket_quantity <= 0:
            raise _invalid("Valid ticket quantity required")
        if not self.payment_token:
            raise _invalid("Payment token is required")
        self.customer_email = self.customer_email or None
        self.customer_phone = self.customer_phone or None
        self.idempotency_key = self.idempotency_key or None
        return self


def parse_purchase_request(payload: Any) -> OccasionPurchaseRequest:
    """Validate a raw JSON body, turning the first problem into InvalidRequest."""
    try:
        return OccasionPurchaseRequest.model_validate(payload)
    except ValidationError as e:
        error = e.errors()[0]
        if error["type"] == "invalid_request":
            raise InvalidRequest(error["msg"])
        field = ".".join(str(part) for part in error["loc"]) or "body"
        raise InvalidRequest(f"{field}: {error['msg']}")


class OccasionPurchaseResponse(BaseModel):
    success: bool = True
    booking_id: int = Field(alias="bookingId")
    reference_code: str = Field(alias="referenceCode")
    guest_list_token: str = Field(alias="guestListToken")
    payment_id: Optional[str] = Field(None, alias="paymentId")

    model_config = {"populate_by_name": True}


class GuestEntryResponse(BaseModel):
    id: int
    guest_name: str
    is_organiser: bool

    model_config = {"from_attributes": True}


class GuestRename(BaseModel):
    guest_name: str = Field(..., max_length=255)


class TicketBookingResponse(BaseModel):
    id: int
    reference_code: Optional[str]
    customer_name: Optional[str]
    customer_email: Optional[str]
    customer_phone: Optional[str]
    ticket_quantity: int
    total_amount_cents: int
    status: str
    payment_status: str
    created_at: datetime
    guests: list[GuestEntryResponse] = []

    model_config = {"from_attributes": True}


class GuestListResponse(BaseModel):
    """What a purchaser sees on their guest-list page."""

    booking_id: int
    reference_code: Optional[str]
    occasion_name: Optional[str]
    occasion_date: date
    venue: str
    ticket_quantity: int
    guests: list[GuestEntryResponse]
