"""
Pydantic schemas for occasion management.
"""

from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field

Venue = Literal["manor", "hippie"]
OccasionStatus = Literal["pending", "confirmed", "cancelled", "completed"]


class OccasionCreate(BaseModel):
    venue: Venue
    name: str = Field(..., min_length=1, max_length=255)
    occasion_date: date
    capacity: int = Field(..., gt=0, le=10000)
    ticket_price_cents: int = Field(..., ge=0)
    organiser_name: Optional[str] = Field(None, max_length=255)
    organiser_email: Optional[EmailStr] = None
    organiser_phone: Optional[str] = Field(None, max_length=50)
    notes: Optional[str] = None
    send_email: bool = False


class OccasionUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    occasion_date: Optional[date] = None
    capacity: Optional[int] = Field(None, gt=0, le=10000)
    ticket_price_cents: Optional[int] = Field(None, ge=0)
    organiser_name: Optional[str] = Field(None, max_length=255)
    organiser_email: Optional[EmailStr] = None
    organiser_phone: Optional[str] = Field(None, max_length=50)
    status: Optional[OccasionStatus] = None
    notes: Optional[str] = None


class OccasionResponse(BaseModel):
    id: int
    venue: str
    occasion_name: str
    occasion_date: date
    capacity: int
    ticket_price_cents: int
    organiser_name: Optional[str]
    organiser_email: Optional[str]
    organiser_phone: Optional[str]
    organiser_token: Optional[str]
    share_token: Optional[str]
    organiser_url: str
    share_url: str
    status: str
    notes: Optional[str]
    total_bookings: int
    total_guests: int
    remaining_capacity: int
    created_at: datetime


class OccasionListResponse(BaseModel):
    occasions: list[OccasionResponse]
    total: int
    cached: bool = False
