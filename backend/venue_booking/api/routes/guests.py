"""
Guest roster endpoints, for staff (by booking id or reference code) and
purchasers (by their guest-list token).
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from venue_booking.api.routes.occasions import ticket_booking_response
from venue_booking.db.session import get_db
from venue_booking.schemas.booking import (
    GuestEntryResponse,
    GuestListResponse,
    GuestRename,
    TicketBookingResponse,
)
from venue_booking.services.booking_service import (
    get_booking_by_guest_list_token,
    get_booking_by_reference_code,
)
from venue_booking.services.guest_service import add_or_rename_guest, list_guests

router = APIRouter(tags=["Guests"])


@router.get("/bookings/reference/{reference_code}", response_model=TicketBookingResponse)
async def get_booking_by_reference(reference_code: str, db: AsyncSession = Depends(get_db)):
    """Look up a ticket booking by the code printed on its confirmation."""
    booking = await get_booking_by_reference_code(db, reference_code)
    return ticket_booking_response(booking)


@router.get("/bookings/{booking_id}/guests", response_model=list[GuestEntryResponse])
async def list_booking_guests(booking_id: int, db: AsyncSession = Depends(get_db)):
    """Organiser entry first, then in the order guests were added."""
    return await list_guests(db, booking_id)


@router.put("/bookings/{booking_id}/guests/{index}", response_model=GuestEntryResponse)
async def save_booking_guest(
    booking_id: int,
    index: int,
    body: GuestRename,
    db: AsyncSession = Depends(get_db),
):
    guest = await add_or_rename_guest(db, booking_id, index, body.guest_name)
    await db.commit()
    return guest


@router.get("/guest-lists/{token}", response_model=GuestListResponse)
async def get_guest_list(token: str, db: AsyncSession = Depends(get_db)):
    booking = await get_booking_by_guest_list_token(db, token)
    guests = await list_guests(db, booking.id)
    return GuestListResponse(
        booking_id=booking.id,
        reference_code=booking.reference_code,
        occasion_name=booking.occasion_name,
        occasion_date=booking.booking_date,
        venue=booking.venue,
        ticket_quantity=booking.ticket_quantity,
        guests=[GuestEntryResponse.model_validate(g) for g in guests],
    )


@router.put("/guest-lists/{token}/guests/{index}", response_model=GuestEntryResponse)
async def save_guest_list_entry(
    token: str,
    index: int,
    body: GuestRename,
    db: AsyncSession = Depends(get_db),
):
    booking = await get_booking_by_guest_list_token(db, token)
    guest = await add_or_rename_guest(db, booking.id, index, body.guest_name)
    await db.commit()
    return guest
