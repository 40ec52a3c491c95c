"""
Guest roster for a booking.

The roster is positional: the organiser entry first, then entries in the
order they were created. Clients edit by index, filling or renaming slots.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from venue_booking.core.errors import InvalidRequest
from venue_booking.core.logging import get_logger
from venue_booking.models.guest import BookingGuest
from venue_booking.services.booking_service import get_booking

logger = get_logger(__name__)

ROSTER_ORDER = (
    BookingGuest.is_organiser.desc(),
    BookingGuest.created_at.asc(),
    BookingGuest.id.asc(),
)


def sort_roster(guests) -> list[BookingGuest]:
    """Same order as ROSTER_ORDER, for already-loaded collections."""
    return sorted(guests, key=lambda g: (not g.is_organiser, g.created_at, g.id))


async def list_guests(db: AsyncSession, booking_id: int) -> list[BookingGuest]:
    await get_booking(db, booking_id)
    result = await db.execute(
        select(BookingGuest).where(BookingGuest.booking_id == booking_id).order_by(*ROSTER_ORDER)
    )
    return list(result.scalars().all())


async def add_or_rename_guest(db: AsyncSession, booking_id: int, index: int, name: str) -> BookingGuest:
    """
    Rename the entry at `index`, or add a new non-organiser entry when the
    roster has no entry there yet.
    """
    name = (name or "").strip()
    if not name:
        raise InvalidRequest("Guest name is required")
    if index < 0:
        raise InvalidRequest("Guest index must not be negative")

    booking = await get_booking(db, booking_id)
    guests = await list_guests(db, booking_id)
    if index < len(guests):
        guest = guests[index]
        guest.guest_name = name
        action = "renamed"
    else:
        # Ticket holders name at most one guest per ticket
        if not booking.is_occasion_organiser and index >= booking.ticket_quantity:
            raise InvalidRequest(f"Only {booking.ticket_quantity} guests can be named on this booking")
        guest = BookingGuest(booking_id=booking_id, guest_name=name, is_organiser=False)
        db.add(guest)
        action = "added"

    await db.flush()
    await db.refresh(guest)
    logger.info("guest_entry_saved", booking_id=booking_id, index=index, action=action, guest_id=guest.id)
    return guest
