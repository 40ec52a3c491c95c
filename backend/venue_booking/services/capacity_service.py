"""
Capacity ledger for occasions.

Remaining capacity is always derived from the child bookings in the caller's
transaction. It is never cached: the admission path reads it right before
charging, and again inside the commit transaction after taking the occasion
row lock.
"""

from typing import Iterable

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from venue_booking.core.errors import OccasionNotFound
from venue_booking.core.logging import get_logger
from venue_booking.core.metrics import oversold_detected
from venue_booking.models.booking import Booking

logger = get_logger(__name__)

CANCELLED = "cancelled"


def _allocated_tickets_query(occasion_id: int):
    return select(func.coalesce(func.sum(Booking.ticket_quantity), 0)).where(
        Booking.parent_booking_id == occasion_id,
        Booking.status != CANCELLED,
    )


async def allocated_tickets(db: AsyncSession, occasion_id: int) -> int:
    """Sum of ticket_quantity over non-cancelled child bookings."""
    return int((await db.execute(_allocated_tickets_query(occasion_id))).scalar_one())


async def remaining_capacity(db: AsyncSession, occasion_id: int) -> int:
    """
    capacity - allocated tickets.

    A negative value means the occasion is oversold. That is reported, not
    raised, so callers can still render and reject.
    """
    capacity = (
        await db.execute(
            select(Booking.capacity).where(
                Booking.id == occasion_id,
                Booking.is_occasion_organiser.is_(True),
            )
        )
    ).scalar_one_or_none()
    if capacity is None:
        raise OccasionNotFound()

    remaining = capacity - await allocated_tickets(db, occasion_id)
    if remaining < 0:
        oversold_detected.inc()
        logger.error(
            "occasion_oversold",
            occasion_id=occasion_id,
            capacity=capacity,
            remaining=remaining,
        )
    return remaining


async def occasion_stats(db: AsyncSession, occasion_ids: Iterable[int]) -> dict[int, dict]:
    """
    Booking counts per occasion for listings.
    Returns {occasion_id: {"total_bookings": n, "total_guests": tickets}}.
    """
    ids = list(occasion_ids)
    stats = {occasion_id: {"total_bookings": 0, "total_guests": 0} for occasion_id in ids}
    if not ids:
        return stats

    result = await db.execute(
        select(
            Booking.parent_booking_id,
            func.count(Booking.id),
            func.coalesce(func.sum(Booking.ticket_quantity), 0),
        )
        .where(
            Booking.parent_booking_id.in_(ids),
            Booking.status != CANCELLED,
        )
        .group_by(Booking.parent_booking_id)
    )
    for parent_id, bookings, guests in result.all():
        stats[parent_id] = {"total_bookings": int(bookings), "total_guests": int(guests)}
    return stats
