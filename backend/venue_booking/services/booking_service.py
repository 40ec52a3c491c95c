"""
Ticket booking persistence with a concurrency-safe capacity check.

CONCURRENCY STRATEGY: Row-version lock + re-check in one transaction
=====================================================================

Problem:
  Two purchasers read remaining=2 before paying, both ask for 2 tickets.
  Both charges succeed. Writing both bookings oversells the occasion.

Solution:
  The read-time capacity check is advisory. The booking is written by a
  conditional commit:

  1. UPDATE bookings SET version = version + 1
     WHERE id = :occasion_id AND is_occasion_organiser AND status = 'confirmed'
     rows_affected == 0 -> the occasion stopped taking purchases
     rows_affected == 1 -> we hold the occasion row lock until commit
  2. SELECT capacity - SUM(ticket_quantity) of non-cancelled child bookings
  3. INSERT the ticket booking and the purchaser's guest entry

  Every writer that changes allocation goes through step 1 first, so the sum
  read in step 2 cannot move underneath us. Token collisions (unique
  constraint) roll back and retry with fresh tokens, up to MAX_RETRY_ATTEMPTS.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from venue_booking.core.errors import (
    BookingNotFound,
    CapacityExceeded,
    InactiveOccasion,
    OccasionNotFound,
)
from venue_booking.core.logging import get_logger
from venue_booking.core.metrics import commit_retries
from venue_booking.models.booking import Booking
from venue_booking.models.guest import BookingGuest
from venue_booking.services.capacity_service import remaining_capacity
from venue_booking.services.token_service import (
    generate_guest_list_token,
    generate_reference_code,
)

logger = get_logger(__name__)

MAX_RETRY_ATTEMPTS = 3


async def find_replayed_booking(
    db: AsyncSession,
    occasion_id: int,
    payment_reference: Optional[str] = None,
    idempotency_key: Optional[str] = None,
) -> Optional[Booking]:
    """
    The ticket booking an earlier attempt of the same purchase already wrote,
    matched by its charge id or by the caller's idempotency key.
    """
    matches = []
    if payment_reference:
        matches.append(Booking.payment_reference == payment_reference)
    if idempotency_key:
        matches.append(Booking.idempotency_key == idempotency_key)
    if not matches:
        return None

    result = await db.execute(
        select(Booking)
        .where(Booking.parent_booking_id == occasion_id, or_(*matches))
        .order_by(Booking.id)
        .limit(1)
    )
    return result.scalar_one_or_none()


async def lock_occasion(db: AsyncSession, occasion_id: int, require_confirmed: bool = True) -> None:
    """
    Bump the occasion row version, holding its lock until the transaction ends.

    Raises OccasionNotFound when there is no such occasion and
    InactiveOccasion when `require_confirmed` and it is not confirmed.
    """
    conditions = [Booking.id == occasion_id, Booking.is_occasion_organiser.is_(True)]
    if require_confirmed:
        conditions.append(Booking.status == "confirmed")

    result = await db.execute(
        update(Booking)
        .where(*conditions)
        .values(version=Booking.version + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 1:
        return

    status = (
        await db.execute(
            select(Booking.status).where(
                Booking.id == occasion_id,
                Booking.is_occasion_organiser.is_(True),
            )
        )
    ).scalar_one_or_none()
    if status is None:
        raise OccasionNotFound()
    raise InactiveOccasion(status)


async def commit_ticket_booking(
    db: AsyncSession,
    occasion: Booking,
    *,
    customer_name: str,
    customer_email: Optional[str],
    customer_phone: Optional[str],
    ticket_quantity: int,
    payment_reference: Optional[str],
    payment_status: str = "paid",
    idempotency_key: Optional[str] = None,
) -> Booking:
    """
    Lock the occasion, re-check capacity and write the ticket booking plus the
    purchaser's guest entry. The caller commits.

    `occasion` is only read for its id and descriptive fields; it may belong
    to another (closed) session.
    """
    for attempt in range(1, MAX_RETRY_ATTEMPTS + 1):
        await lock_occasion(db, occasion.id)

        # Same purchase replayed (caller retried with its idempotency key)
        existing = await find_replayed_booking(db, occasion.id, payment_reference, idempotency_key)
        if existing:
            logger.info(
                "ticket_booking_replayed",
                booking_id=existing.id,
                occasion_id=occasion.id,
                payment_reference=payment_reference,
            )
            return existing

        remaining = await remaining_capacity(db, occasion.id)
        if ticket_quantity > remaining:
            logger.warning(
                "ticket_commit_capacity_lost",
                occasion_id=occasion.id,
                requested=ticket_quantity,
                remaining=remaining,
            )
            raise CapacityExceeded(remaining, ticket_quantity)

        booking = Booking(
            booking_type="occasion",
            is_occasion_organiser=False,
            parent_booking_id=occasion.id,
            venue=occasion.venue,
            occasion_name=occasion.occasion_name,
            booking_date=occasion.booking_date,
            reference_code=generate_reference_code(),
            guest_list_token=generate_guest_list_token(),
            ticket_quantity=ticket_quantity,
            ticket_price_cents=occasion.ticket_price_cents,
            total_amount_cents=occasion.ticket_price_cents * ticket_quantity,
            customer_name=customer_name,
            customer_email=customer_email,
            customer_phone=customer_phone,
            status="confirmed",
            payment_status=payment_status,
            payment_reference=payment_reference,
            idempotency_key=idempotency_key,
            payment_completed_at=datetime.now(timezone.utc) if payment_status == "paid" else None,
            booking_source="website_direct",
            guests=[BookingGuest(guest_name=customer_name, is_organiser=False)],
        )
        db.add(booking)
        try:
            await db.flush()
        except IntegrityError as e:
            # Token collision: the rollback also releases the occasion lock
            await db.rollback()
            commit_retries.inc()
            logger.info(
                "ticket_commit_retry",
                occasion_id=occasion.id,
                attempt=attempt,
                reason="token_collision",
                error=str(e.orig),
            )
            if attempt == MAX_RETRY_ATTEMPTS:
                raise
            continue

        await db.refresh(booking)
        logger.info(
            "ticket_booking_created",
            booking_id=booking.id,
            occasion_id=occasion.id,
            tickets=ticket_quantity,
            remaining=remaining - ticket_quantity,
            attempt=attempt,
        )
        return booking

    # Loop either returns or raises
    raise RuntimeError("unreachable")


async def get_booking(db: AsyncSession, booking_id: int) -> Booking:
    result = await db.execute(select(Booking).where(Booking.id == booking_id))
    booking = result.scalar_one_or_none()
    if not booking:
        raise BookingNotFound()
    return booking


async def get_booking_by_guest_list_token(db: AsyncSession, token: str) -> Booking:
    """Resolve the token from a purchaser's guest-list link."""
    if not token:
        raise BookingNotFound()
    result = await db.execute(select(Booking).where(Booking.guest_list_token == token))
    booking = result.scalar_one_or_none()
    if not booking:
        raise BookingNotFound()
    return booking


async def get_booking_by_reference_code(db: AsyncSession, reference_code: str) -> Booking:
    result = await db.execute(
        select(Booking).where(Booking.reference_code == reference_code.strip().upper())
    )
    booking = result.scalar_one_or_none()
    if not booking:
        raise BookingNotFound()
    return booking
