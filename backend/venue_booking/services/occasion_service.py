"""
Occasion service handling dashboard CRUD and share-link lookups.

An occasion is stored as the organiser booking; see models/booking.py.
"""

from datetime import date
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from venue_booking.core.errors import InactiveOccasion, OccasionNotFound
from venue_booking.core.logging import get_logger
from venue_booking.core.metrics import commit_retries
from venue_booking.models.booking import Booking
from venue_booking.models.guest import BookingGuest
from venue_booking.schemas.occasion import OccasionCreate, OccasionResponse, OccasionUpdate
from venue_booking.services.booking_service import lock_occasion
from venue_booking.services.capacity_service import allocated_tickets, occasion_stats
from venue_booking.services.email_service import notify_safely
from venue_booking.services.interfaces.notifier import Notifier, OccasionCreatedNotice
from venue_booking.services.links import LinkConfig, organiser_url, share_url
from venue_booking.services.token_service import generate_organiser_token, generate_share_token

logger = get_logger(__name__)

MAX_TOKEN_ATTEMPTS = 3
DEFAULT_ORGANISER_NAME = "Organiser"

# OccasionUpdate field -> Booking column
_UPDATE_COLUMNS = {
    "name": "occasion_name",
    "occasion_date": "booking_date",
    "capacity": "capacity",
    "ticket_price_cents": "ticket_price_cents",
    "organiser_name": "customer_name",
    "organiser_email": "customer_email",
    "organiser_phone": "customer_phone",
    "status": "status",
    "notes": "staff_notes",
}
_REQUIRED_FIELDS = {"name", "occasion_date", "capacity", "ticket_price_cents", "status"}


def _occasions_query():
    return select(Booking).where(
        Booking.booking_type == "occasion",
        Booking.is_occasion_organiser.is_(True),
    )


async def create_occasion(db: AsyncSession, data: OccasionCreate) -> Booking:
    """
    Create the organiser booking with fresh organiser/share tokens and the
    single organiser guest entry.
    """
    for attempt in range(1, MAX_TOKEN_ATTEMPTS + 1):
        occasion = Booking(
            booking_type="occasion",
            is_occasion_organiser=True,
            occasion_name=data.name,
            venue=data.venue,
            booking_date=data.occasion_date,
            capacity=data.capacity,
            ticket_price_cents=data.ticket_price_cents,
            ticket_quantity=0,
            total_amount_cents=0,
            customer_name=data.organiser_name or None,
            customer_email=data.organiser_email or None,
            customer_phone=data.organiser_phone or None,
            organiser_token=generate_organiser_token(),
            share_token=generate_share_token(),
            staff_notes=data.notes or None,
            status="confirmed",
            # Organiser bookings are free
            payment_status="paid",
            booking_source="dashboard",
            guests=[
                BookingGuest(
                    guest_name=data.organiser_name or DEFAULT_ORGANISER_NAME,
                    is_organiser=True,
                )
            ],
        )
        db.add(occasion)
        try:
            await db.flush()
        except IntegrityError:
            await db.rollback()
            commit_retries.inc()
            logger.info("occasion_token_collision", attempt=attempt)
            if attempt == MAX_TOKEN_ATTEMPTS:
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail="Could not allocate occasion links, please try again",
                )
            continue

        await db.refresh(occasion)
        logger.info(
            "occasion_created",
            occasion_id=occasion.id,
            venue=occasion.venue,
            capacity=occasion.capacity,
            occasion_date=str(occasion.booking_date),
        )
        return occasion

    # Loop either returns or raises
    raise RuntimeError("unreachable")


async def list_occasions(
    db: AsyncSession,
    venue: Optional[str] = None,
    occasion_status: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> list[Booking]:
    """Occasions newest date first. 'all' means no filter."""
    query = _occasions_query()
    if venue and venue != "all":
        query = query.where(Booking.venue == venue)
    if occasion_status and occasion_status != "all":
        query = query.where(Booking.status == occasion_status)
    if date_from:
        query = query.where(Booking.booking_date >= date_from)
    if date_to:
        query = query.where(Booking.booking_date <= date_to)

    result = await db.execute(query.order_by(Booking.booking_date.desc(), Booking.id.desc()))
    return list(result.scalars().all())


async def get_occasion(db: AsyncSession, occasion_id: int) -> Booking:
    result = await db.execute(_occasions_query().where(Booking.id == occasion_id))
    occasion = result.scalar_one_or_none()
    if not occasion:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Occasion {occasion_id} not found",
        )
    return occasion


async def get_occasion_by_organiser_token(db: AsyncSession, token: str) -> Booking:
    result = await db.execute(_occasions_query().where(Booking.organiser_token == token))
    occasion = result.scalar_one_or_none()
    if not occasion:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Occasion not found")
    return occasion


async def get_occasion_by_share_token(db: AsyncSession, token: str) -> Booking:
    """
    Resolve a share link for purchasing.

    Raises OccasionNotFound for unknown tokens and InactiveOccasion unless the
    occasion is confirmed.
    """
    result = await db.execute(
        select(Booking).where(
            Booking.share_token == token,
            Booking.is_occasion_organiser.is_(True),
        )
    )
    occasion = result.scalar_one_or_none()
    if not occasion:
        raise OccasionNotFound()
    if occasion.status != "confirmed":
        raise InactiveOccasion(occasion.status)
    return occasion


async def update_occasion(db: AsyncSession, occasion_id: int, changes: OccasionUpdate) -> Booking:
    """
    Partial update. Takes the occasion row lock first so a capacity
    reduction is checked against an allocation no purchase can change.
    """
    try:
        await lock_occasion(db, occasion_id, require_confirmed=False)
    except OccasionNotFound:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Occasion {occasion_id} not found",
        )

    result = await db.execute(
        _occasions_query()
        .where(Booking.id == occasion_id)
        .execution_options(populate_existing=True)
    )
    occasion = result.scalar_one()

    updates = changes.model_dump(exclude_unset=True)
    if updates.get("capacity") is not None:
        allocated = await allocated_tickets(db, occasion_id)
        if updates["capacity"] < allocated:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Capacity cannot be lower than the {allocated} tickets already sold",
            )

    for field_name, value in updates.items():
        if value is None and field_name in _REQUIRED_FIELDS:
            continue
        setattr(occasion, _UPDATE_COLUMNS[field_name], value)

    await db.flush()
    await db.refresh(occasion)
    logger.info("occasion_updated", occasion_id=occasion_id, fields=sorted(updates))
    return occasion


async def get_occasion_bookings(db: AsyncSession, occasion_id: int) -> list[Booking]:
    """Ticket bookings for an occasion, newest first, guests loaded."""
    await get_occasion(db, occasion_id)
    result = await db.execute(
        select(Booking)
        .where(Booking.parent_booking_id == occasion_id)
        .order_by(Booking.created_at.desc(), Booking.id.desc())
    )
    return list(result.scalars().all())


def to_response(occasion: Booking, stats: dict, links: LinkConfig) -> OccasionResponse:
    total_guests = stats.get("total_guests", 0)
    return OccasionResponse(
        id=occasion.id,
        venue=occasion.venue,
        occasion_name=occasion.occasion_name or "",
        occasion_date=occasion.booking_date,
        capacity=occasion.capacity or 0,
        ticket_price_cents=occasion.ticket_price_cents,
        organiser_name=occasion.customer_name,
        organiser_email=occasion.customer_email,
        organiser_phone=occasion.customer_phone,
        organiser_token=occasion.organiser_token,
        share_token=occasion.share_token,
        organiser_url=organiser_url(links, occasion.venue, occasion.organiser_token),
        share_url=share_url(links, occasion.venue, occasion.share_token),
        status=occasion.status,
        notes=occasion.staff_notes,
        total_bookings=stats.get("total_bookings", 0),
        total_guests=total_guests,
        remaining_capacity=(occasion.capacity or 0) - total_guests,
        created_at=occasion.created_at,
    )


async def describe_occasions(
    db: AsyncSession, occasions: list[Booking], links: LinkConfig
) -> list[OccasionResponse]:
    """Attach booking stats and public links to each occasion."""
    stats = await occasion_stats(db, [o.id for o in occasions])
    return [to_response(o, stats[o.id], links) for o in occasions]


async def notify_occasion_created(notifier: Notifier, occasion: Booking, links: LinkConfig) -> bool:
    """Email the organiser their management link. Never raises NotifyFailure."""
    if not occasion.customer_email:
        return False
    notice = OccasionCreatedNotice(
        organiser_name=occasion.customer_name,
        organiser_email=occasion.customer_email,
        occasion_name=occasion.occasion_name or "",
        occasion_date=occasion.booking_date,
        venue=occasion.venue,
        capacity=occasion.capacity or 0,
        organiser_url=organiser_url(links, occasion.venue, occasion.organiser_token),
    )
    return await notify_safely("occasion_created", notifier.occasion_created(notice))
