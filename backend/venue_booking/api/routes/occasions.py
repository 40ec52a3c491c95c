"""
Dashboard occasion endpoints with Redis caching on the listing.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from venue_booking.api.deps import get_link_config, get_notifier
from venue_booking.core.logging import get_logger
from venue_booking.db.session import get_db
from venue_booking.models.booking import Booking
from venue_booking.schemas.booking import GuestEntryResponse, TicketBookingResponse
from venue_booking.schemas.occasion import (
    OccasionCreate,
    OccasionListResponse,
    OccasionResponse,
    OccasionUpdate,
)
from venue_booking.services.cache_service import (
    get_cached_occasions,
    invalidate_occasion_cache,
    make_occasion_list_key,
    set_cached_occasions,
)
from venue_booking.services.guest_service import sort_roster
from venue_booking.services.interfaces.notifier import Notifier
from venue_booking.services.links import LinkConfig
from venue_booking.services.occasion_service import (
    create_occasion,
    describe_occasions,
    get_occasion,
    get_occasion_bookings,
    get_occasion_by_organiser_token,
    list_occasions,
    notify_occasion_created,
    update_occasion,
)

logger = get_logger(__name__)
router = APIRouter(prefix="/occasions", tags=["Occasions"])


async def _describe(db: AsyncSession, occasion: Booking, links: LinkConfig) -> OccasionResponse:
    return (await describe_occasions(db, [occasion], links))[0]


def ticket_booking_response(booking: Booking) -> TicketBookingResponse:
    response = TicketBookingResponse.model_validate(booking)
    response.guests = [GuestEntryResponse.model_validate(g) for g in sort_roster(booking.guests)]
    return response


@router.post("/", response_model=OccasionResponse, status_code=status.HTTP_201_CREATED)
async def create_occasion_endpoint(
    data: OccasionCreate,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    links: LinkConfig = Depends(get_link_config),
    notifier: Notifier = Depends(get_notifier),
):
    """Create an occasion and, if asked, email the organiser their link."""
    occasion = await create_occasion(db, data)
    await db.commit()
    await invalidate_occasion_cache()

    if data.send_email and occasion.customer_email:
        background_tasks.add_task(notify_occasion_created, notifier, occasion, links)

    return await _describe(db, occasion, links)


@router.get("/", response_model=OccasionListResponse)
async def list_occasions_endpoint(
    venue: Optional[str] = Query(None),
    occasion_status: Optional[str] = Query(None, alias="status"),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_db),
    links: LinkConfig = Depends(get_link_config),
):
    """
    List occasions newest first with booking stats.
    Cached in Redis; any occasion write or purchase invalidates the cache.
    """
    key = make_occasion_list_key(venue, occasion_status, date_from, date_to)
    cached = await get_cached_occasions(key)
    if cached:
        logger.info("occasions_list_cache_hit", key=key)
        cached["cached"] = True
        return OccasionListResponse(**cached)

    occasions = await list_occasions(db, venue, occasion_status, date_from, date_to)
    described = await describe_occasions(db, occasions, links)
    response = OccasionListResponse(occasions=described, total=len(described), cached=False)

    await set_cached_occasions(key, response.model_dump(mode="json"))
    return response


@router.get("/organiser/{token}", response_model=OccasionResponse)
async def get_occasion_by_organiser_token_endpoint(
    token: str,
    db: AsyncSession = Depends(get_db),
    links: LinkConfig = Depends(get_link_config),
):
    """Organiser management page lookup."""
    occasion = await get_occasion_by_organiser_token(db, token)
    return await _describe(db, occasion, links)


@router.get("/{occasion_id}", response_model=OccasionResponse)
async def get_occasion_endpoint(
    occasion_id: int,
    db: AsyncSession = Depends(get_db),
    links: LinkConfig = Depends(get_link_config),
):
    occasion = await get_occasion(db, occasion_id)
    return await _describe(db, occasion, links)


@router.patch("/{occasion_id}", response_model=OccasionResponse)
async def update_occasion_endpoint(
    occasion_id: int,
    changes: OccasionUpdate,
    db: AsyncSession = Depends(get_db),
    links: LinkConfig = Depends(get_link_config),
):
    """Partial update. Capacity cannot drop below tickets already sold (409)."""
    occasion = await update_occasion(db, occasion_id, changes)
    await db.commit()
    await invalidate_occasion_cache()
    return await _describe(db, occasion, links)


@router.get("/{occasion_id}/bookings", response_model=list[TicketBookingResponse])
async def get_occasion_bookings_endpoint(
    occasion_id: int,
    db: AsyncSession = Depends(get_db),
):
    bookings = await get_occasion_bookings(db, occasion_id)
    return [ticket_booking_response(b) for b in bookings]
