"""
Catalog lookups consumed by the reservation and rating engines.

Venue/sport CRUD is owned by the catalog; this module only reads what the
engines need, takes the venue row lock used to serialise bookings and rating
recomputes, and bumps the sport booking counter.
"""

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError
from app.core.logging import get_logger
from app.core.metrics import sport_counter_failures
from app.models.sport import Sport
from app.models.venue import Venue
from app.schemas.venue import VenueResponse
from app.services.cache_service import get_cached_venue, get_venue_generation, set_cached_venue

logger = get_logger(__name__)


async def get_venue(db: AsyncSession, venue_id: int) -> Venue:
    venue = await db.get(Venue, venue_id)
    if not venue:
        raise NotFoundError("Venue", f"Venue {venue_id} not found")
    return venue


async def get_sport(db: AsyncSession, sport_id: int) -> Sport:
    sport = await db.get(Sport, sport_id)
    if not sport:
        raise NotFoundError("Sport", f"Sport {sport_id} not found")
    return sport


async def lock_venue(db: AsyncSession, venue_id: int) -> Venue:
    """
    SELECT ... FOR UPDATE on the venue row.
    Held until the caller commits, so check-then-write sequences on the same
    venue (booking admission, rating recompute) run one at a time across processes.
    """
    result = await db.execute(select(Venue).where(Venue.id == venue_id).with_for_update())
    venue = result.scalar_one_or_none()
    if not venue:
        raise NotFoundError("Venue", f"Venue {venue_id} not found")
    return venue


async def is_venue_owned_by(db: AsyncSession, venue_id: int, user_id: int) -> bool:
    result = await db.execute(
        select(Venue.id).where(Venue.id == venue_id, Venue.owner_id == user_id)
    )
    return result.scalar_one_or_none() is not None


async def get_owned_venue_ids(db: AsyncSession, owner_id: int) -> list[int]:
    result = await db.execute(select(Venue.id).where(Venue.owner_id == owner_id))
    return list(result.scalars().all())


async def increment_sport_booking_count(db: AsyncSession, sport_id: int) -> bool:
    """
    Best-effort counter bump after a booking commits.
    A failure is logged and swallowed; the booking stands regardless.
    """
    try:
        await db.execute(
            update(Sport)
            .where(Sport.id == sport_id)
            .values(booking_count=Sport.booking_count + 1)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        sport_counter_failures.inc()
        logger.warning("sport_booking_count_failed", sport_id=sport_id, error=str(e))
        return False
    return True


async def get_venue_summary(db: AsyncSession, venue_id: int) -> VenueResponse:
    """Venue with its rating aggregate, served from Redis when cached."""
    generation = await get_venue_generation(venue_id)
    cached = await get_cached_venue(venue_id, generation)
    if cached:
        cached["cached"] = True
        return VenueResponse(**cached)

    venue = await get_venue(db, venue_id)
    summary = VenueResponse.model_validate(venue)
    await set_cached_venue(venue_id, generation, summary.model_dump())
    return summary
