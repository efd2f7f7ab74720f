"""
Rating ledger and venue aggregate maintenance.

Ratings are the source of truth; venue.average_rating / venue.total_ratings
are a cache derived from them. After every rating mutation the aggregate is
recomputed from the full rating set (COUNT and SUM in SQL) rather than
adjusted with running arithmetic, so edits and deletes can never make it
drift.

Sequencing:
  1. Write and commit the rating.
  2. Lock the venue row, recompute from the current rating set, commit.

The venue row lock makes concurrent recomputes for one venue run one after
the other, and each one reads the rating set as committed at that moment, so
the last commit always reflects every rating write before it.

If step 2 fails the rating stays committed (fail closed on the source of
truth, fail open on the derived value): the failure is logged and counted,
the caller is told the aggregate is stale, and an admin can repair it with
refresh_venue_rating.
"""

from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.exceptions import AlreadyRatedError, ForbiddenError, InvalidRequestError, NotFoundError
from app.core.logging import get_logger
from app.core.metrics import rating_recompute_failures, record_rating_mutation
from app.core.time_window import today
from app.models.rating import Rating
from app.models.venue import Venue
from app.repositories import booking_repository
from app.schemas.rating import RatingCreate, RatingUpdate
from app.services import catalog_service
from app.services.cache_service import invalidate_venue_cache

logger = get_logger(__name__)
settings = get_settings()

MIN_SCORE = 1
MAX_SCORE = 5


def calculate_average(total: int, count: int) -> float:
    """Mean score rounded half-up to one decimal; 0 for an unrated venue."""
    if count == 0:
        return 0.0
    mean = Decimal(total) / Decimal(count)
    return float(mean.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def _validate(score: int, comment):
    if isinstance(score, bool) or not isinstance(score, int) or not MIN_SCORE <= score <= MAX_SCORE:
        raise InvalidRequestError("Score", f"Score must be an integer between {MIN_SCORE} and {MAX_SCORE}")
    if comment is not None:
        comment = comment.strip()
        if len(comment) > settings.RATING_COMMENT_MAX_LENGTH:
            raise InvalidRequestError(
                "Comment",
                f"Comment cannot exceed {settings.RATING_COMMENT_MAX_LENGTH} characters",
            )
    return comment or None


async def _recalculate(db: AsyncSession, venue_id: int) -> Venue:
    venue = await catalog_service.lock_venue(db, venue_id)
    count, total = (
        await db.execute(
            select(func.count(Rating.id), func.coalesce(func.sum(Rating.score), 0)).where(
                Rating.venue_id == venue_id
            )
        )
    ).one()
    venue.average_rating = calculate_average(int(total), int(count))
    venue.total_ratings = int(count)
    await db.flush()
    return venue


async def refresh_venue_rating(db: AsyncSession, venue_id: int) -> bool:
    """
    Recompute and store the venue aggregate.
    Returns False (and leaves the previous aggregate in place) if the
    recompute could not be committed.
    """
    try:
        venue = await _recalculate(db, venue_id)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        rating_recompute_failures.inc()
        logger.error("venue_rating_recompute_failed", venue_id=venue_id, error=str(e))
        return False

    await invalidate_venue_cache(venue_id)
    logger.info(
        "venue_rating_recomputed",
        venue_id=venue_id,
        average_rating=venue.average_rating,
        total_ratings=venue.total_ratings,
    )
    return True


async def add_rating(db: AsyncSession, user_id: int, rating_data: RatingCreate) -> tuple[Rating, bool]:
    """
    Store a user's rating for a venue.
    Returns the rating and whether the venue aggregate was refreshed.
    """
    comment = _validate(rating_data.score, rating_data.comment)
    venue_id = rating_data.venue_id
    await catalog_service.get_venue(db, venue_id)

    if not await booking_repository.has_eligible_booking(db, user_id, venue_id, as_of=today()):
        logger.info("rating_rejected_ineligible", user_id=user_id, venue_id=venue_id)
        raise ForbiddenError(
            "You can rate a venue only after a completed booking",
            reason="NoEligibleBooking",
        )

    existing = await db.execute(
        select(Rating.id).where(Rating.user_id == user_id, Rating.venue_id == venue_id)
    )
    if existing.scalar_one_or_none() is not None:
        raise AlreadyRatedError()

    rating = Rating(user_id=user_id, venue_id=venue_id, score=rating_data.score, comment=comment)
    db.add(rating)
    try:
        await db.commit()
    except IntegrityError as e:
        # Lost a race against the same user's concurrent request
        await db.rollback()
        raise AlreadyRatedError() from e

    record_rating_mutation("add")
    logger.info("rating_added", rating_id=rating.id, user_id=user_id, venue_id=venue_id, score=rating.score)

    refreshed = await refresh_venue_rating(db, venue_id)
    await db.refresh(rating)
    return rating, refreshed


async def _get_owned_rating(db: AsyncSession, rating_id: int, user_id: int) -> Rating:
    # Someone else's rating is reported exactly like a missing one
    result = await db.execute(
        select(Rating).where(Rating.id == rating_id, Rating.user_id == user_id)
    )
    rating = result.scalar_one_or_none()
    if not rating:
        raise NotFoundError("Rating", "Rating not found or not authorized")
    return rating


async def update_rating(
    db: AsyncSession,
    rating_id: int,
    user_id: int,
    rating_data: RatingUpdate,
) -> tuple[Rating, bool]:
    comment = _validate(rating_data.score, rating_data.comment)
    rating = await _get_owned_rating(db, rating_id, user_id)

    rating.score = rating_data.score
    rating.comment = comment
    venue_id = rating.venue_id
    await db.commit()

    record_rating_mutation("update")
    logger.info("rating_updated", rating_id=rating_id, user_id=user_id, venue_id=venue_id, score=rating_data.score)

    refreshed = await refresh_venue_rating(db, venue_id)
    await db.refresh(rating)
    return rating, refreshed


async def delete_rating(db: AsyncSession, rating_id: int, user_id: int) -> bool:
    """Delete the user's rating. Returns whether the venue aggregate was refreshed."""
    rating = await _get_owned_rating(db, rating_id, user_id)
    venue_id = rating.venue_id

    await db.delete(rating)
    await db.commit()

    record_rating_mutation("delete")
    logger.info("rating_deleted", rating_id=rating_id, user_id=user_id, venue_id=venue_id)

    return await refresh_venue_rating(db, venue_id)


async def list_venue_ratings(db: AsyncSession, venue_id: int) -> list[Rating]:
    await catalog_service.get_venue(db, venue_id)
    result = await db.execute(
        select(Rating).where(Rating.venue_id == venue_id).order_by(Rating.created_at.desc(), Rating.id.desc())
    )
    return list(result.scalars().all())
