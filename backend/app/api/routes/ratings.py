"""
Rating endpoints. Every mutation recomputes the venue aggregate; if that
recompute fails the rating is still stored and `aggregate_stale` is true.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.schemas.rating import RatingCreate, RatingDeleteResponse, RatingResponse, RatingUpdate
from app.services import rating_service
from app.core.security import get_current_user_id

router = APIRouter(prefix="/ratings", tags=["Ratings"])


def _to_response(rating, refreshed: bool) -> RatingResponse:
    return RatingResponse.model_validate(rating).model_copy(update={"aggregate_stale": not refreshed})


@router.post("/", response_model=RatingResponse, status_code=status.HTTP_201_CREATED)
async def add_rating(
    rating_data: RatingCreate,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Rate a venue you have played at. One rating per user and venue."""
    rating, refreshed = await rating_service.add_rating(db, user_id, rating_data)
    return _to_response(rating, refreshed)


@router.put("/{rating_id}", response_model=RatingResponse)
async def update_rating(
    rating_id: int,
    rating_data: RatingUpdate,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    rating, refreshed = await rating_service.update_rating(db, rating_id, user_id, rating_data)
    return _to_response(rating, refreshed)


@router.delete("/{rating_id}", response_model=RatingDeleteResponse)
async def delete_rating(
    rating_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    refreshed = await rating_service.delete_rating(db, rating_id, user_id)
    return RatingDeleteResponse(message="Rating deleted successfully", aggregate_stale=not refreshed)


@router.get("/venue/{venue_id}", response_model=list[RatingResponse])
async def list_venue_ratings(venue_id: int, db: AsyncSession = Depends(get_db)):
    return await rating_service.list_venue_ratings(db, venue_id)
