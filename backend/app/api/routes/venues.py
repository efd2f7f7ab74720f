"""
Venue read endpoints. Catalog management lives in the catalog service; this
API exposes the rating aggregate it maintains and a repair hook for it.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.models.user import User, ROLE_ADMIN
from app.schemas.venue import VenueResponse
from app.services import catalog_service, rating_service
from app.core.security import require_roles

router = APIRouter(prefix="/venues", tags=["Venues"])


@router.get("/{venue_id}", response_model=VenueResponse)
async def get_venue(venue_id: int, db: AsyncSession = Depends(get_db)):
    """Venue with its rating aggregate. Cached in Redis until the next rating change."""
    return await catalog_service.get_venue_summary(db, venue_id)


@router.post("/{venue_id}/rating/recompute", response_model=VenueResponse)
async def recompute_venue_rating(
    venue_id: int,
    user: User = Depends(require_roles(ROLE_ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    """Repair a stale rating aggregate by recomputing it from the rating rows."""
    await catalog_service.get_venue(db, venue_id)
    if not await rating_service.refresh_venue_rating(db, venue_id):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Rating aggregate could not be recomputed, retry later",
        )
    venue = await catalog_service.get_venue(db, venue_id)
    return VenueResponse.model_validate(venue)
