"""
Booking endpoints: reservation, listing and lifecycle transitions.
"""

from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.models.user import User, ROLE_ADMIN, ROLE_OWNER
from app.schemas.booking import (
    BookingActionResponse,
    BookingCancelRequest,
    BookingCreate,
    BookingResponse,
    BookingStatusUpdate,
    BookingUpdate,
)
from app.services import booking_service, lifecycle_service
from app.core.security import get_current_user_id, require_roles

router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.post("/", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """
    Reserve a court for a date and time window.

    Returns 409 with the conflicting court/date/window if any live booking on
    the same court overlaps the requested window (back-to-back is allowed).
    """
    return await booking_service.request_booking(db, user_id, booking_data)


@router.get("/me", response_model=list[BookingResponse])
async def list_my_bookings(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Get all bookings for the authenticated user."""
    return await booking_service.get_user_bookings(db, user_id)


@router.get("/owner", response_model=list[BookingResponse])
async def list_owner_bookings(
    user: User = Depends(require_roles(ROLE_OWNER, ROLE_ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    """Get bookings for every venue owned by the authenticated user."""
    return await booking_service.get_owner_bookings(db, user.id)


@router.get("/", response_model=list[BookingResponse])
async def list_all_bookings(
    user: User = Depends(require_roles(ROLE_ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    return await booking_service.get_all_bookings(db)


@router.put("/{booking_id}/status", response_model=BookingActionResponse)
async def admin_update_status(
    booking_id: int,
    body: BookingStatusUpdate,
    user: User = Depends(require_roles(ROLE_ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    """Administrative status override (manual correction, e.g. marking a no-show)."""
    booking = await lifecycle_service.admin_set_status(db, booking_id, body.status, admin_id=user.id)
    return BookingActionResponse(
        message="Booking status updated",
        booking=BookingResponse.model_validate(booking),
    )


@router.put("/{booking_id}", response_model=BookingResponse)
async def update_booking(
    booking_id: int,
    patch: BookingUpdate,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Change court, date, time window or price of your own confirmed booking."""
    return await booking_service.update_booking_details(db, booking_id, user_id, patch)


@router.delete("/{booking_id}", response_model=BookingActionResponse)
async def cancel_booking(
    booking_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Cancel your own booking. The slot becomes free immediately."""
    booking = await lifecycle_service.cancel_by_player(db, booking_id, user_id)
    return BookingActionResponse(
        message="Booking cancelled",
        booking=BookingResponse.model_validate(booking),
    )


@router.post("/{booking_id}/cancel", response_model=BookingActionResponse)
async def owner_cancel_booking(
    booking_id: int,
    body: Optional[BookingCancelRequest] = None,
    user: User = Depends(require_roles(ROLE_OWNER, ROLE_ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    """Cancel an upcoming booking at one of your venues, with an optional reason."""
    booking = await lifecycle_service.cancel_by_owner(
        db, booking_id, user.id, body.reason if body else None
    )
    return BookingActionResponse(
        message="Booking cancelled successfully",
        booking=BookingResponse.model_validate(booking),
    )
