"""
Booking lifecycle: role-gated status transitions.

    confirmed --(player cancel | owner cancel | admin)--> cancelled
    confirmed --(sweep | admin)--> completed
    confirmed --(admin)--> no-show

cancelled, completed and no-show are terminal for players and owners.
Every transition is a compare-and-set on the current status, so concurrent
player and owner cancels on one booking cannot both succeed: the second one
finds the booking already cancelled and fails with Invalid:State.

The admin override ignores the state machine and is meant for correcting
records after the fact. It still refuses to re-confirm a booking whose slot
has since been taken.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.exceptions import (
    ForbiddenError,
    InvalidRequestError,
    InvalidStateError,
    NotFoundError,
    SlotTakenError,
)
from app.core.logging import get_logger
from app.core.metrics import record_transition
from app.core.time_window import parse_time_window, today
from app.models.booking import (
    Booking,
    BOOKING_STATUSES,
    STATUS_CANCELLED,
    STATUS_COMPLETED,
    STATUS_CONFIRMED,
)
from app.repositories import booking_repository
from app.services import catalog_service

logger = get_logger(__name__)
settings = get_settings()


async def _load(db: AsyncSession, booking_id: int) -> Booking:
    booking = await booking_repository.get_booking(db, booking_id)
    if not booking:
        raise NotFoundError("Booking", "Booking not found")
    return booking


async def _cancel(
    db: AsyncSession,
    booking: Booking,
    cancelled_by: int,
    reason: Optional[str],
) -> Booking:
    if booking.status != STATUS_CONFIRMED:
        raise InvalidStateError(f"Booking is already {booking.status}")

    applied = await booking_repository.transition_status(
        db,
        booking.id,
        STATUS_CONFIRMED,
        status=STATUS_CANCELLED,
        cancellation_reason=reason,
        cancelled_by=cancelled_by,
        cancelled_at=datetime.now(timezone.utc),
    )
    if not applied:
        await db.rollback()
        raise InvalidStateError("Booking is no longer confirmed")

    await db.commit()
    await db.refresh(booking)
    return booking


async def cancel_by_player(db: AsyncSession, booking_id: int, user_id: int) -> Booking:
    """
    Cancel the player's own booking.
    No date restriction applies on this path, unlike the owner path.
    """
    booking = await _load(db, booking_id)
    if booking.user_id != user_id:
        raise ForbiddenError("You can only cancel your own bookings")

    booking = await _cancel(db, booking, cancelled_by=user_id, reason=None)
    record_transition("player", STATUS_CANCELLED)
    logger.info("booking_cancelled", booking_id=booking.id, by="player", user_id=user_id)
    return booking


async def cancel_by_owner(
    db: AsyncSession,
    booking_id: int,
    owner_id: int,
    reason: Optional[str] = None,
) -> Booking:
    """Cancel an upcoming booking at a venue the caller owns."""
    booking = await _load(db, booking_id)
    if not await catalog_service.is_venue_owned_by(db, booking.venue_id, owner_id):
        raise ForbiddenError("You can only cancel bookings for your own venues")
    if booking.date <= today():
        raise InvalidRequestError("PastBooking", "Cannot cancel past bookings")

    booking = await _cancel(
        db,
        booking,
        cancelled_by=owner_id,
        reason=reason or settings.OWNER_CANCEL_DEFAULT_REASON,
    )
    record_transition("owner", STATUS_CANCELLED)
    logger.info(
        "booking_cancelled",
        booking_id=booking.id,
        by="owner",
        owner_id=owner_id,
        reason=booking.cancellation_reason,
    )
    return booking


async def admin_set_status(
    db: AsyncSession,
    booking_id: int,
    new_status: str,
    admin_id: Optional[int] = None,
) -> Booking:
    """
    Administrative override: set any defined status, bypassing the
    player/owner transition rules. Intended for manual correction only.
    """
    if new_status not in BOOKING_STATUSES:
        raise InvalidRequestError("Status", "Invalid booking status")

    booking = await _load(db, booking_id)
    previous = booking.status
    if previous == new_status:
        return booking

    values: dict = {"status": new_status}
    if new_status == STATUS_CANCELLED:
        values.update(
            cancellation_reason="Cancelled by administrator",
            cancelled_by=admin_id,
            cancelled_at=datetime.now(timezone.utc),
        )
    elif previous == STATUS_CANCELLED:
        values.update(cancellation_reason=None, cancelled_by=None, cancelled_at=None)

    reactivating = new_status == STATUS_CONFIRMED
    if reactivating:
        await catalog_service.lock_venue(db, booking.venue_id)
        window = parse_time_window(booking.start_time, booking.end_time)
        conflict = await booking_repository.find_conflicting_booking(
            db, booking.venue_id, booking.court, booking.date, window, exclude_id=booking.id
        )
        if conflict:
            raise SlotTakenError(conflict.court, conflict.date, conflict.start_time, conflict.end_time)

    slot = (booking.court, booking.date, booking.start_time, booking.end_time)
    try:
        applied = await booking_repository.transition_status(db, booking.id, previous, **values)
        if not applied:
            await db.rollback()
            raise InvalidStateError("Booking status changed concurrently, retry the update")
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        if not booking_repository.is_slot_violation(e):
            raise
        raise SlotTakenError(*slot) from e

    await db.refresh(booking)
    record_transition("admin", new_status)
    logger.info(
        "booking_status_overridden",
        booking_id=booking.id,
        admin_id=admin_id,
        previous=previous,
        status=new_status,
    )
    return booking


async def complete_past_bookings(db: AsyncSession) -> int:
    """Sweep: confirmed bookings dated before today become completed."""
    completed = await booking_repository.complete_past_bookings(db, before=today())
    await db.commit()
    if completed:
        record_transition("sweep", STATUS_COMPLETED, count=completed)
    logger.info("past_bookings_completed", count=completed)
    return completed
