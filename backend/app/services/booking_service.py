"""
Reservation engine: admits or rejects court booking requests.

CONCURRENCY STRATEGY: Venue Row Lock + Partial Unique Index
===========================================================

Problem:
  Two players request overlapping windows on the same court and day.
  Both run the overlap query, both see a free court, both insert.
  Result: Double booking.

Solution:
  1. SELECT ... FOR UPDATE on the venue row before the overlap query.
     Every admission for the venue queues behind the lock until the
     previous transaction commits, so the overlap query always sees
     bookings committed by earlier requests. This serialises courts of the
     same venue together, which is acceptable at venue-scale traffic and
     keeps the lock portable (no advisory locks).
  2. Partial unique index on (venue_id, court, date, start, end) for live
     bookings is the last-resort guard. If it fires, the race was lost after
     the overlap check passed and the IntegrityError is translated into the
     same Conflict:SlotTaken the overlap check would have produced.

  The lock lives in the database, not in the process: API workers on
  different hosts are serialised the same way.

Validation order is fixed (venue, sport, time window, past date, price) and
runs before any write.
"""

import time
from datetime import date
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ForbiddenError, InvalidRequestError, InvalidStateError, NotFoundError, SlotTakenError
from app.core.logging import get_logger
from app.core.metrics import booking_latency, record_booking_attempt
from app.core.time_window import TimeWindow, parse_time_window, today
from app.models.booking import Booking, STATUS_CONFIRMED
from app.repositories import booking_repository
from app.schemas.booking import BookingCreate, BookingUpdate
from app.services import catalog_service

logger = get_logger(__name__)


def ensure_not_past(on_date: date) -> None:
    if on_date < today():
        raise InvalidRequestError("PastDate", "Booking date cannot be in the past")


def ensure_valid_price(total_price: float) -> None:
    if total_price < 0:
        raise InvalidRequestError("Price", "Price cannot be negative")


async def _ensure_slot_free(
    db: AsyncSession,
    venue_id: int,
    court: str,
    on_date: date,
    window: TimeWindow,
    exclude_id: Optional[int] = None,
) -> None:
    conflict = await booking_repository.find_conflicting_booking(
        db, venue_id, court, on_date, window, exclude_id=exclude_id
    )
    if conflict:
        logger.warning(
            "booking_conflict",
            venue_id=venue_id,
            court=court,
            date=str(on_date),
            requested=f"{window.start_label}-{window.end_label}",
            conflicting_booking_id=conflict.id,
        )
        raise SlotTakenError(conflict.court, conflict.date, conflict.start_time, conflict.end_time)


async def request_booking(db: AsyncSession, user_id: int, booking_data: BookingCreate) -> Booking:
    """
    Admit a booking request or reject it with a typed error.
    Returns the persisted booking (status confirmed, payment pending).
    """
    started = time.perf_counter()
    try:
        booking = await _admit(db, user_id, booking_data)
    except SlotTakenError:
        record_booking_attempt("conflict")
        raise
    except (NotFoundError, InvalidRequestError):
        record_booking_attempt("rejected")
        raise
    finally:
        booking_latency.observe(time.perf_counter() - started)

    record_booking_attempt("success")
    return booking


async def _admit(db: AsyncSession, user_id: int, booking_data: BookingCreate) -> Booking:
    await catalog_service.get_venue(db, booking_data.venue_id)
    await catalog_service.get_sport(db, booking_data.sport_id)
    window = parse_time_window(booking_data.time_slot.start, booking_data.time_slot.end)
    ensure_not_past(booking_data.date)
    ensure_valid_price(booking_data.total_price)

    await catalog_service.lock_venue(db, booking_data.venue_id)
    await _ensure_slot_free(db, booking_data.venue_id, booking_data.court, booking_data.date, window)

    booking = Booking(
        user_id=user_id,
        venue_id=booking_data.venue_id,
        court=booking_data.court,
        sport_id=booking_data.sport_id,
        date=booking_data.date,
        start_time=window.start_label,
        end_time=window.end_label,
        duration=window.duration_minutes,
        total_price=booking_data.total_price,
        payment_status="pending",
        status=STATUS_CONFIRMED,
    )
    try:
        await booking_repository.add_booking(db, booking)
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        if not booking_repository.is_slot_violation(e):
            raise
        logger.warning(
            "booking_race_lost",
            venue_id=booking_data.venue_id,
            court=booking_data.court,
            date=str(booking_data.date),
        )
        raise SlotTakenError(booking_data.court, booking_data.date, window.start_label, window.end_label) from e

    logger.info(
        "booking_created",
        booking_id=booking.id,
        user_id=user_id,
        venue_id=booking.venue_id,
        court=booking.court,
        date=str(booking.date),
        window=f"{booking.start_time}-{booking.end_time}",
    )

    await catalog_service.increment_sport_booking_count(db, booking_data.sport_id)
    await db.refresh(booking)
    return booking


async def update_booking_details(
    db: AsyncSession,
    booking_id: int,
    user_id: int,
    patch: BookingUpdate,
) -> Booking:
    """
    Let a player move their own confirmed booking (court, day, window, price).
    The merged result goes through the same validation and conflict check as
    a new request, excluding the booking itself from the overlap query.
    """
    booking = await booking_repository.get_booking(db, booking_id)
    if not booking:
        raise NotFoundError("Booking", "Booking not found")
    if booking.user_id != user_id:
        raise ForbiddenError("You can only update your own bookings")
    if booking.status != STATUS_CONFIRMED:
        raise InvalidStateError("Only confirmed bookings can be updated")

    changes = patch.model_dump(exclude_unset=True)
    court = changes.get("court") or booking.court
    on_date = patch.date if patch.date is not None else booking.date
    slot = patch.time_slot
    window = parse_time_window(
        slot.start if slot else booking.start_time,
        slot.end if slot else booking.end_time,
    )
    total_price = patch.total_price if patch.total_price is not None else booking.total_price
    ensure_not_past(on_date)
    ensure_valid_price(total_price)

    await catalog_service.lock_venue(db, booking.venue_id)
    await _ensure_slot_free(db, booking.venue_id, court, on_date, window, exclude_id=booking.id)

    try:
        applied = await booking_repository.transition_status(
            db,
            booking.id,
            STATUS_CONFIRMED,
            court=court,
            date=on_date,
            start_time=window.start_label,
            end_time=window.end_label,
            duration=window.duration_minutes,
            total_price=total_price,
        )
        if not applied:
            await db.rollback()
            raise InvalidStateError("Only confirmed bookings can be updated")
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        if not booking_repository.is_slot_violation(e):
            raise
        raise SlotTakenError(court, on_date, window.start_label, window.end_label) from e

    await db.refresh(booking)
    logger.info(
        "booking_updated",
        booking_id=booking.id,
        user_id=user_id,
        changed=sorted(changes),
    )
    return booking


async def get_user_bookings(db: AsyncSession, user_id: int) -> list[Booking]:
    """Get all bookings for a user."""
    return await booking_repository.list_user_bookings(db, user_id)


async def get_owner_bookings(db: AsyncSession, owner_id: int) -> list[Booking]:
    """Get bookings for every venue the owner runs."""
    venue_ids = await catalog_service.get_owned_venue_ids(db, owner_id)
    return await booking_repository.list_venue_bookings(db, venue_ids)


async def get_all_bookings(db: AsyncSession) -> list[Booking]:
    return await booking_repository.list_all_bookings(db)
