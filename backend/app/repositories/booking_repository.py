"""
Booking persistence: conflict detection, inserts and guarded status updates.

The overlap test is the half-open interval check
    existing.start < requested.end AND requested.start < existing.end
run in SQL against the zero-padded "HH:MM" columns. Cancelled bookings never
participate, so cancelling frees the slot.

Status transitions are compare-and-set updates (WHERE status = :expected).
When two writers race on the same booking, only one UPDATE matches; the other
sees rowcount == 0 and reports an invalid state instead of silently
overwriting the first.
"""

from datetime import date
from typing import Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.time_window import TimeWindow
from app.models.booking import (
    Booking,
    SLOT_UNIQUE_INDEX,
    STATUS_CANCELLED,
    STATUS_COMPLETED,
    STATUS_CONFIRMED,
)

RATING_ELIGIBLE_STATUSES = (STATUS_CONFIRMED, STATUS_COMPLETED)


async def find_conflicting_booking(
    db: AsyncSession,
    venue_id: int,
    court: str,
    on_date: date,
    window: TimeWindow,
    exclude_id: Optional[int] = None,
) -> Optional[Booking]:
    """Return the first live booking on the court that overlaps `window`, if any."""
    query = select(Booking).where(
        Booking.venue_id == venue_id,
        Booking.court == court,
        Booking.date == on_date,
        Booking.status != STATUS_CANCELLED,
        Booking.start_time < window.end_label,
        Booking.end_time > window.start_label,
    )
    if exclude_id is not None:
        query = query.where(Booking.id != exclude_id)

    result = await db.execute(query.order_by(Booking.start_time).limit(1))
    return result.scalar_one_or_none()


async def add_booking(db: AsyncSession, booking: Booking) -> Booking:
    """
    Stage and flush a new booking.
    Raises IntegrityError if another live booking already holds the exact slot.
    """
    db.add(booking)
    await db.flush()
    return booking


def is_slot_violation(exc: IntegrityError) -> bool:
    """True when the IntegrityError comes from the live-slot unique index."""
    orig = getattr(exc, "orig", None)
    diag = getattr(orig, "diag", None)
    constraint_name = getattr(diag, "constraint_name", None) or ""
    if constraint_name == SLOT_UNIQUE_INDEX:
        return True

    message = str(orig if orig is not None else exc)
    if SLOT_UNIQUE_INDEX in message:
        return True
    # SQLite reports the indexed columns instead of the index name
    return "UNIQUE constraint failed: bookings.venue_id, bookings.court" in message


async def get_booking(db: AsyncSession, booking_id: int, for_update: bool = False) -> Optional[Booking]:
    query = select(Booking).where(Booking.id == booking_id)
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def transition_status(
    db: AsyncSession,
    booking_id: int,
    expected_status: str,
    **values,
) -> bool:
    """
    Apply `values` only if the booking is still in `expected_status`.
    Returns False when another writer got there first.
    """
    result = await db.execute(
        update(Booking)
        .where(Booking.id == booking_id, Booking.status == expected_status)
        .values(**values)
    )
    return result.rowcount == 1


async def has_eligible_booking(
    db: AsyncSession,
    user_id: int,
    venue_id: int,
    as_of: date,
) -> bool:
    """
    Whether the user has a confirmed/completed booking at the venue that has
    started by `as_of`. A booking's day counts as begun from its first minute,
    so a booking dated `as_of` qualifies.
    """
    result = await db.execute(
        select(Booking.id)
        .where(
            Booking.user_id == user_id,
            Booking.venue_id == venue_id,
            Booking.status.in_(RATING_ELIGIBLE_STATUSES),
            Booking.date <= as_of,
        )
        .limit(1)
    )
    return result.scalar_one_or_none() is not None


async def list_user_bookings(db: AsyncSession, user_id: int) -> list[Booking]:
    result = await db.execute(
        select(Booking)
        .where(Booking.user_id == user_id)
        .order_by(Booking.date.desc(), Booking.start_time.desc())
    )
    return list(result.scalars().all())


async def list_venue_bookings(db: AsyncSession, venue_ids: Sequence[int]) -> list[Booking]:
    if not venue_ids:
        return []
    result = await db.execute(
        select(Booking)
        .where(Booking.venue_id.in_(venue_ids))
        .order_by(Booking.date.desc(), Booking.start_time.desc())
    )
    return list(result.scalars().all())


async def list_all_bookings(db: AsyncSession) -> list[Booking]:
    result = await db.execute(
        select(Booking).order_by(Booking.date.desc(), Booking.start_time.desc())
    )
    return list(result.scalars().all())


async def complete_past_bookings(db: AsyncSession, before: date) -> int:
    """Move confirmed bookings dated before `before` to completed. Returns the row count."""
    result = await db.execute(
        update(Booking)
        .where(Booking.status == STATUS_CONFIRMED, Booking.date < before)
        .values(status=STATUS_COMPLETED)
    )
    return result.rowcount
