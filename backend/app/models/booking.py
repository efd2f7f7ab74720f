"""
Booking model representing one reservation of a court for a time window.

Key design decisions:
- A court is a name scoped to its venue, so the slot key is (venue_id, court)
- Times are stored as zero-padded "HH:MM" strings, which compare correctly
  as text, so the overlap test runs in SQL
- Partial unique index on the exact slot for non-cancelled rows is the
  storage-level guard against two concurrent inserts of the same window;
  overlapping (not identical) windows are serialised by the venue row lock
- Status field allows cancellation without deleting records, which keeps the
  audit trail and the rating eligibility history
"""

from sqlalchemy import (
    Column,
    Integer,
    String,
    Date,
    DateTime,
    Numeric,
    ForeignKey,
    Index,
    CheckConstraint,
    text,
)
from sqlalchemy.orm import relationship

from app.db.base import Base, TimestampMixin

STATUS_CONFIRMED = "confirmed"
STATUS_CANCELLED = "cancelled"
STATUS_COMPLETED = "completed"
STATUS_NO_SHOW = "no-show"
BOOKING_STATUSES = (STATUS_CONFIRMED, STATUS_CANCELLED, STATUS_COMPLETED, STATUS_NO_SHOW)

PAYMENT_STATUSES = ("pending", "paid", "failed", "refunded")

SLOT_UNIQUE_INDEX = "uq_booking_active_slot"
_ACTIVE_SLOT_PREDICATE = text("status <> 'cancelled'")


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    venue_id = Column(Integer, ForeignKey("venues.id"), nullable=False, index=True)
    court = Column(String(100), nullable=False)
    sport_id = Column(Integer, ForeignKey("sports.id"), nullable=False)

    date = Column(Date, nullable=False)
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)
    duration = Column(Integer, nullable=False)  # minutes

    total_price = Column(Numeric(10, 2, asdecimal=False), nullable=False)
    payment_status = Column(String(20), nullable=False, default="pending")
    status = Column(String(20), nullable=False, default=STATUS_CONFIRMED)

    cancellation_reason = Column(String(500), nullable=True)
    cancelled_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    user = relationship("User", back_populates="bookings", foreign_keys=[user_id])

    __table_args__ = (
        CheckConstraint("total_price >= 0", name="check_booking_price_non_negative"),
        CheckConstraint("start_time < end_time", name="check_booking_window_order"),
        CheckConstraint(
            "status IN ('confirmed', 'cancelled', 'completed', 'no-show')",
            name="check_booking_status",
        ),
        CheckConstraint(
            "payment_status IN ('pending', 'paid', 'failed', 'refunded')",
            name="check_booking_payment_status",
        ),
        # Conflict query: all bookings of a court on a day
        Index("ix_bookings_slot_lookup", "venue_id", "court", "date"),
        Index(
            SLOT_UNIQUE_INDEX,
            "venue_id",
            "court",
            "date",
            "start_time",
            "end_time",
            unique=True,
            postgresql_where=_ACTIVE_SLOT_PREDICATE,
            sqlite_where=_ACTIVE_SLOT_PREDICATE,
        ),
    )

    @property
    def time_slot(self) -> dict:
        return {"start": self.start_time, "end": self.end_time}

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, court={self.court}, date={self.date}, "
            f"{self.start_time}-{self.end_time}, status={self.status})>"
        )
