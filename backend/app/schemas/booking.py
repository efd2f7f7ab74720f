"""
Pydantic schemas for booking-related request/response validation.

Request schemas only check shape. Business rules (time format, past dates,
negative prices) are checked by the reservation engine so that they surface
as typed errors.
"""

import datetime as dt
from typing import Annotated, Optional
from pydantic import BaseModel, BeforeValidator, Field


def _strip_time_of_day(value):
    """Accept full timestamps for `date`, keeping only the calendar day."""
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, str) and "T" in value:
        return dt.datetime.fromisoformat(value.replace("Z", "+00:00")).date()
    return value


CalendarDay = Annotated[dt.date, BeforeValidator(_strip_time_of_day)]


class TimeSlot(BaseModel):
    start: str = Field(..., examples=["10:00"])
    end: str = Field(..., examples=["11:00"])


class BookingCreate(BaseModel):
    venue_id: int
    court: str = Field(..., min_length=1, max_length=100)
    sport_id: int
    date: CalendarDay
    time_slot: TimeSlot
    total_price: float


class BookingUpdate(BaseModel):
    """Fields a player may change on their own confirmed booking."""

    court: Optional[str] = Field(None, min_length=1, max_length=100)
    date: Optional[CalendarDay] = None
    time_slot: Optional[TimeSlot] = None
    total_price: Optional[float] = None

    model_config = {"extra": "forbid"}


class BookingResponse(BaseModel):
    id: int
    user_id: int
    venue_id: int
    court: str
    sport_id: int
    date: dt.date
    time_slot: TimeSlot
    duration: int
    total_price: float
    payment_status: str
    status: str
    cancellation_reason: Optional[str] = None
    cancelled_by: Optional[int] = None
    cancelled_at: Optional[dt.datetime] = None
    created_at: dt.datetime

    model_config = {"from_attributes": True}


class BookingCancelRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class BookingStatusUpdate(BaseModel):
    status: str


class BookingActionResponse(BaseModel):
    message: str
    booking: BookingResponse
