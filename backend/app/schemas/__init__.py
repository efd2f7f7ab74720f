from app.schemas.booking import (
    TimeSlot,
    BookingCreate,
    BookingUpdate,
    BookingResponse,
    BookingCancelRequest,
    BookingStatusUpdate,
    BookingActionResponse,
)
from app.schemas.rating import RatingCreate, RatingUpdate, RatingResponse, RatingDeleteResponse
from app.schemas.venue import VenueResponse

__all__ = [
    "TimeSlot", "BookingCreate", "BookingUpdate", "BookingResponse",
    "BookingCancelRequest", "BookingStatusUpdate", "BookingActionResponse",
    "RatingCreate", "RatingUpdate", "RatingResponse", "RatingDeleteResponse",
    "VenueResponse",
]
