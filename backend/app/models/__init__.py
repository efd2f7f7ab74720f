from app.models.user import User
from app.models.venue import Venue
from app.models.sport import Sport
from app.models.booking import Booking
from app.models.rating import Rating

__all__ = ["User", "Venue", "Sport", "Booking", "Rating"]
