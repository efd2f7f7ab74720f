"""
Pydantic schemas for venue reads.
"""

from typing import Optional
from pydantic import BaseModel


class VenueResponse(BaseModel):
    id: int
    name: str
    address: Optional[str]
    owner_id: int
    status: str
    average_rating: float
    total_ratings: int
    cached: bool = False

    model_config = {"from_attributes": True}
