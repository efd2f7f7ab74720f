"""
Pydantic schemas for the rating ledger.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class RatingCreate(BaseModel):
    venue_id: int
    score: int
    comment: Optional[str] = None


class RatingUpdate(BaseModel):
    score: int
    comment: Optional[str] = None


class RatingResponse(BaseModel):
    id: int
    user_id: int
    venue_id: int
    score: int
    comment: Optional[str]
    created_at: datetime
    # True when the rating was stored but the venue aggregate could not be refreshed
    aggregate_stale: bool = False

    model_config = {"from_attributes": True}


class RatingDeleteResponse(BaseModel):
    message: str
    aggregate_stale: bool = False
