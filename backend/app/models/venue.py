"""
Venue model.

`average_rating` and `total_ratings` are a cached aggregate of the venue's
ratings. They are always recomputed from the rating rows, never patched
incrementally (see rating_service.refresh_venue_rating).
"""

from sqlalchemy import Column, Integer, String, Float, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship

from app.db.base import Base, TimestampMixin


class Venue(Base, TimestampMixin):
    __tablename__ = "venues"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    address = Column(String(255), nullable=True)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="approved")

    # Cached rating aggregate
    average_rating = Column(Float, nullable=False, default=0)
    total_ratings = Column(Integer, nullable=False, default=0)

    # Relationships
    owner = relationship("User", back_populates="venues")
    ratings = relationship("Rating", back_populates="venue")

    __table_args__ = (
        CheckConstraint("total_ratings >= 0", name="check_venue_total_ratings_non_negative"),
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'suspended')",
            name="check_venue_status",
        ),
    )

    def __repr__(self) -> str:
        return f"<Venue(id={self.id}, name={self.name}, rating={self.average_rating}/{self.total_ratings})>"
