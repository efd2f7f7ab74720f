"""
Rating model: one user's score for one venue.

Key design decisions:
- Unique constraint on (user_id, venue_id) enforces one rating per pair
- Score range is enforced by a CHECK constraint as well as by the service
"""

from sqlalchemy import Column, Integer, String, ForeignKey, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship

from app.db.base import Base, TimestampMixin


class Rating(Base, TimestampMixin):
    __tablename__ = "ratings"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    venue_id = Column(Integer, ForeignKey("venues.id"), nullable=False, index=True)
    score = Column(Integer, nullable=False)
    comment = Column(String(500), nullable=True)

    venue = relationship("Venue", back_populates="ratings")

    __table_args__ = (
        UniqueConstraint("user_id", "venue_id", name="uq_rating_user_venue"),
        CheckConstraint("score BETWEEN 1 AND 5", name="check_rating_score_range"),
    )

    def __repr__(self) -> str:
        return f"<Rating(id={self.id}, user={self.user_id}, venue={self.venue_id}, score={self.score})>"
