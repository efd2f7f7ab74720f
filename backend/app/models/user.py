"""
User model. Accounts are provisioned by the identity service; this API only
needs the id, role and active flag to authorise requests.
"""

from sqlalchemy import Column, Integer, String, Boolean, CheckConstraint
from sqlalchemy.orm import relationship

from app.db.base import Base, TimestampMixin

ROLE_PLAYER = "player"
ROLE_OWNER = "owner"
ROLE_ADMIN = "admin"
ROLES = (ROLE_PLAYER, ROLE_OWNER, ROLE_ADMIN)


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(100), nullable=False)
    role = Column(String(20), nullable=False, default=ROLE_PLAYER)
    is_active = Column(Boolean, default=True, nullable=False)

    # Relationships
    venues = relationship("Venue", back_populates="owner")
    bookings = relationship("Booking", back_populates="user", foreign_keys="Booking.user_id")

    __table_args__ = (
        CheckConstraint("role IN ('player', 'owner', 'admin')", name="check_user_role"),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
