from sqlalchemy import Column, Integer, String

from app.db.base import Base, TimestampMixin


class Sport(Base, TimestampMixin):
    __tablename__ = "sports"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), unique=True, nullable=False)
    description = Column(String(500), nullable=True)
    booking_count = Column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<Sport(id={self.id}, name={self.name}, bookings={self.booking_count})>"
