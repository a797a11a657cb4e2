import uuid
from datetime import datetime
from sqlalchemy import Column, String, Integer, Text, ForeignKey, DateTime, Index, Boolean, CheckConstraint
from sqlalchemy.orm import relationship
from ..database import Base
import enum


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


# Bookings in these states count against capacity
ACTIVE_STATUSES = (BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value)
TERMINAL_STATUSES = (BookingStatus.CANCELLED.value, BookingStatus.COMPLETED.value)


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    listing_id = Column(String(36), ForeignKey("listings.id", ondelete="CASCADE"), nullable=False)

    # Start of the stay. Single-date (legacy) bookings have no end_date
    date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=True)
    units = Column(Integer, nullable=False, default=1)
    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value)
    notes = Column(Text, nullable=True)

    # True while `units` are held against the listing's available_units counter
    inventory_reserved = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    user = relationship("User", back_populates="bookings")
    listing = relationship("Listing", back_populates="bookings")

    __table_args__ = (
        CheckConstraint("units >= 1 AND units <= 100", name="ck_booking_units"),
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled', 'completed')",
            name="ck_booking_status"
        ),
        Index("ix_booking_listing_status_date", "listing_id", "status", "date"),
        Index("ix_booking_user", "user_id"),
    )

    def __repr__(self):
        return f"<Booking {self.id} {self.status} {self.date}>"
