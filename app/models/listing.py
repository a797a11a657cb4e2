import uuid
from datetime import datetime
from sqlalchemy import (
    Column, String, Integer, Numeric, Text, ForeignKey, DateTime, Boolean, Date,
    CheckConstraint, UniqueConstraint, Index
)
from sqlalchemy.orm import relationship
from ..database import Base


class Listing(Base):
    """A bookable property/service owned by a provider."""
    __tablename__ = "listings"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), default=0)
    provider_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    provider = relationship("User", back_populates="listings")
    inventory = relationship(
        "PropertyInventory",
        back_populates="listing",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    unavailable_dates = relationship(
        "ListingUnavailableDate",
        back_populates="listing",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="ListingUnavailableDate.date",
    )
    bookings = relationship(
        "Booking",
        back_populates="listing",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self):
        return f"<Listing {self.name}>"


class PropertyInventory(Base):
    """
    Capacity state of a listing.

    Invariants (also enforced as CHECK constraints):
    - 1 <= total_units <= 100
    - 0 <= available_units <= total_units
    - 1 <= min_booking_days <= max_booking_days <= 365
    """
    __tablename__ = "property_inventory"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    listing_id = Column(String(36), ForeignKey("listings.id", ondelete="CASCADE"), nullable=False, unique=True)

    total_units = Column(Integer, nullable=False, default=1)
    available_units = Column(Integer, nullable=False, default=1)
    min_booking_days = Column(Integer, nullable=False, default=1)
    max_booking_days = Column(Integer, nullable=False, default=30)

    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    listing = relationship("Listing", back_populates="inventory")

    __table_args__ = (
        CheckConstraint("total_units >= 1 AND total_units <= 100", name="ck_inventory_total_units"),
        CheckConstraint(
            "available_units >= 0 AND available_units <= total_units",
            name="ck_inventory_available_units"
        ),
        CheckConstraint(
            "min_booking_days >= 1 AND min_booking_days <= max_booking_days AND max_booking_days <= 365",
            name="ck_inventory_booking_days"
        ),
    )

    def __repr__(self):
        return f"<PropertyInventory {self.listing_id} {self.available_units}/{self.total_units}>"


class ListingUnavailableDate(Base):
    """
    A calendar day manually blocked by the listing owner or an admin.
    Independent of the unit inventory.
    """
    __tablename__ = "listing_unavailable_dates"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    listing_id = Column(String(36), ForeignKey("listings.id", ondelete="CASCADE"), nullable=False)
    date = Column(Date, nullable=False)
    reason = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    listing = relationship("Listing", back_populates="unavailable_dates")

    __table_args__ = (
        UniqueConstraint("listing_id", "date", name="uq_unavailable_listing_date"),
        Index("ix_unavailable_listing_date", "listing_id", "date"),
    )

    def __repr__(self):
        return f"<ListingUnavailableDate {self.listing_id} {self.date}>"
