"""
Inventory Service

Manages the per-listing unit counter (PropertyInventory).
All counter mutations are single conditional UPDATE statements executed while
holding the listing's serialization point.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session
from sqlalchemy.exc import OperationalError

from ..config import settings
from ..models.booking import Booking
from ..models.listing import Listing, PropertyInventory
from ..models.user import User
from ..utils.db_helpers import AtomicCounter, acquire_row_lock, is_lock_contention, listing_lock
from ..utils.logging_config import get_logger
from .availability_service import active_bookings_query, get_listing_or_404
from .exceptions import (
    BookingDomainError, InsufficientInventory, InventoryNotConfigured,
    InvalidInventoryConfiguration, ResourceBusy,
)
from .permissions import ensure_admin, ensure_can_manage_listing

logger = get_logger(__name__)

INVENTORY_FIELDS = ("total_units", "available_units", "min_booking_days", "max_booking_days")


def validate_inventory_values(
    total_units: int,
    available_units: int,
    min_booking_days: int,
    max_booking_days: int
):
    """Raise InvalidInventoryConfiguration unless the four values form a valid record."""
    values = {
        "total_units": total_units,
        "available_units": available_units,
        "min_booking_days": min_booking_days,
        "max_booking_days": max_booking_days,
    }
    for name, value in values.items():
        if not isinstance(value, int) or isinstance(value, bool):
            raise InvalidInventoryConfiguration(f"{name} must be an integer", field=name)

    if not 1 <= total_units <= 100:
        raise InvalidInventoryConfiguration("Total units must be between 1 and 100", field="total_units")
    if not 0 <= available_units <= 100:
        raise InvalidInventoryConfiguration("Available units must be between 0 and 100", field="available_units")
    if available_units > total_units:
        raise InvalidInventoryConfiguration(
            "Available units cannot exceed total units",
            available_units=available_units,
            total_units=total_units,
        )
    if not 1 <= min_booking_days <= 365:
        raise InvalidInventoryConfiguration("Minimum booking days must be between 1 and 365", field="min_booking_days")
    if not 1 <= max_booking_days <= 365:
        raise InvalidInventoryConfiguration("Maximum booking days must be between 1 and 365", field="max_booking_days")
    if min_booking_days > max_booking_days:
        raise InvalidInventoryConfiguration(
            "Minimum booking days cannot exceed maximum booking days",
            min_booking_days=min_booking_days,
            max_booking_days=max_booking_days,
        )


class InventoryService:
    """
    Service for managing listing unit inventory.

    Key responsibilities:
    - Create the default record for new listings
    - Provider/admin updates with invariant checks
    - Admin adjustments and bulk updates
    - Atomic reserve/release used by the reservation flow
    """

    def __init__(self, db: Session):
        self.db = db

    def lock_inventory(self, listing_id: str) -> PropertyInventory:
        """Row-lock the inventory record (PostgreSQL) for the current transaction."""
        try:
            inventory = acquire_row_lock(
                self.db,
                PropertyInventory,
                PropertyInventory.listing_id == listing_id,
                nowait=settings.reservation_lock_nowait,
            )
        except OperationalError as e:
            self.db.rollback()
            if is_lock_contention(e):
                raise ResourceBusy(listing_id=listing_id)
            raise
        if inventory is None:
            raise InventoryNotConfigured(listing_id=listing_id)
        return inventory

    def create_default_inventory(
        self,
        listing: Listing,
        total_units: Optional[int] = None,
        min_booking_days: Optional[int] = None,
        max_booking_days: Optional[int] = None
    ) -> PropertyInventory:
        """Attach an inventory record to a new listing. Caller commits."""
        total = total_units or settings.default_total_units
        min_days = min_booking_days or settings.default_min_booking_days
        max_days = max_booking_days or settings.default_max_booking_days
        validate_inventory_values(total, total, min_days, max_days)

        inventory = PropertyInventory(
            listing_id=listing.id,
            total_units=total,
            available_units=total,
            min_booking_days=min_days,
            max_booking_days=max_days,
        )
        self.db.add(inventory)
        return inventory

    def get_inventory(self, listing_id: str) -> PropertyInventory:
        get_listing_or_404(self.db, listing_id)
        inventory = self.db.query(PropertyInventory).filter(
            PropertyInventory.listing_id == listing_id
        ).first()
        if inventory is None:
            raise InventoryNotConfigured(listing_id=listing_id)
        return inventory

    def _apply_changes(self, listing_id: str, changes: Dict[str, Any]) -> PropertyInventory:
        """Merge `changes` over the locked record and validate. Caller commits."""
        inventory = self.lock_inventory(listing_id)

        merged = {name: changes.get(name, getattr(inventory, name)) for name in INVENTORY_FIELDS}
        validate_inventory_values(**merged)

        for name in INVENTORY_FIELDS:
            if name in changes:
                setattr(inventory, name, merged[name])
        inventory.updated_at = datetime.utcnow()
        return inventory

    def update_inventory(self, listing_id: str, changes: Dict[str, Any], user: User) -> PropertyInventory:
        """
        Update a subset of inventory fields.

        Raises:
            ListingNotFound / InventoryNotConfigured
            NotAuthorized: caller is neither the listing provider nor an admin
            InvalidInventoryConfiguration: merged record breaks an invariant
        """
        listing = get_listing_or_404(self.db, listing_id)
        ensure_can_manage_listing(user, listing, "update inventory for this listing")

        with listing_lock(listing_id):
            try:
                inventory = self._apply_changes(listing_id, changes)
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        self.db.refresh(inventory)
        logger.info(
            f"Inventory updated for listing {listing_id} by {user.id}: {sorted(changes)}"
        )
        return inventory

    def adjust_inventory(
        self,
        listing_id: str,
        adjustment: int,
        user: User,
        reason: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Admin correction of available units, clamped to [0, total_units].

        Returns the inventory with previous and new available counts.
        """
        ensure_admin(user, "adjust inventory")
        get_listing_or_404(self.db, listing_id)

        with listing_lock(listing_id):
            try:
                inventory = self.lock_inventory(listing_id)
                previous = inventory.available_units
                AtomicCounter.increment_clamped(
                    self.db,
                    PropertyInventory,
                    PropertyInventory.listing_id == listing_id,
                    "available_units",
                    adjustment,
                    "total_units",
                )
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        self.db.refresh(inventory)
        logger.inventory_changed(listing_id, "adjust", adjustment, inventory.available_units)
        if reason:
            logger.info(f"Inventory adjustment reason for {listing_id}: {reason}")

        return {
            "inventory": inventory,
            "adjustment": adjustment,
            "reason": reason,
            "previous_available_units": previous,
            "new_available_units": inventory.available_units,
        }

    def bulk_update_inventory(self, updates: List[Dict[str, Any]], user: User) -> Dict[str, Any]:
        """
        Apply `[{listing_id, <fields>}]` one listing at a time.

        Each item commits or rolls back on its own; domain failures are
        collected instead of aborting the batch.
        """
        ensure_admin(user, "bulk update inventory")

        succeeded = 0
        failures = []

        for item in updates:
            listing_id = item.get("listing_id")
            changes = {k: v for k, v in item.items() if k in INVENTORY_FIELDS and v is not None}
            try:
                get_listing_or_404(self.db, listing_id)
                with listing_lock(listing_id):
                    try:
                        self._apply_changes(listing_id, changes)
                        self.db.commit()
                    except Exception:
                        self.db.rollback()
                        raise
                succeeded += 1
            except BookingDomainError as e:
                logger.warning(f"Bulk inventory update failed for {listing_id}: {e.message}")
                failures.append({"listing_id": listing_id, "code": e.code, "error": e.message})

        logger.info(f"Bulk inventory update: {succeeded} succeeded, {len(failures)} failed")
        return {
            "success": not failures,
            "succeeded_count": succeeded,
            "failures": failures,
        }

    def get_inventory_statistics(self, listing_id: str, user: User) -> Dict[str, Any]:
        """Utilization and revenue over upcoming active bookings."""
        listing = get_listing_or_404(self.db, listing_id)
        ensure_can_manage_listing(user, listing, "view inventory statistics")
        inventory = self.get_inventory(listing_id)

        upcoming = active_bookings_query(self.db, listing_id).filter(
            Booking.date >= datetime.utcnow()
        ).all()

        booked_units = sum(b.units or 1 for b in upcoming)
        total = inventory.total_units
        utilization = round(booked_units / total * 100, 2) if total else 0.0
        price = listing.price or Decimal("0")

        return {
            "listing_id": listing_id,
            "total_units": total,
            "available_units": inventory.available_units,
            "booked_units": booked_units,
            "utilization_rate": utilization,
            "upcoming_bookings": len(upcoming),
            "revenue": float(price * booked_units),
        }

    def reserve_units(self, listing_id: str, units: int) -> int:
        """
        `available_units -= units` if enough remain. Runs inside the caller's
        transaction; the caller holds the listing lock and commits.
        Returns the count left by this decrement.

        Raises:
            InsufficientInventory: the conditional UPDATE matched no row
        """
        ok = AtomicCounter.decrement_if_available(
            self.db,
            PropertyInventory,
            PropertyInventory.listing_id == listing_id,
            "available_units",
            units,
        )
        current = self.db.query(PropertyInventory.available_units).filter(
            PropertyInventory.listing_id == listing_id
        ).scalar()
        if not ok:
            raise InsufficientInventory(available=current or 0, requested=units)
        logger.inventory_changed(listing_id, "reserve", units, current)
        return current

    def release_units(self, listing_id: str, units: int) -> bool:
        """`available_units += units` capped at total_units. Caller commits."""
        released = AtomicCounter.increment_clamped(
            self.db,
            PropertyInventory,
            PropertyInventory.listing_id == listing_id,
            "available_units",
            units,
            "total_units",
        )
        if not released:
            logger.warning(f"No inventory row to release {units} unit(s) on listing {listing_id}")
        return released
