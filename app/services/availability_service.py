"""
Availability Service

Duration validation and unit availability for a listing over a date range.

The booking ledger is the `bookings` table: every booking of a listing whose
status is pending or confirmed holds units for the interval it occupies.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session, Query

from ..config import settings
from ..models.booking import Booking, ACTIVE_STATUSES
from ..models.listing import Listing, PropertyInventory
from ..utils.dates import DateLike, ONE_DAY, to_naive_utc, start_of_day
from .exceptions import (
    ListingNotFound, InventoryNotConfigured, BookingTooShort, BookingTooLong,
    InvalidDateRange, InvalidUnitCount,
)

logger = logging.getLogger(__name__)

MIN_UNITS = 1
MAX_UNITS = 100


@dataclass
class DurationCheck:
    actual_days: int
    min_days: int
    max_days: int


@dataclass
class AvailabilityResult:
    listing_id: str
    available: bool
    available_units: int
    total_units: int
    requested_units: int
    conflicting_bookings: List[Booking] = field(default_factory=list)


def get_listing_or_404(db: Session, listing_id: str) -> Listing:
    listing = db.query(Listing).filter(Listing.id == listing_id).first()
    if not listing:
        raise ListingNotFound(listing_id=listing_id)
    return listing


def get_inventory_or_404(db: Session, listing_id: str) -> PropertyInventory:
    """Inventory row for an existing listing."""
    inventory = db.query(PropertyInventory).filter(
        PropertyInventory.listing_id == listing_id
    ).first()
    if inventory is None:
        get_listing_or_404(db, listing_id)
        raise InventoryNotConfigured(listing_id=listing_id)
    return inventory


def validate_units(units: int):
    if not isinstance(units, int) or not MIN_UNITS <= units <= MAX_UNITS:
        raise InvalidUnitCount(units=units)


def booking_days(start: DateLike, end: DateLike) -> int:
    """Whole days covered by [start, end), partial days rounded up."""
    delta = to_naive_utc(end) - to_naive_utc(start)
    return math.ceil(delta / ONE_DAY)


def validate_booking_duration(
    inventory: PropertyInventory,
    start: DateLike,
    end: DateLike
) -> DurationCheck:
    """
    Check a stay length against the listing's min/max booking days.

    Raises:
        BookingTooShort: fewer days than min_booking_days (includes same-day
            and reversed ranges)
        BookingTooLong: more days than max_booking_days
    """
    actual_days = booking_days(start, end)
    min_days = inventory.min_booking_days
    max_days = inventory.max_booking_days

    if actual_days < min_days:
        raise BookingTooShort(
            f"Minimum booking duration is {min_days} day(s)",
            actual_days=actual_days,
            min_days=min_days,
        )
    if actual_days > max_days:
        raise BookingTooLong(
            f"Maximum booking duration is {max_days} day(s)",
            actual_days=actual_days,
            max_days=max_days,
        )

    return DurationCheck(actual_days=actual_days, min_days=min_days, max_days=max_days)


def query_window(start: DateLike, end: DateLike) -> Tuple[datetime, datetime]:
    """
    Half-open [start, end) window in naive UTC.

    A zero-length window means "that day" and is widened to the whole
    calendar day of start.
    """
    window_start = to_naive_utc(start)
    window_end = to_naive_utc(end)
    if window_end < window_start:
        raise InvalidDateRange(
            "End date must not be before start date",
            start_date=window_start.isoformat(),
            end_date=window_end.isoformat(),
        )
    if window_end == window_start:
        window_start = start_of_day(window_start)
        window_end = window_start + ONE_DAY
    return window_start, window_end


def active_bookings_query(db: Session, listing_id: str) -> Query:
    """Ledger entries currently holding capacity on a listing."""
    return db.query(Booking).filter(
        Booking.listing_id == listing_id,
        Booking.status.in_(ACTIVE_STATUSES),
    )


def overlapping_bookings_query(
    db: Session,
    listing_id: str,
    window_start: datetime,
    window_end: datetime
) -> Query:
    """
    Active bookings whose occupied interval intersects [window_start, window_end).

    Ranged bookings occupy [date, end_date); single-date bookings occupy the
    instant `date`.
    """
    return active_bookings_query(db, listing_id).filter(
        Booking.date < window_end,
        or_(
            Booking.end_date > window_start,
            and_(Booking.end_date.is_(None), Booking.date >= window_start),
        ),
    )


def committed_units(bookings: List[Booking]) -> int:
    if settings.count_each_booking_as_one_unit:
        return len(bookings)
    return sum(b.units or 1 for b in bookings)


def check_inventory_availability(
    db: Session,
    listing_id: str,
    start: DateLike,
    end: DateLike,
    requested_units: int = 1,
    inventory: Optional[PropertyInventory] = None
) -> AvailabilityResult:
    """
    Compute whether `requested_units` can be booked for [start, end).

    Pure read; pass an already locked `inventory` row to reuse it.
    """
    validate_units(requested_units)
    if inventory is None:
        inventory = get_inventory_or_404(db, listing_id)

    total = inventory.total_units

    if requested_units > total:
        return AvailabilityResult(
            listing_id=listing_id,
            available=False,
            available_units=inventory.available_units,
            total_units=total,
            requested_units=requested_units,
        )

    window_start, window_end = query_window(start, end)
    conflicting = overlapping_bookings_query(
        db, listing_id, window_start, window_end
    ).order_by(Booking.date).all()

    available_for_range = total - committed_units(conflicting)

    logger.debug(
        f"Availability for listing {listing_id} [{window_start} - {window_end}): "
        f"{available_for_range}/{total} free, {requested_units} requested"
    )

    return AvailabilityResult(
        listing_id=listing_id,
        available=available_for_range >= requested_units,
        available_units=max(0, available_for_range),
        total_units=total,
        requested_units=requested_units,
        conflicting_bookings=conflicting,
    )
