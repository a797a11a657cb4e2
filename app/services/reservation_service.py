"""
Reservation Service

Creates, reschedules and cancels bookings against a listing's unit inventory.

Create sequence (one transaction, listing lock held throughout):
    lock inventory row -> validate duration -> availability check
    -> insert booking -> conditional decrement -> commit
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from ..config import settings
from ..models.booking import Booking, BookingStatus, ACTIVE_STATUSES
from ..models.user import User
from ..utils.dates import DateLike, ONE_DAY, to_naive_utc, start_of_day
from ..utils.db_helpers import acquire_row_lock, listing_lock
from ..utils.logging_config import get_logger
from .availability_service import (
    active_bookings_query, check_inventory_availability, get_listing_or_404,
    validate_booking_duration, validate_units,
)
from .exceptions import (
    AlreadyCancelled, BookingDateInPast, BookingNotEditable, BookingNotFound, CannotCancelCompleted,
    DuplicateBooking, InsufficientInventory, NotAuthorized, SlotUnavailable,
)
from .inventory_service import InventoryService
from .permissions import can_act_on_booking, can_edit_booking

logger = get_logger(__name__)


@dataclass
class ReservationResult:
    booking: Booking
    remaining_units: int


def legacy_conflict_window() -> timedelta:
    """Single-date bookings closer than this to each other conflict."""
    return timedelta(minutes=settings.legacy_slot_duration_minutes / 2)


class ReservationService:
    def __init__(self, db: Session):
        self.db = db
        self.inventory = InventoryService(db)

    # ------------------------------------------------------------------
    # Inventory-aware bookings
    # ------------------------------------------------------------------

    def create_inventory_booking(
        self,
        user: User,
        listing_id: str,
        start_date: DateLike,
        end_date: DateLike,
        units: int = 1,
        notes: Optional[str] = None
    ) -> ReservationResult:
        """
        Reserve `units` on a listing for [start_date, end_date).

        Raises:
            ListingNotFound / InventoryNotConfigured
            InvalidUnitCount
            BookingTooShort / BookingTooLong
            InsufficientInventory: not enough units for the range, or the
                counter was exhausted by a concurrent reservation
        """
        validate_units(units)
        start = to_naive_utc(start_date)
        end = to_naive_utc(end_date)
        get_listing_or_404(self.db, listing_id)

        with listing_lock(listing_id):
            try:
                inventory = self.inventory.lock_inventory(listing_id)
                validate_booking_duration(inventory, start, end)

                availability = check_inventory_availability(
                    self.db, listing_id, start, end, units, inventory=inventory
                )
                if not availability.available:
                    raise InsufficientInventory(
                        available=availability.available_units, requested=units
                    )

                booking = Booking(
                    user_id=user.id,
                    listing_id=listing_id,
                    date=start,
                    end_date=end,
                    units=units,
                    status=BookingStatus.PENDING.value,
                    notes=notes,
                    inventory_reserved=True,
                )
                self.db.add(booking)
                self.db.flush()

                remaining_units = self.inventory.reserve_units(listing_id, units)
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        self.db.refresh(booking)

        logger.booking_created(booking.id, listing_id, units, remaining_units)
        return ReservationResult(booking=booking, remaining_units=remaining_units)

    def release_booking_units(self, booking: Booking) -> bool:
        """
        Give a booking's held units back to the listing. Caller holds the
        listing lock and commits. Units are released at most once.
        """
        if not booking.inventory_reserved:
            return False
        self.inventory.release_units(booking.listing_id, booking.units or 1)
        booking.inventory_reserved = False
        logger.inventory_changed(booking.listing_id, "release", booking.units or 1)
        return True

    def _get_booking(self, booking_id: str) -> Booking:
        booking = self.db.query(Booking).filter(Booking.id == booking_id).first()
        if not booking:
            raise BookingNotFound(booking_id=booking_id)
        return booking

    def cancel_booking(self, booking_id: str, user: User) -> Booking:
        """
        Cancel a booking and release its units.

        Raises:
            BookingNotFound
            NotAuthorized: caller is not the owner, the listing provider or an admin
            AlreadyCancelled / CannotCancelCompleted
        """
        listing_id = self._get_booking(booking_id).listing_id

        with listing_lock(listing_id):
            try:
                booking = acquire_row_lock(self.db, Booking, Booking.id == booking_id)
                if booking is None:
                    raise BookingNotFound(booking_id=booking_id)

                listing = get_listing_or_404(self.db, booking.listing_id)
                if not can_act_on_booking(user, booking, listing):
                    raise NotAuthorized("Not authorized to cancel this booking", booking_id=booking_id)

                if booking.status == BookingStatus.CANCELLED.value:
                    raise AlreadyCancelled(booking_id=booking_id)
                if booking.status == BookingStatus.COMPLETED.value:
                    raise CannotCancelCompleted(booking_id=booking_id)

                old_status = booking.status
                self.release_booking_units(booking)
                booking.status = BookingStatus.CANCELLED.value
                booking.updated_at = datetime.utcnow()
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        self.db.refresh(booking)
        logger.booking_status_changed(booking.id, old_status, booking.status)
        return booking

    # ------------------------------------------------------------------
    # Single-date (legacy) bookings
    # ------------------------------------------------------------------

    def check_legacy_slot(
        self,
        listing_id: str,
        user_id: str,
        when: datetime,
        exclude_booking_id: Optional[str] = None
    ) -> None:
        """
        Same-day duplicate and slot-window checks for a single-date booking.
        `exclude_booking_id` leaves the booking being rescheduled out of both.
        Caller holds the listing lock.

        Raises:
            DuplicateBooking: user already has an active booking that day
            SlotUnavailable: another active booking within the slot window
        """
        day_start = start_of_day(when)
        window = legacy_conflict_window()

        duplicates = active_bookings_query(self.db, listing_id).filter(
            Booking.user_id == user_id,
            Booking.date >= day_start,
            Booking.date < day_start + ONE_DAY,
        )
        clashes = active_bookings_query(self.db, listing_id).filter(
            Booking.date >= when - window,
            Booking.date <= when + window,
        )
        if exclude_booking_id is not None:
            duplicates = duplicates.filter(Booking.id != exclude_booking_id)
            clashes = clashes.filter(Booking.id != exclude_booking_id)

        duplicate = duplicates.first()
        if duplicate:
            raise DuplicateBooking(booking_id=duplicate.id)
        if clashes.first():
            raise SlotUnavailable(date=when.isoformat())

    def create_legacy_booking(
        self,
        user: User,
        listing_id: str,
        booking_date: DateLike,
        notes: Optional[str] = None
    ) -> Booking:
        """
        Book a single point in time. Does not consume inventory units.

        Raises:
            ListingNotFound
            BookingDateInPast: date is not strictly in the future
            DuplicateBooking / SlotUnavailable
        """
        when = to_naive_utc(booking_date)
        if when <= datetime.utcnow():
            raise BookingDateInPast(date=when.isoformat())

        get_listing_or_404(self.db, listing_id)

        with listing_lock(listing_id):
            try:
                self.check_legacy_slot(listing_id, user.id, when)

                booking = Booking(
                    user_id=user.id,
                    listing_id=listing_id,
                    date=when,
                    end_date=None,
                    units=1,
                    status=BookingStatus.PENDING.value,
                    notes=notes,
                    inventory_reserved=False,
                )
                self.db.add(booking)
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        self.db.refresh(booking)
        logger.booking_created(booking.id, listing_id, 1)
        return booking

    def update_booking(self, booking_id: str, user: User, changes: dict) -> Booking:
        """
        Reschedule a single-date booking and/or replace its notes.
        `changes` holds only the fields the caller sent (`date`, `notes`).

        Raises:
            BookingNotFound
            NotAuthorized: caller is neither the booking owner nor an admin
            BookingNotEditable: booking is cancelled or completed, or a new
                date was sent for a date-range booking
            BookingDateInPast / DuplicateBooking / SlotUnavailable
        """
        listing_id = self._get_booking(booking_id).listing_id
        new_date = to_naive_utc(changes["date"]) if changes.get("date") is not None else None

        with listing_lock(listing_id):
            try:
                booking = acquire_row_lock(self.db, Booking, Booking.id == booking_id)
                if booking is None:
                    raise BookingNotFound(booking_id=booking_id)
                if not can_edit_booking(user, booking):
                    raise NotAuthorized("Not authorized to update this booking", booking_id=booking_id)
                if booking.status not in ACTIVE_STATUSES:
                    raise BookingNotEditable(booking_id=booking_id, status=booking.status)

                if new_date is not None and new_date != booking.date:
                    if booking.end_date is not None:
                        raise BookingNotEditable(
                            "Date-range bookings cannot be rescheduled; cancel and book again",
                            booking_id=booking_id,
                        )
                    if new_date <= datetime.utcnow():
                        raise BookingDateInPast(date=new_date.isoformat())
                    self.check_legacy_slot(listing_id, booking.user_id, new_date, exclude_booking_id=booking.id)
                    booking.date = new_date

                if "notes" in changes:
                    booking.notes = changes["notes"]
                booking.updated_at = datetime.utcnow()
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        self.db.refresh(booking)
        logger.info(f"Booking {booking_id} updated: {', '.join(sorted(changes))}")
        return booking

    def list_available_time_slots(self, listing_id: str, day: date) -> List[datetime]:
        """Hourly slots within business hours that a single-date booking could take."""
        get_listing_or_404(self.db, listing_id)

        window = legacy_conflict_window()
        day_start = datetime.combine(day, time.min)
        first_slot = day_start + timedelta(hours=settings.business_hours_start)
        last_slot = day_start + timedelta(hours=settings.business_hours_end)

        taken = [
            b.date for b in active_bookings_query(self.db, listing_id).filter(
                Booking.date >= first_slot - window,
                Booking.date <= last_slot + window,
            ).all()
        ]

        slots = []
        slot = first_slot
        while slot < last_slot:
            if not any(abs(t - slot) <= window for t in taken):
                slots.append(slot)
            slot += timedelta(hours=1)
        return slots
