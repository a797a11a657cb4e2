"""
Booking Status Service

Lifecycle transitions for bookings:

    pending   -> confirmed | cancelled
    confirmed -> completed | cancelled
    completed, cancelled: terminal

Entering a terminal status gives any held inventory units back to the listing.
"""

from datetime import datetime
from typing import Dict, FrozenSet, Optional

from sqlalchemy.orm import Session

from ..models.booking import Booking, BookingStatus, TERMINAL_STATUSES
from ..models.user import User
from ..utils.db_helpers import acquire_row_lock, listing_lock
from ..utils.logging_config import get_logger
from .availability_service import get_listing_or_404
from .exceptions import (
    BookingNotFound, BookingNotYetOccurred, CannotCancelCompleted,
    InvalidStatusTransition, NotAuthorized,
)
from .permissions import can_act_on_booking
from .reservation_service import ReservationService

logger = get_logger(__name__)

ALLOWED_TRANSITIONS: Dict[BookingStatus, FrozenSet[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED}),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
}


def can_transition(current: BookingStatus, new: BookingStatus) -> bool:
    return BookingStatus(new) in ALLOWED_TRANSITIONS.get(BookingStatus(current), frozenset())


def validate_transition(booking: Booking, new_status: BookingStatus, now: Optional[datetime] = None):
    """
    Raise unless `booking` may move to `new_status`.

    Order of checks: completed -> cancelled, then the transition table,
    then completion of a booking that has not happened yet.
    """
    current = BookingStatus(booking.status)
    new_status = BookingStatus(new_status)
    now = now or datetime.utcnow()

    if current == BookingStatus.COMPLETED and new_status == BookingStatus.CANCELLED:
        raise CannotCancelCompleted(booking_id=booking.id)

    if not can_transition(current, new_status):
        raise InvalidStatusTransition(current.value, new_status.value)

    if new_status == BookingStatus.COMPLETED and booking.date > now:
        raise BookingNotYetOccurred(booking_id=booking.id, date=booking.date.isoformat())


class BookingStatusService:
    def __init__(self, db: Session):
        self.db = db
        self.reservations = ReservationService(db)

    def update_status(self, booking_id: str, new_status: BookingStatus, user: User) -> Booking:
        """
        Move a booking to `new_status`.

        Raises:
            BookingNotFound
            NotAuthorized: caller is not an admin, the owner or the listing provider
            CannotCancelCompleted / InvalidStatusTransition / BookingNotYetOccurred
        """
        new_status = BookingStatus(new_status)
        existing = self.db.query(Booking).filter(Booking.id == booking_id).first()
        if not existing:
            raise BookingNotFound(booking_id=booking_id)

        with listing_lock(existing.listing_id):
            try:
                booking = acquire_row_lock(self.db, Booking, Booking.id == booking_id)
                if booking is None:
                    raise BookingNotFound(booking_id=booking_id)

                listing = get_listing_or_404(self.db, booking.listing_id)
                if not can_act_on_booking(user, booking, listing):
                    raise NotAuthorized("Not authorized to update this booking", booking_id=booking_id)

                validate_transition(booking, new_status)

                old_status = booking.status
                if new_status.value in TERMINAL_STATUSES:
                    self.reservations.release_booking_units(booking)
                booking.status = new_status.value
                booking.updated_at = datetime.utcnow()
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        self.db.refresh(booking)
        logger.booking_status_changed(booking.id, old_status, booking.status)
        return booking
