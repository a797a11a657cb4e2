"""
Tests for the booking status state machine

Test Coverage:
1. Transition table (allowed and rejected moves)
2. Completion guard for bookings that have not happened yet
3. completed -> cancelled reported as CannotCancelCompleted
4. Terminal transitions release held units exactly once
5. Authorization
"""

import pytest
from datetime import datetime, timedelta

from app.models.booking import BookingStatus
from app.models.listing import PropertyInventory
from app.services.booking_status_service import (
    ALLOWED_TRANSITIONS, BookingStatusService, can_transition,
)
from app.services.exceptions import (
    BookingNotFound, BookingNotYetOccurred, CannotCancelCompleted,
    InvalidStatusTransition, NotAuthorized,
)
from app.services.reservation_service import ReservationService


PAST = datetime(2024, 6, 10)


class TestTransitionTable:

    @pytest.mark.parametrize("current,new", [
        (BookingStatus.PENDING, BookingStatus.CONFIRMED),
        (BookingStatus.PENDING, BookingStatus.CANCELLED),
        (BookingStatus.CONFIRMED, BookingStatus.COMPLETED),
        (BookingStatus.CONFIRMED, BookingStatus.CANCELLED),
    ])
    def test_allowed(self, current, new):
        assert can_transition(current, new)

    @pytest.mark.parametrize("current,new", [
        (BookingStatus.PENDING, BookingStatus.COMPLETED),
        (BookingStatus.PENDING, BookingStatus.PENDING),
        (BookingStatus.CONFIRMED, BookingStatus.PENDING),
        (BookingStatus.COMPLETED, BookingStatus.CONFIRMED),
        (BookingStatus.CANCELLED, BookingStatus.CONFIRMED),
        (BookingStatus.CANCELLED, BookingStatus.PENDING),
    ])
    def test_rejected(self, current, new):
        assert not can_transition(current, new)

    def test_terminal_states_have_no_exits(self):
        assert ALLOWED_TRANSITIONS[BookingStatus.COMPLETED] == frozenset()
        assert ALLOWED_TRANSITIONS[BookingStatus.CANCELLED] == frozenset()


class TestUpdateStatus:

    def test_pending_to_confirmed(self, db, listing, customer, provider, make_booking):
        booking = make_booking(listing, customer, PAST, PAST + timedelta(days=2))

        updated = BookingStatusService(db).update_status(booking.id, BookingStatus.CONFIRMED, provider)

        assert updated.status == "confirmed"

    def test_off_table_transition_leaves_status(self, db, listing, customer, admin, make_booking):
        booking = make_booking(listing, customer, PAST, PAST + timedelta(days=2))

        with pytest.raises(InvalidStatusTransition) as exc_info:
            BookingStatusService(db).update_status(booking.id, BookingStatus.COMPLETED, admin)

        assert exc_info.value.context == {"current_status": "pending", "requested_status": "completed"}
        db.refresh(booking)
        assert booking.status == "pending"

    def test_complete_past_booking(self, db, listing, customer, admin, make_booking):
        booking = make_booking(listing, customer, PAST, PAST + timedelta(days=2), status="confirmed")

        updated = BookingStatusService(db).update_status(booking.id, BookingStatus.COMPLETED, admin)

        assert updated.status == "completed"

    def test_complete_future_booking_rejected(self, db, listing, customer, admin, make_booking, future_day):
        booking = make_booking(listing, customer, future_day(3), future_day(5), status="confirmed")

        with pytest.raises(BookingNotYetOccurred):
            BookingStatusService(db).update_status(booking.id, BookingStatus.COMPLETED, admin)

    def test_completed_to_cancelled_reports_specific_error(self, db, listing, customer, admin, make_booking):
        booking = make_booking(listing, customer, PAST, PAST + timedelta(days=2), status="completed")

        with pytest.raises(CannotCancelCompleted):
            BookingStatusService(db).update_status(booking.id, BookingStatus.CANCELLED, admin)

    def test_cancelled_is_terminal(self, db, listing, customer, admin, make_booking):
        booking = make_booking(listing, customer, PAST, PAST + timedelta(days=2), status="cancelled")

        with pytest.raises(InvalidStatusTransition):
            BookingStatusService(db).update_status(booking.id, BookingStatus.CONFIRMED, admin)

    def test_stranger_rejected(self, db, listing, customer, other_customer, make_booking):
        booking = make_booking(listing, customer, PAST, PAST + timedelta(days=2))

        with pytest.raises(NotAuthorized):
            BookingStatusService(db).update_status(booking.id, BookingStatus.CONFIRMED, other_customer)

    def test_unknown_booking(self, db, admin):
        with pytest.raises(BookingNotFound):
            BookingStatusService(db).update_status("missing", BookingStatus.CONFIRMED, admin)


class TestTerminalTransitionsReleaseUnits:

    def _available(self, db, listing_id):
        db.expire_all()
        return db.query(PropertyInventory).filter(
            PropertyInventory.listing_id == listing_id
        ).one().available_units

    def test_cancel_via_status_releases_units(self, db, make_listing, customer):
        listing = make_listing(total_units=2)
        result = ReservationService(db).create_inventory_booking(
            customer, listing.id, PAST, PAST + timedelta(days=2)
        )
        assert self._available(db, listing.id) == 1

        BookingStatusService(db).update_status(result.booking.id, BookingStatus.CANCELLED, customer)

        assert self._available(db, listing.id) == 2

    def test_completion_releases_units_once(self, db, make_listing, customer, admin):
        listing = make_listing(total_units=2)
        result = ReservationService(db).create_inventory_booking(
            customer, listing.id, PAST, PAST + timedelta(days=2), units=2
        )
        service = BookingStatusService(db)
        service.update_status(result.booking.id, BookingStatus.CONFIRMED, admin)
        assert self._available(db, listing.id) == 0

        completed = service.update_status(result.booking.id, BookingStatus.COMPLETED, admin)

        assert completed.inventory_reserved is False
        assert self._available(db, listing.id) == 2
        with pytest.raises(CannotCancelCompleted):
            service.update_status(result.booking.id, BookingStatus.CANCELLED, admin)
        assert self._available(db, listing.id) == 2
