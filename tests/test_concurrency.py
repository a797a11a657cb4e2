"""
Concurrency Tests for Race Condition Prevention

Tests cover:
- Parallel reservations against the last unit
- Per-listing lock registry
- Row locking helpers (PostgreSQL vs SQLite)
- Conditional counter updates

These tests verify that our locking mechanisms work correctly.
"""

import os
import threading
import time
import pytest
from datetime import datetime, timedelta
from unittest.mock import MagicMock
from concurrent.futures import ThreadPoolExecutor

from app.database import SessionLocal
from app.models.booking import Booking
from app.models.listing import PropertyInventory
from app.models.user import User
from app.services.exceptions import InsufficientInventory
from app.services.reservation_service import ReservationService

APP_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "app")


def _source(relative_path: str) -> str:
    with open(os.path.join(APP_DIR, relative_path), "r", encoding="utf-8") as f:
        return f.read()


def _reserve_in_own_session(user_id: str, listing_id: str, start: datetime, units: int = 1) -> str:
    """One request: its own session, like a threadpool worker serving a route."""
    session = SessionLocal()
    try:
        user = session.get(User, user_id)
        try:
            ReservationService(session).create_inventory_booking(
                user, listing_id, start, start + timedelta(days=2), units=units
            )
            return "ok"
        except InsufficientInventory:
            return "insufficient"
    finally:
        session.close()


class TestParallelReservations:
    """N parallel reservations for the last unit: exactly one wins"""

    def test_exactly_one_reservation_succeeds(self, db, make_listing, customer):
        listing = make_listing(total_units=1)
        listing_id, user_id = listing.id, customer.id
        start = datetime(2024, 6, 10)

        with ThreadPoolExecutor(max_workers=8) as pool:
            outcomes = list(pool.map(
                lambda _: _reserve_in_own_session(user_id, listing_id, start), range(8)
            ))

        assert outcomes.count("ok") == 1
        assert outcomes.count("insufficient") == 7

        db.expire_all()
        assert db.query(Booking).filter(Booking.listing_id == listing_id).count() == 1
        assert db.query(PropertyInventory).filter_by(listing_id=listing_id).one().available_units == 0

    def test_parallel_reservations_never_oversell(self, db, make_listing, customer):
        """Disjoint date ranges still share one unit counter"""
        listing = make_listing(total_units=3)
        listing_id, user_id = listing.id, customer.id

        with ThreadPoolExecutor(max_workers=6) as pool:
            outcomes = list(pool.map(
                lambda i: _reserve_in_own_session(
                    user_id, listing_id, datetime(2024, 6, 1) + timedelta(days=3 * i)
                ),
                range(6),
            ))

        assert outcomes.count("ok") == 3
        db.expire_all()
        assert db.query(PropertyInventory).filter_by(listing_id=listing_id).one().available_units == 0


class TestListingLocks:

    def test_same_listing_shares_a_lock(self):
        from app.utils.db_helpers import ListingLockRegistry

        registry = ListingLockRegistry()

        assert registry.get("listing-1") is registry.get("listing-1")
        assert registry.get("listing-1") is not registry.get("listing-2")

    def test_discard_forgets_lock(self):
        from app.utils.db_helpers import ListingLockRegistry

        registry = ListingLockRegistry()
        first = registry.get("listing-1")
        registry.discard("listing-1")

        assert registry.get("listing-1") is not first

    def test_hold_serializes_critical_sections(self):
        from app.utils.db_helpers import ListingLockRegistry

        registry = ListingLockRegistry()
        inside = []
        overlaps = []

        def critical():
            with registry.hold("listing-1"):
                if inside:
                    overlaps.append(True)
                inside.append(threading.get_ident())
                time.sleep(0.01)
                inside.pop()

        threads = [threading.Thread(target=critical) for _ in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert overlaps == []


class TestRowLocking:
    """Tests for acquire_row_lock"""

    def test_acquire_row_lock_uses_for_update_on_postgres(self):
        """Verify acquire_row_lock applies with_for_update on PostgreSQL"""
        from app.utils.db_helpers import acquire_row_lock

        db = MagicMock()
        db.bind.dialect.name = 'postgresql'

        query_mock = MagicMock()
        filter_mock = MagicMock()
        existing_mock = MagicMock()
        for_update_mock = MagicMock()

        db.query.return_value = query_mock
        query_mock.filter.return_value = filter_mock
        filter_mock.populate_existing.return_value = existing_mock
        existing_mock.with_for_update.return_value = for_update_mock
        for_update_mock.first.return_value = MagicMock()

        acquire_row_lock(db, PropertyInventory, PropertyInventory.listing_id == 'test-id', nowait=True)

        existing_mock.with_for_update.assert_called_once_with(nowait=True)

    def test_acquire_row_lock_skips_locking_on_sqlite(self):
        """Verify acquire_row_lock skips locking on SQLite"""
        from app.utils.db_helpers import acquire_row_lock

        db = MagicMock()
        db.bind.dialect.name = 'sqlite'

        query_mock = MagicMock()
        filter_mock = MagicMock()
        existing_mock = MagicMock()

        db.query.return_value = query_mock
        query_mock.filter.return_value = filter_mock
        filter_mock.populate_existing.return_value = existing_mock
        existing_mock.first.return_value = MagicMock()

        acquire_row_lock(db, PropertyInventory, PropertyInventory.listing_id == 'test-id', nowait=True)

        existing_mock.with_for_update.assert_not_called()

    def test_reservation_locks_inventory_before_checking(self):
        """Verify the create sequence: lock -> check -> insert -> decrement"""
        content = _source('services/reservation_service.py')
        start = content.find('def create_inventory_booking')

        lock_pos = content.find('listing_lock(listing_id)', start)
        row_lock_pos = content.find('lock_inventory(listing_id)', lock_pos)
        check_pos = content.find('check_inventory_availability(', row_lock_pos)
        create_pos = content.find('Booking(', check_pos)
        decrement_pos = content.find('reserve_units(', create_pos)
        commit_pos = content.find('self.db.commit()', decrement_pos)

        assert start < lock_pos < row_lock_pos < check_pos < create_pos < decrement_pos < commit_pos, \
            "Lock must come before the availability check, which must come before insert and decrement"

    def test_inventory_row_lock_uses_helper(self):
        content = _source('services/inventory_service.py')

        assert 'from ..utils.db_helpers import AtomicCounter, acquire_row_lock' in content
        assert 'acquire_row_lock(' in content

    def test_booking_status_update_uses_lock(self):
        """Verify status updates lock the booking row"""
        content = _source('services/booking_status_service.py')

        assert 'acquire_row_lock(self.db, Booking, Booking.id == booking_id)' in content


class TestAtomicCounter:

    def test_decrement_reports_no_match(self):
        from app.utils.db_helpers import AtomicCounter

        db = MagicMock()
        db.execute.return_value.rowcount = 0

        ok = AtomicCounter.decrement_if_available(
            db, PropertyInventory, PropertyInventory.listing_id == 'l-1', 'available_units', 2
        )

        assert ok is False
        assert db.execute.called

    def test_decrement_reports_match(self):
        from app.utils.db_helpers import AtomicCounter

        db = MagicMock()
        db.execute.return_value.rowcount = 1

        assert AtomicCounter.decrement_if_available(
            db, PropertyInventory, PropertyInventory.listing_id == 'l-1', 'available_units', 1
        ) is True

    def test_decrement_is_conditional(self, db, make_listing):
        from app.utils.db_helpers import AtomicCounter

        listing = make_listing(total_units=3, available_units=1)
        condition = PropertyInventory.listing_id == listing.id

        assert AtomicCounter.decrement_if_available(db, PropertyInventory, condition, 'available_units', 2) is False
        assert AtomicCounter.decrement_if_available(db, PropertyInventory, condition, 'available_units', 1) is True
        db.commit()

        db.expire_all()
        assert db.query(PropertyInventory).filter_by(listing_id=listing.id).one().available_units == 0

    def test_increment_clamped_to_total(self, db, make_listing):
        from app.utils.db_helpers import AtomicCounter

        listing = make_listing(total_units=3, available_units=2)
        condition = PropertyInventory.listing_id == listing.id

        AtomicCounter.increment_clamped(db, PropertyInventory, condition, 'available_units', 5, 'total_units')
        db.commit()
        db.expire_all()
        assert db.query(PropertyInventory).filter_by(listing_id=listing.id).one().available_units == 3

        AtomicCounter.increment_clamped(db, PropertyInventory, condition, 'available_units', -7, 'total_units')
        db.commit()
        db.expire_all()
        assert db.query(PropertyInventory).filter_by(listing_id=listing.id).one().available_units == 0


class TestDbHelpers:
    """Tests for database helper utilities"""

    def test_is_postgres_returns_true_for_postgresql(self):
        from app.utils.db_helpers import is_postgres

        db = MagicMock()
        db.bind.dialect.name = 'postgresql'

        assert is_postgres(db) is True

    def test_is_postgres_returns_false_for_sqlite(self):
        from app.utils.db_helpers import is_postgres

        db = MagicMock()
        db.bind.dialect.name = 'sqlite'

        assert is_postgres(db) is False

    def test_is_sqlite_returns_true_for_sqlite(self):
        from app.utils.db_helpers import is_sqlite

        db = MagicMock()
        db.bind.dialect.name = 'sqlite'

        assert is_sqlite(db) is True

    def test_lock_contention_detection(self):
        from sqlalchemy.exc import OperationalError
        from app.utils.db_helpers import is_lock_contention

        busy = OperationalError("SELECT", {}, Exception("could not obtain lock on row"))
        other = OperationalError("SELECT", {}, Exception("connection refused"))

        assert is_lock_contention(busy)
        assert not is_lock_contention(other)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
