"""
Shared fixtures.

The application reads its settings at import time, so the environment is
pointed at a throwaway SQLite file before anything from `app` is imported.
A file (not :memory:) keeps one database visible to every thread.
"""

import os
import sys
import tempfile
from datetime import datetime, timedelta

import pytest

_TEST_DIR = tempfile.mkdtemp(prefix="booking-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TEST_DIR, 'test.db')}"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["LOG_JSON"] = "false"
os.environ["ENVIRONMENT"] = "test"
os.environ["SECRET_KEY"] = "test-secret-key-that-is-at-least-32-characters"

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from fastapi.testclient import TestClient  # noqa: E402

from app.database import Base, SessionLocal, engine  # noqa: E402
from app.main import app  # noqa: E402
from app.models import User, UserRole, Listing, PropertyInventory, Booking  # noqa: E402
from app.utils.security import create_access_token  # noqa: E402


@pytest.fixture(autouse=True)
def clean_database():
    """Fresh schema for every test"""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    return TestClient(app)


def _make_user(db, role: str, email: str) -> User:
    user = User(email=email, full_name=email.split("@")[0], role=role)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def customer(db):
    return _make_user(db, UserRole.CUSTOMER.value, "customer@example.com")


@pytest.fixture
def other_customer(db):
    return _make_user(db, UserRole.CUSTOMER.value, "other@example.com")


@pytest.fixture
def provider(db):
    return _make_user(db, UserRole.PROVIDER.value, "provider@example.com")


@pytest.fixture
def other_provider(db):
    return _make_user(db, UserRole.PROVIDER.value, "provider2@example.com")


@pytest.fixture
def admin(db):
    return _make_user(db, UserRole.ADMIN.value, "admin@example.com")


@pytest.fixture
def auth_headers():
    """Bearer header for a user, as issued by the upstream identity provider"""
    def _headers(user: User) -> dict:
        return {"Authorization": f"Bearer {create_access_token({'sub': user.id})}"}
    return _headers


@pytest.fixture
def make_listing(db, provider):
    """Factory: listing owned by `provider` with an inventory record."""
    def _make(total_units=3, available_units=None, min_booking_days=1, max_booking_days=30,
              owner=None, price=100, with_inventory=True):
        listing = Listing(name="Sea view chalet", price=price, provider_id=(owner or provider).id)
        db.add(listing)
        db.flush()
        if with_inventory:
            db.add(PropertyInventory(
                listing_id=listing.id,
                total_units=total_units,
                available_units=total_units if available_units is None else available_units,
                min_booking_days=min_booking_days,
                max_booking_days=max_booking_days,
            ))
        db.commit()
        db.refresh(listing)
        return listing
    return _make


@pytest.fixture
def listing(make_listing):
    return make_listing()


@pytest.fixture
def make_booking(db):
    """Factory: booking row written straight to the ledger (no inventory change)."""
    def _make(listing, user, start, end=None, units=1, status="pending", inventory_reserved=False, notes=None):
        booking = Booking(
            listing_id=listing.id,
            user_id=user.id,
            date=start,
            end_date=end,
            units=units,
            status=status,
            inventory_reserved=inventory_reserved,
            notes=notes,
        )
        db.add(booking)
        db.commit()
        db.refresh(booking)
        return booking
    return _make


@pytest.fixture
def future_day():
    """Midnight (UTC) `days` days from today"""
    def _day(days: int, hour: int = 0) -> datetime:
        today = datetime.utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
        return today + timedelta(days=days, hours=hour)
    return _day
