"""
Database Helper Utilities for Concurrency Control

Provides:
- Database dialect detection (PostgreSQL vs SQLite)
- Row locking helpers
- Per-listing serialization point for inventory mutations
- Atomic conditional counter updates for available units
"""

import logging
import threading
from contextlib import contextmanager
from typing import Dict, Optional, Type, TypeVar
from sqlalchemy import case, update
from sqlalchemy.orm import Session
from sqlalchemy.exc import OperationalError

logger = logging.getLogger(__name__)

T = TypeVar('T')


def is_postgres(db: Session) -> bool:
    """Check if the database is PostgreSQL"""
    try:
        dialect = db.bind.dialect.name
        return dialect == 'postgresql'
    except Exception:
        return False


def is_sqlite(db: Session) -> bool:
    """Check if the database is SQLite"""
    try:
        dialect = db.bind.dialect.name
        return dialect == 'sqlite'
    except Exception:
        return True  # Default to SQLite for safety


def acquire_row_lock(
    db: Session,
    model: Type[T],
    filter_condition,
    nowait: bool = False
) -> Optional[T]:
    """
    Acquire a row-level lock on a database record.

    Args:
        db: Database session
        model: SQLAlchemy model class
        filter_condition: Filter to find the row
        nowait: If True, raise error immediately if lock unavailable (PostgreSQL only)

    Returns:
        The locked model instance, or None if not found

    Raises:
        OperationalError: If nowait=True and row is locked by another transaction

    Example:
        inventory = acquire_row_lock(db, PropertyInventory, PropertyInventory.listing_id == listing_id)
    """
    query = db.query(model).filter(filter_condition).populate_existing()

    # Only apply locking on PostgreSQL
    if is_postgres(db):
        if nowait:
            query = query.with_for_update(nowait=True)
        else:
            query = query.with_for_update()

    return query.first()


def is_lock_contention(error: OperationalError) -> bool:
    message = str(error).lower()
    return "could not obtain lock" in message or "database is locked" in message


class ListingLockRegistry:
    """
    One threading.Lock per listing id.

    Serializes check-then-reserve sequences for the same listing inside a
    process. Row locks (PostgreSQL) and the conditional UPDATE below keep
    multiple processes correct.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}

    def get(self, listing_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(listing_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[listing_id] = lock
            return lock

    def discard(self, listing_id: str) -> None:
        with self._guard:
            self._locks.pop(listing_id, None)

    @contextmanager
    def hold(self, listing_id: str):
        lock = self.get(listing_id)
        with lock:
            yield


listing_locks = ListingLockRegistry()


def listing_lock(listing_id: str):
    """Context manager holding the serialization point for a listing."""
    return listing_locks.hold(listing_id)


class AtomicCounter:
    """
    Conditional counter updates executed as a single UPDATE statement.

    Prevents lost updates and check-then-act races on inventory counters.

    Example:
        ok = AtomicCounter.decrement_if_available(
            db, PropertyInventory, PropertyInventory.listing_id == listing_id,
            'available_units', 2
        )
    """

    @staticmethod
    def decrement_if_available(
        db: Session,
        model: Type[T],
        filter_condition,
        column_name: str,
        amount: int
    ) -> bool:
        """
        `column -= amount WHERE column >= amount`.

        Returns False when no row matched (insufficient value or missing row).
        """
        column = getattr(model, column_name)
        result = db.execute(
            update(model)
            .where(filter_condition)
            .where(column >= amount)
            .values({column_name: column - amount})
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @staticmethod
    def increment_clamped(
        db: Session,
        model: Type[T],
        filter_condition,
        column_name: str,
        amount: int,
        ceiling_column_name: str,
        floor: int = 0
    ) -> bool:
        """
        `column = clamp(column + amount, floor, ceiling_column)` in one statement.

        `amount` may be negative. Returns False when no row matched.
        """
        column = getattr(model, column_name)
        ceiling = getattr(model, ceiling_column_name)
        target = column + amount
        result = db.execute(
            update(model)
            .where(filter_condition)
            .values({
                column_name: case(
                    (target > ceiling, ceiling),
                    (target < floor, floor),
                    else_=target,
                )
            })
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
