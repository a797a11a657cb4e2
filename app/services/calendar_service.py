"""
Calendar Service

Manually blocked days per listing, and the calendar/range views built on them.
Blocked days are independent of the unit inventory.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import FrozenSet, Iterable, Iterator, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..config import settings
from ..models.listing import ListingUnavailableDate
from ..models.user import User
from ..utils.dates import DateLike, ONE_DAY, iter_days, month_bounds, span_days, to_day, to_naive_utc
from ..utils.db_helpers import listing_lock
from ..utils.logging_config import get_logger
from .availability_service import get_listing_or_404
from .exceptions import InvalidDateRange, NoDatesWereBlocked, NoNewDatesToBlock
from .permissions import ensure_can_manage_listing

logger = get_logger(__name__)

# Indexed by day_of_week (0 = Sunday)
DAY_NAMES = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")


@dataclass
class DateBlockResult:
    listing_id: str
    changed_dates: List[date]
    total_unavailable_dates: int
    reason: Optional[str] = None


@dataclass
class RangeAvailability:
    listing_id: str
    check_in_date: date
    check_out_date: date
    conflicting_dates: List[date]

    @property
    def is_available(self) -> bool:
        return not self.conflicting_dates


def day_of_week(day: date) -> int:
    """0 = Sunday ... 6 = Saturday."""
    return (day.weekday() + 1) % 7


def calendar_days(start: date, end: date, blocked: FrozenSet[date]) -> Iterator[dict]:
    """Lazily yield one entry per day in [start, end]."""
    for day in iter_days(start, end):
        dow = day_of_week(day)
        yield {
            "date": day,
            "day_of_week": dow,
            "day_name": DAY_NAMES[dow],
            "is_available": day not in blocked,
        }


def normalize_dates(dates: Iterable[DateLike]) -> List[date]:
    """Day granularity, duplicates removed, sorted."""
    return sorted({to_day(d) for d in dates})


def ensure_window_size(start: date, end: date) -> None:
    """Raises InvalidDateRange when [start, end] spans more than MAX_CALENDAR_DAYS."""
    if span_days(start, end) > settings.max_calendar_days:
        raise InvalidDateRange(
            f"Date range may cover at most {settings.max_calendar_days} days",
            start_date=start.isoformat(),
            end_date=end.isoformat(),
            max_days=settings.max_calendar_days,
        )


def resolve_window(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    month: Optional[int] = None,
    year: Optional[int] = None,
    today: Optional[date] = None
) -> Tuple[date, date]:
    """
    Calendar window: explicit start/end, else month/year, else the current month.
    """
    today = today or datetime.utcnow().date()
    if start_date and end_date:
        start, end = to_day(start_date), to_day(end_date)
        if end < start:
            raise InvalidDateRange(
                "End date must not be before start date",
                start_date=start.isoformat(),
                end_date=end.isoformat(),
            )
        ensure_window_size(start, end)
        return start, end
    if month or year:
        return month_bounds(year or today.year, month or today.month)
    return month_bounds(today.year, today.month)


class CalendarService:
    def __init__(self, db: Session):
        self.db = db

    def blocked_dates(
        self,
        listing_id: str,
        start: Optional[date] = None,
        end: Optional[date] = None
    ) -> FrozenSet[date]:
        query = self.db.query(ListingUnavailableDate.date).filter(
            ListingUnavailableDate.listing_id == listing_id
        )
        if start is not None:
            query = query.filter(ListingUnavailableDate.date >= start)
        if end is not None:
            query = query.filter(ListingUnavailableDate.date <= end)
        return frozenset(row[0] for row in query.all())

    def _count_blocked(self, listing_id: str) -> int:
        return self.db.query(ListingUnavailableDate).filter(
            ListingUnavailableDate.listing_id == listing_id
        ).count()

    def block_dates(
        self,
        listing_id: str,
        dates: Iterable[DateLike],
        user: User,
        reason: Optional[str] = None
    ) -> DateBlockResult:
        """
        Mark days unavailable. Already blocked days are skipped.

        Raises:
            ListingNotFound
            NotAuthorized
            NoNewDatesToBlock: every requested day was already blocked
        """
        listing = get_listing_or_404(self.db, listing_id)
        ensure_can_manage_listing(user, listing, "block dates for this listing")
        requested = normalize_dates(dates)

        with listing_lock(listing_id):
            try:
                existing = self.blocked_dates(listing_id)
                new_dates = [d for d in requested if d not in existing]
                if not new_dates:
                    raise NoNewDatesToBlock(listing_id=listing_id)

                for day in new_dates:
                    self.db.add(ListingUnavailableDate(listing_id=listing_id, date=day, reason=reason))
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        total = self._count_blocked(listing_id)
        logger.info(f"Blocked {len(new_dates)} date(s) on listing {listing_id} ({total} total)")
        return DateBlockResult(
            listing_id=listing_id,
            changed_dates=new_dates,
            total_unavailable_dates=total,
            reason=reason,
        )

    def unblock_dates(self, listing_id: str, dates: Iterable[DateLike], user: User) -> DateBlockResult:
        """
        Make days available again.

        Raises:
            ListingNotFound
            NotAuthorized
            NoDatesWereBlocked: none of the requested days was blocked
        """
        listing = get_listing_or_404(self.db, listing_id)
        ensure_can_manage_listing(user, listing, "unblock dates for this listing")
        requested = normalize_dates(dates)

        with listing_lock(listing_id):
            try:
                rows = self.db.query(ListingUnavailableDate).filter(
                    ListingUnavailableDate.listing_id == listing_id,
                    ListingUnavailableDate.date.in_(requested),
                ).all()
                if not rows:
                    raise NoDatesWereBlocked(listing_id=listing_id)

                removed = sorted(row.date for row in rows)
                for row in rows:
                    self.db.delete(row)
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        total = self._count_blocked(listing_id)
        logger.info(f"Unblocked {len(removed)} date(s) on listing {listing_id} ({total} remaining)")
        return DateBlockResult(
            listing_id=listing_id,
            changed_dates=removed,
            total_unavailable_dates=total,
        )

    def get_calendar(
        self,
        listing_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        month: Optional[int] = None,
        year: Optional[int] = None
    ) -> dict:
        listing = get_listing_or_404(self.db, listing_id)
        start, end = resolve_window(start_date, end_date, month, year)
        blocked = self.blocked_dates(listing_id, start, end)

        days = list(calendar_days(start, end, blocked))
        available = sum(1 for d in days if d["is_available"])

        return {
            "listing_id": listing.id,
            "listing_name": listing.name,
            "start_date": start,
            "end_date": end,
            "calendar": days,
            "summary": {
                "total_days": len(days),
                "available_days": available,
                "unavailable_days": len(days) - available,
            },
        }

    def check_date_range(self, listing_id: str, check_in: DateLike, check_out: DateLike) -> RangeAvailability:
        """
        Blocked days inside [check_in, check_out).

        Raises:
            ListingNotFound
            InvalidDateRange: check_in is not before check_out, or the stay
                is longer than MAX_CALENDAR_DAYS
        """
        get_listing_or_404(self.db, listing_id)
        try:
            start = to_naive_utc(check_in)
            end = to_naive_utc(check_out)
        except OverflowError:
            raise InvalidDateRange("Date out of range", check_in=str(check_in), check_out=str(check_out))
        if start >= end:
            raise InvalidDateRange(check_in=start.isoformat(), check_out=end.isoformat())

        # Nights started before check_out; a partial last day still counts
        whole, rest = divmod(end - start, ONE_DAY)
        nights = whole + (1 if rest else 0)
        first_day = start.date()
        last_day = first_day + (nights - 1) * ONE_DAY
        ensure_window_size(first_day, last_day)

        stay_days = list(iter_days(first_day, last_day))
        blocked = self.blocked_dates(listing_id, stay_days[0], stay_days[-1])
        return RangeAvailability(
            listing_id=listing_id,
            check_in_date=start.date(),
            check_out_date=end.date(),
            conflicting_dates=[d for d in stay_days if d in blocked],
        )
