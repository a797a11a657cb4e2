"""
Tests for CalendarService

Test Coverage:
1. Block / unblock round trip and day normalisation
2. NoNewDatesToBlock / NoDatesWereBlocked
3. Calendar generator and window resolution
4. Date-range check over [check_in, check_out)
5. Window size limit and the last representable day
"""

import pytest
from datetime import date, datetime

from app.config import settings
from app.services.calendar_service import (
    CalendarService, calendar_days, day_of_week, resolve_window,
)
from app.services.exceptions import (
    InvalidDateRange, ListingNotFound, NoDatesWereBlocked, NoNewDatesToBlock, NotAuthorized,
)
from app.utils.dates import ONE_DAY, iter_days, month_bounds


class TestBlockDates:

    def test_block_then_unblock_restores_calendar(self, db, listing, provider):
        service = CalendarService(db)
        window = (date(2024, 7, 1), date(2024, 7, 7))
        before = list(service.get_calendar(listing.id, *window)["calendar"])

        service.block_dates(listing.id, [date(2024, 7, 2), date(2024, 7, 4)], provider)
        blocked = service.get_calendar(listing.id, *window)
        service.unblock_dates(listing.id, [date(2024, 7, 2), date(2024, 7, 4)], provider)
        after = service.get_calendar(listing.id, *window)["calendar"]

        assert blocked["summary"]["unavailable_days"] == 2
        assert after == before

    def test_datetimes_normalised_and_deduplicated(self, db, listing, provider):
        result = CalendarService(db).block_dates(
            listing.id,
            [datetime(2024, 7, 1, 10, 30), datetime(2024, 7, 1, 18), date(2024, 7, 2)],
            provider,
            reason="maintenance",
        )

        assert result.changed_dates == [date(2024, 7, 1), date(2024, 7, 2)]
        assert result.total_unavailable_dates == 2
        assert result.reason == "maintenance"

    def test_already_blocked_dates_skipped(self, db, listing, provider):
        service = CalendarService(db)
        service.block_dates(listing.id, [date(2024, 7, 1)], provider)

        result = service.block_dates(listing.id, [date(2024, 7, 1), date(2024, 7, 3)], provider)

        assert result.changed_dates == [date(2024, 7, 3)]
        assert result.total_unavailable_dates == 2

    def test_nothing_new_to_block(self, db, listing, provider):
        service = CalendarService(db)
        service.block_dates(listing.id, [date(2024, 7, 1)], provider)

        with pytest.raises(NoNewDatesToBlock):
            service.block_dates(listing.id, [date(2024, 7, 1)], provider)

    def test_nothing_to_unblock(self, db, listing, provider):
        with pytest.raises(NoDatesWereBlocked):
            CalendarService(db).unblock_dates(listing.id, [date(2024, 7, 1)], provider)

    def test_only_owner_or_admin(self, db, listing, customer, other_provider, admin):
        service = CalendarService(db)

        with pytest.raises(NotAuthorized):
            service.block_dates(listing.id, [date(2024, 7, 1)], customer)
        with pytest.raises(NotAuthorized):
            service.block_dates(listing.id, [date(2024, 7, 1)], other_provider)

        assert service.block_dates(listing.id, [date(2024, 7, 1)], admin).changed_dates == [date(2024, 7, 1)]

    def test_unknown_listing(self, db, admin):
        with pytest.raises(ListingNotFound):
            CalendarService(db).block_dates("missing", [date(2024, 7, 1)], admin)


class TestCalendarView:

    def test_calendar_days_is_lazy_and_sunday_based(self):
        days = calendar_days(date(2024, 6, 9), date(2024, 6, 15), frozenset({date(2024, 6, 10)}))

        first = next(days)
        second = next(days)

        assert first == {"date": date(2024, 6, 9), "day_of_week": 0, "day_name": "Sun", "is_available": True}
        assert second["day_name"] == "Mon"
        assert second["is_available"] is False
        assert len(list(days)) == 5

    def test_day_of_week(self):
        assert day_of_week(date(2024, 6, 15)) == 6  # Saturday

    def test_month_window(self):
        assert resolve_window(month=2, year=2024) == (date(2024, 2, 1), date(2024, 2, 29))

    def test_explicit_window_wins(self):
        assert resolve_window(date(2024, 1, 5), date(2024, 1, 9), month=3, year=2024) == (
            date(2024, 1, 5), date(2024, 1, 9)
        )

    def test_defaults_to_current_month(self):
        assert resolve_window(today=date(2024, 12, 15)) == (date(2024, 12, 1), date(2024, 12, 31))

    def test_reversed_window_rejected(self):
        with pytest.raises(InvalidDateRange):
            resolve_window(date(2024, 1, 9), date(2024, 1, 5))

    def test_summary(self, db, listing, provider):
        service = CalendarService(db)
        service.block_dates(listing.id, [date(2024, 2, 10), date(2024, 3, 1)], provider)

        view = service.get_calendar(listing.id, month=2, year=2024)

        assert view["listing_name"] == listing.name
        assert view["summary"] == {"total_days": 29, "available_days": 28, "unavailable_days": 1}


class TestCheckDateRange:

    def test_conflicting_dates_listed(self, db, listing, provider):
        service = CalendarService(db)
        service.block_dates(listing.id, [date(2024, 7, 2), date(2024, 7, 5)], provider)

        result = service.check_date_range(listing.id, date(2024, 7, 1), date(2024, 7, 5))

        assert result.conflicting_dates == [date(2024, 7, 2)]
        assert result.is_available is False

    def test_check_out_day_not_included(self, db, listing, provider):
        service = CalendarService(db)
        service.block_dates(listing.id, [date(2024, 7, 5)], provider)

        assert service.check_date_range(listing.id, date(2024, 7, 1), date(2024, 7, 5)).is_available

    def test_check_in_must_precede_check_out(self, db, listing):
        service = CalendarService(db)

        with pytest.raises(InvalidDateRange):
            service.check_date_range(listing.id, date(2024, 7, 5), date(2024, 7, 5))
        with pytest.raises(InvalidDateRange):
            service.check_date_range(listing.id, date(2024, 7, 6), date(2024, 7, 5))


class TestWindowLimits:

    def test_iter_days_stops_at_last_representable_day(self):
        assert list(iter_days(date.max - ONE_DAY, date.max)) == [date.max - ONE_DAY, date.max]

    def test_december_of_last_year(self):
        assert month_bounds(9999, 12) == (date(9999, 12, 1), date(9999, 12, 31))

    def test_calendar_at_end_of_date_range(self, db, listing):
        view = CalendarService(db).get_calendar(listing.id, date(9999, 12, 30), date(9999, 12, 31))

        assert view["summary"]["total_days"] == 2
        assert view["calendar"][-1]["date"] == date(9999, 12, 31)

    def test_month_view_of_last_year(self, db, listing):
        view = CalendarService(db).get_calendar(listing.id, month=12, year=9999)

        assert view["summary"]["total_days"] == 31

    def test_range_check_at_end_of_date_range(self, db, listing):
        result = CalendarService(db).check_date_range(
            listing.id, datetime(9999, 12, 30), datetime(9999, 12, 31, 12)
        )

        assert result.is_available
        assert result.check_out_date == date(9999, 12, 31)

    def test_widest_allowed_window(self):
        start = date(2024, 1, 1)
        end = start + (settings.max_calendar_days - 1) * ONE_DAY

        assert resolve_window(start, end) == (start, end)

    def test_wider_window_rejected(self):
        start = date(2024, 1, 1)

        with pytest.raises(InvalidDateRange) as exc:
            resolve_window(start, start + settings.max_calendar_days * ONE_DAY)

        assert exc.value.context["max_days"] == settings.max_calendar_days

    def test_long_stay_rejected(self, db, listing):
        with pytest.raises(InvalidDateRange):
            CalendarService(db).check_date_range(listing.id, date(1900, 1, 1), date(2100, 12, 31))

    def test_partial_last_day_counts(self, db, listing, provider):
        service = CalendarService(db)
        service.block_dates(listing.id, [date(2024, 7, 3)], provider)

        result = service.check_date_range(listing.id, datetime(2024, 7, 1, 14), datetime(2024, 7, 3, 15))

        assert result.conflicting_dates == [date(2024, 7, 3)]
