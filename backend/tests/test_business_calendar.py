from __future__ import annotations

import datetime as dt
from zoneinfo import ZoneInfo

import pytest

from helpdesk.core.exceptions import CalendarGapError
from helpdesk.services.sla.calendar import BusinessCalendar, DayRule, HolidayRule

UTC = dt.timezone.utc
FRIDAY = dt.date(2026, 10, 16)
MONDAY = dt.date(2026, 10, 19)


def _at(day: dt.date, hour: int, minute: int = 0) -> dt.datetime:
    return dt.datetime.combine(day, dt.time(hour, minute), tzinfo=UTC)


def test_friday_afternoon_rolls_over_weekend() -> None:
    calendar = BusinessCalendar.standard()

    assert calendar.add_business_minutes(_at(FRIDAY, 16, 30), 120) == _at(MONDAY, 10, 30)


def test_start_before_opening_counts_from_opening() -> None:
    calendar = BusinessCalendar.standard()

    assert calendar.add_business_minutes(_at(MONDAY, 7), 60) == _at(MONDAY, 10)


def test_start_after_close_moves_to_next_window() -> None:
    calendar = BusinessCalendar.standard()

    assert calendar.add_business_minutes(_at(MONDAY, 18), 30) == _at(MONDAY + dt.timedelta(days=1), 9, 30)


def test_deadline_may_land_exactly_on_close() -> None:
    calendar = BusinessCalendar.standard()

    assert calendar.add_business_minutes(_at(MONDAY, 16), 60) == _at(MONDAY, 17)


def test_zero_minutes_inside_hours_returns_start_unchanged() -> None:
    calendar = BusinessCalendar.standard()
    start = _at(MONDAY, 11, 15)

    assert calendar.add_business_minutes(start, 0) == start


def test_zero_minutes_outside_hours_moves_to_next_opening() -> None:
    calendar = BusinessCalendar.standard()

    assert calendar.add_business_minutes(_at(FRIDAY, 22), 0) == _at(FRIDAY + dt.timedelta(days=3), 9)
    assert calendar.add_business_minutes(_at(MONDAY, 17), 0) == _at(MONDAY + dt.timedelta(days=1), 9)


def test_negative_minutes_rejected() -> None:
    with pytest.raises(ValueError):
        BusinessCalendar.standard().add_business_minutes(_at(MONDAY, 10), -1)


def test_holiday_is_skipped() -> None:
    calendar = BusinessCalendar.standard(holidays=[HolidayRule(MONDAY, "Founders day")])

    assert calendar.add_business_minutes(_at(FRIDAY, 16, 30), 120) == _at(MONDAY + dt.timedelta(days=1), 10, 30)


def test_recurring_holiday_matches_any_year() -> None:
    calendar = BusinessCalendar.standard(holidays=[HolidayRule(dt.date(2020, 12, 25), "Christmas", is_recurring=True)])

    assert calendar.is_holiday(dt.date(2026, 12, 25))
    assert not calendar.is_holiday(dt.date(2026, 12, 24))


def test_calendar_without_working_time_raises() -> None:
    calendar = BusinessCalendar([DayRule(day, False) for day in range(7)])

    with pytest.raises(CalendarGapError):
        calendar.add_business_minutes(_at(MONDAY, 10), 30)


def test_calendar_blocked_by_holidays_raises() -> None:
    rules = [DayRule(0, True)] + [DayRule(day, False) for day in range(1, 7)]
    mondays = [MONDAY + dt.timedelta(weeks=week) for week in range(120)]
    calendar = BusinessCalendar(rules, [HolidayRule(day) for day in mondays])

    with pytest.raises(CalendarGapError):
        calendar.add_business_minutes(_at(FRIDAY, 12), 30)


def test_windows_follow_business_timezone() -> None:
    calendar = BusinessCalendar.standard(tz=ZoneInfo("America/New_York"))
    # 09:00 in New York is 13:00 UTC during daylight saving time.
    start = _at(MONDAY, 12)

    assert calendar.window(MONDAY) == (_at(MONDAY, 13), _at(MONDAY, 21))
    assert calendar.add_business_minutes(start, 30) == _at(MONDAY, 13, 30)


def test_business_minutes_between_spans_weekend() -> None:
    calendar = BusinessCalendar.standard()

    assert calendar.business_minutes_between(_at(FRIDAY, 16), _at(MONDAY, 10)) == 120
    assert calendar.business_minutes_between(_at(MONDAY, 10), _at(FRIDAY, 16)) == 0


def test_weekly_minutes_for_standard_week() -> None:
    assert BusinessCalendar.standard().weekly_working_minutes() == 5 * 8 * 60
