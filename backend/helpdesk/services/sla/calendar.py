"""Business-hours arithmetic over a weekly calendar with holidays."""

from __future__ import annotations

import datetime as dt
import logging
from collections.abc import Iterable
from dataclasses import dataclass

from sqlalchemy.orm import Session

from helpdesk.core.config import settings
from helpdesk.core.exceptions import CalendarGapError
from helpdesk.db.types import as_utc
from helpdesk.models.calendar import BusinessHours, Holiday

logger = logging.getLogger(__name__)

_ZERO = dt.timedelta(0)
_ONE_DAY = dt.timedelta(days=1)
# Consecutive days without a single business minute before giving up.
_MAX_IDLE_DAYS = 400


@dataclass(frozen=True)
class DayRule:
    day_of_week: int
    is_working_day: bool
    start_time: dt.time = dt.time(9, 0)
    end_time: dt.time = dt.time(17, 0)

    @property
    def window_minutes(self) -> int:
        if not self.is_working_day or self.end_time <= self.start_time:
            return 0
        start = self.start_time.hour * 60 + self.start_time.minute
        end = self.end_time.hour * 60 + self.end_time.minute
        return end - start


@dataclass(frozen=True)
class HolidayRule:
    date: dt.date
    name: str = ""
    is_recurring: bool = False

    def matches(self, day: dt.date) -> bool:
        if self.is_recurring:
            return (day.month, day.day) == (self.date.month, self.date.day)
        return day == self.date


class BusinessCalendar:
    """Weekly working windows plus holidays, interpreted in a single zone.

    Windows are half-open ``[start_time, end_time)`` wall-clock ranges; days
    with no rule, non-working days and holidays contribute no time. All
    instants returned are UTC.
    """

    def __init__(
        self,
        rules: Iterable[DayRule],
        holidays: Iterable[HolidayRule] = (),
        *,
        tz: dt.tzinfo = dt.timezone.utc,
    ) -> None:
        self.rules: dict[int, DayRule] = {rule.day_of_week: rule for rule in rules}
        self.holidays = list(holidays)
        self.tz = tz
        self._fixed_dates = {h.date for h in self.holidays if not h.is_recurring}
        self._recurring = {(h.date.month, h.date.day) for h in self.holidays if h.is_recurring}

    @classmethod
    def standard(
        cls,
        *,
        start: dt.time = dt.time(9, 0),
        end: dt.time = dt.time(17, 0),
        holidays: Iterable[HolidayRule] = (),
        tz: dt.tzinfo = dt.timezone.utc,
    ) -> BusinessCalendar:
        """Monday to Friday, same window every working day."""
        rules = [DayRule(day, day < 5, start, end) for day in range(7)]
        return cls(rules, holidays, tz=tz)

    def is_holiday(self, day: dt.date) -> bool:
        return day in self._fixed_dates or (day.month, day.day) in self._recurring

    def weekly_working_minutes(self) -> int:
        return sum(rule.window_minutes for rule in self.rules.values())

    def window(self, day: dt.date) -> tuple[dt.datetime, dt.datetime] | None:
        """UTC bounds of the business window on ``day``, or None."""
        rule = self.rules.get(day.weekday())
        if rule is None or rule.window_minutes == 0 or self.is_holiday(day):
            return None
        opens = dt.datetime.combine(day, rule.start_time, tzinfo=self.tz)
        closes = dt.datetime.combine(day, rule.end_time, tzinfo=self.tz)
        return opens.astimezone(dt.timezone.utc), closes.astimezone(dt.timezone.utc)

    def _ensure_working_time(self) -> None:
        if self.weekly_working_minutes() <= 0:
            raise CalendarGapError()

    def _local_date(self, instant: dt.datetime) -> dt.date:
        return as_utc(instant).astimezone(self.tz).date()

    def add_business_minutes(self, start: dt.datetime, minutes: int) -> dt.datetime:
        """Advance ``start`` by ``minutes`` counting only business time.

        Time outside the windows is skipped entirely, so a start outside
        business hours behaves as if it were the next window's opening.
        """
        if minutes < 0:
            raise ValueError("minutes_must_be_non_negative")
        self._ensure_working_time()

        cursor = as_utc(start)
        remaining = dt.timedelta(minutes=minutes)
        day = self._local_date(cursor)
        idle_days = 0
        while True:
            bounds = self.window(day)
            consumed = False
            if bounds is not None:
                opens, closes = bounds
                begin = max(cursor, opens)
                if begin < closes:
                    available = closes - begin
                    if remaining <= available:
                        return begin + remaining
                    remaining -= available
                    consumed = True
            idle_days = 0 if consumed else idle_days + 1
            if idle_days > _MAX_IDLE_DAYS:
                raise CalendarGapError("business_calendar_blocked_by_holidays")
            day += _ONE_DAY

    def business_minutes_between(self, start: dt.datetime, end: dt.datetime) -> int:
        """Whole business minutes inside ``[start, end)``."""
        start_utc = as_utc(start)
        end_utc = as_utc(end)
        if end_utc <= start_utc:
            return 0

        total = _ZERO
        day = self._local_date(start_utc)
        last_day = self._local_date(end_utc)
        while day <= last_day:
            bounds = self.window(day)
            if bounds is not None:
                begin = max(start_utc, bounds[0])
                finish = min(end_utc, bounds[1])
                if finish > begin:
                    total += finish - begin
            day += _ONE_DAY
        return int(total.total_seconds() // 60)


def load_business_calendar(db: Session, *, tz: dt.tzinfo | None = None) -> BusinessCalendar:
    rules = [
        DayRule(
            day_of_week=row.day_of_week,
            is_working_day=bool(row.is_working_day),
            start_time=row.start_time,
            end_time=row.end_time,
        )
        for row in db.query(BusinessHours).all()
    ]
    holidays = [
        HolidayRule(date=row.date, name=row.name, is_recurring=bool(row.is_recurring))
        for row in db.query(Holiday).all()
    ]
    if not rules:
        logger.warning("Business calendar has no day rules configured")
    return BusinessCalendar(rules, holidays, tz=tz or settings.business_tz)
