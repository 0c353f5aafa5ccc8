"""Response/resolution/escalation due times for a newly created ticket."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Protocol

from helpdesk.db.types import as_utc
from helpdesk.services.sla.calendar import BusinessCalendar


class PolicyLike(Protocol):
    response_time_minutes: int
    resolution_time_minutes: int
    escalation_time_minutes: int | None
    business_hours_only: bool


@dataclass(frozen=True)
class SLADeadlines:
    response_due_at: dt.datetime
    resolution_due_at: dt.datetime
    escalation_due_at: dt.datetime | None = None


def _due_at(
    created_at: dt.datetime,
    minutes: int,
    *,
    business_hours_only: bool,
    calendar: BusinessCalendar | None,
) -> dt.datetime:
    if not business_hours_only:
        return created_at + dt.timedelta(minutes=minutes)
    if calendar is None:
        raise ValueError("business_calendar_required")
    return calendar.add_business_minutes(created_at, minutes)


def compute_deadlines(
    created_at: dt.datetime,
    policy: PolicyLike | None,
    calendar: BusinessCalendar | None = None,
) -> SLADeadlines | None:
    """Return the due times for ``policy``, or None when no policy applies.

    Business-hours policies raise CalendarGapError when the calendar has no
    working time to count against.
    """
    if policy is None:
        return None

    origin = as_utc(created_at)
    business_only = bool(policy.business_hours_only)

    escalation_due_at = None
    if policy.escalation_time_minutes:
        escalation_due_at = _due_at(
            origin,
            policy.escalation_time_minutes,
            business_hours_only=business_only,
            calendar=calendar,
        )

    return SLADeadlines(
        response_due_at=_due_at(
            origin,
            policy.response_time_minutes,
            business_hours_only=business_only,
            calendar=calendar,
        ),
        resolution_due_at=_due_at(
            origin,
            policy.resolution_time_minutes,
            business_hours_only=business_only,
            calendar=calendar,
        ),
        escalation_due_at=escalation_due_at,
    )
