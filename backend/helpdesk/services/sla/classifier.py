"""Pure classification of a tracking row into live SLA compliance state."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Any

from helpdesk.db.types import as_utc
from helpdesk.models.enums import SLAState

AT_RISK_PROGRESS = 80


@dataclass(frozen=True)
class AxisStatus:
    status: SLAState
    progress: int
    time_remaining: int | None

    @property
    def label(self) -> str:
        return format_time_remaining(self.time_remaining)


@dataclass(frozen=True)
class SLAStatus:
    response: AxisStatus
    resolution: AxisStatus

    @property
    def is_breached(self) -> bool:
        return SLAState.breached in {self.response.status, self.resolution.status}

    @property
    def is_at_risk(self) -> bool:
        return SLAState.at_risk in {self.response.status, self.resolution.status}


def _floor_minutes(delta: dt.timedelta) -> int:
    return delta // dt.timedelta(minutes=1)


def classify_axis(
    *,
    created_at: dt.datetime,
    due_at: dt.datetime,
    completed_at: dt.datetime | None,
    met: bool | None,
    now: dt.datetime,
) -> AxisStatus:
    if completed_at is not None:
        return AxisStatus(SLAState.met if met else SLAState.breached, 100, None)

    created = as_utc(created_at)
    due = as_utc(due_at)
    current = as_utc(now)
    remaining = _floor_minutes(due - current)

    window = due - created
    if window <= dt.timedelta(0) or current > due:
        return AxisStatus(SLAState.breached, 100, remaining)

    # Integer timedelta division keeps the percentage exact at the boundaries.
    elapsed = current - created
    progress = min(100, max(0, (elapsed * 100) // window))
    status = SLAState.at_risk if progress >= AT_RISK_PROGRESS else SLAState.pending
    return AxisStatus(status, progress, remaining)


def classify(tracking: Any, now: dt.datetime) -> SLAStatus:
    """Classify both SLA axes of ``tracking`` at instant ``now``.

    Deterministic for fixed inputs; never reads the wall clock.
    """
    return SLAStatus(
        response=classify_axis(
            created_at=tracking.created_at,
            due_at=tracking.response_due_at,
            completed_at=tracking.first_response_at,
            met=tracking.response_sla_met,
            now=now,
        ),
        resolution=classify_axis(
            created_at=tracking.created_at,
            due_at=tracking.resolution_due_at,
            completed_at=tracking.resolved_at,
            met=tracking.resolution_sla_met,
            now=now,
        ),
    )


def format_time_remaining(minutes: int | None) -> str:
    if minutes is None:
        return "N/A"

    overdue = minutes < 0
    value = abs(minutes)
    if value < 60:
        text = f"{value}m"
    elif value < 1440:
        text = f"{value // 60}h {value % 60}m"
    else:
        text = f"{value // 1440}d {(value % 1440) // 60}h"
    return f"{text} overdue" if overdue else text
