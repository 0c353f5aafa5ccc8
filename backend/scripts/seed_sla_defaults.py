"""Seed default SLA policies and a Monday-Friday business calendar."""

from __future__ import annotations

import datetime as dt
import sys
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parents[1]
sys.path.append(str(BASE_DIR))

from helpdesk.core.logging import setup_logging  # noqa: E402
from helpdesk.db.session import SessionLocal  # noqa: E402
from helpdesk.models.calendar import BusinessHours  # noqa: E402
from helpdesk.models.enums import TicketPriority  # noqa: E402
from helpdesk.models.sla import SLAPolicy  # noqa: E402
from helpdesk.services.sla.policies import get_active_policy  # noqa: E402


DEFAULT_POLICIES = [
    {
        "name": "Critical",
        "priority": TicketPriority.critical,
        "response_time_minutes": 15,
        "resolution_time_minutes": 240,
        "escalation_time_minutes": 60,
        "business_hours_only": False,
    },
    {
        "name": "High",
        "priority": TicketPriority.high,
        "response_time_minutes": 60,
        "resolution_time_minutes": 480,
        "escalation_time_minutes": 240,
        "business_hours_only": False,
    },
    {
        "name": "Medium",
        "priority": TicketPriority.medium,
        "response_time_minutes": 240,
        "resolution_time_minutes": 1440,
        "escalation_time_minutes": None,
        "business_hours_only": True,
    },
    {
        "name": "Low",
        "priority": TicketPriority.low,
        "response_time_minutes": 480,
        "resolution_time_minutes": 2880,
        "escalation_time_minutes": None,
        "business_hours_only": True,
    },
]


def seed() -> None:
    setup_logging()
    db = SessionLocal()
    policies_added = 0
    days_added = 0

    try:
        for payload in DEFAULT_POLICIES:
            if get_active_policy(db, payload["priority"]) is not None:
                continue
            db.add(SLAPolicy(description=f"Default {payload['name'].lower()} priority SLA", **payload))
            policies_added += 1

        for day in range(7):
            if db.get(BusinessHours, day) is not None:
                continue
            db.add(
                BusinessHours(
                    day_of_week=day,
                    is_working_day=day < 5,
                    start_time=dt.time(9, 0),
                    end_time=dt.time(17, 0),
                )
            )
            days_added += 1

        db.commit()
    finally:
        db.close()

    print(f"policies_added={policies_added}")
    print(f"calendar_days_added={days_added}")


if __name__ == "__main__":
    seed()
