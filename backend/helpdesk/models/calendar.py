"""Business-hours calendar: weekly working windows and holidays."""

from __future__ import annotations

import datetime as dt
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, Date, Integer, String, Time
from sqlalchemy.orm import Mapped, mapped_column

from helpdesk.db.base import Base


class BusinessHours(Base):
    __tablename__ = "business_hours"
    __table_args__ = (
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_business_hours_day_of_week"),
    )

    # 0 = Monday ... 6 = Sunday, matching datetime.weekday().
    day_of_week: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    is_working_day: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    start_time: Mapped[dt.time] = mapped_column(Time, nullable=False, default=dt.time(9, 0))
    end_time: Mapped[dt.time] = mapped_column(Time, nullable=False, default=dt.time(17, 0))


class Holiday(Base):
    __tablename__ = "holidays"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_recurring: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
