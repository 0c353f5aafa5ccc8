from __future__ import annotations

import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool


BASE_DIR = Path(__file__).resolve().parents[1]
if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

import helpdesk.models  # noqa: E402,F401
from helpdesk.db.base import Base  # noqa: E402
from helpdesk.models.enums import TicketPriority, TicketStatus, UserRole  # noqa: E402
from helpdesk.models.sla import SLAPolicy  # noqa: E402
from helpdesk.models.ticket import Ticket  # noqa: E402
from helpdesk.models.user import User  # noqa: E402
from helpdesk.services.sla.calendar import BusinessCalendar  # noqa: E402
from helpdesk.services.sla.tracker import create_tracking  # noqa: E402


@pytest.fixture()
def db_session():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture()
def make_user(db_session):
    counter = {"n": 0}

    def _make(role: UserRole, name: str | None = None) -> User:
        counter["n"] += 1
        label = name or f"{role.value.title()} {counter['n']}"
        user = User(name=label, email=f"{role.value}{counter['n']}@example.com", role=role)
        db_session.add(user)
        db_session.commit()
        return user

    return _make


@pytest.fixture()
def make_policy(db_session):
    def _make(
        priority: TicketPriority = TicketPriority.medium,
        *,
        response: int = 60,
        resolution: int = 480,
        escalation: int | None = None,
        business_hours_only: bool = False,
        is_active: bool = True,
    ) -> SLAPolicy:
        policy = SLAPolicy(
            name=f"{priority.value.title()} SLA",
            priority=priority,
            response_time_minutes=response,
            resolution_time_minutes=resolution,
            escalation_time_minutes=escalation,
            business_hours_only=business_hours_only,
            is_active=is_active,
        )
        db_session.add(policy)
        db_session.commit()
        return policy

    return _make


@pytest.fixture()
def make_ticket(db_session):
    def _make(
        creator: User,
        *,
        assignee: User | None = None,
        status: TicketStatus = TicketStatus.new,
        priority: TicketPriority = TicketPriority.medium,
        created_at=None,  # noqa: ANN001
        title: str = "VPN drops every hour",
    ):
        ticket = Ticket(
            title=title,
            description="Connection resets on the office network.",
            status=status,
            priority=priority,
            created_by=creator.id,
            assigned_to=assignee.id if assignee else None,
        )
        if created_at is not None:
            ticket.created_at = created_at
            ticket.updated_at = created_at
        db_session.add(ticket)
        db_session.flush()
        create_tracking(db_session, ticket, BusinessCalendar.standard())
        db_session.commit()
        return ticket

    return _make
