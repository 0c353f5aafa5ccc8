"""Per-ticket SLA tracking rows and their write-once lifecycle hooks."""

from __future__ import annotations

import datetime as dt
import logging
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from helpdesk.db.types import as_utc
from helpdesk.models.sla import TicketSLATracking
from helpdesk.models.ticket import Ticket
from helpdesk.services.sla.calendar import BusinessCalendar
from helpdesk.services.sla.deadlines import compute_deadlines
from helpdesk.services.sla.policies import get_active_policy

logger = logging.getLogger(__name__)

_ONE_MINUTE = dt.timedelta(minutes=1)


def get_tracking(db: Session, ticket_id: UUID) -> TicketSLATracking | None:
    return db.execute(
        select(TicketSLATracking).where(TicketSLATracking.ticket_id == ticket_id)
    ).scalars().first()


def create_tracking(db: Session, ticket: Ticket, calendar: BusinessCalendar | None) -> TicketSLATracking | None:
    """Add the tracking row for a new ticket. Caller is responsible for commit."""
    policy = get_active_policy(db, ticket.priority)
    deadlines = compute_deadlines(ticket.created_at, policy, calendar)
    if policy is None or deadlines is None:
        return None

    tracking = TicketSLATracking(
        ticket_id=ticket.id,
        sla_policy_id=policy.id,
        created_at=as_utc(ticket.created_at),
        response_due_at=deadlines.response_due_at,
        resolution_due_at=deadlines.resolution_due_at,
        escalation_due_at=deadlines.escalation_due_at,
    )
    db.add(tracking)
    db.flush()
    logger.info(
        "SLA tracking created for ticket %s (policy %s, response due %s, resolution due %s)",
        ticket.id,
        policy.name,
        deadlines.response_due_at.isoformat(),
        deadlines.resolution_due_at.isoformat(),
    )
    return tracking


def _elapsed_minutes(start: dt.datetime, end: dt.datetime) -> int:
    return max(0, (as_utc(end) - as_utc(start)) // _ONE_MINUTE)


def _compare_and_set(db: Session, tracking: TicketSLATracking, column, values: dict) -> bool:  # noqa: ANN001
    result = db.execute(
        update(TicketSLATracking)
        .where(TicketSLATracking.id == tracking.id, column.is_(None))
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    applied = bool(result.rowcount)
    if applied:
        db.expire(tracking)
    return applied


def record_first_response(db: Session, ticket_id: UUID, at: dt.datetime) -> bool:
    """Set first_response_at once. Caller is responsible for commit."""
    tracking = get_tracking(db, ticket_id)
    if tracking is None or tracking.first_response_at is not None:
        return False
    at = as_utc(at)
    applied = _compare_and_set(
        db,
        tracking,
        TicketSLATracking.first_response_at,
        {
            "first_response_at": at,
            "response_sla_met": at <= as_utc(tracking.response_due_at),
            "response_time_minutes": _elapsed_minutes(tracking.created_at, at),
        },
    )
    if applied:
        logger.info("First response recorded for ticket %s at %s", ticket_id, at.isoformat())
    return applied


def record_resolution(db: Session, ticket_id: UUID, at: dt.datetime) -> bool:
    """Set resolved_at once. Caller is responsible for commit."""
    tracking = get_tracking(db, ticket_id)
    if tracking is None or tracking.resolved_at is not None:
        return False
    at = as_utc(at)
    applied = _compare_and_set(
        db,
        tracking,
        TicketSLATracking.resolved_at,
        {
            "resolved_at": at,
            "resolution_sla_met": at <= as_utc(tracking.resolution_due_at),
            "resolution_time_minutes": _elapsed_minutes(tracking.created_at, at),
        },
    )
    if applied:
        logger.info("Resolution recorded for ticket %s at %s", ticket_id, at.isoformat())
    return applied


def record_escalation(db: Session, ticket_id: UUID, at: dt.datetime) -> bool:
    """Set escalated_at once; informational only."""
    tracking = get_tracking(db, ticket_id)
    if tracking is None or tracking.escalated_at is not None:
        return False
    applied = _compare_and_set(
        db,
        tracking,
        TicketSLATracking.escalated_at,
        {"escalated_at": as_utc(at)},
    )
    if applied:
        logger.info("Escalation recorded for ticket %s", ticket_id)
    return applied
