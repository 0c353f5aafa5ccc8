"""Ticket lifecycle: creation, status transitions, assignment and comments."""

from __future__ import annotations

import datetime as dt
import enum
import logging
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from helpdesk.core.exceptions import CalendarGapError, ConflictError
from helpdesk.core.rbac import (
    PermissionVerdict,
    STAFF_ROLES,
    can_assign,
    can_change_status,
    can_comment_ticket,
    can_view_ticket,
    filter_tickets_for_user,
    is_creator,
    is_staff,
)
from helpdesk.db.types import as_utc, utcnow
from helpdesk.models.enums import AuditAction, STATUS_RANK, TicketStatus, UserRole
from helpdesk.models.ticket import Ticket, TicketComment
from helpdesk.models.user import User
from helpdesk.schemas.ticket import TicketCreate
from helpdesk.services.audit import log_ticket_change
from helpdesk.services.notifications_service import notify, notify_many
from helpdesk.services.sla.calendar import BusinessCalendar, load_business_calendar
from helpdesk.services.sla.tracker import (
    create_tracking,
    record_escalation,
    record_first_response,
    record_resolution,
)

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[TicketStatus, frozenset[TicketStatus]] = {
    TicketStatus.new: frozenset({TicketStatus.open, TicketStatus.in_progress, TicketStatus.escalated}),
    TicketStatus.open: frozenset({TicketStatus.in_progress, TicketStatus.escalated}),
    TicketStatus.in_progress: frozenset({TicketStatus.resolved, TicketStatus.escalated, TicketStatus.open}),
    TicketStatus.resolved: frozenset({TicketStatus.closed, TicketStatus.open}),
    TicketStatus.escalated: frozenset({TicketStatus.in_progress, TicketStatus.open}),
    TicketStatus.closed: frozenset(),
}


class Rejection(str, enum.Enum):
    unauthorized = "unauthorized"
    invalid_transition = "invalid_transition"
    not_assigned = "not_assigned"
    missing_note = "missing_note"
    invalid_assignee = "invalid_assignee"
    not_found = "not_found"


@dataclass
class LifecycleResult:
    """Outcome of a lifecycle mutation; rejections are values, not exceptions."""

    ok: bool
    ticket: Ticket | None = None
    comment: TicketComment | None = None
    rejection: Rejection | None = None
    message: str | None = None

    @classmethod
    def accepted(cls, ticket: Ticket, *, comment: TicketComment | None = None) -> LifecycleResult:
        return cls(ok=True, ticket=ticket, comment=comment)

    @classmethod
    def rejected(cls, rejection: Rejection, message: str) -> LifecycleResult:
        return cls(ok=False, rejection=rejection, message=message)


def allowed_targets(status: TicketStatus) -> list[TicketStatus]:
    return sorted(ALLOWED_TRANSITIONS.get(status, frozenset()), key=lambda item: STATUS_RANK[item])


def _as_uuid(value: Any) -> UUID | None:
    if value is None or isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return None


def _now(now: dt.datetime | None) -> dt.datetime:
    return as_utc(now) if now is not None else utcnow()


def get_ticket(db: Session, ticket_id: Any) -> Ticket | None:
    key = _as_uuid(ticket_id)
    if key is None:
        return None
    return db.get(Ticket, key)


def get_ticket_for_user(db: Session, ticket_id: Any, user: User) -> Ticket | None:
    ticket = get_ticket(db, ticket_id)
    if not ticket:
        return None
    if not can_view_ticket(user, ticket):
        return None
    return ticket


def list_tickets_for_user(db: Session, user: User) -> list[Ticket]:
    """Visible tickets ordered by status rank, newest first within a status."""
    query = db.query(Ticket)
    if not is_staff(user):
        query = query.filter(Ticket.created_by == user.id)
    tickets = filter_tickets_for_user(user, query.all())
    tickets.sort(key=lambda ticket: as_utc(ticket.created_at), reverse=True)
    tickets.sort(key=lambda ticket: STATUS_RANK[ticket.status])
    return tickets


def _load_for_update(db: Session, ticket_id: Any) -> Ticket | None:
    key = _as_uuid(ticket_id)
    if key is None:
        return None
    return db.execute(select(Ticket).where(Ticket.id == key).with_for_update()).scalars().first()


def _reject(db: Session, rejection: Rejection, message: str, ticket_id: Any, actor: Any) -> LifecycleResult:
    db.rollback()
    logger.warning(
        "Ticket mutation rejected (%s): ticket=%s actor=%s",
        rejection.value,
        ticket_id,
        getattr(actor, "id", None),
    )
    return LifecycleResult.rejected(rejection, message)


def _commit_ticket(db: Session, ticket_id: Any) -> None:
    try:
        db.commit()
    except StaleDataError as exc:
        db.rollback()
        logger.warning("Concurrent update detected on ticket %s", ticket_id)
        raise ConflictError("ticket_modified_concurrently", details={"ticket_id": str(ticket_id)}) from exc


def _user_name(db: Session, user_id: UUID | None) -> str:
    if user_id is None:
        return "Unassigned"
    user = db.get(User, user_id)
    return user.name if user else "Unknown"


def create_ticket(
    db: Session,
    payload: TicketCreate,
    creator: User,
    *,
    calendar: BusinessCalendar | None = None,
    now: dt.datetime | None = None,
) -> LifecycleResult:
    """Open a ticket in ``new`` and start its SLA clock in the same transaction.

    Staff creators are assigned to themselves unless they name another
    assignee or set ``unassigned``. A ``CalendarGapError`` aborts the whole
    creation.
    """
    current_time = _now(now)
    assignee_id = payload.assigned_to
    if assignee_id is not None and not is_staff(creator):
        return _reject(db, Rejection.unauthorized, "Only agents and admins can assign tickets", None, creator)
    if assignee_id is None and is_staff(creator) and not payload.unassigned:
        assignee_id = creator.id
    if assignee_id is not None and assignee_id != creator.id:
        assignee = db.get(User, assignee_id)
        if assignee is None or assignee.role == UserRole.customer:
            return _reject(db, Rejection.invalid_assignee, "Assignee must be an agent or admin", None, creator)

    ticket = Ticket(
        title=payload.title,
        description=payload.description,
        priority=payload.priority,
        status=TicketStatus.new,
        created_by=creator.id,
        assigned_to=assignee_id,
        created_at=current_time,
        updated_at=current_time,
    )
    db.add(ticket)
    try:
        db.flush()
        create_tracking(db, ticket, calendar if calendar is not None else load_business_calendar(db))
        db.commit()
    except CalendarGapError:
        db.rollback()
        logger.error("Ticket creation aborted: business calendar has no working time")
        raise
    db.refresh(ticket)
    logger.info("Ticket created: %s", ticket.id)

    ticket_id, title = ticket.id, ticket.title
    log_ticket_change(
        db,
        AuditAction.create,
        ticket_id,
        creator,
        new_values={
            "title": title,
            "priority": payload.priority.value,
            "status": TicketStatus.new.value,
            "assigned_to": str(assignee_id) if assignee_id else None,
        },
        description=f"Ticket created: {title}",
    )
    if assignee_id is None:
        staff_ids = db.execute(select(User.id).where(User.role.in_(list(STAFF_ROLES)))).scalars().all()
        notify_many(db, staff_ids, ticket_id, f"New ticket created: {title}")
    elif assignee_id != creator.id:
        notify(db, assignee_id, ticket_id, f"New ticket assigned to you: {title}")
    return LifecycleResult.accepted(ticket)


def transition_status(
    db: Session,
    ticket_id: Any,
    target: TicketStatus,
    actor: User,
    *,
    now: dt.datetime | None = None,
) -> LifecycleResult:
    current_time = _now(now)
    ticket = _load_for_update(db, ticket_id)
    if ticket is None:
        return _reject(db, Rejection.not_found, "Ticket not found", ticket_id, actor)

    if can_change_status(actor, ticket) == PermissionVerdict.deny:
        message = (
            "Only agents and admins can update ticket status"
            if actor.role == UserRole.customer
            else "You can only update status of tickets assigned to you"
        )
        return _reject(db, Rejection.unauthorized, message, ticket_id, actor)

    previous = ticket.status
    if target not in ALLOWED_TRANSITIONS[previous]:
        return _reject(
            db,
            Rejection.invalid_transition,
            f"Cannot change status from {previous.value} to {target.value}",
            ticket_id,
            actor,
        )
    if ticket.assigned_to is None:
        return _reject(
            db, Rejection.not_assigned, "Ticket must be assigned before changing status", ticket_id, actor
        )

    ticket.status = target
    ticket.updated_at = current_time
    try:
        if not is_creator(actor, ticket):
            record_first_response(db, ticket.id, current_time)
        if target == TicketStatus.resolved:
            record_resolution(db, ticket.id, current_time)
        elif target == TicketStatus.escalated:
            record_escalation(db, ticket.id, current_time)
    except StaleDataError as exc:
        db.rollback()
        raise ConflictError("ticket_modified_concurrently", details={"ticket_id": str(ticket_id)}) from exc
    _commit_ticket(db, ticket_id)
    db.refresh(ticket)
    logger.info("Ticket status updated: %s %s -> %s", ticket.id, previous.value, target.value)

    key, creator_id, title = ticket.id, ticket.created_by, ticket.title
    log_ticket_change(
        db,
        AuditAction.status_change,
        key,
        actor,
        old_values={"status": previous.value},
        new_values={"status": target.value},
        description=f"Status changed from {previous.value} to {target.value}",
    )
    notify(db, creator_id, key, f"Ticket status updated to {target.value}: {title}")
    return LifecycleResult.accepted(ticket)


def assign_ticket(
    db: Session,
    ticket_id: Any,
    assignee_id: Any,
    actor: User,
    *,
    note: str | None = None,
    now: dt.datetime | None = None,
) -> LifecycleResult:
    """Assign, reassign or unassign (``assignee_id=None``) a ticket.

    Never counts as a first response.
    """
    current_time = _now(now)
    ticket = _load_for_update(db, ticket_id)
    if ticket is None:
        return _reject(db, Rejection.not_found, "Ticket not found", ticket_id, actor)

    verdict = can_assign(actor, ticket)
    if verdict == PermissionVerdict.deny:
        message = (
            "Only agents and admins can assign tickets"
            if actor.role == UserRole.customer
            else "You can only reassign tickets that are assigned to you"
        )
        return _reject(db, Rejection.unauthorized, message, ticket_id, actor)

    note_text = (note or "").strip()
    if verdict == PermissionVerdict.require_note and not note_text:
        return _reject(
            db,
            Rejection.missing_note,
            "Please add a note explaining why you're reassigning this ticket",
            ticket_id,
            actor,
        )

    assignee = None
    if assignee_id is not None:
        key = _as_uuid(assignee_id)
        assignee = db.get(User, key) if key is not None else None
        if assignee is None or assignee.role == UserRole.customer:
            return _reject(
                db, Rejection.invalid_assignee, "Assignee must be an agent or admin", ticket_id, actor
            )

    previous_id = ticket.assigned_to
    new_id = assignee.id if assignee is not None else None
    if new_id == previous_id:
        return _reject(
            db,
            Rejection.invalid_assignee,
            "Ticket is already assigned to this user" if new_id else "Ticket is already unassigned",
            ticket_id,
            actor,
        )

    previous_name = _user_name(db, previous_id)
    ticket.assigned_to = new_id
    ticket.updated_at = current_time
    comment = None
    if note_text:
        comment = TicketComment(ticket_id=ticket.id, user_id=actor.id, content=note_text, created_at=current_time)
        db.add(comment)
    _commit_ticket(db, ticket_id)
    db.refresh(ticket)

    action = AuditAction.reassign if previous_id else AuditAction.assign
    logger.info("Ticket %s %s to %s", ticket.id, "reassigned" if previous_id else "assigned", new_id)
    ticket_key, title = ticket.id, ticket.title
    new_name = assignee.name if assignee is not None else "Unassigned"
    log_ticket_change(
        db,
        action,
        ticket_key,
        actor,
        old_values={"assigned_to": str(previous_id) if previous_id else None, "assigned_to_name": previous_name},
        new_values={"assigned_to": str(new_id) if new_id else None, "assigned_to_name": new_name},
        description=(
            f"Ticket {'reassigned' if previous_id else 'assigned'} from {previous_name} to {new_name}"
        ),
    )
    if new_id is not None:
        notify(db, new_id, ticket_key, f"You have been assigned to ticket: {title}")
    return LifecycleResult.accepted(ticket, comment=comment)


def add_comment(
    db: Session,
    ticket_id: Any,
    actor: User,
    content: str,
    *,
    now: dt.datetime | None = None,
) -> LifecycleResult:
    current_time = _now(now)
    text = (content or "").strip()
    if not text:
        raise ValueError("comment_required")

    ticket = _load_for_update(db, ticket_id)
    if ticket is None:
        return _reject(db, Rejection.not_found, "Ticket not found", ticket_id, actor)
    if not can_comment_ticket(actor, ticket):
        return _reject(db, Rejection.unauthorized, "You can only comment on your own tickets", ticket_id, actor)

    prior_authors = db.execute(
        select(TicketComment.user_id).where(TicketComment.ticket_id == ticket.id).distinct()
    ).scalars().all()
    comment = TicketComment(ticket_id=ticket.id, user_id=actor.id, content=text, created_at=current_time)
    db.add(comment)
    if is_staff(actor) and not is_creator(actor, ticket):
        record_first_response(db, ticket.id, current_time)
    db.commit()
    db.refresh(comment)
    logger.info("Comment added to ticket %s by %s", ticket.id, actor.id)

    ticket_key, title = ticket.id, ticket.title
    participants = [ticket.created_by, ticket.assigned_to, *prior_authors]
    recipients = [user_id for user_id in participants if user_id is not None and user_id != actor.id]
    log_ticket_change(
        db,
        AuditAction.comment_add,
        ticket_key,
        actor,
        new_values={"comment_id": str(comment.id)},
        description=f"Comment added to ticket: {title}",
    )
    notify_many(db, recipients, ticket_key, f"New comment on ticket: {title}")
    return LifecycleResult.accepted(ticket, comment=comment)
