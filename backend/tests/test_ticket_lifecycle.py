from __future__ import annotations

import datetime as dt
import uuid

import pytest
from pydantic import ValidationError
from sqlalchemy.orm.exc import StaleDataError

from helpdesk.core.exceptions import CalendarGapError, ConflictError
from helpdesk.models.audit_log import AuditLog
from helpdesk.models.enums import AuditAction, TicketPriority, TicketStatus, UserRole
from helpdesk.models.notification import Notification
from helpdesk.models.ticket import Ticket, TicketComment
from helpdesk.schemas.ticket import TicketCreate
from helpdesk.services.sla.calendar import BusinessCalendar, DayRule
from helpdesk.services.sla.tracker import get_tracking
from helpdesk.services.tickets import (
    ALLOWED_TRANSITIONS,
    Rejection,
    add_comment,
    allowed_targets,
    assign_ticket,
    create_ticket,
    list_tickets_for_user,
    transition_status,
)

UTC = dt.timezone.utc
CREATED = dt.datetime(2026, 10, 19, 9, 0, tzinfo=UTC)
NOW = CREATED + dt.timedelta(minutes=30)


def _audit_rows(db, action: AuditAction | None = None) -> list[AuditLog]:  # noqa: ANN001
    query = db.query(AuditLog)
    if action is not None:
        query = query.filter(AuditLog.action == action)
    return query.all()


# ----- create_ticket -----


def test_customer_ticket_starts_new_and_unassigned(db_session, make_user, make_policy) -> None:
    make_policy(TicketPriority.high, response=30, resolution=240)
    customer = make_user(UserRole.customer)
    agent = make_user(UserRole.agent)
    admin = make_user(UserRole.admin)
    payload = TicketCreate(title="Laptop will not boot", description="Black screen after update", priority="high")

    result = create_ticket(db_session, payload, customer, calendar=BusinessCalendar.standard(), now=CREATED)

    assert result.ok
    ticket = result.ticket
    assert ticket.status == TicketStatus.new
    assert ticket.assigned_to is None
    tracking = get_tracking(db_session, ticket.id)
    assert tracking.response_due_at == CREATED + dt.timedelta(minutes=30)

    [entry] = _audit_rows(db_session, AuditAction.create)
    assert entry.entity_id == str(ticket.id)
    assert entry.new_values["status"] == "new"

    notified = {row.user_id for row in db_session.query(Notification).filter(Notification.ticket_id == ticket.id)}
    assert notified == {agent.id, admin.id}


def test_staff_creator_is_auto_assigned(db_session, make_user, make_policy) -> None:
    make_policy()
    agent = make_user(UserRole.agent)
    payload = TicketCreate(title="Printer jam", description="Tray 2 keeps jamming")

    result = create_ticket(db_session, payload, agent, calendar=BusinessCalendar.standard(), now=CREATED)

    assert result.ticket.assigned_to == agent.id
    assert db_session.query(Notification).count() == 0


def test_staff_creator_may_name_another_assignee(db_session, make_user, make_policy) -> None:
    make_policy()
    admin = make_user(UserRole.admin)
    agent = make_user(UserRole.agent)
    payload = TicketCreate(title="Printer jam", description="Tray 2 keeps jamming", assigned_to=agent.id)

    result = create_ticket(db_session, payload, admin, calendar=BusinessCalendar.standard(), now=CREATED)

    assert result.ticket.assigned_to == agent.id
    [note] = db_session.query(Notification).all()
    assert note.user_id == agent.id


def test_staff_creator_may_leave_ticket_unassigned(db_session, make_user, make_policy) -> None:
    make_policy()
    agent = make_user(UserRole.agent)
    other = make_user(UserRole.agent)
    admin = make_user(UserRole.admin)
    payload = TicketCreate(title="VPN flapping", description="Drops every hour", unassigned=True)

    result = create_ticket(db_session, payload, agent, calendar=BusinessCalendar.standard(), now=CREATED)

    assert result.ticket.assigned_to is None
    notified = {row.user_id for row in db_session.query(Notification)}
    assert notified == {agent.id, other.id, admin.id}


def test_unassigned_flag_conflicts_with_named_assignee() -> None:
    with pytest.raises(ValidationError):
        TicketCreate(title="VPN flapping", description="Drops", assigned_to=uuid.uuid4(), unassigned=True)


def test_customer_cannot_pick_assignee(db_session, make_user) -> None:
    customer = make_user(UserRole.customer)
    agent = make_user(UserRole.agent)
    payload = TicketCreate(title="Need access", description="Please grant access", assigned_to=agent.id)

    result = create_ticket(db_session, payload, customer, calendar=BusinessCalendar.standard(), now=CREATED)

    assert result.rejection == Rejection.unauthorized
    assert db_session.query(Ticket).count() == 0


def test_calendar_gap_aborts_creation(db_session, make_user, make_policy) -> None:
    make_policy(business_hours_only=True)
    customer = make_user(UserRole.customer)
    closed_week = BusinessCalendar([DayRule(day, False) for day in range(7)])
    payload = TicketCreate(title="Email down", description="Cannot send mail")

    with pytest.raises(CalendarGapError):
        create_ticket(db_session, payload, customer, calendar=closed_week, now=CREATED)

    assert db_session.query(Ticket).count() == 0
    assert _audit_rows(db_session) == []


# ----- transition_status -----


def test_admin_new_to_open_writes_one_audit_entry(db_session, make_user, make_policy, make_ticket) -> None:
    make_policy(response=60)
    customer = make_user(UserRole.customer)
    agent = make_user(UserRole.agent)
    admin = make_user(UserRole.admin)
    ticket = make_ticket(customer, assignee=agent, created_at=CREATED)

    result = transition_status(db_session, ticket.id, TicketStatus.open, admin, now=NOW)

    assert result.ok
    assert result.ticket.status == TicketStatus.open
    [entry] = _audit_rows(db_session)
    assert entry.action == AuditAction.status_change
    assert entry.old_values == {"status": "new"}
    assert entry.new_values == {"status": "open"}
    assert entry.description == "Status changed from new to open"

    tracking = get_tracking(db_session, ticket.id)
    assert tracking.first_response_at == NOW
    assert tracking.response_sla_met is True
    assert tracking.response_time_minutes == 30

    [note] = db_session.query(Notification).all()
    assert note.user_id == customer.id


def test_closed_is_terminal(db_session, make_user, make_policy, make_ticket) -> None:
    make_policy()
    admin = make_user(UserRole.admin)
    ticket = make_ticket(make_user(UserRole.customer), assignee=admin, status=TicketStatus.closed)

    for target in TicketStatus:
        result = transition_status(db_session, ticket.id, target, admin, now=NOW)
        assert result.rejection == Rejection.invalid_transition
    assert db_session.get(Ticket, ticket.id).status == TicketStatus.closed
    assert allowed_targets(TicketStatus.closed) == []


def test_unassigned_agent_is_unauthorized(db_session, make_user, make_policy, make_ticket) -> None:
    make_policy()
    agent = make_user(UserRole.agent)
    ticket = make_ticket(make_user(UserRole.customer))

    result = transition_status(db_session, ticket.id, TicketStatus.open, agent, now=NOW)

    assert result.rejection == Rejection.unauthorized
    assert result.message == "You can only update status of tickets assigned to you"
    assert _audit_rows(db_session) == []


def test_admin_on_unassigned_ticket_gets_not_assigned(db_session, make_user, make_policy, make_ticket) -> None:
    make_policy()
    admin = make_user(UserRole.admin)
    ticket = make_ticket(make_user(UserRole.customer))

    result = transition_status(db_session, ticket.id, TicketStatus.open, admin, now=NOW)

    assert result.rejection == Rejection.not_assigned
    assert get_tracking(db_session, ticket.id).first_response_at is None


def test_customer_cannot_change_status(db_session, make_user, make_policy, make_ticket) -> None:
    make_policy()
    customer = make_user(UserRole.customer)
    ticket = make_ticket(customer, assignee=make_user(UserRole.agent))

    result = transition_status(db_session, ticket.id, TicketStatus.open, customer, now=NOW)

    assert result.rejection == Rejection.unauthorized


def test_agent_on_someone_elses_ticket_is_unauthorized(db_session, make_user, make_policy, make_ticket) -> None:
    make_policy()
    owner = make_user(UserRole.agent)
    other = make_user(UserRole.agent)
    ticket = make_ticket(make_user(UserRole.customer), assignee=owner)

    result = transition_status(db_session, ticket.id, TicketStatus.open, other, now=NOW)

    assert result.rejection == Rejection.unauthorized


def test_unreachable_target_is_rejected_without_changes(db_session, make_user, make_policy, make_ticket) -> None:
    make_policy()
    agent = make_user(UserRole.agent)
    ticket = make_ticket(make_user(UserRole.customer), assignee=agent)

    result = transition_status(db_session, ticket.id, TicketStatus.resolved, agent, now=NOW)

    assert result.rejection == Rejection.invalid_transition
    assert db_session.get(Ticket, ticket.id).status == TicketStatus.new
    assert get_tracking(db_session, ticket.id).first_response_at is None


def test_every_allowed_transition_is_accepted_for_assignee(db_session, make_user, make_policy, make_ticket) -> None:
    make_policy()
    agent = make_user(UserRole.agent)
    customer = make_user(UserRole.customer)

    for source, targets in ALLOWED_TRANSITIONS.items():
        for target in targets:
            ticket = make_ticket(customer, assignee=agent, status=source)
            result = transition_status(db_session, ticket.id, target, agent, now=NOW)
            assert result.ok, (source, target)


def test_creator_transition_is_not_a_first_response(db_session, make_user, make_policy, make_ticket) -> None:
    make_policy()
    agent = make_user(UserRole.agent)
    ticket = make_ticket(agent, assignee=agent, created_at=CREATED)

    assert transition_status(db_session, ticket.id, TicketStatus.in_progress, agent, now=NOW).ok

    assert get_tracking(db_session, ticket.id).first_response_at is None


def test_resolution_and_escalation_are_recorded(db_session, make_user, make_policy, make_ticket) -> None:
    make_policy(resolution=480, escalation=60)
    agent = make_user(UserRole.agent)
    ticket = make_ticket(make_user(UserRole.customer), assignee=agent, created_at=CREATED)

    transition_status(db_session, ticket.id, TicketStatus.escalated, agent, now=NOW)
    transition_status(db_session, ticket.id, TicketStatus.in_progress, agent, now=NOW + dt.timedelta(minutes=5))
    resolved_at = NOW + dt.timedelta(hours=2)
    transition_status(db_session, ticket.id, TicketStatus.resolved, agent, now=resolved_at)

    tracking = get_tracking(db_session, ticket.id)
    assert tracking.escalated_at == NOW
    assert tracking.first_response_at == NOW
    assert tracking.resolved_at == resolved_at
    assert tracking.resolution_sla_met is True
    assert len(_audit_rows(db_session, AuditAction.status_change)) == 3


def test_reopened_ticket_keeps_original_resolution(db_session, make_user, make_policy, make_ticket) -> None:
    make_policy()
    agent = make_user(UserRole.agent)
    ticket = make_ticket(make_user(UserRole.customer), assignee=agent, status=TicketStatus.in_progress)
    first = NOW

    transition_status(db_session, ticket.id, TicketStatus.resolved, agent, now=first)
    transition_status(db_session, ticket.id, TicketStatus.open, agent, now=first + dt.timedelta(hours=1))
    transition_status(db_session, ticket.id, TicketStatus.in_progress, agent, now=first + dt.timedelta(hours=2))
    transition_status(db_session, ticket.id, TicketStatus.resolved, agent, now=first + dt.timedelta(hours=3))

    assert get_tracking(db_session, ticket.id).resolved_at == first


def test_missing_ticket_is_not_found(db_session, make_user) -> None:
    admin = make_user(UserRole.admin)

    assert transition_status(db_session, uuid.uuid4(), TicketStatus.open, admin).rejection == Rejection.not_found
    assert transition_status(db_session, "not-a-uuid", TicketStatus.open, admin).rejection == Rejection.not_found


def test_lost_update_becomes_conflict(db_session, make_user, make_policy, make_ticket, monkeypatch) -> None:
    make_policy()
    admin = make_user(UserRole.admin)
    ticket = make_ticket(make_user(UserRole.customer), assignee=admin)
    ticket_id = ticket.id

    def _stale_commit() -> None:
        raise StaleDataError("row version changed")

    monkeypatch.setattr(db_session, "commit", _stale_commit)
    with pytest.raises(ConflictError):
        transition_status(db_session, ticket_id, TicketStatus.open, admin, now=NOW)
    monkeypatch.undo()

    assert db_session.get(Ticket, ticket_id).status == TicketStatus.new
    assert get_tracking(db_session, ticket_id).first_response_at is None


# ----- assign_ticket -----


def test_agent_reassignment_requires_note(db_session, make_user, make_policy, make_ticket) -> None:
    make_policy()
    owner = make_user(UserRole.agent)
    other = make_user(UserRole.agent)
    ticket = make_ticket(make_user(UserRole.customer), assignee=owner)

    result = assign_ticket(db_session, ticket.id, other.id, owner, note="   ", now=NOW)

    assert result.rejection == Rejection.missing_note
    assert result.message == "Please add a note explaining why you're reassigning this ticket"
    assert db_session.get(Ticket, ticket.id).assigned_to == owner.id
    assert db_session.query(TicketComment).count() == 0


def test_agent_reassignment_with_note_adds_one_comment(db_session, make_user, make_policy, make_ticket) -> None:
    make_policy()
    owner = make_user(UserRole.agent, name="Ana Owner")
    other = make_user(UserRole.agent, name="Bo Other")
    ticket = make_ticket(make_user(UserRole.customer), assignee=owner, created_at=CREATED)

    result = assign_ticket(db_session, ticket.id, other.id, owner, note="Out of office", now=NOW)

    assert result.ok
    assert result.ticket.assigned_to == other.id
    [comment] = db_session.query(TicketComment).all()
    assert comment.content == "Out of office"
    assert comment.user_id == owner.id

    [entry] = _audit_rows(db_session)
    assert entry.action == AuditAction.reassign
    assert entry.old_values == {"assigned_to": str(owner.id), "assigned_to_name": "Ana Owner"}
    assert entry.new_values == {"assigned_to": str(other.id), "assigned_to_name": "Bo Other"}
    assert entry.description == "Ticket reassigned from Ana Owner to Bo Other"

    assert get_tracking(db_session, ticket.id).first_response_at is None
    [note] = db_session.query(Notification).all()
    assert note.user_id == other.id


def test_admin_assigns_unassigned_ticket(db_session, make_user, make_policy, make_ticket) -> None:
    make_policy()
    admin = make_user(UserRole.admin)
    agent = make_user(UserRole.agent, name="Cy Agent")
    ticket = make_ticket(make_user(UserRole.customer))

    result = assign_ticket(db_session, ticket.id, agent.id, admin, now=NOW)

    assert result.ok
    [entry] = _audit_rows(db_session)
    assert entry.action == AuditAction.assign
    assert entry.old_values["assigned_to_name"] == "Unassigned"
    assert db_session.query(TicketComment).count() == 0


def test_admin_unassigns_ticket(db_session, make_user, make_policy, make_ticket) -> None:
    make_policy()
    admin = make_user(UserRole.admin)
    agent = make_user(UserRole.agent, name="Di Agent")
    ticket = make_ticket(make_user(UserRole.customer), assignee=agent)

    result = assign_ticket(db_session, ticket.id, None, admin, now=NOW)

    assert result.ok
    assert db_session.get(Ticket, ticket.id).assigned_to is None
    [entry] = _audit_rows(db_session)
    assert entry.action == AuditAction.reassign
    assert entry.new_values == {"assigned_to": None, "assigned_to_name": "Unassigned"}
    assert entry.description == "Ticket reassigned from Di Agent to Unassigned"
    assert db_session.query(Notification).count() == 0
    assert db_session.query(TicketComment).count() == 0


def test_agent_unassign_still_requires_note(db_session, make_user, make_policy, make_ticket) -> None:
    make_policy()
    owner = make_user(UserRole.agent)
    ticket = make_ticket(make_user(UserRole.customer), assignee=owner)

    assert assign_ticket(db_session, ticket.id, None, owner, now=NOW).rejection == Rejection.missing_note

    result = assign_ticket(db_session, ticket.id, None, owner, note="Back to the queue", now=NOW)

    assert result.ok
    assert result.ticket.assigned_to is None
    assert result.comment.content == "Back to the queue"


def test_assigning_current_assignee_changes_nothing(db_session, make_user, make_policy, make_ticket) -> None:
    make_policy()
    admin = make_user(UserRole.admin)
    agent = make_user(UserRole.agent)
    assigned = make_ticket(make_user(UserRole.customer), assignee=agent)
    unassigned = make_ticket(make_user(UserRole.customer))

    same = assign_ticket(db_session, assigned.id, agent.id, admin, now=NOW)
    already_empty = assign_ticket(db_session, unassigned.id, None, admin, now=NOW)

    assert same.rejection == Rejection.invalid_assignee
    assert already_empty.rejection == Rejection.invalid_assignee
    assert _audit_rows(db_session) == []
    assert db_session.query(Notification).count() == 0


def test_unassigned_agent_cannot_claim_ticket(db_session, make_user, make_policy, make_ticket) -> None:
    make_policy()
    agent = make_user(UserRole.agent)
    ticket = make_ticket(make_user(UserRole.customer))

    result = assign_ticket(db_session, ticket.id, agent.id, agent, note="Taking this", now=NOW)

    assert result.rejection == Rejection.unauthorized


def test_customer_cannot_assign(db_session, make_user, make_policy, make_ticket) -> None:
    make_policy()
    customer = make_user(UserRole.customer)
    ticket = make_ticket(customer)

    result = assign_ticket(db_session, ticket.id, make_user(UserRole.agent).id, customer, now=NOW)

    assert result.rejection == Rejection.unauthorized
    assert result.message == "Only agents and admins can assign tickets"


def test_assignee_must_be_staff(db_session, make_user, make_policy, make_ticket) -> None:
    make_policy()
    admin = make_user(UserRole.admin)
    customer = make_user(UserRole.customer)
    ticket = make_ticket(customer)

    assert assign_ticket(db_session, ticket.id, customer.id, admin).rejection == Rejection.invalid_assignee
    assert assign_ticket(db_session, ticket.id, uuid.uuid4(), admin).rejection == Rejection.invalid_assignee


# ----- add_comment -----


def test_staff_comment_records_first_response(db_session, make_user, make_policy, make_ticket) -> None:
    make_policy(response=60)
    customer = make_user(UserRole.customer)
    agent = make_user(UserRole.agent)
    ticket = make_ticket(customer, assignee=agent, created_at=CREATED)

    result = add_comment(db_session, ticket.id, agent, "Looking into it", now=NOW)

    assert result.ok
    assert result.comment.content == "Looking into it"
    assert get_tracking(db_session, ticket.id).first_response_at == NOW
    [entry] = _audit_rows(db_session)
    assert entry.action == AuditAction.comment_add
    notified = {row.user_id for row in db_session.query(Notification).all()}
    assert notified == {customer.id}


def test_customer_comment_is_not_a_first_response(db_session, make_user, make_policy, make_ticket) -> None:
    make_policy()
    customer = make_user(UserRole.customer)
    agent = make_user(UserRole.agent)
    ticket = make_ticket(customer, assignee=agent, created_at=CREATED)

    assert add_comment(db_session, ticket.id, customer, "Any update?", now=NOW).ok

    assert get_tracking(db_session, ticket.id).first_response_at is None
    notified = {row.user_id for row in db_session.query(Notification).all()}
    assert notified == {agent.id}


def test_comment_notifies_prior_commenters(db_session, make_user, make_policy, make_ticket) -> None:
    make_policy()
    customer = make_user(UserRole.customer)
    agent = make_user(UserRole.agent)
    helper = make_user(UserRole.admin)
    ticket = make_ticket(customer, assignee=agent)

    add_comment(db_session, ticket.id, helper, "Try a reboot", now=NOW)
    db_session.query(Notification).delete()
    db_session.commit()
    add_comment(db_session, ticket.id, agent, "Rebooted remotely", now=NOW + dt.timedelta(minutes=5))

    notified = {row.user_id for row in db_session.query(Notification).all()}
    assert notified == {customer.id, helper.id}


def test_customer_cannot_comment_on_foreign_ticket(db_session, make_user, make_policy, make_ticket) -> None:
    make_policy()
    ticket = make_ticket(make_user(UserRole.customer))
    stranger = make_user(UserRole.customer)

    result = add_comment(db_session, ticket.id, stranger, "Me too", now=NOW)

    assert result.rejection == Rejection.unauthorized
    assert db_session.query(TicketComment).count() == 0


def test_blank_comment_is_rejected(db_session, make_user, make_policy, make_ticket) -> None:
    make_policy()
    customer = make_user(UserRole.customer)
    ticket = make_ticket(customer)

    with pytest.raises(ValueError, match="comment_required"):
        add_comment(db_session, ticket.id, customer, "  \n ")


# ----- listing -----


def test_queue_orders_by_status_rank(db_session, make_user, make_policy, make_ticket) -> None:
    make_policy()
    customer = make_user(UserRole.customer)
    other = make_user(UserRole.customer)
    agent = make_user(UserRole.agent)
    closed = make_ticket(customer, status=TicketStatus.closed, created_at=CREATED)
    older_new = make_ticket(customer, status=TicketStatus.new, created_at=CREATED)
    newer_new = make_ticket(other, status=TicketStatus.new, created_at=CREATED + dt.timedelta(hours=1))
    escalated = make_ticket(customer, status=TicketStatus.escalated, created_at=CREATED)

    staff_view = [ticket.id for ticket in list_tickets_for_user(db_session, agent)]
    customer_view = [ticket.id for ticket in list_tickets_for_user(db_session, customer)]

    assert staff_view == [escalated.id, newer_new.id, older_new.id, closed.id]
    assert customer_view == [escalated.id, older_new.id, closed.id]
