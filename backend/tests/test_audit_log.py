from __future__ import annotations

import datetime as dt
import uuid
from types import SimpleNamespace

from sqlalchemy.exc import OperationalError

from helpdesk.models.audit_log import AuditLog
from helpdesk.models.enums import AuditAction, AuditEntityType, UserRole
from helpdesk.services.audit import append_audit_entry, get_entity_history, list_audit_logs, log_ticket_change
from helpdesk.services.notifications_service import list_notifications, mark_all_notifications_as_read, notify


class _FailingDB:
    def __init__(self):
        self.rollbacks = 0
        self.added = []

    def add(self, obj):
        self.added.append(obj)

    def add_all(self, objs):
        self.added.extend(objs)

    def commit(self):
        raise OperationalError("INSERT", {}, Exception("database is locked"))

    def rollback(self):
        self.rollbacks += 1


def test_audit_failure_is_swallowed() -> None:
    db = _FailingDB()
    actor = SimpleNamespace(id=uuid.uuid4(), email="agent@example.com", name="Agent")

    entry = append_audit_entry(
        db,
        action=AuditAction.status_change,
        entity_type=AuditEntityType.ticket,
        entity_id="42",
        actor=actor,
    )

    assert entry is None
    assert db.rollbacks == 1


def test_notification_failure_is_swallowed() -> None:
    db = _FailingDB()

    assert notify(db, uuid.uuid4(), None, "hello") is None
    assert db.rollbacks == 1


def test_entry_snapshots_actor(db_session, make_user) -> None:
    admin = make_user(UserRole.admin, name="Root Admin")
    ticket_id = uuid.uuid4()

    log_ticket_change(
        db_session,
        AuditAction.update,
        ticket_id,
        admin,
        old_values={"priority": "low"},
        new_values={"priority": "high"},
    )

    [entry] = db_session.query(AuditLog).all()
    assert entry.user_id == admin.id
    assert entry.user_name == "Root Admin"
    assert entry.user_email == admin.email
    assert entry.entity_id == str(ticket_id)
    assert entry.new_values == {"priority": "high"}


def test_system_entries_have_no_actor(db_session) -> None:
    entry = append_audit_entry(db_session, action=AuditAction.delete, entity_type=AuditEntityType.sla_policy)

    assert entry is not None
    assert entry.user_id is None


def test_list_filters_and_orders_newest_first(db_session, make_user) -> None:
    admin = make_user(UserRole.admin)
    agent = make_user(UserRole.agent)
    base = dt.datetime(2026, 10, 19, 9, 0, tzinfo=dt.timezone.utc)
    for offset, (actor, action) in enumerate(
        [(admin, AuditAction.create), (agent, AuditAction.status_change), (agent, AuditAction.comment_add)]
    ):
        db_session.add(
            AuditLog(
                user_id=actor.id,
                action=action,
                entity_type=AuditEntityType.ticket,
                entity_id="T-1",
                created_at=base + dt.timedelta(minutes=offset),
            )
        )
    db_session.commit()

    by_agent = list_audit_logs(db_session, user_id=agent.id)
    creates = list_audit_logs(db_session, action=AuditAction.create)
    windowed = list_audit_logs(db_session, start=base + dt.timedelta(minutes=1), end=base + dt.timedelta(minutes=1))
    history = get_entity_history(db_session, AuditEntityType.ticket, "T-1", limit=2)

    assert [row.action for row in by_agent] == [AuditAction.comment_add, AuditAction.status_change]
    assert len(creates) == 1
    assert [row.action for row in windowed] == [AuditAction.status_change]
    assert len(history) == 2


def test_notifications_can_be_marked_read(db_session, make_user) -> None:
    customer = make_user(UserRole.customer)
    notify(db_session, customer.id, None, "Ticket status updated")
    notify(db_session, customer.id, None, "New comment")

    assert len(list_notifications(db_session, user_id=customer.id, unread_only=True)) == 2
    assert mark_all_notifications_as_read(db_session, user_id=customer.id) == 2
    assert list_notifications(db_session, user_id=customer.id, unread_only=True) == []
