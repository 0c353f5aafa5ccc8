"""Append-only audit trail: writing entries and reading them back."""

from __future__ import annotations

import datetime as dt
import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from helpdesk.core.config import settings
from helpdesk.db.types import as_utc
from helpdesk.models.audit_log import AuditLog
from helpdesk.models.enums import AuditAction, AuditEntityType

logger = logging.getLogger(__name__)


def append_audit_entry(
    db: Session,
    *,
    action: AuditAction,
    entity_type: AuditEntityType,
    entity_id: Any = None,
    actor: Any = None,
    old_values: dict[str, Any] | None = None,
    new_values: dict[str, Any] | None = None,
    description: str | None = None,
) -> AuditLog | None:
    """Persist one audit entry in its own commit.

    Audit failures never propagate: the entry is dropped, the session is
    rolled back and the error is logged.
    """
    entry = AuditLog(
        user_id=getattr(actor, "id", None),
        user_email=getattr(actor, "email", None),
        user_name=getattr(actor, "name", None),
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id is not None else None,
        old_values=old_values,
        new_values=new_values,
        description=description,
    )
    try:
        db.add(entry)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to write audit entry %s %s %s", action.value, entity_type.value, entity_id)
        return None
    logger.info(
        "Audit %s %s %s by %s",
        action.value,
        entity_type.value,
        entity_id,
        getattr(actor, "email", None) or "system",
    )
    return entry


def log_ticket_change(
    db: Session,
    action: AuditAction,
    ticket_id: Any,
    actor: Any,
    *,
    old_values: dict[str, Any] | None = None,
    new_values: dict[str, Any] | None = None,
    description: str | None = None,
) -> AuditLog | None:
    return append_audit_entry(
        db,
        action=action,
        entity_type=AuditEntityType.ticket,
        entity_id=ticket_id,
        actor=actor,
        old_values=old_values,
        new_values=new_values,
        description=description,
    )


def list_audit_logs(
    db: Session,
    *,
    user_id: Any = None,
    entity_type: AuditEntityType | None = None,
    entity_id: Any = None,
    action: AuditAction | None = None,
    start: dt.datetime | None = None,
    end: dt.datetime | None = None,
    limit: int | None = None,
    offset: int = 0,
) -> list[AuditLog]:
    query = select(AuditLog)
    if user_id is not None:
        query = query.where(AuditLog.user_id == user_id)
    if entity_type is not None:
        query = query.where(AuditLog.entity_type == entity_type)
    if entity_id is not None:
        query = query.where(AuditLog.entity_id == str(entity_id))
    if action is not None:
        query = query.where(AuditLog.action == action)
    if start is not None:
        query = query.where(AuditLog.created_at >= as_utc(start))
    if end is not None:
        query = query.where(AuditLog.created_at <= as_utc(end))
    query = (
        query.order_by(AuditLog.created_at.desc())
        .offset(max(0, offset))
        .limit(limit or settings.AUDIT_LOG_PAGE_LIMIT)
    )
    return list(db.execute(query).scalars().all())


def get_entity_history(
    db: Session,
    entity_type: AuditEntityType,
    entity_id: Any,
    *,
    limit: int = 50,
) -> list[AuditLog]:
    return list_audit_logs(db, entity_type=entity_type, entity_id=entity_id, limit=limit)
