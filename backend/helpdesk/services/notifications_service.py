"""Fire-and-forget notification sink plus read helpers."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from helpdesk.db.types import utcnow
from helpdesk.models.notification import Notification

logger = logging.getLogger(__name__)


def notify(
    db: Session,
    user_id: UUID,
    ticket_id: UUID | None,
    message: str,
    *,
    source: str = "ticket",
) -> Notification | None:
    """Queue an in-app notification. Failures are logged, never raised."""
    return notify_many(db, [user_id], ticket_id, message, source=source)[0] if user_id else None


def notify_many(
    db: Session,
    user_ids: Iterable[UUID],
    ticket_id: UUID | None,
    message: str,
    *,
    source: str = "ticket",
) -> list[Notification | None]:
    records = [
        Notification(user_id=user_id, ticket_id=ticket_id, message=message, source=source)
        for user_id in dict.fromkeys(user_ids)
    ]
    if not records:
        return []
    try:
        db.add_all(records)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to queue %s notification(s) for ticket %s", len(records), ticket_id)
        return [None] * len(records)
    return list(records)


def list_notifications(
    db: Session,
    *,
    user_id: UUID,
    unread_only: bool = False,
    limit: int = 20,
) -> list[Notification]:
    query = db.query(Notification).filter(Notification.user_id == user_id)
    if unread_only:
        query = query.filter(Notification.read_at.is_(None))
    return query.order_by(Notification.created_at.desc()).limit(limit).all()


def mark_all_notifications_as_read(db: Session, *, user_id: UUID) -> int:
    now = utcnow()
    updated = (
        db.query(Notification)
        .filter(Notification.user_id == user_id, Notification.read_at.is_(None))
        .update({"read_at": now}, synchronize_session=False)
    )
    db.commit()
    return int(updated or 0)
