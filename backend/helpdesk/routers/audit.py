"""Admin audit-log browsing."""

from __future__ import annotations

import datetime as dt
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from helpdesk.core.config import settings
from helpdesk.core.deps import require_admin
from helpdesk.db.session import get_db
from helpdesk.models.enums import AuditAction, AuditEntityType
from helpdesk.schemas.audit import AuditLogOut
from helpdesk.services.audit import list_audit_logs

router = APIRouter(dependencies=[Depends(require_admin)])


@router.get("/", response_model=list[AuditLogOut])
def get_audit_logs(
    user_id: UUID | None = Query(default=None),
    entity_type: AuditEntityType | None = Query(default=None),
    entity_id: str | None = Query(default=None, max_length=64),
    action: AuditAction | None = Query(default=None),
    date_from: dt.datetime | None = Query(default=None, alias="from"),
    date_to: dt.datetime | None = Query(default=None, alias="to"),
    limit: int = Query(default=50, ge=1, le=settings.AUDIT_LOG_PAGE_LIMIT),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
) -> list[AuditLogOut]:
    rows = list_audit_logs(
        db,
        user_id=user_id,
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        start=date_from,
        end=date_to,
        limit=limit,
        offset=offset,
    )
    return [AuditLogOut.model_validate(row) for row in rows]
