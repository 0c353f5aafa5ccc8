"""SLA reporting endpoints: compliance metrics and breach queues."""

from __future__ import annotations

import datetime as dt

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from helpdesk.core.deps import require_roles
from helpdesk.core.exceptions import BadRequestError
from helpdesk.db.session import get_db
from helpdesk.db.types import as_utc, utcnow
from helpdesk.models.enums import UserRole
from helpdesk.schemas.sla import SLAMetricsOut, SLAPolicyOut, SLAStatusOut, SLATicketRowOut
from helpdesk.services.sla.classifier import SLAStatus
from helpdesk.services.sla.metrics import compute_sla_metrics, list_at_risk_tickets, list_breached_tickets
from helpdesk.services.sla.policies import list_active_policies

router = APIRouter(dependencies=[Depends(require_roles(UserRole.admin, UserRole.agent))])


def _row(ticket, tracking, sla: SLAStatus) -> SLATicketRowOut:  # noqa: ANN001
    return SLATicketRowOut(
        ticket_id=ticket.id,
        title=ticket.title,
        status=ticket.status,
        priority=ticket.priority,
        assigned_to=ticket.assigned_to,
        response_due_at=tracking.response_due_at,
        resolution_due_at=tracking.resolution_due_at,
        sla=SLAStatusOut.model_validate(sla),
    )


@router.get("/metrics", response_model=SLAMetricsOut)
def get_sla_metrics(
    date_from: dt.datetime | None = Query(default=None, alias="from"),
    date_to: dt.datetime | None = Query(default=None, alias="to"),
    db: Session = Depends(get_db),
) -> SLAMetricsOut:
    if date_from and date_to and as_utc(date_from) > as_utc(date_to):
        raise BadRequestError("invalid_date_range")
    metrics = compute_sla_metrics(db, utcnow(), start=date_from, end=date_to)
    return SLAMetricsOut(**metrics.to_dict())


@router.get("/breached", response_model=list[SLATicketRowOut])
def get_breached_tickets(db: Session = Depends(get_db)) -> list[SLATicketRowOut]:
    return [_row(*item) for item in list_breached_tickets(db, utcnow())]


@router.get("/at-risk", response_model=list[SLATicketRowOut])
def get_at_risk_tickets(db: Session = Depends(get_db)) -> list[SLATicketRowOut]:
    return [_row(*item) for item in list_at_risk_tickets(db, utcnow())]


@router.get("/policies", response_model=list[SLAPolicyOut])
def get_active_policies(db: Session = Depends(get_db)) -> list[SLAPolicyOut]:
    return [SLAPolicyOut.model_validate(policy) for policy in list_active_policies(db)]
