"""SLA compliance roll-ups and breach/at-risk queues."""

from __future__ import annotations

import datetime as dt
import logging
from collections.abc import Iterable
from dataclasses import asdict, dataclass
from typing import Any

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from helpdesk.core.config import settings
from helpdesk.db.types import as_utc
from helpdesk.models.enums import TicketStatus
from helpdesk.models.sla import TicketSLATracking
from helpdesk.models.ticket import Ticket
from helpdesk.services.sla.classifier import SLAStatus, classify

logger = logging.getLogger(__name__)

CLOSED_STATUSES = {TicketStatus.resolved, TicketStatus.closed}


@dataclass
class SLAMetrics:
    total_tickets: int = 0
    response_met: int = 0
    response_breached: int = 0
    response_compliance_rate: float = 0.0
    resolution_met: int = 0
    resolution_breached: int = 0
    resolution_compliance_rate: float = 0.0
    avg_response_time_minutes: float | None = None
    avg_resolution_time_minutes: float | None = None
    active_response_breaches: int = 0
    active_resolution_breaches: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _compliance_rate(met: int, breached: int) -> float:
    total = met + breached
    if total == 0:
        return 0.0
    return round(met / total * 100, 2)


def _avg(values: list[int]) -> float | None:
    if not values:
        return None
    return round(sum(values) / len(values), 2)


def aggregate_sla_metrics(rows: Iterable[Any], now: dt.datetime) -> SLAMetrics:
    """Fold tracking rows into compliance metrics. Pure and side-effect free."""
    current = as_utc(now)
    metrics = SLAMetrics()
    response_minutes: list[int] = []
    resolution_minutes: list[int] = []

    for row in rows:
        metrics.total_tickets += 1

        if row.response_sla_met is True:
            metrics.response_met += 1
        elif row.response_sla_met is False:
            metrics.response_breached += 1
        if row.resolution_sla_met is True:
            metrics.resolution_met += 1
        elif row.resolution_sla_met is False:
            metrics.resolution_breached += 1

        if row.response_time_minutes is not None:
            response_minutes.append(row.response_time_minutes)
        if row.resolution_time_minutes is not None:
            resolution_minutes.append(row.resolution_time_minutes)

        if row.first_response_at is None and current > as_utc(row.response_due_at):
            metrics.active_response_breaches += 1
        if row.resolved_at is None and current > as_utc(row.resolution_due_at):
            metrics.active_resolution_breaches += 1

    metrics.response_compliance_rate = _compliance_rate(metrics.response_met, metrics.response_breached)
    metrics.resolution_compliance_rate = _compliance_rate(metrics.resolution_met, metrics.resolution_breached)
    metrics.avg_response_time_minutes = _avg(response_minutes)
    metrics.avg_resolution_time_minutes = _avg(resolution_minutes)
    return metrics


def _tracking_query(start: dt.datetime | None, end: dt.datetime | None):  # noqa: ANN202
    query = select(TicketSLATracking).join(Ticket, Ticket.id == TicketSLATracking.ticket_id)
    if start is not None:
        query = query.where(Ticket.created_at >= as_utc(start))
    if end is not None:
        query = query.where(Ticket.created_at < as_utc(end))
    return query


def iter_tracking_rows(
    db: Session,
    *,
    start: dt.datetime | None = None,
    end: dt.datetime | None = None,
    batch_size: int | None = None,
):  # noqa: ANN201
    query = _tracking_query(start, end).execution_options(
        yield_per=batch_size or settings.SLA_METRICS_BATCH_SIZE
    )
    yield from db.execute(query).scalars()


def compute_sla_metrics(
    db: Session,
    now: dt.datetime,
    *,
    start: dt.datetime | None = None,
    end: dt.datetime | None = None,
) -> SLAMetrics:
    """Metrics for tickets created in ``[start, end)``; either bound may be open."""
    metrics = aggregate_sla_metrics(iter_tracking_rows(db, start=start, end=end), now)
    logger.debug("SLA metrics computed over %s tracked tickets", metrics.total_tickets)
    return metrics


def _open_deadline(tracking: TicketSLATracking) -> dt.datetime:
    if tracking.first_response_at is None:
        return as_utc(tracking.response_due_at)
    return as_utc(tracking.resolution_due_at)


def list_breached_tickets(db: Session, now: dt.datetime) -> list[tuple[Ticket, TicketSLATracking, SLAStatus]]:
    current = as_utc(now)
    rows = db.execute(
        select(Ticket, TicketSLATracking)
        .join(TicketSLATracking, TicketSLATracking.ticket_id == Ticket.id)
        .where(
            or_(
                TicketSLATracking.first_response_at.is_(None) & (TicketSLATracking.response_due_at < current),
                TicketSLATracking.resolved_at.is_(None) & (TicketSLATracking.resolution_due_at < current),
            )
        )
        .order_by(Ticket.created_at.desc())
    ).all()
    return [(ticket, tracking, classify(tracking, current)) for ticket, tracking in rows]


def list_at_risk_tickets(db: Session, now: dt.datetime) -> list[tuple[Ticket, TicketSLATracking, SLAStatus]]:
    """Open tickets with an unfinished axis at or past the at-risk threshold."""
    current = as_utc(now)
    rows = db.execute(
        select(Ticket, TicketSLATracking)
        .join(TicketSLATracking, TicketSLATracking.ticket_id == Ticket.id)
        .where(
            Ticket.status.notin_(list(CLOSED_STATUSES)),
            or_(
                TicketSLATracking.first_response_at.is_(None) & (TicketSLATracking.response_due_at >= current),
                TicketSLATracking.resolved_at.is_(None) & (TicketSLATracking.resolution_due_at >= current),
            ),
        )
    ).all()

    at_risk = []
    for ticket, tracking in rows:
        status = classify(tracking, current)
        if status.is_at_risk:
            at_risk.append((ticket, tracking, status))
    at_risk.sort(key=lambda item: _open_deadline(item[1]))
    return at_risk
