"""Pydantic schemas for SLA status, metrics and policies."""

from __future__ import annotations

import datetime as dt
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from helpdesk.models.enums import SLAState, TicketPriority, TicketStatus


class AxisStatusOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    status: SLAState
    progress: int
    time_remaining: int | None = None
    label: str


class SLAStatusOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    response: AxisStatusOut
    resolution: AxisStatusOut
    is_breached: bool
    is_at_risk: bool


class SLATrackingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    ticket_id: UUID
    sla_policy_id: UUID
    created_at: dt.datetime
    response_due_at: dt.datetime
    first_response_at: dt.datetime | None = None
    response_sla_met: bool | None = None
    response_time_minutes: int | None = None
    resolution_due_at: dt.datetime
    resolved_at: dt.datetime | None = None
    resolution_sla_met: bool | None = None
    resolution_time_minutes: int | None = None
    escalation_due_at: dt.datetime | None = None
    escalated_at: dt.datetime | None = None


class TicketSLAStatusOut(BaseModel):
    ticket_id: UUID
    tracking: SLATrackingOut | None = None
    status: SLAStatusOut | None = None


class SLATicketRowOut(BaseModel):
    ticket_id: UUID
    title: str
    status: TicketStatus
    priority: TicketPriority
    assigned_to: UUID | None = None
    response_due_at: dt.datetime
    resolution_due_at: dt.datetime
    sla: SLAStatusOut


class SLAMetricsOut(BaseModel):
    total_tickets: int
    response_met: int
    response_breached: int
    response_compliance_rate: float
    resolution_met: int
    resolution_breached: int
    resolution_compliance_rate: float
    avg_response_time_minutes: float | None = None
    avg_resolution_time_minutes: float | None = None
    active_response_breaches: int
    active_resolution_breaches: int


class SLAPolicyOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: str | None = None
    priority: TicketPriority
    response_time_minutes: int
    resolution_time_minutes: int
    escalation_time_minutes: int | None = None
    business_hours_only: bool
    is_active: bool
