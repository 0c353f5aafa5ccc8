"""Shared enum values used by the database models and schemas."""

from __future__ import annotations

import enum


class UserRole(str, enum.Enum):
    admin = "admin"
    agent = "agent"
    customer = "customer"


class TicketStatus(str, enum.Enum):
    new = "new"
    open = "open"
    in_progress = "in_progress"
    resolved = "resolved"
    closed = "closed"
    escalated = "escalated"


class TicketPriority(str, enum.Enum):
    critical = "critical"
    high = "high"
    medium = "medium"
    low = "low"


class SLAState(str, enum.Enum):
    met = "met"
    breached = "breached"
    pending = "pending"
    at_risk = "at_risk"


class AuditAction(str, enum.Enum):
    create = "CREATE"
    update = "UPDATE"
    delete = "DELETE"
    assign = "ASSIGN"
    reassign = "REASSIGN"
    status_change = "STATUS_CHANGE"
    priority_change = "PRIORITY_CHANGE"
    comment_add = "COMMENT_ADD"


class AuditEntityType(str, enum.Enum):
    ticket = "ticket"
    comment = "comment"
    sla_policy = "sla_policy"


# Queue ordering: lower rank sorts first.
STATUS_RANK: dict[TicketStatus, int] = {
    TicketStatus.escalated: 0,
    TicketStatus.new: 1,
    TicketStatus.open: 2,
    TicketStatus.in_progress: 3,
    TicketStatus.resolved: 4,
    TicketStatus.closed: 5,
}

PRIORITY_RANK: dict[TicketPriority, int] = {
    TicketPriority.critical: 0,
    TicketPriority.high: 1,
    TicketPriority.medium: 2,
    TicketPriority.low: 3,
}
