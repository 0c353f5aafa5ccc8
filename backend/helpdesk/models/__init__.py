"""Convenience imports for Alembic metadata discovery."""

from helpdesk.models.user import User
from helpdesk.models.ticket import Ticket, TicketComment
from helpdesk.models.sla import SLAPolicy, TicketSLATracking
from helpdesk.models.calendar import BusinessHours, Holiday
from helpdesk.models.audit_log import AuditLog
from helpdesk.models.notification import Notification

__all__ = [
    "AuditLog",
    "BusinessHours",
    "Holiday",
    "Notification",
    "SLAPolicy",
    "Ticket",
    "TicketComment",
    "TicketSLATracking",
    "User",
]
