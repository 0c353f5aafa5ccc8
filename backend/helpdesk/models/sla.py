"""SLA policy definitions and per-ticket tracking rows."""

from __future__ import annotations

import datetime as dt
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, Enum, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from helpdesk.db.base import Base
from helpdesk.db.types import UTCDateTime, utcnow
from helpdesk.models.enums import TicketPriority


class SLAPolicy(Base):
    __tablename__ = "sla_policies"
    __table_args__ = (
        # At most one active policy per priority.
        Index(
            "uq_sla_policies_active_priority",
            "priority",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
        CheckConstraint("response_time_minutes > 0", name="ck_sla_policies_response_positive"),
        CheckConstraint("resolution_time_minutes > 0", name="ck_sla_policies_resolution_positive"),
        CheckConstraint(
            "escalation_time_minutes IS NULL OR escalation_time_minutes > 0",
            name="ck_sla_policies_escalation_positive",
        ),
    )

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    priority: Mapped[TicketPriority] = mapped_column(
        Enum(TicketPriority, name="ticket_priority", values_callable=lambda x: [e.value for e in x]),
        nullable=False,
    )
    response_time_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    resolution_time_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    escalation_time_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    business_hours_only: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow, onupdate=utcnow)


class TicketSLATracking(Base):
    __tablename__ = "ticket_sla_tracking"
    __table_args__ = (
        Index("ix_ticket_sla_tracking_response_due_at", "response_due_at"),
        Index("ix_ticket_sla_tracking_resolution_due_at", "resolution_due_at"),
    )

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    ticket_id: Mapped[UUID] = mapped_column(
        ForeignKey("tickets.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    sla_policy_id: Mapped[UUID] = mapped_column(ForeignKey("sla_policies.id"), nullable=False, index=True)
    # Clock origin: the ticket's creation instant.
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), nullable=False)

    response_due_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), nullable=False)
    first_response_at: Mapped[dt.datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    response_sla_met: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    response_time_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)

    resolution_due_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), nullable=False)
    resolved_at: Mapped[dt.datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    resolution_sla_met: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    resolution_time_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)

    escalation_due_at: Mapped[dt.datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    escalated_at: Mapped[dt.datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    policy = relationship("SLAPolicy")
    ticket = relationship("Ticket")
