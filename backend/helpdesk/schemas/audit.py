"""Pydantic schemas for audit trail entries."""

from __future__ import annotations

import datetime as dt
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from helpdesk.models.enums import AuditAction, AuditEntityType


class AuditLogOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID | None = None
    user_email: str | None = None
    user_name: str | None = None
    action: AuditAction
    entity_type: AuditEntityType
    entity_id: str | None = None
    old_values: dict[str, Any] | None = None
    new_values: dict[str, Any] | None = None
    description: str | None = None
    created_at: dt.datetime
