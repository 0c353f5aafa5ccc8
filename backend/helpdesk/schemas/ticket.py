"""Pydantic schemas for tickets, comments and lifecycle mutations."""

from __future__ import annotations

import datetime as dt
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from helpdesk.core.sanitize import clean_multiline, clean_optional_note, clean_single_line
from helpdesk.models.enums import TicketPriority, TicketStatus

MAX_TITLE_LEN = 255
MAX_DESCRIPTION_LEN = 4000
MAX_COMMENT_LEN = 4000


class CommentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    ticket_id: UUID
    user_id: UUID
    content: str
    created_at: dt.datetime


class TicketCreate(BaseModel):
    title: str = Field(min_length=3, max_length=MAX_TITLE_LEN)
    description: str = Field(min_length=1, max_length=MAX_DESCRIPTION_LEN)
    priority: TicketPriority = TicketPriority.medium
    assigned_to: UUID | None = None
    unassigned: bool = False

    @field_validator("title", mode="before")
    @classmethod
    def normalize_title(cls, value: str) -> str:
        return clean_single_line(value)

    @field_validator("description", mode="before")
    @classmethod
    def normalize_description(cls, value: str) -> str:
        return clean_multiline(value)

    @model_validator(mode="after")
    def check_assignment(self) -> TicketCreate:
        if self.unassigned and self.assigned_to is not None:
            raise ValueError("assigned_to_conflicts_with_unassigned")
        return self


class TicketStatusUpdate(BaseModel):
    status: TicketStatus


class TicketAssignUpdate(BaseModel):
    assigned_to: UUID | None = None
    note: str | None = Field(default=None, max_length=MAX_COMMENT_LEN)

    @field_validator("note", mode="before")
    @classmethod
    def normalize_note(cls, value: str | None) -> str | None:
        return clean_optional_note(value)


class CommentCreate(BaseModel):
    content: str = Field(min_length=1, max_length=MAX_COMMENT_LEN)

    @field_validator("content", mode="before")
    @classmethod
    def normalize_content(cls, value: str) -> str:
        return clean_multiline(value)


class TicketOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    description: str
    status: TicketStatus
    priority: TicketPriority
    created_by: UUID
    assigned_to: UUID | None = None
    created_at: dt.datetime
    updated_at: dt.datetime
    comments: list[CommentOut] = Field(default_factory=list)
