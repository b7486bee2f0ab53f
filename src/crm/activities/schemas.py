"""Pydantic schemas for activities, tasks and notes."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator, model_validator

from src.crm.schemas.common import CompanyRef, ContactRef, DealRef, FormModel


class ActivityType(str, Enum):
    CALL = "call"
    EMAIL = "email"
    MEETING = "meeting"
    TASK = "task"
    NOTE = "note"


# ── Activity Schemas ────────────────────────────────────────────────────────


class ActivityCreate(FormModel):
    """Schema for logging an activity or creating a task."""

    type: ActivityType
    title: str = Field(min_length=1, max_length=300)
    description: str | None = None
    contact_id: str | None = None
    company_id: str | None = None
    deal_id: str | None = None
    due_date: datetime | None = None
    is_completed: bool = False

    @field_validator("title")
    @classmethod
    def _strip_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Title is required")
        return v


class ActivityUpdate(FormModel):
    """Partial activity update (completion is toggled separately)."""

    type: ActivityType | None = None
    title: str | None = Field(default=None, min_length=1, max_length=300)
    description: str | None = None
    contact_id: str | None = None
    company_id: str | None = None
    deal_id: str | None = None
    due_date: datetime | None = None


class ActivityCompletion(BaseModel):
    """Payload for marking a task done or reopening it."""

    is_completed: bool


class ActivityRead(BaseModel):
    """Schema for reading an activity with its related-record embeds."""

    id: str
    user_id: str
    type: ActivityType
    title: str
    description: str | None = None
    contact_id: str | None = None
    company_id: str | None = None
    deal_id: str | None = None
    due_date: datetime | None = None
    is_completed: bool = False
    completed_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    contact: ContactRef | None = None
    company: CompanyRef | None = None
    deal: DealRef | None = None


class ActivityFilter(BaseModel):
    """Optional filters for listing activities."""

    type: ActivityType | None = None
    contact_id: str | None = None
    company_id: str | None = None
    deal_id: str | None = None
    created_from: datetime | None = None
    created_to: datetime | None = None
    limit: int | None = Field(default=None, ge=1, le=500)


class TaskGroups(BaseModel):
    """Tasks bucketed relative to the current day."""

    overdue: list[ActivityRead] = Field(default_factory=list)
    today: list[ActivityRead] = Field(default_factory=list)
    upcoming: list[ActivityRead] = Field(default_factory=list)
    completed: list[ActivityRead] = Field(default_factory=list)


# ── Note Schemas ────────────────────────────────────────────────────────────


class NoteCreate(FormModel):
    """A note must be attached to at least one contact, company or deal."""

    content: str = Field(min_length=1)
    contact_id: str | None = None
    company_id: str | None = None
    deal_id: str | None = None

    @field_validator("content")
    @classmethod
    def _strip_content(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Note content is required")
        return v

    @model_validator(mode="after")
    def _has_target(self) -> NoteCreate:
        if not (self.contact_id or self.company_id or self.deal_id):
            raise ValueError("A note must reference a contact, company or deal")
        return self


class NoteRead(BaseModel):
    id: str
    user_id: str
    content: str
    contact_id: str | None = None
    company_id: str | None = None
    deal_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
