"""Dashboard response schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from src.crm.activities.schemas import ActivityRead


class StageDealCount(BaseModel):
    """Open deals in one non-terminal stage."""

    stage_id: str
    name: str
    color: str
    count: int = 0
    total_value: float = 0.0


class DashboardSummary(BaseModel):
    """Headline numbers for the signed-in user."""

    contact_count: int = 0
    active_deal_count: int = 0
    pipeline_value: float = 0.0
    activities_this_week: int = 0
    week_start: datetime
    week_end: datetime
    deals_by_stage: list[StageDealCount] = Field(default_factory=list)
    recent_activities: list[ActivityRead] = Field(default_factory=list)
    upcoming_tasks: list[ActivityRead] = Field(default_factory=list)
