"""Dashboard aggregation.

Collects counts from the record, pipeline and activity repositories and
folds them into a DashboardSummary. The arithmetic lives in ``summarize``
so it can be exercised without storage.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import structlog

from src.crm.activities.repository import ActivityRepository
from src.crm.activities.schemas import ActivityFilter, ActivityRead
from src.crm.dashboard.schemas import DashboardSummary, StageDealCount
from src.crm.deals.repository import DealRepository
from src.crm.deals.schemas import DealRead, StageRead
from src.crm.records.repository import RecordRepository

logger = structlog.get_logger(__name__)

RECENT_ACTIVITY_LIMIT = 10
UPCOMING_TASK_LIMIT = 5


def week_bounds(now: datetime) -> tuple[datetime, datetime]:
    """Monday 00:00:00 through Sunday 23:59:59.999999 (UTC) of now's week."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    now = now.astimezone(timezone.utc)
    start = (now - timedelta(days=now.weekday())).replace(
        hour=0, minute=0, second=0, microsecond=0
    )
    end = start + timedelta(days=7) - timedelta(microseconds=1)
    return start, end


def summarize(
    *,
    contact_count: int,
    stages: list[StageRead],
    deals: list[DealRead],
    activities_this_week: int,
    recent_activities: list[ActivityRead],
    upcoming_tasks: list[ActivityRead],
    now: datetime,
) -> DashboardSummary:
    """Build the summary from already-loaded data.

    A deal is active when its stage is neither won nor lost. Deals whose
    stage is unknown are ignored.
    """
    open_stages = sorted(
        (s for s in stages if not s.is_terminal), key=lambda s: s.position
    )
    open_ids = {s.id for s in open_stages}
    active = [d for d in deals if d.stage_id in open_ids]

    by_stage = []
    for stage in open_stages:
        in_stage = [d for d in active if d.stage_id == stage.id]
        by_stage.append(
            StageDealCount(
                stage_id=stage.id,
                name=stage.name,
                color=stage.color,
                count=len(in_stage),
                total_value=sum(d.value or 0.0 for d in in_stage),
            )
        )

    week_start, week_end = week_bounds(now)
    return DashboardSummary(
        contact_count=contact_count,
        active_deal_count=len(active),
        pipeline_value=sum(d.value or 0.0 for d in active),
        activities_this_week=activities_this_week,
        week_start=week_start,
        week_end=week_end,
        deals_by_stage=by_stage,
        recent_activities=recent_activities[:RECENT_ACTIVITY_LIMIT],
        upcoming_tasks=upcoming_tasks[:UPCOMING_TASK_LIMIT],
    )


class DashboardService:
    """Loads everything the dashboard shows for one user."""

    def __init__(
        self,
        deals: DealRepository,
        records: RecordRepository,
        activities: ActivityRepository,
    ) -> None:
        self._deals = deals
        self._records = records
        self._activities = activities

    async def get_summary(self, user_id: str, now: datetime | None = None) -> DashboardSummary:
        now = now or datetime.now(timezone.utc)
        week_start, week_end = week_bounds(now)

        summary = summarize(
            contact_count=await self._records.count_contacts(user_id),
            stages=await self._deals.list_stages(user_id),
            deals=await self._deals.list_deals(user_id),
            activities_this_week=await self._activities.count_activities(
                user_id, week_start, week_end
            ),
            recent_activities=await self._activities.list_activities(
                user_id, ActivityFilter(limit=RECENT_ACTIVITY_LIMIT)
            ),
            upcoming_tasks=await self._activities.list_tasks(
                user_id, include_completed=False, limit=UPCOMING_TASK_LIMIT
            ),
            now=now,
        )
        logger.debug(
            "dashboard.summary_built",
            user_id=user_id,
            active_deals=summary.active_deal_count,
        )
        return summary
