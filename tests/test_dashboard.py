"""Tests for dashboard aggregation: week bounds, summarize and the endpoint."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from src.crm.activities.schemas import ActivityType
from src.crm.dashboard.service import (
    RECENT_ACTIVITY_LIMIT,
    UPCOMING_TASK_LIMIT,
    summarize,
    week_bounds,
)
from tests.doubles import default_stages, make_activity, make_deal

# A Wednesday.
NOW = datetime(2026, 3, 11, 15, 30, tzinfo=timezone.utc)


class TestWeekBounds:
    def test_monday_to_sunday(self):
        start, end = week_bounds(NOW)
        assert start == datetime(2026, 3, 9, tzinfo=timezone.utc)
        assert end == datetime(2026, 3, 15, 23, 59, 59, 999999, tzinfo=timezone.utc)

    def test_on_monday_midnight(self):
        start, _ = week_bounds(datetime(2026, 3, 9, tzinfo=timezone.utc))
        assert start == datetime(2026, 3, 9, tzinfo=timezone.utc)

    def test_sunday_belongs_to_previous_monday(self):
        start, _ = week_bounds(datetime(2026, 3, 15, 23, 0, tzinfo=timezone.utc))
        assert start == datetime(2026, 3, 9, tzinfo=timezone.utc)


class TestSummarize:
    def test_active_deals_exclude_won_and_lost(self):
        stages = {s.name: s for s in default_stages()}
        deals = [
            make_deal("A", stages["Lead"], 1000.0),
            make_deal("B", stages["Proposal"], None),
            make_deal("C", stages["Won"], 5000.0),
            make_deal("D", stages["Lost"], 700.0),
        ]

        summary = summarize(
            contact_count=4,
            stages=list(stages.values()),
            deals=deals,
            activities_this_week=3,
            recent_activities=[],
            upcoming_tasks=[],
            now=NOW,
        )

        assert summary.contact_count == 4
        assert summary.active_deal_count == 2
        assert summary.pipeline_value == 1000.0
        assert [s.name for s in summary.deals_by_stage] == [
            "Lead",
            "Qualified",
            "Proposal",
            "Negotiation",
        ]
        assert summary.deals_by_stage[0].count == 1
        assert summary.deals_by_stage[0].total_value == 1000.0

    def test_lists_are_capped(self):
        activities = [make_activity(f"A{i}", ActivityType.CALL) for i in range(15)]
        tasks = [make_activity(f"T{i}") for i in range(8)]

        summary = summarize(
            contact_count=0,
            stages=[],
            deals=[],
            activities_this_week=0,
            recent_activities=activities,
            upcoming_tasks=tasks,
            now=NOW,
        )

        assert len(summary.recent_activities) == RECENT_ACTIVITY_LIMIT
        assert len(summary.upcoming_tasks) == UPCOMING_TASK_LIMIT
        assert summary.pipeline_value == 0.0


class TestDashboardEndpoint:
    @pytest.mark.asyncio
    async def test_summary_for_current_user(self, client, store, activity_repo):
        stages = {s.name: s for s in default_stages()}
        for stage in stages.values():
            store.add_stage(stage)
        store.add_deal(make_deal("Open", stages["Negotiation"], 2500.0))
        store.add_deal(make_deal("Closed", stages["Won"], 9000.0))
        activity_repo.add(make_activity("Call", ActivityType.CALL))
        activity_repo.add(
            make_activity(
                "Last month",
                ActivityType.EMAIL,
                created_at=datetime.now(timezone.utc) - timedelta(days=40),
            )
        )
        activity_repo.add(make_activity("Open task"))
        activity_repo.add(make_activity("Done task", is_completed=True))

        response = await client.get("/api/v1/dashboard")

        assert response.status_code == 200
        data = response.json()
        assert data["active_deal_count"] == 1
        assert data["pipeline_value"] == 2500.0
        assert data["activities_this_week"] == 3
        assert [t["title"] for t in data["upcoming_tasks"]] == ["Open task"]
        assert len(data["recent_activities"]) == 4
