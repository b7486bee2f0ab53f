"""Tests for PipelineService and the pure pipeline helpers.

Covers the stage delete guard, dense renumbering, array-move reordering,
default stage placement for new deals, won/lost closing, the pipeline view
and default pipeline seeding. Uses InMemoryPipelineStore.
"""

from __future__ import annotations

import pytest

from src.crm.deals.pipeline import array_move, build_pipeline_view, default_stage
from src.crm.deals.schemas import (
    CloseOutcome,
    DealClose,
    DealCreate,
    DealUpdate,
    StageCreate,
    StageReorder,
    StageRole,
)
from src.crm.errors import (
    NoDefaultStageError,
    NotFoundError,
    StageInUseError,
    TerminalStageMissingError,
)
from tests.doubles import OTHER_USER_ID, USER_ID, default_stages, make_deal, make_stage


def _seed(store, stages=None):
    stages = stages if stages is not None else default_stages()
    for stage in stages:
        store.add_stage(stage)
    return {s.name: s for s in stages}


# ── Pure helpers ────────────────────────────────────────────────────────────


class TestArrayMove:
    def test_moves_forward(self):
        assert array_move(["a", "b", "c", "d"], 0, 2) == ["b", "c", "a", "d"]

    def test_moves_backward(self):
        assert array_move(["a", "b", "c", "d"], 3, 1) == ["a", "d", "b", "c"]

    def test_clamps_target_index(self):
        assert array_move(["a", "b", "c"], 0, 10) == ["b", "c", "a"]

    def test_does_not_mutate_input(self):
        items = ["a", "b", "c"]
        array_move(items, 0, 2)
        assert items == ["a", "b", "c"]

    def test_empty_list(self):
        assert array_move([], 0, 0) == []


class TestDefaultStage:
    def test_lowest_open_stage(self):
        stages = default_stages()
        assert default_stage(stages).name == "Lead"

    def test_skips_terminal_stages(self):
        stages = [
            make_stage("Won", 0, StageRole.WON),
            make_stage("Proposal", 1, StageRole.PROPOSAL),
        ]
        assert default_stage(stages).name == "Proposal"

    def test_none_when_only_terminal(self):
        stages = [make_stage("Won", 0, StageRole.WON), make_stage("Lost", 1, StageRole.LOST)]
        assert default_stage(stages) is None


class TestBuildPipelineView:
    def test_groups_by_stage_in_position_order(self):
        lead = make_stage("Lead", 1)
        proposal = make_stage("Proposal", 0, StageRole.PROPOSAL)
        deals = [
            make_deal("A", lead, 100.0),
            make_deal("B", lead, None),
            make_deal("C", proposal, 50.0),
        ]

        view = build_pipeline_view([lead, proposal], deals)

        assert [c.stage.name for c in view.columns] == ["Proposal", "Lead"]
        assert view.columns[1].count == 2
        assert view.columns[1].total_value == 100.0
        assert view.total_value == 150.0

    def test_empty_stage_still_has_column(self):
        lead = make_stage("Lead", 0)
        view = build_pipeline_view([lead], [])
        assert len(view.columns) == 1
        assert view.columns[0].count == 0


# ── Stages ──────────────────────────────────────────────────────────────────


class TestStageManagement:
    @pytest.mark.asyncio
    async def test_create_stage_appends_at_end(self, store, pipeline):
        _seed(store)

        stage = await pipeline.create_stage(
            USER_ID, StageCreate(name="Demo", role=StageRole.QUALIFIED)
        )

        assert stage.position == 6
        assert stage.color == "#3b82f6"
        assert stage.is_won is False and stage.is_lost is False

    @pytest.mark.asyncio
    async def test_reorder_renumbers_densely(self, store, pipeline):
        stages = _seed(store)

        result = await pipeline.reorder_stage(
            USER_ID, StageReorder(stage_id=stages["Negotiation"].id, new_index=1)
        )

        assert [s.name for s in result] == [
            "Lead",
            "Negotiation",
            "Qualified",
            "Proposal",
            "Won",
            "Lost",
        ]
        assert [s.position for s in result] == [0, 1, 2, 3, 4, 5]

    @pytest.mark.asyncio
    async def test_reorder_unknown_stage(self, store, pipeline):
        _seed(store)
        with pytest.raises(NotFoundError):
            await pipeline.reorder_stage(
                USER_ID, StageReorder(stage_id="missing", new_index=0)
            )

    @pytest.mark.asyncio
    async def test_delete_refused_while_deals_reference_stage(self, store, pipeline):
        stages = _seed(store)
        negotiation = stages["Negotiation"]
        for title in ("D1", "D2", "D3"):
            store.add_deal(make_deal(title, negotiation, 1000.0))

        with pytest.raises(StageInUseError) as exc_info:
            await pipeline.delete_stage(USER_ID, negotiation.id)

        assert exc_info.value.deal_count == 3
        assert "3" in str(exc_info.value)
        assert "Negotiation" in str(exc_info.value)
        assert negotiation.id in store.stages
        assert await store.count_deals_in_stage(USER_ID, negotiation.id) == 3

    @pytest.mark.asyncio
    async def test_delete_single_deal_message(self, store, pipeline):
        stages = _seed(store)
        store.add_deal(make_deal("Only", stages["Lead"]))

        with pytest.raises(StageInUseError) as exc_info:
            await pipeline.delete_stage(USER_ID, stages["Lead"].id)

        assert "1 deal." in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_delete_empty_stage_renumbers_the_rest(self, store, pipeline):
        stages = _seed(store)

        await pipeline.delete_stage(USER_ID, stages["Qualified"].id)

        remaining = await store.list_stages(USER_ID)
        assert [s.name for s in remaining] == [
            "Lead",
            "Proposal",
            "Negotiation",
            "Won",
            "Lost",
        ]
        assert [s.position for s in remaining] == [0, 1, 2, 3, 4]

    @pytest.mark.asyncio
    async def test_delete_unknown_stage(self, store, pipeline):
        _seed(store)
        with pytest.raises(NotFoundError):
            await pipeline.delete_stage(USER_ID, "missing")

    @pytest.mark.asyncio
    async def test_delete_other_users_stage_is_not_found(self, store, pipeline):
        foreign = store.add_stage(make_stage("Lead", 0, user_id=OTHER_USER_ID))
        with pytest.raises(NotFoundError):
            await pipeline.delete_stage(USER_ID, foreign.id)
        assert foreign.id in store.stages

    @pytest.mark.asyncio
    async def test_seed_default_pipeline(self, store, pipeline):
        created = await pipeline.seed_default_pipeline(USER_ID)

        assert [s.name for s in created] == [
            "Lead",
            "Qualified",
            "Proposal",
            "Negotiation",
            "Won",
            "Lost",
        ]
        assert [s.position for s in created] == list(range(6))
        assert [s.name for s in created if s.is_won] == ["Won"]
        assert [s.name for s in created if s.is_lost] == ["Lost"]

    @pytest.mark.asyncio
    async def test_seed_is_skipped_when_stages_exist(self, store, pipeline):
        _seed(store, [make_stage("Inbox", 0)])
        result = await pipeline.seed_default_pipeline(USER_ID)
        assert [s.name for s in result] == ["Inbox"]
        assert len(store.stages) == 1


# ── Deals ───────────────────────────────────────────────────────────────────


class TestDealLifecycle:
    @pytest.mark.asyncio
    async def test_create_deal_defaults_to_first_open_stage(self, store, pipeline):
        _seed(store)

        deal = await pipeline.create_deal(USER_ID, DealCreate(title="Website redesign"))

        assert deal.stage is not None
        assert deal.stage.name == "Lead"

    @pytest.mark.asyncio
    async def test_create_deal_without_open_stage(self, store, pipeline):
        _seed(store, [make_stage("Won", 0, StageRole.WON)])
        with pytest.raises(NoDefaultStageError):
            await pipeline.create_deal(USER_ID, DealCreate(title="Nowhere"))

    @pytest.mark.asyncio
    async def test_update_only_writes_present_fields(self, store, pipeline):
        stages = _seed(store)
        deal = store.add_deal(make_deal("Retainer", stages["Lead"], 500.0))

        updated = await pipeline.update_deal(
            USER_ID, deal.id, DealUpdate(probability=40)
        )

        assert updated.probability == 40
        assert updated.value == 500.0
        assert updated.title == "Retainer"

    @pytest.mark.asyncio
    async def test_move_deal(self, store, pipeline):
        stages = _seed(store)
        deal = store.add_deal(make_deal("D1", stages["Lead"]))
        before = deal.updated_at

        moved = await pipeline.move_deal(USER_ID, deal.id, stages["Proposal"].id)

        assert moved.stage_id == stages["Proposal"].id
        assert moved.updated_at >= before

    @pytest.mark.asyncio
    async def test_move_deal_to_unknown_stage(self, store, pipeline):
        stages = _seed(store)
        deal = store.add_deal(make_deal("D1", stages["Lead"]))
        with pytest.raises(NotFoundError):
            await pipeline.move_deal(USER_ID, deal.id, "missing")
        assert store.deals[deal.id].stage_id == stages["Lead"].id

    @pytest.mark.asyncio
    async def test_close_won_ignores_reason(self, store, pipeline):
        stages = _seed(store)
        deal = store.add_deal(make_deal("D1", stages["Negotiation"]))

        closed = await pipeline.close_deal(
            USER_ID, deal.id, DealClose(outcome=CloseOutcome.WON, reason="great fit")
        )

        assert closed.stage_id == stages["Won"].id
        assert closed.closed_at is not None
        assert closed.close_reason is None

    @pytest.mark.asyncio
    async def test_close_lost_keeps_reason(self, store, pipeline):
        stages = _seed(store)
        deal = store.add_deal(make_deal("D1", stages["Proposal"]))

        closed = await pipeline.close_deal(
            USER_ID, deal.id, DealClose(outcome=CloseOutcome.LOST, reason="budget")
        )

        assert closed.stage_id == stages["Lost"].id
        assert closed.close_reason == "budget"

    @pytest.mark.asyncio
    async def test_reopened_win_clears_loss_reason(self, store, pipeline):
        stages = _seed(store)
        deal = store.add_deal(make_deal("D1", stages["Proposal"]))
        await pipeline.close_deal(
            USER_ID, deal.id, DealClose(outcome=CloseOutcome.LOST, reason="budget")
        )

        closed = await pipeline.close_deal(
            USER_ID, deal.id, DealClose(outcome=CloseOutcome.WON)
        )

        assert closed.stage_id == stages["Won"].id
        assert closed.close_reason is None

    @pytest.mark.asyncio
    async def test_close_without_terminal_stage(self, store, pipeline):
        lead = store.add_stage(make_stage("Lead", 0))
        deal = store.add_deal(make_deal("D1", lead))
        with pytest.raises(TerminalStageMissingError):
            await pipeline.close_deal(
                USER_ID, deal.id, DealClose(outcome=CloseOutcome.WON)
            )

    @pytest.mark.asyncio
    async def test_get_and_delete_missing_deal(self, pipeline):
        with pytest.raises(NotFoundError):
            await pipeline.get_deal(USER_ID, "missing")
        with pytest.raises(NotFoundError):
            await pipeline.delete_deal(USER_ID, "missing")

    @pytest.mark.asyncio
    async def test_pipeline_view_is_per_user(self, store, pipeline):
        stages = _seed(store)
        store.add_deal(make_deal("Mine", stages["Lead"], 10.0))
        foreign_stage = store.add_stage(make_stage("Lead", 0, user_id=OTHER_USER_ID))
        store.add_deal(make_deal("Theirs", foreign_stage, 99.0, user_id=OTHER_USER_ID))

        view = await pipeline.pipeline_view(USER_ID)

        assert len(view.columns) == 6
        assert view.total_value == 10.0
        assert [d.title for d in view.columns[0].deals] == ["Mine"]
