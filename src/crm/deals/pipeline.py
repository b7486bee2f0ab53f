"""Pipeline business rules on top of DealRepository.

Owns everything the repository deliberately does not decide:
- which stage a new deal lands in when none is given
- how won/lost closes are recorded
- stage creation at the end of the pipeline, array-move reordering and
  dense renumbering after deletes
- the delete guard that refuses to drop a stage deals still reference
- grouping deals into the board's column view
- seeding the default pipeline for a new user

Positions are always kept dense and zero based (0..n-1).
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Protocol, TypeVar

import structlog

from src.crm.deals.schemas import (
    DEFAULT_PIPELINE,
    CloseOutcome,
    DealClose,
    DealCreate,
    DealFilter,
    DealRead,
    DealUpdate,
    PipelineColumn,
    PipelineView,
    StageCreate,
    StageRead,
    StageReorder,
    StageUpdate,
)
from src.crm.errors import (
    NoDefaultStageError,
    NotFoundError,
    StageInUseError,
    TerminalStageMissingError,
)

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class PipelineStore(Protocol):
    """Storage operations PipelineService needs (implemented by DealRepository)."""

    async def list_stages(self, user_id: str) -> list[StageRead]: ...

    async def get_stage(self, user_id: str, stage_id: str) -> StageRead | None: ...

    async def create_stage(
        self, user_id: str, data: StageCreate, position: int
    ) -> StageRead: ...

    async def update_stage(
        self, user_id: str, stage_id: str, data: StageUpdate
    ) -> StageRead: ...

    async def set_stage_positions(
        self, user_id: str, ordered_stage_ids: list[str]
    ) -> list[StageRead]: ...

    async def count_deals_in_stage(self, user_id: str, stage_id: str) -> int: ...

    async def delete_stage(self, user_id: str, stage_id: str) -> bool: ...

    async def create_deal(self, user_id: str, data: DealCreate) -> DealRead: ...

    async def get_deal(self, user_id: str, deal_id: str) -> DealRead | None: ...

    async def list_deals(
        self, user_id: str, filters: DealFilter | None = None
    ) -> list[DealRead]: ...

    async def update_deal(
        self, user_id: str, deal_id: str, fields: dict[str, Any]
    ) -> DealRead: ...

    async def move_deal(self, user_id: str, deal_id: str, stage_id: str) -> DealRead: ...

    async def delete_deal(self, user_id: str, deal_id: str) -> bool: ...


# ── Pure helpers ────────────────────────────────────────────────────────────


def array_move(items: list[T], from_index: int, to_index: int) -> list[T]:
    """Return a copy of items with the element at from_index moved to to_index.

    to_index is clamped to the list bounds.
    """
    result = list(items)
    if not result:
        return result
    to_index = max(0, min(to_index, len(result) - 1))
    element = result.pop(from_index)
    result.insert(to_index, element)
    return result


def default_stage(stages: list[StageRead]) -> StageRead | None:
    """Lowest-position stage that is neither won nor lost."""
    open_stages = [s for s in stages if not s.is_terminal]
    if not open_stages:
        return None
    return min(open_stages, key=lambda s: s.position)


def build_pipeline_view(stages: list[StageRead], deals: list[DealRead]) -> PipelineView:
    """Group deals into one column per stage, in stage position order.

    Deals whose stage is not in ``stages`` are not shown. Missing deal
    values count as 0 in the totals.
    """
    columns: list[PipelineColumn] = []
    for stage in sorted(stages, key=lambda s: s.position):
        in_stage = [d for d in deals if d.stage_id == stage.id]
        columns.append(
            PipelineColumn(
                stage=stage,
                deals=in_stage,
                count=len(in_stage),
                total_value=sum(d.value or 0.0 for d in in_stage),
            )
        )
    return PipelineView(
        columns=columns,
        total_value=sum(c.total_value for c in columns),
    )


# ── Service ─────────────────────────────────────────────────────────────────


class PipelineService:
    """Stage management and deal lifecycle for a single user's pipeline.

    Args:
        store: DealRepository (or any PipelineStore).
    """

    def __init__(self, store: PipelineStore) -> None:
        self._store = store

    # ── Stages ──────────────────────────────────────────────────────────────

    async def list_stages(self, user_id: str) -> list[StageRead]:
        return await self._store.list_stages(user_id)

    async def create_stage(self, user_id: str, data: StageCreate) -> StageRead:
        """Append a stage after the current last position."""
        stages = await self._store.list_stages(user_id)
        stage = await self._store.create_stage(user_id, data, position=len(stages))
        logger.info(
            "stages.created",
            user_id=user_id,
            stage_id=stage.id,
            role=stage.role.value,
            position=stage.position,
        )
        return stage

    async def update_stage(
        self, user_id: str, stage_id: str, data: StageUpdate
    ) -> StageRead:
        return await self._store.update_stage(user_id, stage_id, data)

    async def reorder_stage(self, user_id: str, move: StageReorder) -> list[StageRead]:
        """Move one stage to a new index and renumber every stage densely."""
        stages = await self._store.list_stages(user_id)
        ids = [s.id for s in stages]
        if move.stage_id not in ids:
            raise NotFoundError("Stage", move.stage_id)
        reordered = array_move(ids, ids.index(move.stage_id), move.new_index)
        if reordered == ids and all(s.position == i for i, s in enumerate(stages)):
            return stages
        result = await self._store.set_stage_positions(user_id, reordered)
        logger.info(
            "stages.reordered",
            user_id=user_id,
            stage_id=move.stage_id,
            new_index=reordered.index(move.stage_id),
        )
        return result

    async def delete_stage(self, user_id: str, stage_id: str) -> None:
        """Delete a stage that no deal references.

        Raises:
            NotFoundError: If the stage does not exist for this user.
            StageInUseError: If one or more deals are still in the stage.
        """
        stage = await self._store.get_stage(user_id, stage_id)
        if stage is None:
            raise NotFoundError("Stage", stage_id)

        deal_count = await self._store.count_deals_in_stage(user_id, stage_id)
        if deal_count > 0:
            logger.info(
                "stages.delete_refused",
                user_id=user_id,
                stage_id=stage_id,
                deal_count=deal_count,
            )
            raise StageInUseError(stage.name, deal_count)

        if not await self._store.delete_stage(user_id, stage_id):
            raise NotFoundError("Stage", stage_id)

        remaining = await self._store.list_stages(user_id)
        if any(s.position != i for i, s in enumerate(remaining)):
            await self._store.set_stage_positions(user_id, [s.id for s in remaining])
        logger.info("stages.deleted", user_id=user_id, stage_id=stage_id)

    async def seed_default_pipeline(self, user_id: str) -> list[StageRead]:
        """Create the default stages for a user that has none."""
        existing = await self._store.list_stages(user_id)
        if existing:
            return existing
        created = []
        for position, (name, role) in enumerate(DEFAULT_PIPELINE):
            created.append(
                await self._store.create_stage(
                    user_id, StageCreate(name=name, role=role), position=position
                )
            )
        logger.info("stages.default_pipeline_seeded", user_id=user_id, count=len(created))
        return created

    # ── Deals ───────────────────────────────────────────────────────────────

    async def create_deal(self, user_id: str, data: DealCreate) -> DealRead:
        """Create a deal, defaulting its stage to the first open stage.

        Raises:
            NoDefaultStageError: If no stage is given and none is open.
        """
        if data.stage_id is None:
            stage = default_stage(await self._store.list_stages(user_id))
            if stage is None:
                raise NoDefaultStageError()
            data = data.model_copy(update={"stage_id": stage.id})
        deal = await self._store.create_deal(user_id, data)
        logger.info("deals.created", user_id=user_id, deal_id=deal.id, stage_id=deal.stage_id)
        return deal

    async def get_deal(self, user_id: str, deal_id: str) -> DealRead:
        deal = await self._store.get_deal(user_id, deal_id)
        if deal is None:
            raise NotFoundError("Deal", deal_id)
        return deal

    async def list_deals(
        self, user_id: str, filters: DealFilter | None = None
    ) -> list[DealRead]:
        return await self._store.list_deals(user_id, filters)

    async def update_deal(self, user_id: str, deal_id: str, data: DealUpdate) -> DealRead:
        return await self._store.update_deal(
            user_id, deal_id, data.model_dump(exclude_unset=True)
        )

    async def move_deal(self, user_id: str, deal_id: str, stage_id: str) -> DealRead:
        """Reassign a deal to another stage (board drag-and-drop)."""
        if await self._store.get_stage(user_id, stage_id) is None:
            raise NotFoundError("Stage", stage_id)
        deal = await self._store.move_deal(user_id, deal_id, stage_id)
        logger.info("deals.moved", user_id=user_id, deal_id=deal_id, stage_id=stage_id)
        return deal

    async def close_deal(self, user_id: str, deal_id: str, data: DealClose) -> DealRead:
        """Move a deal into the won or lost stage and stamp closed_at.

        Raises:
            TerminalStageMissingError: If the user has no stage for the outcome.
        """
        stages = await self._store.list_stages(user_id)
        if data.outcome == CloseOutcome.WON:
            target = next((s for s in stages if s.is_won), None)
        else:
            target = next((s for s in stages if s.is_lost), None)
        if target is None:
            raise TerminalStageMissingError(data.outcome.value)

        fields: dict[str, Any] = {
            "stage_id": target.id,
            "closed_at": datetime.now(timezone.utc),
            # A win never carries a loss reason, including one from an earlier close.
            "close_reason": data.reason if data.outcome == CloseOutcome.LOST else None,
        }
        deal = await self._store.update_deal(user_id, deal_id, fields)
        logger.info(
            "deals.closed",
            user_id=user_id,
            deal_id=deal_id,
            outcome=data.outcome.value,
        )
        return deal

    async def delete_deal(self, user_id: str, deal_id: str) -> None:
        if not await self._store.delete_deal(user_id, deal_id):
            raise NotFoundError("Deal", deal_id)

    async def pipeline_view(self, user_id: str) -> PipelineView:
        stages = await self._store.list_stages(user_id)
        deals = await self._store.list_deals(user_id)
        return build_pipeline_view(stages, deals)
