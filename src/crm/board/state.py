"""Client-local pipeline board state.

BoardState owns the deals shown on the kanban board and the stage
definitions they are grouped by. It is created by the caller and handed to
the DragCoordinator and ReassignmentCommitter; nothing here is global.

While a drag or a reassignment is in progress the board is *held*: refreshes
from the data source are not applied, because the local copy is the one the
user is looking at. A refused refresh marks the board stale, and the last
release asks for a revalidation.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass

import structlog

from src.crm.deals.schemas import DealRead, StageRead
from src.crm.errors import NotFoundError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ColumnSummary:
    """Header numbers for one board column."""

    stage: StageRead
    count: int
    total_value: float


class BoardState:
    """Deals and stages for one pipeline board.

    Args:
        stages: Stage definitions (any order; kept sorted by position).
        deals: Initial deal list.
        on_stale: Called when the last hold is released after a refresh
            was refused, i.e. when the board should be revalidated.
    """

    def __init__(
        self,
        stages: Iterable[StageRead] = (),
        deals: Iterable[DealRead] = (),
        on_stale: Callable[[], None] | None = None,
    ) -> None:
        self._stages: list[StageRead] = sorted(stages, key=lambda s: s.position)
        self._deals: dict[str, DealRead] = {d.id: d for d in deals}
        self._on_stale = on_stale
        self._holds = 0
        self._stale = False

    # ── Read view ───────────────────────────────────────────────────────────

    @property
    def stages(self) -> list[StageRead]:
        return list(self._stages)

    @property
    def deals(self) -> list[DealRead]:
        return list(self._deals.values())

    @property
    def is_held(self) -> bool:
        return self._holds > 0

    @property
    def is_stale(self) -> bool:
        return self._stale

    def get_stage(self, stage_id: str) -> StageRead | None:
        return next((s for s in self._stages if s.id == stage_id), None)

    def has_stage(self, stage_id: str) -> bool:
        return self.get_stage(stage_id) is not None

    def get_deal(self, deal_id: str) -> DealRead | None:
        return self._deals.get(deal_id)

    def stage_of(self, deal_id: str) -> str:
        """Current stage id of a deal.

        Raises:
            NotFoundError: If the deal is not on the board.
        """
        deal = self._deals.get(deal_id)
        if deal is None:
            raise NotFoundError("Deal", deal_id)
        return deal.stage_id

    def group_by_stage(self) -> dict[str, list[DealRead]]:
        """Deals per stage id, keyed in stage position order.

        Every stage has an entry, empty or not. Deals pointing at a stage
        the board does not know are left out.
        """
        groups: dict[str, list[DealRead]] = {s.id: [] for s in self._stages}
        for deal in self._deals.values():
            if deal.stage_id in groups:
                groups[deal.stage_id].append(deal)
        return groups

    def column_summaries(self) -> list[ColumnSummary]:
        groups = self.group_by_stage()
        return [
            ColumnSummary(
                stage=stage,
                count=len(groups[stage.id]),
                total_value=sum(d.value or 0.0 for d in groups[stage.id]),
            )
            for stage in self._stages
        ]

    # ── Mutation ────────────────────────────────────────────────────────────

    def set_stage(self, deal_id: str, stage_id: str) -> DealRead:
        """Point a deal at another stage locally. Only that deal changes."""
        deal = self._deals.get(deal_id)
        if deal is None:
            raise NotFoundError("Deal", deal_id)
        updated = deal.model_copy(
            update={"stage_id": stage_id, "stage": self.get_stage(stage_id)}
        )
        self._deals[deal_id] = updated
        return updated

    def replace(
        self,
        deals: Iterable[DealRead],
        stages: Iterable[StageRead] | None = None,
    ) -> bool:
        """Swap in a fresh deal list (and optionally stages).

        Returns False, and marks the board stale, if the board is held.
        """
        if self._holds:
            self._stale = True
            logger.debug("board.refresh_deferred", holds=self._holds)
            return False
        self._deals = {d.id: d for d in deals}
        if stages is not None:
            self._stages = sorted(stages, key=lambda s: s.position)
        self._stale = False
        return True

    # ── Holds ───────────────────────────────────────────────────────────────

    def hold(self) -> None:
        """Freeze the board against refreshes (drag or commit in progress)."""
        self._holds += 1

    def release(self) -> bool:
        """Drop one hold. Returns True if a revalidation is now due."""
        if self._holds == 0:
            return False
        self._holds -= 1
        if self._holds == 0 and self._stale:
            self._stale = False
            logger.debug("board.revalidation_requested")
            if self._on_stale is not None:
                self._on_stale()
            return True
        return False
