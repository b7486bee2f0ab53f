"""Drag coordinator: pointer/keyboard drag events to a proposed stage move.

State machine: IDLE -> DRAGGING (deal picked up) -> HOVERING (over a column
or another deal) -> IDLE (drop or cancel). Hovering a deal implies that
deal's stage. Purely synchronous; the coordinator never mutates deals, it
only holds the board while a drag is active.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

import structlog

from src.crm.board.state import BoardState
from src.crm.errors import CRMError, NotFoundError

logger = structlog.get_logger(__name__)


class DragPhase(str, Enum):
    IDLE = "idle"
    DRAGGING = "dragging"
    HOVERING = "hovering"


class DragInProgressError(CRMError):
    """pick_up was called while another deal is being dragged."""

    def __init__(self, active_deal_id: str) -> None:
        self.active_deal_id = active_deal_id
        super().__init__(f"Deal {active_deal_id} is already being dragged")


@dataclass(frozen=True)
class ProposedMove:
    """Result of a drop: move deal_id from one stage to another."""

    deal_id: str
    from_stage_id: str
    to_stage_id: str

    @property
    def is_noop(self) -> bool:
        return self.from_stage_id == self.to_stage_id


class DragCoordinator:
    """Tracks the active deal and the stage it currently hovers."""

    def __init__(self, board: BoardState) -> None:
        self._board = board
        self._phase = DragPhase.IDLE
        self._active_deal_id: str | None = None
        self._hover_stage_id: str | None = None

    @property
    def phase(self) -> DragPhase:
        return self._phase

    @property
    def active_deal_id(self) -> str | None:
        return self._active_deal_id

    @property
    def hover_stage_id(self) -> str | None:
        return self._hover_stage_id

    def resolve_target(self, target_id: str | None) -> str | None:
        """Map a drop/hover target to a stage id.

        A stage id resolves to itself, a deal id to that deal's stage,
        anything else to None.
        """
        if target_id is None:
            return None
        if self._board.has_stage(target_id):
            return target_id
        deal = self._board.get_deal(target_id)
        if deal is not None:
            return deal.stage_id
        return None

    def pick_up(self, deal_id: str) -> None:
        if self._phase is not DragPhase.IDLE:
            raise DragInProgressError(self._active_deal_id or "")
        if self._board.get_deal(deal_id) is None:
            raise NotFoundError("Deal", deal_id)
        self._board.hold()
        self._active_deal_id = deal_id
        self._hover_stage_id = None
        self._phase = DragPhase.DRAGGING

    def hover(self, target_id: str | None) -> str | None:
        """Update the hovered target; returns the implied stage id."""
        if self._phase is DragPhase.IDLE:
            return None
        stage_id = self.resolve_target(target_id)
        self._hover_stage_id = stage_id
        self._phase = DragPhase.DRAGGING if stage_id is None else DragPhase.HOVERING
        return stage_id

    def drop(self, target_id: str | None) -> ProposedMove | None:
        """Finish the drag. None means nothing to do (no valid target)."""
        if self._phase is DragPhase.IDLE or self._active_deal_id is None:
            return None
        deal_id = self._active_deal_id
        to_stage_id = self.resolve_target(target_id)
        from_stage_id = self._board.stage_of(deal_id)
        self._reset()
        if to_stage_id is None:
            logger.debug("board.drop_outside_target", deal_id=deal_id)
            return None
        return ProposedMove(
            deal_id=deal_id, from_stage_id=from_stage_id, to_stage_id=to_stage_id
        )

    def cancel(self) -> None:
        if self._phase is not DragPhase.IDLE:
            self._reset()

    def _reset(self) -> None:
        self._phase = DragPhase.IDLE
        self._active_deal_id = None
        self._hover_stage_id = None
        self._board.release()
