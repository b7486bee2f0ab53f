"""Pipeline board session: state, drag and commit wired to a data source."""

from __future__ import annotations

from typing import Any, Protocol

import structlog

from src.crm.board.commit import Callback, Reassignment, ReassignmentCommitter
from src.crm.board.drag import DragCoordinator
from src.crm.board.state import BoardState
from src.crm.deals.schemas import DealRead, StageRead
from src.crm.errors import CRMError

logger = structlog.get_logger(__name__)


class BoardDataSource(Protocol):
    """What the board reads and writes (implemented by CRMClient)."""

    async def list_stages(self) -> list[StageRead]: ...

    async def list_deals(self) -> list[DealRead]: ...

    async def move_deal(self, deal_id: str, stage_id: str) -> Any: ...


class PipelineBoardSession:
    """One open pipeline board.

    The drag coordinator feeds drops to the committer; successful moves and
    refused refreshes lead to a revalidation against the data source.
    Persistence failures are rolled back and handed to ``on_error``.
    """

    def __init__(self, source: BoardDataSource, on_error: Callback | None = None) -> None:
        self._source = source
        self._revalidate_due = False
        self.board = BoardState(on_stale=self._mark_revalidate_due)
        self.drag = DragCoordinator(self.board)
        self.committer = ReassignmentCommitter(
            self.board,
            source,
            on_committed=self._on_committed,
            on_error=on_error,
        )

    def _mark_revalidate_due(self) -> None:
        self._revalidate_due = True

    async def _on_committed(self, handle: Reassignment) -> None:
        self._revalidate_due = True

    async def load(self) -> BoardState:
        """Fetch stages and deals and seed the board."""
        stages = await self._source.list_stages()
        deals = await self._source.list_deals()
        self.board.replace(deals, stages)
        logger.info("board.loaded", stages=len(stages), deals=len(deals))
        return self.board

    async def revalidate(self) -> bool:
        """Refetch deals; returns False if the board was held and kept its copy."""
        stages = await self._source.list_stages()
        deals = await self._source.list_deals()
        self._revalidate_due = False
        return self.board.replace(deals, stages)

    async def drop(self, target_id: str | None) -> Reassignment | None:
        """Finish the active drag and persist the move, if there is one.

        A failed follow-up refresh does not undo a saved move; it stays due
        and is retried by the next drop or an explicit revalidate().
        """
        # Keep the board held between the drag ending and the move beginning.
        self.board.hold()
        try:
            move = self.drag.drop(target_id)
            handle = (
                self.committer.begin(move.deal_id, move.to_stage_id)
                if move is not None
                else None
            )
        finally:
            self.board.release()

        if handle is not None:
            await self.committer.settle(handle)
        if self._revalidate_due and not self.board.is_held:
            try:
                await self.revalidate()
            except CRMError as exc:
                logger.warning("board.revalidation_failed", error=str(exc))
        return handle
