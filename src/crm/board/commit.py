"""Optimistic stage reassignment with rollback.

ReassignmentCommitter turns a proposed move into a local board change and a
single persistence call:

    begin()   snapshot the deal's stage, rewrite it locally -> PENDING
    settle()  one call to persister.move_deal()
              success -> COMMITTED, on_committed callback (revalidation)
              failure -> snapshot restored -> ROLLED_BACK, on_error callback
              cancelled -> snapshot restored -> ROLLED_BACK, re-raised

Each deal is tracked independently. A deal with a pending reassignment
refuses another one until it settles; other deals may move meanwhile. Only
the dragged deal is ever written, on commit and on rollback. Nothing is
retried.
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol, Union

import structlog

from src.crm.board.state import BoardState
from src.crm.errors import NotFoundError, ReassignmentInFlightError

logger = structlog.get_logger(__name__)


class CommitState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


class StageMovePersister(Protocol):
    """Anything that can persist a deal's new stage (CRMClient, a repository...)."""

    async def move_deal(self, deal_id: str, stage_id: str) -> Any: ...


@dataclass
class Reassignment:
    """Handle for one deal's stage move.

    previous_stage_id is the snapshot taken before the optimistic write;
    error is set once the move is rolled back.
    """

    deal_id: str
    previous_stage_id: str
    target_stage_id: str
    state: CommitState = CommitState.PENDING
    error: BaseException | None = None

    @property
    def settled(self) -> bool:
        return self.state in (CommitState.COMMITTED, CommitState.ROLLED_BACK)


Callback = Callable[..., Union[Awaitable[None], None]]


async def _invoke(callback: Callback | None, *args: Any) -> None:
    if callback is None:
        return
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


class ReassignmentCommitter:
    """Applies stage moves optimistically and reconciles them with the server.

    Args:
        board: Board whose deals are rewritten.
        persister: Object with ``async move_deal(deal_id, stage_id)``.
        on_committed: Called with the handle after a successful save.
        on_error: Called with the handle and the exception after a rollback.
    """

    def __init__(
        self,
        board: BoardState,
        persister: StageMovePersister,
        *,
        on_committed: Callback | None = None,
        on_error: Callback | None = None,
    ) -> None:
        self._board = board
        self._persister = persister
        self._on_committed = on_committed
        self._on_error = on_error
        self._pending: dict[str, Reassignment] = {}
        self._last: dict[str, Reassignment] = {}

    def state_of(self, deal_id: str) -> CommitState:
        """Commit state of the most recent reassignment of a deal."""
        handle = self._pending.get(deal_id) or self._last.get(deal_id)
        return handle.state if handle is not None else CommitState.IDLE

    def pending(self, deal_id: str) -> Reassignment | None:
        return self._pending.get(deal_id)

    @property
    def has_pending(self) -> bool:
        return bool(self._pending)

    def begin(self, deal_id: str, target_stage_id: str) -> Reassignment | None:
        """Apply the move locally. Returns None when the deal is already there.

        Raises:
            NotFoundError: If the deal or the target stage is not on the board.
            ReassignmentInFlightError: If this deal already has a pending move.
        """
        if deal_id in self._pending:
            raise ReassignmentInFlightError(deal_id)
        current = self._board.stage_of(deal_id)
        if current == target_stage_id:
            return None
        if not self._board.has_stage(target_stage_id):
            raise NotFoundError("Stage", target_stage_id)

        handle = Reassignment(
            deal_id=deal_id,
            previous_stage_id=current,
            target_stage_id=target_stage_id,
        )
        self._board.hold()
        self._board.set_stage(deal_id, target_stage_id)
        self._pending[deal_id] = handle
        logger.debug(
            "board.reassignment_pending",
            deal_id=deal_id,
            from_stage_id=current,
            to_stage_id=target_stage_id,
        )
        return handle

    async def settle(self, handle: Reassignment) -> Reassignment:
        """Persist a pending move exactly once and resolve its state.

        If the call is cancelled the move is rolled back before the
        cancellation propagates; ``on_error`` is not invoked in that case.
        """
        if handle.settled:
            return handle
        try:
            await self._persister.move_deal(handle.deal_id, handle.target_stage_id)
        except Exception as exc:
            self._roll_back(handle, exc)
            await _invoke(self._on_error, handle, exc)
            return handle
        except BaseException as exc:
            self._roll_back(handle, exc)
            raise

        handle.state = CommitState.COMMITTED
        self._finish(handle)
        logger.info(
            "board.reassignment_committed",
            deal_id=handle.deal_id,
            stage_id=handle.target_stage_id,
        )
        await _invoke(self._on_committed, handle)
        return handle

    async def commit(self, deal_id: str, target_stage_id: str) -> Reassignment | None:
        """begin() followed by settle(). None for a same-stage drop."""
        handle = self.begin(deal_id, target_stage_id)
        if handle is None:
            return None
        return await self.settle(handle)

    def _finish(self, handle: Reassignment) -> None:
        self._pending.pop(handle.deal_id, None)
        self._last[handle.deal_id] = handle
        self._board.release()

    def _roll_back(self, handle: Reassignment, exc: BaseException) -> None:
        if self._board.get_deal(handle.deal_id) is not None:
            self._board.set_stage(handle.deal_id, handle.previous_stage_id)
        handle.state = CommitState.ROLLED_BACK
        handle.error = exc
        self._finish(handle)
        logger.warning(
            "board.reassignment_rolled_back",
            deal_id=handle.deal_id,
            restored_stage_id=handle.previous_stage_id,
            error=str(exc) or type(exc).__name__,
        )
