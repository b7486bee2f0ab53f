"""Domain exceptions shared by repositories, services, the API and the board client.

Routers translate these into HTTPException status codes; the board
committer turns PersistenceError into a rollback.
"""

from __future__ import annotations


class CRMError(Exception):
    """Base class for all CRM domain errors."""


class NotFoundError(CRMError):
    """A record does not exist or is not owned by the requesting user."""

    def __init__(self, kind: str, record_id: str) -> None:
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind} not found: {record_id}")


class StageInUseError(CRMError):
    """Stage deletion refused because deals still reference the stage."""

    def __init__(self, stage_name: str, deal_count: int) -> None:
        self.stage_name = stage_name
        self.deal_count = deal_count
        noun = "deal" if deal_count == 1 else "deals"
        super().__init__(
            f'Cannot delete "{stage_name}": it has {deal_count} {noun}. '
            "Move or delete those deals first."
        )


class NoDefaultStageError(CRMError):
    """No non-terminal stage exists to receive a new deal."""

    def __init__(self) -> None:
        super().__init__("No open pipeline stage available; create a stage first")


class TerminalStageMissingError(CRMError):
    """Closing a deal requires a stage flagged won (or lost)."""

    def __init__(self, outcome: str) -> None:
        self.outcome = outcome
        super().__init__(f"No stage is marked as {outcome}; cannot close deal")


class ReassignmentInFlightError(CRMError):
    """A stage reassignment for this deal is still awaiting persistence."""

    def __init__(self, deal_id: str) -> None:
        self.deal_id = deal_id
        super().__init__(f"Deal {deal_id} already has a pending stage move")


class PersistenceError(CRMError):
    """A call to the CRM API failed (transport error or non-2xx response)."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class EmailTakenError(CRMError):
    """Registration refused because the email already has an account."""

    def __init__(self, email: str) -> None:
        self.email = email
        super().__init__(f"An account already exists for {email}")
