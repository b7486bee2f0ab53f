"""Pydantic schemas for the deals pipeline -- stages, deals, pipeline view.

Defines all structured types for the pipeline:
- Enums: StageRole, CloseOutcome
- Stages: StageCreate/Update/Read, StageReorder
- Deals: DealCreate/Update/Read/Filter, DealMove, DealClose
- Pipeline view: PipelineColumn, PipelineView

Stage display accents are derived from StageRole, which is chosen when the
stage is created and never inferred from the stage name.
"""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator, model_validator

from src.crm.schemas.common import CompanyRef, ContactRef, FormModel


# ── Enums ───────────────────────────────────────────────────────────────────


class StageRole(str, Enum):
    """Explicit role of a pipeline stage."""

    LEAD = "lead"
    QUALIFIED = "qualified"
    PROPOSAL = "proposal"
    NEGOTIATION = "negotiation"
    WON = "won"
    LOST = "lost"


class CloseOutcome(str, Enum):
    """Terminal outcome chosen when closing a deal."""

    WON = "won"
    LOST = "lost"


# Accent color per role (hex). Used for board column headers and badges.
STAGE_ROLE_ACCENTS: dict[StageRole, str] = {
    StageRole.LEAD: "#94a3b8",
    StageRole.QUALIFIED: "#3b82f6",
    StageRole.PROPOSAL: "#8b5cf6",
    StageRole.NEGOTIATION: "#f59e0b",
    StageRole.WON: "#10b981",
    StageRole.LOST: "#f43f5e",
}

# Default pipeline created for every new user, in position order.
DEFAULT_PIPELINE: list[tuple[str, StageRole]] = [
    ("Lead", StageRole.LEAD),
    ("Qualified", StageRole.QUALIFIED),
    ("Proposal", StageRole.PROPOSAL),
    ("Negotiation", StageRole.NEGOTIATION),
    ("Won", StageRole.WON),
    ("Lost", StageRole.LOST),
]

_HEX_COLOR = r"^#[0-9a-fA-F]{6}$"


# ── Stage Schemas ───────────────────────────────────────────────────────────


class StageCreate(FormModel):
    """Schema for creating a stage.

    is_won / is_lost default from the role. Supplying a flag that
    contradicts the role is a validation error.
    """

    name: str = Field(min_length=1, max_length=100)
    color: str | None = Field(default=None, pattern=_HEX_COLOR)
    role: StageRole
    is_won: bool | None = None
    is_lost: bool | None = None

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Stage name is required")
        return v

    @model_validator(mode="after")
    def _flags_match_role(self) -> StageCreate:
        expected_won = self.role == StageRole.WON
        expected_lost = self.role == StageRole.LOST
        if self.is_won is not None and self.is_won != expected_won:
            raise ValueError("is_won must be set exactly when role is 'won'")
        if self.is_lost is not None and self.is_lost != expected_lost:
            raise ValueError("is_lost must be set exactly when role is 'lost'")
        self.is_won = expected_won
        self.is_lost = expected_lost
        if self.color is None:
            self.color = STAGE_ROLE_ACCENTS[self.role]
        return self


class StageUpdate(FormModel):
    """Rename or recolor a stage. The role is fixed at creation."""

    name: str | None = Field(default=None, min_length=1, max_length=100)
    color: str | None = Field(default=None, pattern=_HEX_COLOR)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("Stage name is required")
        return v


class StageRead(BaseModel):
    """Schema for reading a stage (includes all persisted fields)."""

    id: str
    user_id: str
    name: str
    color: str
    position: int
    role: StageRole
    is_won: bool = False
    is_lost: bool = False
    created_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.is_won or self.is_lost

    @property
    def accent(self) -> str:
        return STAGE_ROLE_ACCENTS[self.role]


class StageReorder(BaseModel):
    """Move one stage to a new zero-based index."""

    stage_id: str
    new_index: int = Field(ge=0)


# ── Deal Schemas ────────────────────────────────────────────────────────────


class DealCreate(FormModel):
    """Schema for creating a deal. stage_id defaults to the first open stage."""

    title: str = Field(min_length=1, max_length=300)
    value: float | None = Field(default=None, ge=0)
    stage_id: str | None = None
    contact_id: str | None = None
    company_id: str | None = None
    probability: float | None = Field(default=None, ge=0, le=100)
    expected_close_date: date | None = None
    close_reason: str | None = None
    description: str | None = None

    @field_validator("title")
    @classmethod
    def _strip_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Deal title is required")
        return v


class DealUpdate(FormModel):
    """Partial update; only fields present in the payload are written."""

    title: str | None = Field(default=None, min_length=1, max_length=300)
    value: float | None = Field(default=None, ge=0)
    stage_id: str | None = None
    contact_id: str | None = None
    company_id: str | None = None
    probability: float | None = Field(default=None, ge=0, le=100)
    expected_close_date: date | None = None
    close_reason: str | None = None
    description: str | None = None


class DealMove(BaseModel):
    """Stage reassignment payload (board drag-and-drop)."""

    stage_id: str


class DealClose(FormModel):
    """Close a deal as won or lost. The reason is only kept for losses."""

    outcome: CloseOutcome
    reason: str | None = None


class DealRead(BaseModel):
    """Schema for reading a deal with its stage, contact and company embeds."""

    id: str
    user_id: str
    title: str
    value: float | None = None
    stage_id: str
    contact_id: str | None = None
    company_id: str | None = None
    probability: float | None = None
    expected_close_date: date | None = None
    closed_at: datetime | None = None
    close_reason: str | None = None
    description: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    stage: StageRead | None = None
    contact: ContactRef | None = None
    company: CompanyRef | None = None


class DealFilter(BaseModel):
    """Optional equality filters for listing deals."""

    stage_id: str | None = None
    contact_id: str | None = None
    company_id: str | None = None


# ── Pipeline View ───────────────────────────────────────────────────────────


class PipelineColumn(BaseModel):
    """One board column: a stage and the deals currently in it."""

    stage: StageRead
    deals: list[DealRead] = Field(default_factory=list)
    count: int = 0
    total_value: float = 0.0


class PipelineView(BaseModel):
    """All stages in position order with their deals."""

    columns: list[PipelineColumn] = Field(default_factory=list)
    total_value: float = 0.0
