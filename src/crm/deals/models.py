"""Pipeline persistence models -- stages and the deals that sit in them.

Two SQLAlchemy models owned by a user:
- StageModel: Ordered pipeline column with an explicit role and won/lost flags
- DealModel: Pipeline item that always belongs to exactly one stage

Stage positions are dense and zero-based per user. The (user_id, position)
unique constraint is deferred to commit time so a reorder can rewrite every
position inside one transaction. Deals reference their stage
without a cascade, so the database refuses to orphan them; the pipeline
service counts dependents first so the refusal can name the blocking count.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from src.crm.core.database import Base


class StageModel(Base):
    """Pipeline column.

    The role column replaces name-based inference of display accents: it is
    fixed when the stage is created. is_won and is_lost mark terminal stages
    and are never both set.
    """

    __tablename__ = "deal_stages"
    __table_args__ = (
        UniqueConstraint(
            "user_id",
            "position",
            name="uq_deal_stages_user_position",
            deferrable=True,
            initially="DEFERRED",
        ),
        CheckConstraint("NOT (is_won AND is_lost)", name="ck_deal_stages_single_outcome"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    color: Mapped[str] = mapped_column(
        String(20), default="#94a3b8", server_default=text("'#94a3b8'")
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    is_won: Mapped[bool] = mapped_column(Boolean, default=False, server_default=text("false"))
    is_lost: Mapped[bool] = mapped_column(Boolean, default=False, server_default=text("false"))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )


class DealModel(Base):
    """Pipeline item with value, probability and optional counterparties.

    closed_at and close_reason are stamped by the close (won/lost) action;
    close_reason is only kept for losses.
    """

    __tablename__ = "deals"
    __table_args__ = (
        Index("ix_deals_user_stage", "user_id", "stage_id"),
        Index("ix_deals_user_created", "user_id", "created_at"),
        CheckConstraint("value IS NULL OR value >= 0", name="ck_deals_value_non_negative"),
        CheckConstraint(
            "probability IS NULL OR (probability >= 0 AND probability <= 100)",
            name="ck_deals_probability_range",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    value: Mapped[float | None] = mapped_column(Float, nullable=True)
    stage_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("deal_stages.id"),
        nullable=False,
    )
    contact_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("contacts.id", ondelete="SET NULL"),
        nullable=True,
    )
    company_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("companies.id", ondelete="SET NULL"),
        nullable=True,
    )
    probability: Mapped[float | None] = mapped_column(Float, nullable=True)
    expected_close_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    closed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    close_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        onupdate=func.now(),
        nullable=True,
    )
