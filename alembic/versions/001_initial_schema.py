"""Initial CRM schema: profiles, companies, contacts, stages, deals, activities, notes.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-17

Every owned table carries user_id referencing profiles with ON DELETE
CASCADE, so deleting an account removes everything it owns. Stage
positions are unique per user with a DEFERRABLE INITIALLY DEFERRED
constraint so a reorder can rewrite all positions in one transaction.
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

# revision identifiers, used by Alembic.
revision: str = "001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id_column() -> sa.Column:
    return sa.Column(
        "id",
        UUID(as_uuid=True),
        primary_key=True,
        server_default=sa.text("gen_random_uuid()"),
    )


def _owner_column() -> sa.Column:
    return sa.Column(
        "user_id",
        UUID(as_uuid=True),
        sa.ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
    )


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    op.execute('CREATE EXTENSION IF NOT EXISTS "pgcrypto"')

    # ── profiles ────────────────────────────────────────────────────────

    op.create_table(
        "profiles",
        _id_column(),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("full_name", sa.String(200), server_default=sa.text("''"), nullable=False),
        sa.Column("avatar_url", sa.String(500), nullable=True),
        sa.Column("hashed_password", sa.String(255), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        *_timestamps(),
    )

    # ── companies ───────────────────────────────────────────────────────

    op.create_table(
        "companies",
        _id_column(),
        _owner_column(),
        sa.Column("name", sa.String(300), nullable=False),
        sa.Column("domain", sa.String(255), nullable=True),
        sa.Column("industry", sa.String(100), nullable=True),
        sa.Column("size", sa.String(20), nullable=True),
        sa.Column("address", sa.JSON(), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("website", sa.String(500), nullable=True),
        sa.Column("logo_url", sa.String(500), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_companies_user_created", "companies", ["user_id", "created_at"])

    # ── contacts ────────────────────────────────────────────────────────

    op.create_table(
        "contacts",
        _id_column(),
        _owner_column(),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column(
            "company_id",
            UUID(as_uuid=True),
            sa.ForeignKey("companies.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("position", sa.String(200), nullable=True),
        sa.Column("address", sa.JSON(), nullable=True),
        sa.Column("social_links", sa.JSON(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("avatar_url", sa.String(500), nullable=True),
        sa.Column("status", sa.String(20), server_default=sa.text("'active'"), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_contacts_user_created", "contacts", ["user_id", "created_at"])
    op.create_index("ix_contacts_user_company", "contacts", ["user_id", "company_id"])

    # ── deal_stages ─────────────────────────────────────────────────────

    op.create_table(
        "deal_stages",
        _id_column(),
        _owner_column(),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("color", sa.String(20), server_default=sa.text("'#94a3b8'"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("is_won", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("is_lost", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.UniqueConstraint(
            "user_id",
            "position",
            name="uq_deal_stages_user_position",
            deferrable=True,
            initially="DEFERRED",
        ),
        sa.CheckConstraint("NOT (is_won AND is_lost)", name="ck_deal_stages_single_outcome"),
    )

    # ── deals ───────────────────────────────────────────────────────────

    op.create_table(
        "deals",
        _id_column(),
        _owner_column(),
        sa.Column("title", sa.String(300), nullable=False),
        sa.Column("value", sa.Float(), nullable=True),
        sa.Column(
            "stage_id",
            UUID(as_uuid=True),
            sa.ForeignKey("deal_stages.id"),
            nullable=False,
        ),
        sa.Column(
            "contact_id",
            UUID(as_uuid=True),
            sa.ForeignKey("contacts.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "company_id",
            UUID(as_uuid=True),
            sa.ForeignKey("companies.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("probability", sa.Float(), nullable=True),
        sa.Column("expected_close_date", sa.Date(), nullable=True),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("close_reason", sa.Text(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("value IS NULL OR value >= 0", name="ck_deals_value_non_negative"),
        sa.CheckConstraint(
            "probability IS NULL OR (probability >= 0 AND probability <= 100)",
            name="ck_deals_probability_range",
        ),
    )
    op.create_index("ix_deals_user_stage", "deals", ["user_id", "stage_id"])
    op.create_index("ix_deals_user_created", "deals", ["user_id", "created_at"])

    # ── activities ──────────────────────────────────────────────────────

    op.create_table(
        "activities",
        _id_column(),
        _owner_column(),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("title", sa.String(300), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "contact_id",
            UUID(as_uuid=True),
            sa.ForeignKey("contacts.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "company_id",
            UUID(as_uuid=True),
            sa.ForeignKey("companies.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "deal_id",
            UUID(as_uuid=True),
            sa.ForeignKey("deals.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_completed", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_activities_user_created", "activities", ["user_id", "created_at"])
    op.create_index(
        "ix_activities_user_type_due", "activities", ["user_id", "type", "due_date"]
    )

    # ── notes ───────────────────────────────────────────────────────────

    op.create_table(
        "notes",
        _id_column(),
        _owner_column(),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column(
            "contact_id",
            UUID(as_uuid=True),
            sa.ForeignKey("contacts.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "company_id",
            UUID(as_uuid=True),
            sa.ForeignKey("companies.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "deal_id",
            UUID(as_uuid=True),
            sa.ForeignKey("deals.id", ondelete="SET NULL"),
            nullable=True,
        ),
        *_timestamps(),
    )
    op.create_index("ix_notes_user_created", "notes", ["user_id", "created_at"])


def downgrade() -> None:
    op.drop_table("notes")
    op.drop_table("activities")
    op.drop_table("deals")
    op.drop_table("deal_stages")
    op.drop_table("contacts")
    op.drop_table("companies")
    op.drop_table("profiles")
