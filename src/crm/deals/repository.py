"""Pipeline repository -- async CRUD for stages and deals.

Provides DealRepository with the session_factory callable pattern used by
every repository in the service. Handles serialization between Pydantic
schemas and SQLAlchemy models, including the stage/contact/company embeds
returned with each deal.

All methods take user_id as first argument; rows owned by another user
behave exactly like missing rows. Business rules (default stage, delete
guard, close semantics, reorder) live in PipelineService, not here.
"""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator, Callable
from datetime import datetime, timezone
from typing import Any

import structlog
from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.crm.deals.models import DealModel, StageModel
from src.crm.deals.schemas import (
    DealCreate,
    DealFilter,
    DealRead,
    StageCreate,
    StageRead,
    StageRole,
    StageUpdate,
)
from src.crm.errors import NotFoundError
from src.crm.records.models import CompanyModel, ContactModel
from src.crm.schemas.common import CompanyRef, ContactRef

logger = structlog.get_logger(__name__)

# Columns a partial update may never null out.
_NON_NULLABLE_DEAL_FIELDS = frozenset({"title", "stage_id"})
_DEAL_UUID_FIELDS = frozenset({"stage_id", "contact_id", "company_id"})


def parse_id(value: str, kind: str) -> uuid.UUID:
    """Parse a UUID string; malformed ids are reported as not found."""
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise NotFoundError(kind, value)


# ── Serialization Helpers ───────────────────────────────────────────────────


def _model_to_stage(model: StageModel) -> StageRead:
    """Convert StageModel to StageRead schema."""
    return StageRead(
        id=str(model.id),
        user_id=str(model.user_id),
        name=model.name,
        color=model.color,
        position=model.position,
        role=StageRole(model.role),
        is_won=bool(model.is_won),
        is_lost=bool(model.is_lost),
        created_at=model.created_at,
    )


def _model_to_deal(
    model: DealModel,
    stage: StageModel | None = None,
    contact: ContactModel | None = None,
    company: CompanyModel | None = None,
) -> DealRead:
    """Convert DealModel (plus optional embeds) to DealRead schema."""
    return DealRead(
        id=str(model.id),
        user_id=str(model.user_id),
        title=model.title,
        value=model.value,
        stage_id=str(model.stage_id),
        contact_id=str(model.contact_id) if model.contact_id else None,
        company_id=str(model.company_id) if model.company_id else None,
        probability=model.probability,
        expected_close_date=model.expected_close_date,
        closed_at=model.closed_at,
        close_reason=model.close_reason,
        description=model.description,
        created_at=model.created_at,
        updated_at=model.updated_at,
        stage=_model_to_stage(stage) if stage is not None else None,
        contact=(
            ContactRef(
                id=str(contact.id),
                first_name=contact.first_name,
                last_name=contact.last_name,
                email=contact.email,
                avatar_url=contact.avatar_url,
            )
            if contact is not None
            else None
        ),
        company=(
            CompanyRef(id=str(company.id), name=company.name)
            if company is not None
            else None
        ),
    )


def _deal_with_embeds_query(user_id: uuid.UUID) -> Any:
    """SELECT deal, stage, contact, company for one user."""
    return (
        select(DealModel, StageModel, ContactModel, CompanyModel)
        .join(StageModel, StageModel.id == DealModel.stage_id)
        .outerjoin(ContactModel, ContactModel.id == DealModel.contact_id)
        .outerjoin(CompanyModel, CompanyModel.id == DealModel.company_id)
        .where(DealModel.user_id == user_id)
    )


# ── Repository ──────────────────────────────────────────────────────────────


class DealRepository:
    """Async CRUD operations for pipeline stages and deals.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
    """

    def __init__(
        self, session_factory: Callable[..., AsyncGenerator[AsyncSession, None]]
    ) -> None:
        self._session_factory = session_factory

    # ── Stages ──────────────────────────────────────────────────────────────

    async def list_stages(self, user_id: str) -> list[StageRead]:
        """List a user's stages ordered by position."""
        async for session in self._session_factory():
            stmt = (
                select(StageModel)
                .where(StageModel.user_id == parse_id(user_id, "User"))
                .order_by(StageModel.position.asc())
            )
            result = await session.execute(stmt)
            return [_model_to_stage(m) for m in result.scalars().all()]

    async def get_stage(self, user_id: str, stage_id: str) -> StageRead | None:
        """Get a stage by ID, or None if missing or not owned."""
        async for session in self._session_factory():
            stmt = select(StageModel).where(
                StageModel.user_id == parse_id(user_id, "User"),
                StageModel.id == parse_id(stage_id, "Stage"),
            )
            result = await session.execute(stmt)
            model = result.scalar_one_or_none()
            return _model_to_stage(model) if model is not None else None

    async def create_stage(
        self, user_id: str, data: StageCreate, position: int
    ) -> StageRead:
        """Insert a stage at the given position."""
        async for session in self._session_factory():
            model = StageModel(
                user_id=parse_id(user_id, "User"),
                name=data.name,
                color=data.color,
                position=position,
                role=data.role.value,
                is_won=bool(data.is_won),
                is_lost=bool(data.is_lost),
            )
            session.add(model)
            await session.commit()
            await session.refresh(model)
            return _model_to_stage(model)

    async def update_stage(
        self, user_id: str, stage_id: str, data: StageUpdate
    ) -> StageRead:
        """Rename / recolor a stage.

        Raises:
            NotFoundError: If the stage does not exist for this user.
        """
        async for session in self._session_factory():
            stmt = select(StageModel).where(
                StageModel.user_id == parse_id(user_id, "User"),
                StageModel.id == parse_id(stage_id, "Stage"),
            )
            result = await session.execute(stmt)
            model = result.scalar_one_or_none()
            if model is None:
                raise NotFoundError("Stage", stage_id)
            for key, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
                setattr(model, key, value)
            await session.commit()
            await session.refresh(model)
            return _model_to_stage(model)

    async def set_stage_positions(
        self, user_id: str, ordered_stage_ids: list[str]
    ) -> list[StageRead]:
        """Rewrite positions so stage i in the list gets position i.

        All updates happen in one transaction; the unique position
        constraint is checked at commit.
        """
        owner = parse_id(user_id, "User")
        async for session in self._session_factory():
            for index, stage_id in enumerate(ordered_stage_ids):
                await session.execute(
                    update(StageModel)
                    .where(
                        StageModel.user_id == owner,
                        StageModel.id == parse_id(stage_id, "Stage"),
                    )
                    .values(position=index)
                )
            await session.commit()
            result = await session.execute(
                select(StageModel)
                .where(StageModel.user_id == owner)
                .order_by(StageModel.position.asc())
            )
            return [_model_to_stage(m) for m in result.scalars().all()]

    async def count_deals_in_stage(self, user_id: str, stage_id: str) -> int:
        """Count deals that reference a stage."""
        async for session in self._session_factory():
            stmt = select(func.count(DealModel.id)).where(
                DealModel.user_id == parse_id(user_id, "User"),
                DealModel.stage_id == parse_id(stage_id, "Stage"),
            )
            result = await session.execute(stmt)
            return int(result.scalar_one())

    async def delete_stage(self, user_id: str, stage_id: str) -> bool:
        """Delete a stage. Returns False if it did not exist."""
        async for session in self._session_factory():
            result = await session.execute(
                delete(StageModel).where(
                    StageModel.user_id == parse_id(user_id, "User"),
                    StageModel.id == parse_id(stage_id, "Stage"),
                )
            )
            await session.commit()
            return result.rowcount > 0

    # ── Deals ───────────────────────────────────────────────────────────────

    async def _check_references(
        self, session: AsyncSession, owner: uuid.UUID, values: dict[str, Any]
    ) -> None:
        """Ensure referenced stage/contact/company rows belong to the owner."""
        checks = (
            ("stage_id", StageModel, "Stage"),
            ("contact_id", ContactModel, "Contact"),
            ("company_id", CompanyModel, "Company"),
        )
        for field, model_cls, kind in checks:
            ref = values.get(field)
            if ref is None:
                continue
            stmt = select(model_cls.id).where(
                model_cls.user_id == owner, model_cls.id == ref
            )
            if (await session.execute(stmt)).scalar_one_or_none() is None:
                raise NotFoundError(kind, str(ref))

    async def _load_deal(
        self, session: AsyncSession, owner: uuid.UUID, deal_id: uuid.UUID
    ) -> DealRead | None:
        stmt = _deal_with_embeds_query(owner).where(DealModel.id == deal_id)
        row = (await session.execute(stmt)).first()
        if row is None:
            return None
        return _model_to_deal(*row)

    async def create_deal(self, user_id: str, data: DealCreate) -> DealRead:
        """Create a deal. data.stage_id must already be resolved.

        Raises:
            NotFoundError: If the stage, contact or company is not owned by the user.
        """
        owner = parse_id(user_id, "User")
        values: dict[str, Any] = {
            "stage_id": parse_id(data.stage_id, "Stage") if data.stage_id else None,
            "contact_id": parse_id(data.contact_id, "Contact") if data.contact_id else None,
            "company_id": parse_id(data.company_id, "Company") if data.company_id else None,
        }
        async for session in self._session_factory():
            await self._check_references(session, owner, values)
            model = DealModel(
                user_id=owner,
                title=data.title,
                value=data.value,
                probability=data.probability,
                expected_close_date=data.expected_close_date,
                close_reason=data.close_reason,
                description=data.description,
                **values,
            )
            session.add(model)
            await session.commit()
            loaded = await self._load_deal(session, owner, model.id)
            if loaded is None:
                raise NotFoundError("Deal", str(model.id))
            return loaded

    async def get_deal(self, user_id: str, deal_id: str) -> DealRead | None:
        """Get a deal with embeds, or None if missing or not owned."""
        async for session in self._session_factory():
            return await self._load_deal(
                session, parse_id(user_id, "User"), parse_id(deal_id, "Deal")
            )

    async def list_deals(
        self, user_id: str, filters: DealFilter | None = None
    ) -> list[DealRead]:
        """List deals newest first with optional equality filters."""
        async for session in self._session_factory():
            stmt = _deal_with_embeds_query(parse_id(user_id, "User"))
            if filters is not None:
                if filters.stage_id:
                    stmt = stmt.where(DealModel.stage_id == parse_id(filters.stage_id, "Stage"))
                if filters.contact_id:
                    stmt = stmt.where(
                        DealModel.contact_id == parse_id(filters.contact_id, "Contact")
                    )
                if filters.company_id:
                    stmt = stmt.where(
                        DealModel.company_id == parse_id(filters.company_id, "Company")
                    )
            stmt = stmt.order_by(DealModel.created_at.desc())
            result = await session.execute(stmt)
            return [_model_to_deal(*row) for row in result.all()]

    async def update_deal(
        self, user_id: str, deal_id: str, fields: dict[str, Any]
    ) -> DealRead:
        """Write the given columns and stamp updated_at.

        Raises:
            NotFoundError: If the deal (or a newly referenced record) is not owned.
        """
        owner = parse_id(user_id, "User")
        deal_uuid = parse_id(deal_id, "Deal")
        values: dict[str, Any] = {}
        for key, value in fields.items():
            if key in _NON_NULLABLE_DEAL_FIELDS and value is None:
                continue
            if key in _DEAL_UUID_FIELDS and value is not None:
                value = parse_id(value, key.removesuffix("_id").capitalize())
            values[key] = value
        values["updated_at"] = datetime.now(timezone.utc)

        async for session in self._session_factory():
            await self._check_references(session, owner, values)
            result = await session.execute(
                update(DealModel)
                .where(DealModel.user_id == owner, DealModel.id == deal_uuid)
                .values(**values)
            )
            if result.rowcount == 0:
                await session.rollback()
                raise NotFoundError("Deal", deal_id)
            await session.commit()
            loaded = await self._load_deal(session, owner, deal_uuid)
            if loaded is None:
                raise NotFoundError("Deal", deal_id)
            return loaded

    async def move_deal(self, user_id: str, deal_id: str, stage_id: str) -> DealRead:
        """Persist a stage reassignment (stage_id + updated_at)."""
        return await self.update_deal(user_id, deal_id, {"stage_id": stage_id})

    async def delete_deal(self, user_id: str, deal_id: str) -> bool:
        """Delete a deal. Returns False if it did not exist."""
        async for session in self._session_factory():
            result = await session.execute(
                delete(DealModel).where(
                    DealModel.user_id == parse_id(user_id, "User"),
                    DealModel.id == parse_id(deal_id, "Deal"),
                )
            )
            await session.commit()
            return result.rowcount > 0
