"""Activity and note repository -- async CRUD for the activity timeline.

ActivityRepository follows the session_factory pattern. Activities are read
with contact/company/deal embeds. completed_at is stamped when an activity
is completed and cleared when it is reopened.
"""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator, Callable
from datetime import datetime, timezone
from typing import Any

import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.crm.activities.models import ActivityModel, NoteModel
from src.crm.activities.schemas import (
    ActivityCreate,
    ActivityFilter,
    ActivityRead,
    ActivityType,
    ActivityUpdate,
    NoteCreate,
    NoteRead,
)
from src.crm.deals.models import DealModel
from src.crm.deals.repository import parse_id
from src.crm.errors import NotFoundError
from src.crm.records.models import CompanyModel, ContactModel
from src.crm.schemas.common import CompanyRef, ContactRef, DealRef

logger = structlog.get_logger(__name__)

_REFERENCES = (
    ("contact_id", ContactModel, "Contact"),
    ("company_id", CompanyModel, "Company"),
    ("deal_id", DealModel, "Deal"),
)


# ── Serialization Helpers ───────────────────────────────────────────────────


def _model_to_activity(
    model: ActivityModel,
    contact: ContactModel | None = None,
    company: CompanyModel | None = None,
    deal: DealModel | None = None,
) -> ActivityRead:
    """Convert ActivityModel (plus optional embeds) to ActivityRead schema."""
    return ActivityRead(
        id=str(model.id),
        user_id=str(model.user_id),
        type=ActivityType(model.type),
        title=model.title,
        description=model.description,
        contact_id=str(model.contact_id) if model.contact_id else None,
        company_id=str(model.company_id) if model.company_id else None,
        deal_id=str(model.deal_id) if model.deal_id else None,
        due_date=model.due_date,
        is_completed=bool(model.is_completed),
        completed_at=model.completed_at,
        created_at=model.created_at,
        updated_at=model.updated_at,
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
        deal=DealRef(id=str(deal.id), title=deal.title) if deal is not None else None,
    )


def _model_to_note(model: NoteModel) -> NoteRead:
    return NoteRead(
        id=str(model.id),
        user_id=str(model.user_id),
        content=model.content,
        contact_id=str(model.contact_id) if model.contact_id else None,
        company_id=str(model.company_id) if model.company_id else None,
        deal_id=str(model.deal_id) if model.deal_id else None,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


def _activity_query(owner: uuid.UUID) -> Any:
    return (
        select(ActivityModel, ContactModel, CompanyModel, DealModel)
        .outerjoin(ContactModel, ContactModel.id == ActivityModel.contact_id)
        .outerjoin(CompanyModel, CompanyModel.id == ActivityModel.company_id)
        .outerjoin(DealModel, DealModel.id == ActivityModel.deal_id)
        .where(ActivityModel.user_id == owner)
    )


class ActivityRepository:
    """Async CRUD for activities, tasks and notes.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
    """

    def __init__(
        self, session_factory: Callable[..., AsyncGenerator[AsyncSession, None]]
    ) -> None:
        self._session_factory = session_factory

    async def _resolve_references(
        self, session: AsyncSession, owner: uuid.UUID, values: dict[str, Any]
    ) -> None:
        """Parse related ids in place and ensure the owner holds them."""
        for field, model_cls, kind in _REFERENCES:
            raw = values.get(field)
            if raw is None:
                continue
            ref = parse_id(raw, kind)
            stmt = select(model_cls.id).where(
                model_cls.user_id == owner, model_cls.id == ref
            )
            if (await session.execute(stmt)).scalar_one_or_none() is None:
                raise NotFoundError(kind, raw)
            values[field] = ref

    async def _load_activity(
        self, session: AsyncSession, owner: uuid.UUID, activity_id: uuid.UUID
    ) -> ActivityRead | None:
        stmt = _activity_query(owner).where(ActivityModel.id == activity_id)
        row = (await session.execute(stmt)).first()
        return _model_to_activity(*row) if row is not None else None

    # ── Activities ──────────────────────────────────────────────────────────

    async def create_activity(self, user_id: str, data: ActivityCreate) -> ActivityRead:
        owner = parse_id(user_id, "User")
        values = data.model_dump()
        values["type"] = data.type.value
        if data.is_completed:
            values["completed_at"] = datetime.now(timezone.utc)
        async for session in self._session_factory():
            await self._resolve_references(session, owner, values)
            model = ActivityModel(user_id=owner, **values)
            session.add(model)
            await session.commit()
            loaded = await self._load_activity(session, owner, model.id)
            if loaded is None:
                raise NotFoundError("Activity", str(model.id))
            return loaded

    async def get_activity(self, user_id: str, activity_id: str) -> ActivityRead | None:
        async for session in self._session_factory():
            return await self._load_activity(
                session, parse_id(user_id, "User"), parse_id(activity_id, "Activity")
            )

    async def list_activities(
        self, user_id: str, filters: ActivityFilter | None = None
    ) -> list[ActivityRead]:
        """List activities newest first."""
        async for session in self._session_factory():
            stmt = _activity_query(parse_id(user_id, "User"))
            if filters is not None:
                if filters.type is not None:
                    stmt = stmt.where(ActivityModel.type == filters.type.value)
                if filters.contact_id:
                    stmt = stmt.where(
                        ActivityModel.contact_id == parse_id(filters.contact_id, "Contact")
                    )
                if filters.company_id:
                    stmt = stmt.where(
                        ActivityModel.company_id == parse_id(filters.company_id, "Company")
                    )
                if filters.deal_id:
                    stmt = stmt.where(
                        ActivityModel.deal_id == parse_id(filters.deal_id, "Deal")
                    )
                if filters.created_from is not None:
                    stmt = stmt.where(ActivityModel.created_at >= filters.created_from)
                if filters.created_to is not None:
                    stmt = stmt.where(ActivityModel.created_at <= filters.created_to)
            stmt = stmt.order_by(ActivityModel.created_at.desc())
            if filters is not None and filters.limit is not None:
                stmt = stmt.limit(filters.limit)
            result = await session.execute(stmt)
            return [_model_to_activity(*row) for row in result.all()]

    async def list_tasks(
        self, user_id: str, *, include_completed: bool = True, limit: int | None = None
    ) -> list[ActivityRead]:
        """Tasks ordered by due date, undated tasks last."""
        async for session in self._session_factory():
            stmt = _activity_query(parse_id(user_id, "User")).where(
                ActivityModel.type == ActivityType.TASK.value
            )
            if not include_completed:
                stmt = stmt.where(ActivityModel.is_completed.is_(False))
            stmt = stmt.order_by(
                ActivityModel.due_date.asc().nulls_last(),
                ActivityModel.created_at.desc(),
            )
            if limit is not None:
                stmt = stmt.limit(limit)
            result = await session.execute(stmt)
            return [_model_to_activity(*row) for row in result.all()]

    async def count_activities(
        self, user_id: str, created_from: datetime, created_to: datetime
    ) -> int:
        """Count activities created in [created_from, created_to]."""
        async for session in self._session_factory():
            stmt = select(func.count(ActivityModel.id)).where(
                ActivityModel.user_id == parse_id(user_id, "User"),
                ActivityModel.created_at >= created_from,
                ActivityModel.created_at <= created_to,
            )
            return int((await session.execute(stmt)).scalar_one())

    async def update_activity(
        self, user_id: str, activity_id: str, data: ActivityUpdate
    ) -> ActivityRead:
        owner = parse_id(user_id, "User")
        activity_uuid = parse_id(activity_id, "Activity")
        values = data.model_dump(exclude_unset=True)
        for required in ("type", "title"):
            if required in values and values[required] is None:
                values.pop(required)
        if "type" in values:
            values["type"] = ActivityType(values["type"]).value
        async for session in self._session_factory():
            model = (
                await session.execute(
                    select(ActivityModel).where(
                        ActivityModel.user_id == owner, ActivityModel.id == activity_uuid
                    )
                )
            ).scalar_one_or_none()
            if model is None:
                raise NotFoundError("Activity", activity_id)
            await self._resolve_references(session, owner, values)
            for key, value in values.items():
                setattr(model, key, value)
            model.updated_at = datetime.now(timezone.utc)
            await session.commit()
            loaded = await self._load_activity(session, owner, activity_uuid)
            if loaded is None:
                raise NotFoundError("Activity", activity_id)
            return loaded

    async def set_completion(
        self, user_id: str, activity_id: str, is_completed: bool
    ) -> ActivityRead:
        """Mark done (stamp completed_at) or reopen (clear completed_at)."""
        owner = parse_id(user_id, "User")
        activity_uuid = parse_id(activity_id, "Activity")
        async for session in self._session_factory():
            model = (
                await session.execute(
                    select(ActivityModel).where(
                        ActivityModel.user_id == owner, ActivityModel.id == activity_uuid
                    )
                )
            ).scalar_one_or_none()
            if model is None:
                raise NotFoundError("Activity", activity_id)
            now = datetime.now(timezone.utc)
            model.is_completed = is_completed
            model.completed_at = now if is_completed else None
            model.updated_at = now
            await session.commit()
            logger.info(
                "activities.completion_set",
                user_id=user_id,
                activity_id=activity_id,
                is_completed=is_completed,
            )
            loaded = await self._load_activity(session, owner, activity_uuid)
            if loaded is None:
                raise NotFoundError("Activity", activity_id)
            return loaded

    async def delete_activity(self, user_id: str, activity_id: str) -> bool:
        async for session in self._session_factory():
            result = await session.execute(
                delete(ActivityModel).where(
                    ActivityModel.user_id == parse_id(user_id, "User"),
                    ActivityModel.id == parse_id(activity_id, "Activity"),
                )
            )
            await session.commit()
            return result.rowcount > 0

    # ── Notes ───────────────────────────────────────────────────────────────

    async def create_note(self, user_id: str, data: NoteCreate) -> NoteRead:
        owner = parse_id(user_id, "User")
        values = data.model_dump()
        async for session in self._session_factory():
            await self._resolve_references(session, owner, values)
            model = NoteModel(user_id=owner, **values)
            session.add(model)
            await session.commit()
            await session.refresh(model)
            return _model_to_note(model)

    async def list_notes(
        self,
        user_id: str,
        contact_id: str | None = None,
        company_id: str | None = None,
        deal_id: str | None = None,
    ) -> list[NoteRead]:
        """List notes newest first, filtered by whichever targets are given."""
        async for session in self._session_factory():
            stmt = select(NoteModel).where(NoteModel.user_id == parse_id(user_id, "User"))
            if contact_id:
                stmt = stmt.where(NoteModel.contact_id == parse_id(contact_id, "Contact"))
            if company_id:
                stmt = stmt.where(NoteModel.company_id == parse_id(company_id, "Company"))
            if deal_id:
                stmt = stmt.where(NoteModel.deal_id == parse_id(deal_id, "Deal"))
            stmt = stmt.order_by(NoteModel.created_at.desc())
            result = await session.execute(stmt)
            return [_model_to_note(m) for m in result.scalars().all()]

    async def delete_note(self, user_id: str, note_id: str) -> bool:
        async for session in self._session_factory():
            result = await session.execute(
                delete(NoteModel).where(
                    NoteModel.user_id == parse_id(user_id, "User"),
                    NoteModel.id == parse_id(note_id, "Note"),
                )
            )
            await session.commit()
            return result.rowcount > 0
