"""Contact and company repository -- async CRUD, search and detail views.

RecordRepository follows the session_factory pattern. Contacts are read
with their company embed; detail views gather deals (with stage),
activities and notes that reference the record.
"""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator, Callable
from datetime import datetime, timezone
from typing import Any

import structlog
from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.crm.activities.repository import _model_to_activity, _model_to_note
from src.crm.activities.models import ActivityModel, NoteModel
from src.crm.deals.models import DealModel, StageModel
from src.crm.deals.repository import _model_to_deal, parse_id
from src.crm.errors import NotFoundError
from src.crm.records.models import CompanyModel, ContactModel
from src.crm.records.schemas import (
    CompanyCreate,
    CompanyDetail,
    CompanyRead,
    CompanyUpdate,
    ContactCreate,
    ContactDetail,
    ContactRead,
    ContactUpdate,
)
from src.crm.schemas.common import CompanyRef

logger = structlog.get_logger(__name__)


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _payload_values(data: Any, *, partial: bool) -> dict[str, Any]:
    """Dump a create/update schema to column values (JSON-safe nested data)."""
    return data.model_dump(mode="json", exclude_unset=partial)


# ── Serialization Helpers ───────────────────────────────────────────────────


def _model_to_company(model: CompanyModel) -> CompanyRead:
    return CompanyRead(
        id=str(model.id),
        user_id=str(model.user_id),
        name=model.name,
        domain=model.domain,
        industry=model.industry,
        size=model.size,
        phone=model.phone,
        website=model.website,
        address=model.address,
        logo_url=model.logo_url,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


def _model_to_contact(
    model: ContactModel, company: CompanyModel | None = None
) -> ContactRead:
    return ContactRead(
        id=str(model.id),
        user_id=str(model.user_id),
        first_name=model.first_name,
        last_name=model.last_name,
        email=model.email,
        phone=model.phone,
        company_id=str(model.company_id) if model.company_id else None,
        position=model.position,
        address=model.address,
        social_links=model.social_links,
        notes=model.notes,
        avatar_url=model.avatar_url,
        status=model.status,
        created_at=model.created_at,
        updated_at=model.updated_at,
        company=(
            CompanyRef(id=str(company.id), name=company.name)
            if company is not None
            else None
        ),
    )


def _contact_query(owner: uuid.UUID) -> Any:
    return (
        select(ContactModel, CompanyModel)
        .outerjoin(CompanyModel, CompanyModel.id == ContactModel.company_id)
        .where(ContactModel.user_id == owner)
    )


class RecordRepository:
    """Async CRUD for companies and contacts.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
    """

    def __init__(
        self, session_factory: Callable[..., AsyncGenerator[AsyncSession, None]]
    ) -> None:
        self._session_factory = session_factory

    async def _check_company(
        self, session: AsyncSession, owner: uuid.UUID, company_id: str | None
    ) -> uuid.UUID | None:
        if company_id is None:
            return None
        company_uuid = parse_id(company_id, "Company")
        stmt = select(CompanyModel.id).where(
            CompanyModel.user_id == owner, CompanyModel.id == company_uuid
        )
        if (await session.execute(stmt)).scalar_one_or_none() is None:
            raise NotFoundError("Company", company_id)
        return company_uuid

    # ── Companies ───────────────────────────────────────────────────────────

    async def create_company(self, user_id: str, data: CompanyCreate) -> CompanyRead:
        async for session in self._session_factory():
            model = CompanyModel(
                user_id=parse_id(user_id, "User"),
                **_payload_values(data, partial=False),
            )
            session.add(model)
            await session.commit()
            await session.refresh(model)
            return _model_to_company(model)

    async def get_company(self, user_id: str, company_id: str) -> CompanyRead | None:
        async for session in self._session_factory():
            stmt = select(CompanyModel).where(
                CompanyModel.user_id == parse_id(user_id, "User"),
                CompanyModel.id == parse_id(company_id, "Company"),
            )
            model = (await session.execute(stmt)).scalar_one_or_none()
            return _model_to_company(model) if model is not None else None

    async def list_companies(
        self, user_id: str, search: str | None = None
    ) -> list[CompanyRead]:
        """List companies newest first, optionally matching name or industry."""
        async for session in self._session_factory():
            stmt = select(CompanyModel).where(
                CompanyModel.user_id == parse_id(user_id, "User")
            )
            if search:
                pattern = f"%{_escape_like(search)}%"
                stmt = stmt.where(
                    or_(
                        CompanyModel.name.ilike(pattern),
                        CompanyModel.industry.ilike(pattern),
                    )
                )
            stmt = stmt.order_by(CompanyModel.created_at.desc())
            result = await session.execute(stmt)
            return [_model_to_company(m) for m in result.scalars().all()]

    async def update_company(
        self, user_id: str, company_id: str, data: CompanyUpdate
    ) -> CompanyRead:
        values = _payload_values(data, partial=True)
        if values.get("name", "") is None:
            values.pop("name")
        values["updated_at"] = datetime.now(timezone.utc)
        async for session in self._session_factory():
            stmt = select(CompanyModel).where(
                CompanyModel.user_id == parse_id(user_id, "User"),
                CompanyModel.id == parse_id(company_id, "Company"),
            )
            model = (await session.execute(stmt)).scalar_one_or_none()
            if model is None:
                raise NotFoundError("Company", company_id)
            for key, value in values.items():
                setattr(model, key, value)
            await session.commit()
            await session.refresh(model)
            return _model_to_company(model)

    async def delete_company(self, user_id: str, company_id: str) -> bool:
        async for session in self._session_factory():
            result = await session.execute(
                delete(CompanyModel).where(
                    CompanyModel.user_id == parse_id(user_id, "User"),
                    CompanyModel.id == parse_id(company_id, "Company"),
                )
            )
            await session.commit()
            return result.rowcount > 0

    async def get_company_detail(
        self, user_id: str, company_id: str
    ) -> CompanyDetail | None:
        """Company plus its contacts, deals, activities and notes."""
        owner = parse_id(user_id, "User")
        company_uuid = parse_id(company_id, "Company")
        async for session in self._session_factory():
            company = (
                await session.execute(
                    select(CompanyModel).where(
                        CompanyModel.user_id == owner, CompanyModel.id == company_uuid
                    )
                )
            ).scalar_one_or_none()
            if company is None:
                return None

            contacts = await session.execute(
                _contact_query(owner)
                .where(ContactModel.company_id == company_uuid)
                .order_by(ContactModel.created_at.desc())
            )
            deals = await session.execute(
                select(DealModel, StageModel)
                .join(StageModel, StageModel.id == DealModel.stage_id)
                .where(DealModel.user_id == owner, DealModel.company_id == company_uuid)
                .order_by(DealModel.created_at.desc())
            )
            activities = await session.execute(
                select(ActivityModel)
                .where(
                    ActivityModel.user_id == owner,
                    ActivityModel.company_id == company_uuid,
                )
                .order_by(ActivityModel.created_at.desc())
            )
            notes = await session.execute(
                select(NoteModel)
                .where(NoteModel.user_id == owner, NoteModel.company_id == company_uuid)
                .order_by(NoteModel.created_at.desc())
            )
            return CompanyDetail(
                company=_model_to_company(company),
                contacts=[_model_to_contact(*row) for row in contacts.all()],
                deals=[_model_to_deal(deal, stage) for deal, stage in deals.all()],
                activities=[_model_to_activity(m) for m in activities.scalars().all()],
                notes=[_model_to_note(m) for m in notes.scalars().all()],
            )

    # ── Contacts ────────────────────────────────────────────────────────────

    async def create_contact(self, user_id: str, data: ContactCreate) -> ContactRead:
        owner = parse_id(user_id, "User")
        values = _payload_values(data, partial=False)
        async for session in self._session_factory():
            values["company_id"] = await self._check_company(
                session, owner, data.company_id
            )
            model = ContactModel(user_id=owner, **values)
            session.add(model)
            await session.commit()
            row = (
                await session.execute(_contact_query(owner).where(ContactModel.id == model.id))
            ).one()
            return _model_to_contact(*row)

    async def get_contact(self, user_id: str, contact_id: str) -> ContactRead | None:
        async for session in self._session_factory():
            stmt = _contact_query(parse_id(user_id, "User")).where(
                ContactModel.id == parse_id(contact_id, "Contact")
            )
            row = (await session.execute(stmt)).first()
            return _model_to_contact(*row) if row is not None else None

    async def list_contacts(
        self,
        user_id: str,
        search: str | None = None,
        company_id: str | None = None,
    ) -> list[ContactRead]:
        """List contacts newest first, optionally matching name or email."""
        async for session in self._session_factory():
            stmt = _contact_query(parse_id(user_id, "User"))
            if search:
                pattern = f"%{_escape_like(search)}%"
                stmt = stmt.where(
                    or_(
                        ContactModel.first_name.ilike(pattern),
                        ContactModel.last_name.ilike(pattern),
                        ContactModel.email.ilike(pattern),
                    )
                )
            if company_id:
                stmt = stmt.where(
                    ContactModel.company_id == parse_id(company_id, "Company")
                )
            stmt = stmt.order_by(ContactModel.created_at.desc())
            result = await session.execute(stmt)
            return [_model_to_contact(*row) for row in result.all()]

    async def update_contact(
        self, user_id: str, contact_id: str, data: ContactUpdate
    ) -> ContactRead:
        owner = parse_id(user_id, "User")
        contact_uuid = parse_id(contact_id, "Contact")
        values = _payload_values(data, partial=True)
        for required in ("first_name", "last_name", "status"):
            if required in values and values[required] is None:
                values.pop(required)
        values["updated_at"] = datetime.now(timezone.utc)
        async for session in self._session_factory():
            if "company_id" in values:
                values["company_id"] = await self._check_company(
                    session, owner, values["company_id"]
                )
            result = await session.execute(
                update(ContactModel)
                .where(ContactModel.user_id == owner, ContactModel.id == contact_uuid)
                .values(**values)
            )
            if result.rowcount == 0:
                await session.rollback()
                raise NotFoundError("Contact", contact_id)
            await session.commit()
            row = (
                await session.execute(
                    _contact_query(owner).where(ContactModel.id == contact_uuid)
                )
            ).one()
            return _model_to_contact(*row)

    async def delete_contact(self, user_id: str, contact_id: str) -> bool:
        async for session in self._session_factory():
            result = await session.execute(
                delete(ContactModel).where(
                    ContactModel.user_id == parse_id(user_id, "User"),
                    ContactModel.id == parse_id(contact_id, "Contact"),
                )
            )
            await session.commit()
            return result.rowcount > 0

    async def count_contacts(self, user_id: str) -> int:
        async for session in self._session_factory():
            stmt = select(func.count(ContactModel.id)).where(
                ContactModel.user_id == parse_id(user_id, "User")
            )
            return int((await session.execute(stmt)).scalar_one())

    async def get_contact_detail(
        self, user_id: str, contact_id: str
    ) -> ContactDetail | None:
        """Contact plus its deals, activities and notes."""
        owner = parse_id(user_id, "User")
        contact_uuid = parse_id(contact_id, "Contact")
        async for session in self._session_factory():
            row = (
                await session.execute(
                    _contact_query(owner).where(ContactModel.id == contact_uuid)
                )
            ).first()
            if row is None:
                return None

            deals = await session.execute(
                select(DealModel, StageModel)
                .join(StageModel, StageModel.id == DealModel.stage_id)
                .where(DealModel.user_id == owner, DealModel.contact_id == contact_uuid)
                .order_by(DealModel.created_at.desc())
            )
            activities = await session.execute(
                select(ActivityModel)
                .where(
                    ActivityModel.user_id == owner,
                    ActivityModel.contact_id == contact_uuid,
                )
                .order_by(ActivityModel.created_at.desc())
            )
            notes = await session.execute(
                select(NoteModel)
                .where(NoteModel.user_id == owner, NoteModel.contact_id == contact_uuid)
                .order_by(NoteModel.created_at.desc())
            )
            return ContactDetail(
                contact=_model_to_contact(*row),
                deals=[_model_to_deal(deal, stage) for deal, stage in deals.all()],
                activities=[_model_to_activity(m) for m in activities.scalars().all()],
                notes=[_model_to_note(m) for m in notes.scalars().all()],
            )
