"""User repository -- account lookup, creation and profile edits."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable
from datetime import datetime, timezone

import structlog
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.crm.deals.repository import parse_id
from src.crm.errors import NotFoundError
from src.crm.models.user import User
from src.crm.schemas.auth import ProfileUpdate, UserInDB, UserRead

logger = structlog.get_logger(__name__)


def _model_to_user(model: User) -> UserInDB:
    return UserInDB(
        id=str(model.id),
        email=model.email,
        full_name=model.full_name or "",
        avatar_url=model.avatar_url,
        is_active=bool(model.is_active),
        created_at=model.created_at,
        updated_at=model.updated_at,
        hashed_password=model.hashed_password,
    )


class UserRepository:
    """Async access to the profiles table.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
    """

    def __init__(
        self, session_factory: Callable[..., AsyncGenerator[AsyncSession, None]]
    ) -> None:
        self._session_factory = session_factory

    async def get_by_email(self, email: str) -> UserInDB | None:
        async for session in self._session_factory():
            stmt = select(User).where(User.email == email.lower())
            model = (await session.execute(stmt)).scalar_one_or_none()
            return _model_to_user(model) if model is not None else None

    async def get_by_id(self, user_id: str) -> UserInDB | None:
        async for session in self._session_factory():
            stmt = select(User).where(User.id == parse_id(user_id, "User"))
            model = (await session.execute(stmt)).scalar_one_or_none()
            return _model_to_user(model) if model is not None else None

    async def create(self, email: str, hashed_password: str, full_name: str = "") -> UserInDB:
        async for session in self._session_factory():
            model = User(
                email=email.lower(),
                hashed_password=hashed_password,
                full_name=full_name,
            )
            session.add(model)
            await session.commit()
            await session.refresh(model)
            return _model_to_user(model)

    async def update_profile(self, user_id: str, data: ProfileUpdate) -> UserRead:
        async for session in self._session_factory():
            stmt = select(User).where(User.id == parse_id(user_id, "User"))
            model = (await session.execute(stmt)).scalar_one_or_none()
            if model is None:
                raise NotFoundError("User", user_id)
            values = data.model_dump(exclude_unset=True)
            if values.get("full_name", "") is None:
                values.pop("full_name")
            for key, value in values.items():
                setattr(model, key, value)
            model.updated_at = datetime.now(timezone.utc)
            await session.commit()
            await session.refresh(model)
            return UserRead.model_validate(_model_to_user(model).model_dump())

    async def delete(self, user_id: str) -> bool:
        """Delete the account; owned records go with it (ON DELETE CASCADE)."""
        async for session in self._session_factory():
            result = await session.execute(
                delete(User).where(User.id == parse_id(user_id, "User"))
            )
            await session.commit()
            return result.rowcount > 0
