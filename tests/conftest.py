"""Test fixtures for the CRM API and services.

Provides:
- In-memory repositories standing in for the database-backed ones
- A PipelineService over the in-memory pipeline store
- A FastAPI app with the v1 router, repositories on app.state and
  authentication overridden to a fixed test user
- Async HTTP client bound to that app through ASGITransport
"""

from __future__ import annotations

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from src.crm.api.deps import get_current_user
from src.crm.api.v1.router import router as v1_router
from src.crm.dashboard.service import DashboardService
from src.crm.deals.pipeline import PipelineService
from src.crm.schemas.auth import UserRead
from tests.doubles import (
    USER_ID,
    InMemoryActivityRepository,
    InMemoryPipelineStore,
    InMemoryRecordRepository,
    InMemoryUserRepository,
)


@pytest.fixture
def store() -> InMemoryPipelineStore:
    return InMemoryPipelineStore()


@pytest.fixture
def pipeline(store) -> PipelineService:
    return PipelineService(store)


@pytest.fixture
def record_repo() -> InMemoryRecordRepository:
    return InMemoryRecordRepository()


@pytest.fixture
def activity_repo() -> InMemoryActivityRepository:
    return InMemoryActivityRepository()


@pytest.fixture
def user_repo() -> InMemoryUserRepository:
    return InMemoryUserRepository()


def _test_user() -> UserRead:
    return UserRead(id=USER_ID, email="owner@example.com", full_name="Test Owner")


@pytest.fixture
def app(store, pipeline, record_repo, activity_repo, user_repo) -> FastAPI:
    """Minimal app: v1 router, in-memory services, auth bypassed."""
    application = FastAPI()
    application.include_router(v1_router, prefix="/api/v1")

    application.state.pipeline_service = pipeline
    application.state.record_repository = record_repo
    application.state.activity_repository = activity_repo
    application.state.user_repository = user_repo
    application.state.dashboard_service = DashboardService(
        deals=store, records=record_repo, activities=activity_repo
    )

    application.dependency_overrides[get_current_user] = _test_user
    return application


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for testing the API."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
