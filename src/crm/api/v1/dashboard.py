"""Dashboard endpoint: headline numbers for the signed-in user."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from src.crm.api.deps import get_current_user, get_dashboard_service
from src.crm.dashboard.schemas import DashboardSummary
from src.crm.schemas.auth import UserRead

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("", response_model=DashboardSummary)
async def get_dashboard(
    user: UserRead = Depends(get_current_user),
    dashboard: Any = Depends(get_dashboard_service),
) -> DashboardSummary:
    return await dashboard.get_summary(user.id)
