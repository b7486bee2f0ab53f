"""V1 API router -- aggregates all v1 endpoint routers."""

from __future__ import annotations

from fastapi import APIRouter

from src.crm.api.v1 import (
    activities,
    auth,
    companies,
    contacts,
    dashboard,
    deals,
    health,
    profile,
    stages,
)

router = APIRouter()

router.include_router(health.router)
router.include_router(auth.router)
router.include_router(profile.router)
router.include_router(companies.router)
router.include_router(contacts.router)
router.include_router(stages.router)
router.include_router(deals.router)
router.include_router(activities.router)
router.include_router(dashboard.router)
