"""V1 API router -- aggregates all v1 endpoint routers."""

from __future__ import annotations

from fastapi import APIRouter

from src.crm.api.v1 import activities, contacts, dashboard, data, deals, health

router = APIRouter(prefix="/api/v1")

router.include_router(health.router)
router.include_router(contacts.router)
router.include_router(deals.router)
router.include_router(activities.router)
router.include_router(dashboard.router)
router.include_router(data.router)
