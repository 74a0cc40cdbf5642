"""Dashboard endpoint -- aggregate metrics across all three collections."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from src.crm.api.deps import get_services
from src.crm.config import get_settings
from src.crm.records.service import CRMServices
from src.crm.views.metrics import DashboardMetrics, load_dashboard

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


class DashboardResponse(DashboardMetrics):
    """Dashboard metrics plus the display preferences they are shown with."""

    company_name: str = ""
    currency: str = "USD"


@router.get("", response_model=DashboardResponse)
async def get_dashboard(services: CRMServices = Depends(get_services)) -> DashboardResponse:
    """Load contacts, deals and activities concurrently and aggregate them."""
    settings = get_settings()
    metrics = await load_dashboard(services)
    return DashboardResponse(
        **metrics.model_dump(),
        company_name=settings.COMPANY_NAME,
        currency=settings.CURRENCY,
    )
