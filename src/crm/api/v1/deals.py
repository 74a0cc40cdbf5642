"""REST API endpoints for deals and the sales pipeline.

Provides CRUD over the deal service, the pipeline board (deals grouped by
stage with per-stage rollups), and stage transitions: an explicit move to
any stage, or one step forward/back along the pipeline chain.
"""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from src.crm.api.deps import get_services, http_error
from src.crm.records.errors import CRMError
from src.crm.records.schemas import Deal
from src.crm.records.service import CRMServices
from src.crm.records.validation import validate_deal
from src.crm.views.filters import group_deals_by_stage
from src.crm.views.metrics import StageRollup, pipeline_value, stage_rollup

router = APIRouter(prefix="/deals", tags=["deals"])


# ── Response Schemas ─────────────────────────────────────────────────────────


class PipelineResponse(BaseModel):
    """Pipeline board: deals per stage column plus rollups."""

    stages: dict[str, list[Deal]] = Field(default_factory=dict)
    rollups: list[StageRollup] = Field(default_factory=list)
    total_value: float = 0.0


# ── Request Schemas ──────────────────────────────────────────────────────────


class CreateDealRequest(BaseModel):
    """Request body for creating a deal.

    ``stage`` and ``probability`` fall back to the configured defaults.
    """

    title: str = ""
    value: float | None = None
    stage: str | None = None
    contact_id: int | None = None
    probability: int | None = None
    expected_close: date | None = None
    tags: list[str] = Field(default_factory=list)


class UpdateDealRequest(BaseModel):
    """Request body for updating a deal (all fields optional)."""

    title: str | None = None
    value: float | None = None
    stage: str | None = None
    contact_id: int | None = None
    probability: int | None = None
    expected_close: date | None = None
    tags: list[str] | None = None


class StageChangeRequest(BaseModel):
    """Request body for moving a deal to a stage."""

    stage: str
    probability: int | None = Field(default=None, ge=0, le=100)


# ── Endpoints ────────────────────────────────────────────────────────────────


@router.get("", response_model=list[Deal])
async def list_deals(services: CRMServices = Depends(get_services)) -> list[Deal]:
    return await services.deals.get_all()


@router.get("/pipeline", response_model=PipelineResponse)
async def get_pipeline(services: CRMServices = Depends(get_services)) -> PipelineResponse:
    """Open pipeline board; Closed Lost deals are not shown as a column."""
    deals = await services.deals.get_all()
    columns = group_deals_by_stage(deals)
    return PipelineResponse(
        stages={stage.value: stage_deals for stage, stage_deals in columns.items()},
        rollups=stage_rollup(deals),
        total_value=pipeline_value(deals),
    )


@router.post("", response_model=Deal, status_code=status.HTTP_201_CREATED)
async def create_deal(
    body: CreateDealRequest,
    services: CRMServices = Depends(get_services),
) -> Deal:
    """Create a deal after the form checks pass."""
    data = body.model_dump()
    try:
        validate_deal(data)
        return await services.deals.create(data)
    except CRMError as exc:
        raise http_error(exc) from exc


@router.get("/{deal_id}", response_model=Deal)
async def get_deal(
    deal_id: int,
    services: CRMServices = Depends(get_services),
) -> Deal:
    try:
        return await services.deals.get_by_id(deal_id)
    except CRMError as exc:
        raise http_error(exc) from exc


@router.patch("/{deal_id}", response_model=Deal)
async def update_deal(
    deal_id: int,
    body: UpdateDealRequest,
    services: CRMServices = Depends(get_services),
) -> Deal:
    """Merge the fields present in the body; only those fields are validated."""
    changes = body.model_dump(exclude_unset=True)
    try:
        validate_deal(changes, partial=True)
        return await services.deals.update(deal_id, changes)
    except CRMError as exc:
        raise http_error(exc) from exc


@router.delete("/{deal_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_deal(
    deal_id: int,
    services: CRMServices = Depends(get_services),
) -> None:
    try:
        await services.deals.delete(deal_id)
    except CRMError as exc:
        raise http_error(exc) from exc


@router.post("/{deal_id}/stage", response_model=Deal)
async def change_deal_stage(
    deal_id: int,
    body: StageChangeRequest,
    services: CRMServices = Depends(get_services),
) -> Deal:
    """Move a deal to any stage; probability defaults to the stage's."""
    try:
        return await services.deals.change_stage(deal_id, body.stage, body.probability)
    except CRMError as exc:
        raise http_error(exc) from exc


@router.post("/{deal_id}/advance", response_model=Deal)
async def advance_deal(
    deal_id: int,
    services: CRMServices = Depends(get_services),
) -> Deal:
    try:
        return await services.deals.advance(deal_id)
    except CRMError as exc:
        raise http_error(exc) from exc


@router.post("/{deal_id}/retreat", response_model=Deal)
async def retreat_deal(
    deal_id: int,
    services: CRMServices = Depends(get_services),
) -> Deal:
    try:
        return await services.deals.retreat(deal_id)
    except CRMError as exc:
        raise http_error(exc) from exc
