"""REST API endpoints for the activity log.

CRUD over the activity service, the searchable/filterable list view, and
the header counts (total, this week, this month, per type).
"""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from src.crm.api.deps import get_services, http_error
from src.crm.records.errors import CRMError
from src.crm.records.schemas import Activity, ActivityType
from src.crm.records.service import CRMServices
from src.crm.records.validation import validate_activity
from src.crm.views.filters import ActivitySort, filter_activities
from src.crm.views.metrics import ActivityStats, activity_stats

router = APIRouter(prefix="/activities", tags=["activities"])


# ── Request Schemas ──────────────────────────────────────────────────────────


class CreateActivityRequest(BaseModel):
    """Request body for logging an activity (timestamp defaults to now)."""

    type: ActivityType = ActivityType.CALL
    description: str = ""
    contact_id: int | None = None
    deal_id: int | None = None
    timestamp: datetime | None = None
    duration: int | None = None
    tags: list[str] = Field(default_factory=list)


class UpdateActivityRequest(BaseModel):
    """Request body for updating an activity (all fields optional)."""

    type: ActivityType | None = None
    description: str | None = None
    contact_id: int | None = None
    deal_id: int | None = None
    timestamp: datetime | None = None
    duration: int | None = None
    tags: list[str] | None = None


# ── Endpoints ────────────────────────────────────────────────────────────────


@router.get("", response_model=list[Activity])
async def list_activities(
    search: str = Query(default="", description="Substring of the description"),
    activity_type: str = Query(default="all", alias="type"),
    sort_by: ActivitySort = Query(default=ActivitySort.NEWEST),
    contact_id: int | None = Query(default=None),
    deal_id: int | None = Query(default=None),
    services: CRMServices = Depends(get_services),
) -> list[Activity]:
    """List activities, optionally narrowed to one contact or deal."""
    try:
        wanted = None if activity_type == "all" else ActivityType(activity_type)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Unknown activity type: {activity_type}",
        )

    activities = await services.activities.get_all()
    if contact_id is not None:
        activities = [a for a in activities if a.contact_id == contact_id]
    if deal_id is not None:
        activities = [a for a in activities if a.deal_id == deal_id]
    return filter_activities(
        activities, search=search, activity_type=wanted, sort_by=sort_by
    )


@router.get("/stats", response_model=ActivityStats)
async def get_activity_stats(services: CRMServices = Depends(get_services)) -> ActivityStats:
    activities = await services.activities.get_all()
    return activity_stats(activities)


@router.post("", response_model=Activity, status_code=status.HTTP_201_CREATED)
async def create_activity(
    body: CreateActivityRequest,
    services: CRMServices = Depends(get_services),
) -> Activity:
    """Log an activity after the form checks pass."""
    data = body.model_dump()
    try:
        validate_activity(data)
        return await services.activities.create(data)
    except CRMError as exc:
        raise http_error(exc) from exc


@router.get("/{activity_id}", response_model=Activity)
async def get_activity(
    activity_id: int,
    services: CRMServices = Depends(get_services),
) -> Activity:
    try:
        return await services.activities.get_by_id(activity_id)
    except CRMError as exc:
        raise http_error(exc) from exc


@router.patch("/{activity_id}", response_model=Activity)
async def update_activity(
    activity_id: int,
    body: UpdateActivityRequest,
    services: CRMServices = Depends(get_services),
) -> Activity:
    changes = body.model_dump(exclude_unset=True)
    try:
        validate_activity(changes, partial=True)
        return await services.activities.update(activity_id, changes)
    except CRMError as exc:
        raise http_error(exc) from exc


@router.delete("/{activity_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_activity(
    activity_id: int,
    services: CRMServices = Depends(get_services),
) -> None:
    try:
        await services.activities.delete(activity_id)
    except CRMError as exc:
        raise http_error(exc) from exc
