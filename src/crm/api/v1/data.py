"""Data management endpoints -- export and import the whole CRM.

Export returns every record as one JSON document; import replaces every
collection with a previously exported document. Identifiers are preserved
on import, so later creates continue from each collection's highest id.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from src.crm.api.deps import get_services
from src.crm.records.fixtures import CRMSnapshot, export_snapshot, import_snapshot
from src.crm.records.service import CRMServices

router = APIRouter(prefix="/data", tags=["data"])


class ImportResponse(BaseModel):
    """Record counts per collection after an import."""

    imported: dict[str, int] = Field(default_factory=dict)


@router.get("/export", response_model=CRMSnapshot)
async def export_data(services: CRMServices = Depends(get_services)) -> CRMSnapshot:
    return await export_snapshot(services)


@router.post("/import", response_model=ImportResponse)
async def import_data(
    snapshot: CRMSnapshot,
    services: CRMServices = Depends(get_services),
) -> ImportResponse:
    """Replace all collections with ``snapshot``'s records."""
    try:
        counts = await import_snapshot(services, snapshot)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(exc),
        ) from exc
    return ImportResponse(imported=counts)
