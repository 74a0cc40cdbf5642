"""Fixture seeding and snapshot export/import.

Each entity collection is seeded from a JSON file holding a list of objects
keyed by the canonical field names (``id``, ``name``/``title``, ...):

    <fixture_dir>/contacts.json
    <fixture_dir>/deals.json
    <fixture_dir>/activities.json

A missing file seeds an empty collection. The same shape, bundled into one
document, is used for exporting and importing the whole CRM.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import TypeVar

import structlog
from pydantic import BaseModel, Field, TypeAdapter, model_validator

from src.crm.records.schemas import Activity, Contact, Deal, UTCDateTime, utcnow
from src.crm.records.service import CRMServices

logger = structlog.get_logger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)

FIXTURE_FILES: dict[str, str] = {
    "contacts": "contacts.json",
    "deals": "deals.json",
    "activities": "activities.json",
}


class CRMSnapshot(BaseModel):
    """Every record in the CRM, as seeded, exported, or imported."""

    contacts: list[Contact] = Field(default_factory=list)
    deals: list[Deal] = Field(default_factory=list)
    activities: list[Activity] = Field(default_factory=list)
    exported_at: UTCDateTime | None = None

    @model_validator(mode="after")
    def _unique_ids(self) -> CRMSnapshot:
        _check_unique_ids("contacts", self.contacts)
        _check_unique_ids("deals", self.deals)
        _check_unique_ids("activities", self.activities)
        return self


def _check_unique_ids(collection: str, records: list) -> None:
    seen: set[int] = set()
    for record in records:
        if record.id in seen:
            raise ValueError(f"Duplicate id in {collection}: {record.id}")
        seen.add(record.id)


def load_fixture(path: Path, model: type[RecordT]) -> list[RecordT]:
    """Parse one fixture file into validated records ([] if the file is absent).

    Raises:
        pydantic.ValidationError: If the file does not match the schema.
        ValueError: If two records share an identifier.
    """
    if not path.exists():
        logger.warning("fixture.missing", path=str(path))
        return []
    records = TypeAdapter(list[model]).validate_json(path.read_bytes())
    _check_unique_ids(path.stem, records)
    return records


def load_seed_data(directory: Path) -> CRMSnapshot:
    """Load all three fixture files from ``directory``."""
    snapshot = CRMSnapshot(
        contacts=load_fixture(directory / FIXTURE_FILES["contacts"], Contact),
        deals=load_fixture(directory / FIXTURE_FILES["deals"], Deal),
        activities=load_fixture(directory / FIXTURE_FILES["activities"], Activity),
    )
    logger.info(
        "fixtures.loaded",
        directory=str(directory),
        contacts=len(snapshot.contacts),
        deals=len(snapshot.deals),
        activities=len(snapshot.activities),
    )
    return snapshot


async def export_snapshot(services: CRMServices) -> CRMSnapshot:
    """Read all three collections concurrently into one snapshot."""
    contacts, deals, activities = await asyncio.gather(
        services.contacts.get_all(),
        services.deals.get_all(),
        services.activities.get_all(),
    )
    return CRMSnapshot(
        contacts=contacts,
        deals=deals,
        activities=activities,
        exported_at=utcnow(),
    )


async def import_snapshot(services: CRMServices, snapshot: CRMSnapshot) -> dict[str, int]:
    """Replace every collection with the snapshot's records.

    Returns:
        Record counts per collection after the import.
    """
    contacts, deals, activities = await asyncio.gather(
        services.contacts.load(snapshot.contacts),
        services.deals.load(snapshot.deals),
        services.activities.load(snapshot.activities),
    )
    counts = {"contacts": contacts, "deals": deals, "activities": activities}
    logger.info("snapshot.imported", **counts)
    return counts
