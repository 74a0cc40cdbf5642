"""Record services -- the async CRUD contract over each entity store.

Provides RecordService (generic get_all/get_by_id/create/update/delete with
simulated backend latency) and its per-entity specializations:
- ContactService: stamps created_at/last_activity, re-stamps last_activity on update
- DealService: stage/probability defaults, stage changes, pipeline navigation
- ActivityService: newest-first listing, timestamp defaulting

CRMServices bundles one instance of each for the application and the
dashboard loader. Every operation awaits an artificial delay before
resolving to emulate a network roundtrip; the delay range is a constructor
argument so tests can turn it off.
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, ClassVar, Generic, TypeVar, get_args

import structlog
from pydantic import BaseModel

from src.crm.config import get_settings
from src.crm.core.monitoring import track_record_operation
from src.crm.pipeline.stages import (
    InvalidStageError,
    default_probability,
    next_stage,
    parse_stage,
    previous_stage,
)
from src.crm.records.schemas import (
    Activity,
    ActivityCreate,
    ActivityUpdate,
    Contact,
    ContactCreate,
    ContactUpdate,
    Deal,
    DealCreate,
    DealStage,
    DealUpdate,
    utcnow,
)
from src.crm.records.store import EntityStore

logger = structlog.get_logger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)
CreateT = TypeVar("CreateT", bound=BaseModel)
UpdateT = TypeVar("UpdateT", bound=BaseModel)


def _nullable(model: type[BaseModel], field: str) -> bool:
    """Whether ``model`` accepts None for ``field``."""
    info = model.model_fields.get(field)
    return info is not None and type(None) in get_args(info.annotation)


# ── Generic Record Service ──────────────────────────────────────────────────


class RecordService(Generic[RecordT, CreateT, UpdateT]):
    """Async CRUD operations over an owned EntityStore.

    Subclasses set the entity name and the record/create/update models, and
    may override ``_build``, ``_merge`` and ``_order`` to stamp timestamps,
    apply defaults, or define listing order.

    Args:
        records: Initial records (fixture seed).
        latency: (low, high) simulated delay in seconds; defaults to settings.
    """

    entity: ClassVar[str]
    record_model: ClassVar[type[BaseModel]]
    create_model: ClassVar[type[BaseModel]]
    update_model: ClassVar[type[BaseModel]]

    def __init__(
        self,
        records: Iterable[RecordT] = (),
        *,
        latency: tuple[float, float] | None = None,
    ) -> None:
        if latency is None:
            latency = get_settings().latency_range()
        self._latency = latency
        self._store: EntityStore[RecordT] = EntityStore(self.entity, records)

    def __len__(self) -> int:
        return len(self._store)

    async def get_all(self) -> list[RecordT]:
        """Return copies of all records (empty list when there are none)."""
        async with track_record_operation(self.entity, "get_all"):
            await self._simulate_latency()
            return self._order(self._store.snapshot())

    async def get_by_id(self, record_id: int) -> RecordT:
        """Return a copy of one record.

        Raises:
            NotFoundError: If no record has ``record_id``.
        """
        async with track_record_operation(self.entity, "get_by_id"):
            await self._simulate_latency()
            return self._store.get(record_id)

    async def create(self, data: CreateT | Mapping[str, Any]) -> RecordT:
        """Store a new record under the next identifier and return it."""
        payload = self._coerce(self.create_model, data)
        async with track_record_operation(self.entity, "create"):
            await self._simulate_latency()
            record = self._store.insert(lambda new_id: self._build(new_id, payload))
        logger.info("record.created", entity=self.entity, record_id=record.id)
        return record

    async def update(self, record_id: int, data: UpdateT | Mapping[str, Any]) -> RecordT:
        """Merge the fields set in ``data`` over a stored record.

        Fields explicitly set to None clear the stored value when the record
        allows None there (e.g. an activity's ``deal_id``); None for a field
        the record requires is ignored. The stored identifier is preserved;
        an ``id`` in ``data`` is ignored.

        Raises:
            NotFoundError: If no record has ``record_id``.
        """
        payload = self._coerce(self.update_model, data)
        changes = {
            field: value
            for field, value in payload.model_dump(exclude_unset=True).items()
            if value is not None or _nullable(self.record_model, field)
        }
        async with track_record_operation(self.entity, "update"):
            await self._simulate_latency()
            record = self._store.replace(
                record_id, lambda current: self._merge(current, dict(changes))
            )
        logger.info(
            "record.updated",
            entity=self.entity,
            record_id=record_id,
            fields=sorted(changes),
        )
        return record

    async def delete(self, record_id: int) -> bool:
        """Remove a record; returns True on success.

        Raises:
            NotFoundError: If no record has ``record_id``.
        """
        async with track_record_operation(self.entity, "delete"):
            await self._simulate_latency()
            self._store.remove(record_id)
        logger.info("record.deleted", entity=self.entity, record_id=record_id)
        return True

    async def load(self, records: Iterable[RecordT]) -> int:
        """Replace the whole collection (snapshot import). Returns the new size."""
        async with track_record_operation(self.entity, "load"):
            await self._simulate_latency()
            self._store.reset(records)
        logger.info("records.loaded", entity=self.entity, count=len(self._store))
        return len(self._store)

    # ── Hooks ───────────────────────────────────────────────────────────────

    def _build(self, new_id: int, payload: BaseModel) -> RecordT:
        return self.record_model(id=new_id, **payload.model_dump())  # type: ignore[return-value]

    def _merge(self, current: RecordT, changes: dict[str, Any]) -> RecordT:
        return current.model_copy(update=changes)

    def _order(self, records: list[RecordT]) -> list[RecordT]:
        return records

    # ── Internals ───────────────────────────────────────────────────────────

    @staticmethod
    def _coerce(model: type[BaseModel], data: BaseModel | Mapping[str, Any]) -> BaseModel:
        if isinstance(data, model):
            return data
        if isinstance(data, BaseModel):
            data = data.model_dump(exclude_unset=True)
        return model.model_validate(data)

    async def _simulate_latency(self) -> None:
        low, high = self._latency
        if high <= 0:
            return
        await asyncio.sleep(random.uniform(low, high))


# ── Contacts ────────────────────────────────────────────────────────────────


class ContactService(RecordService[Contact, ContactCreate, ContactUpdate]):
    """Contacts in stored order; creation and every update stamp last_activity."""

    entity = "contact"
    record_model = Contact
    create_model = ContactCreate
    update_model = ContactUpdate

    def _build(self, new_id: int, payload: BaseModel) -> Contact:
        now = utcnow()
        return Contact(id=new_id, created_at=now, last_activity=now, **payload.model_dump())

    def _merge(self, current: Contact, changes: dict[str, Any]) -> Contact:
        changes["last_activity"] = utcnow()
        return current.model_copy(update=changes)


# ── Deals ───────────────────────────────────────────────────────────────────


class DealService(RecordService[Deal, DealCreate, DealUpdate]):
    """Deals in stored order, with pipeline stage handling.

    New deals without a stage get ``default_stage``; deals without an explicit
    probability get the stage's default probability. An update that changes
    the stage without also setting probability re-applies the stage default.

    Args:
        records: Initial deals.
        latency: (low, high) simulated delay in seconds; defaults to settings.
        default_stage: Stage for new deals; defaults to settings.DEFAULT_DEAL_STAGE.
    """

    entity = "deal"
    record_model = Deal
    create_model = DealCreate
    update_model = DealUpdate

    def __init__(
        self,
        records: Iterable[Deal] = (),
        *,
        latency: tuple[float, float] | None = None,
        default_stage: DealStage | str | None = None,
    ) -> None:
        super().__init__(records, latency=latency)
        if default_stage is None:
            default_stage = get_settings().DEFAULT_DEAL_STAGE
        self._default_stage = parse_stage(default_stage)

    async def change_stage(
        self,
        deal_id: int,
        stage: DealStage | str,
        probability: int | None = None,
    ) -> Deal:
        """Move a deal to any stage, suggesting the stage's default probability.

        Args:
            deal_id: Deal to move.
            stage: Target stage (any stage, including Closed Lost).
            probability: Explicit probability overriding the stage default.

        Raises:
            InvalidStageError: If ``stage`` is not a known stage.
            NotFoundError: If the deal does not exist.
        """
        target = parse_stage(stage)
        current = self._store.get(deal_id)
        updated = await self.update(
            deal_id, DealUpdate(stage=target, probability=probability)
        )
        logger.info(
            "deal.stage_changed",
            deal_id=deal_id,
            from_stage=current.stage.value,
            to_stage=target.value,
            probability=updated.probability,
        )
        return updated

    async def advance(self, deal_id: int) -> Deal:
        """Move a deal one step forward along the pipeline chain.

        Raises:
            InvalidStageError: If the deal is at Closed Won or Closed Lost.
        """
        current = self._store.get(deal_id)
        target = next_stage(current.stage)
        if target is None:
            raise InvalidStageError(current.stage, "no next stage")
        return await self.change_stage(deal_id, target)

    async def retreat(self, deal_id: int) -> Deal:
        """Move a deal one step back along the pipeline chain.

        Raises:
            InvalidStageError: If the deal is at Lead or Closed Lost.
        """
        current = self._store.get(deal_id)
        target = previous_stage(current.stage)
        if target is None:
            raise InvalidStageError(current.stage, "no previous stage")
        return await self.change_stage(deal_id, target)

    async def list_for_contact(self, contact_id: int) -> list[Deal]:
        deals = await self.get_all()
        return [deal for deal in deals if deal.contact_id == contact_id]

    @staticmethod
    def _coerce(model: type[BaseModel], data: BaseModel | Mapping[str, Any]) -> BaseModel:
        # Unknown stages surface as InvalidStageError rather than a schema error
        if isinstance(data, Mapping) and data.get("stage") is not None:
            data = {**data, "stage": parse_stage(data["stage"])}
        return RecordService._coerce(model, data)

    def _build(self, new_id: int, payload: BaseModel) -> Deal:
        fields = payload.model_dump()
        stage = fields.pop("stage") or self._default_stage
        probability = fields.pop("probability")
        if probability is None:
            probability = default_probability(stage)
        return Deal(
            id=new_id,
            stage=stage,
            probability=probability,
            created_at=utcnow(),
            **fields,
        )

    def _merge(self, current: Deal, changes: dict[str, Any]) -> Deal:
        stage = changes.get("stage")
        if stage is not None and stage != current.stage and "probability" not in changes:
            changes["probability"] = default_probability(stage)
        return current.model_copy(update=changes)


# ── Activities ──────────────────────────────────────────────────────────────


class ActivityService(RecordService[Activity, ActivityCreate, ActivityUpdate]):
    """Activities listed newest first; timestamp defaults to the creation time."""

    entity = "activity"
    record_model = Activity
    create_model = ActivityCreate
    update_model = ActivityUpdate

    async def list_for_contact(self, contact_id: int) -> list[Activity]:
        activities = await self.get_all()
        return [a for a in activities if a.contact_id == contact_id]

    async def list_for_deal(self, deal_id: int) -> list[Activity]:
        activities = await self.get_all()
        return [a for a in activities if a.deal_id == deal_id]

    def _build(self, new_id: int, payload: BaseModel) -> Activity:
        fields = payload.model_dump()
        if fields.get("timestamp") is None:
            fields["timestamp"] = utcnow()
        return Activity(id=new_id, **fields)

    def _order(self, records: list[Activity]) -> list[Activity]:
        # Missing timestamps sort last
        dated = [a for a in records if a.timestamp is not None]
        undated = [a for a in records if a.timestamp is None]
        dated.sort(key=lambda a: a.timestamp, reverse=True)
        return dated + undated


# ── Service Bundle ──────────────────────────────────────────────────────────


@dataclass
class CRMServices:
    """One record service per entity, as wired into the application."""

    contacts: ContactService
    deals: DealService
    activities: ActivityService

    @classmethod
    def create(
        cls,
        *,
        contacts: Iterable[Contact] = (),
        deals: Iterable[Deal] = (),
        activities: Iterable[Activity] = (),
        latency: tuple[float, float] | None = None,
        default_stage: DealStage | str | None = None,
    ) -> CRMServices:
        return cls(
            contacts=ContactService(contacts, latency=latency),
            deals=DealService(deals, latency=latency, default_stage=default_stage),
            activities=ActivityService(activities, latency=latency),
        )
