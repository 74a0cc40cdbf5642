"""In-memory entity store -- the owned collection behind each record service.

Holds one entity type for the process lifetime. Identifiers are assigned as
one greater than the current maximum (1 for an empty store). Every record
handed out is a deep copy, so callers can never mutate store internals.

Mutation and identifier assignment run under a lock so the "no duplicate
identifiers" invariant holds even when the store is shared across threads.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable
from typing import Generic, TypeVar

from pydantic import BaseModel

from src.crm.records.errors import NotFoundError


RecordT = TypeVar("RecordT", bound=BaseModel)


class EntityStore(Generic[RecordT]):
    """Owned, lock-guarded list of records of a single entity type.

    Args:
        entity: Entity name used in errors and logs (e.g. "contact").
        records: Initial records; identifiers must be unique.
    """

    def __init__(self, entity: str, records: Iterable[RecordT] = ()) -> None:
        self.entity = entity
        self._records: list[RecordT] = []
        self._lock = threading.Lock()
        self.reset(records)

    def __len__(self) -> int:
        return len(self._records)

    def snapshot(self) -> list[RecordT]:
        """Copies of all records in stored order."""
        with self._lock:
            return [record.model_copy(deep=True) for record in self._records]

    def get(self, record_id: int) -> RecordT:
        with self._lock:
            return self._records[self._index_of(record_id)].model_copy(deep=True)

    def insert(self, build: Callable[[int], RecordT]) -> RecordT:
        """Assign the next identifier, build the record with it, and append it.

        Args:
            build: Called with the new identifier; returns the record to store.

        Returns:
            A copy of the stored record.
        """
        with self._lock:
            new_id = self._next_id()
            record = build(new_id)
            if record.id != new_id:  # type: ignore[attr-defined]
                record = record.model_copy(update={"id": new_id})
            self._records.append(record)
            return record.model_copy(deep=True)

    def replace(self, record_id: int, apply: Callable[[RecordT], RecordT]) -> RecordT:
        """Replace a record with ``apply(copy_of_current)``, keeping its identifier.

        Raises:
            NotFoundError: If no record has ``record_id``.
        """
        with self._lock:
            idx = self._index_of(record_id)
            updated = apply(self._records[idx].model_copy(deep=True))
            if updated.id != record_id:  # type: ignore[attr-defined]
                updated = updated.model_copy(update={"id": record_id})
            self._records[idx] = updated
            return updated.model_copy(deep=True)

    def remove(self, record_id: int) -> None:
        """Remove a record.

        Raises:
            NotFoundError: If no record has ``record_id``.
        """
        with self._lock:
            del self._records[self._index_of(record_id)]

    def reset(self, records: Iterable[RecordT]) -> None:
        """Replace the whole collection (fixture seeding and snapshot import).

        Raises:
            ValueError: If two records share an identifier.
        """
        fresh = [record.model_copy(deep=True) for record in records]
        seen: set[int] = set()
        for record in fresh:
            record_id = record.id  # type: ignore[attr-defined]
            if record_id in seen:
                raise ValueError(f"Duplicate {self.entity} id in seed data: {record_id}")
            seen.add(record_id)
        with self._lock:
            self._records = fresh

    # ── Internals (caller holds the lock) ───────────────────────────────────

    def _next_id(self) -> int:
        # O(n) scan per insert; fine for a single-writer in-memory store
        return max((r.id for r in self._records), default=0) + 1  # type: ignore[attr-defined]

    def _index_of(self, record_id: int) -> int:
        for idx, record in enumerate(self._records):
            if record.id == record_id:  # type: ignore[attr-defined]
                return idx
        raise NotFoundError(self.entity, record_id)
