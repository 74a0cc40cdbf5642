"""Search, filter, and sort predicates for the contact, deal, and activity views.

All functions are pure: they never mutate their input and return new lists.
Sorting relies on Python's stable sort, so records with equal keys keep
their input order.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime, timezone
from enum import Enum

from src.crm.pipeline.stages import FORWARD_STAGES
from src.crm.records.schemas import Activity, ActivityType, Contact, Deal, DealStage

# Missing timestamps sort as the earliest possible moment.
_EPOCH_FLOOR = datetime.min.replace(tzinfo=timezone.utc)


class ContactSort(str, Enum):
    NAME = "name"
    COMPANY = "company"
    CREATED = "created"
    ACTIVITY = "activity"


class ActivitySort(str, Enum):
    NEWEST = "newest"
    OLDEST = "oldest"
    TYPE = "type"


def _matches(term: str, *fields: str | None) -> bool:
    return any(term in (value or "").casefold() for value in fields)


def _timestamp(value: datetime | None) -> datetime:
    return value if value is not None else _EPOCH_FLOOR


# ── Contacts ────────────────────────────────────────────────────────────────


def filter_contacts(
    contacts: Iterable[Contact],
    search: str = "",
    sort_by: ContactSort | str = ContactSort.NAME,
) -> list[Contact]:
    """Case-insensitive search over name, email, company, and role, then sort.

    Args:
        contacts: Contacts to filter.
        search: Substring to look for; blank matches everything.
        sort_by: ``name`` / ``company`` ascending, or ``created`` /
            ``activity`` newest first (missing timestamps last).
    """
    term = search.strip().casefold()
    result = [
        c for c in contacts
        if not term or _matches(term, c.name, c.email, c.company, c.role)
    ]

    order = ContactSort(sort_by)
    if order is ContactSort.NAME:
        return sorted(result, key=lambda c: (c.name or "").casefold())
    if order is ContactSort.COMPANY:
        return sorted(result, key=lambda c: (c.company or "").casefold())
    if order is ContactSort.CREATED:
        return sorted(result, key=lambda c: _timestamp(c.created_at), reverse=True)
    return sorted(result, key=lambda c: _timestamp(c.last_activity), reverse=True)


# ── Deals ───────────────────────────────────────────────────────────────────


def group_deals_by_stage(
    deals: Iterable[Deal],
    stages: Sequence[DealStage] = FORWARD_STAGES,
) -> dict[DealStage, list[Deal]]:
    """Partition deals into pipeline columns, one per stage in ``stages``.

    Every requested stage gets a key (possibly empty). Deals in stages not
    requested (Closed Lost on the default board) are left out of the columns.
    """
    columns: dict[DealStage, list[Deal]] = {stage: [] for stage in stages}
    for deal in deals:
        if deal.stage in columns:
            columns[deal.stage].append(deal)
    return columns


def deals_for_contact(deals: Iterable[Deal], contact_id: int) -> list[Deal]:
    return [deal for deal in deals if deal.contact_id == contact_id]


# ── Activities ──────────────────────────────────────────────────────────────


def filter_activities(
    activities: Iterable[Activity],
    search: str = "",
    activity_type: ActivityType | str | None = None,
    sort_by: ActivitySort | str = ActivitySort.NEWEST,
) -> list[Activity]:
    """Search descriptions, optionally keep one activity type, then sort.

    Args:
        activities: Activities to filter.
        search: Case-insensitive substring of the description.
        activity_type: Exact type to keep; None (or "all") keeps every type.
        sort_by: ``newest``, ``oldest``, or ``type`` (alphabetical).
    """
    term = search.strip().casefold()
    wanted = None
    if activity_type is not None and activity_type != "all":
        wanted = ActivityType(activity_type)

    result = [
        a for a in activities
        if (not term or _matches(term, a.description))
        and (wanted is None or a.type == wanted)
    ]

    order = ActivitySort(sort_by)
    if order is ActivitySort.NEWEST:
        return sorted(result, key=lambda a: _timestamp(a.timestamp), reverse=True)
    if order is ActivitySort.OLDEST:
        return sorted(result, key=lambda a: _timestamp(a.timestamp))
    return sorted(result, key=lambda a: a.type.value)
