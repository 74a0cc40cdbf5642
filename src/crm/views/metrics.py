"""Dashboard aggregation -- totals, win rate, stage rollups, recency windows.

Pure read-only computations over contact, deal, and activity snapshots,
plus ``load_dashboard`` which fetches the three collections concurrently
and aggregates once all of them are available.

Division-by-zero cases (no deals) report 0 rather than NaN or an error.
"""

from __future__ import annotations

import asyncio
from collections import Counter
from collections.abc import Sequence
from datetime import date, datetime, timedelta

import structlog
from pydantic import BaseModel, Field

from src.crm.config import get_settings
from src.crm.pipeline.stages import FORWARD_STAGES, is_closed
from src.crm.records.schemas import Activity, Contact, Deal, DealStage, as_utc, utcnow
from src.crm.records.service import CRMServices

logger = structlog.get_logger(__name__)

RECENT_WINDOW = timedelta(days=7)


# ── Result Schemas ──────────────────────────────────────────────────────────


class StageRollup(BaseModel):
    """Count and summed value of deals currently in one stage."""

    stage: DealStage
    count: int = 0
    value: float = 0.0


class ActivityStats(BaseModel):
    """Activity counts for the activity log header."""

    total: int = 0
    this_week: int = 0
    this_month: int = 0
    by_type: dict[str, int] = Field(default_factory=dict)


class DashboardMetrics(BaseModel):
    """Everything the dashboard shows, computed at ``generated_at``."""

    total_contacts: int = 0
    total_deals: int = 0
    pipeline_value: float = 0.0
    won_value: float = 0.0
    average_deal_size: float = 0.0
    win_rate: float = 0.0
    stages: list[StageRollup] = Field(default_factory=list)
    activity_stats: ActivityStats = Field(default_factory=ActivityStats)
    recent_activities: list[Activity] = Field(default_factory=list)
    upcoming_deals: list[Deal] = Field(default_factory=list)
    generated_at: datetime | None = None


# ── Deal Metrics ────────────────────────────────────────────────────────────


def pipeline_value(deals: Sequence[Deal]) -> float:
    return sum(deal.value for deal in deals)


def won_value(deals: Sequence[Deal]) -> float:
    return sum(deal.value for deal in deals if deal.stage == DealStage.CLOSED_WON)


def average_deal_size(deals: Sequence[Deal]) -> float:
    """Pipeline value divided by deal count; 0 with no deals."""
    if not deals:
        return 0.0
    return pipeline_value(deals) / len(deals)


def win_rate(deals: Sequence[Deal]) -> float:
    """Percentage of all deals that are Closed Won; 0 with no deals."""
    if not deals:
        return 0.0
    won = sum(1 for deal in deals if deal.stage == DealStage.CLOSED_WON)
    return won / len(deals) * 100


def stage_rollup(
    deals: Sequence[Deal],
    stages: Sequence[DealStage] = FORWARD_STAGES,
) -> list[StageRollup]:
    """Per-stage count and value, in pipeline order, for each of ``stages``."""
    rollups = {stage: StageRollup(stage=stage) for stage in stages}
    for deal in deals:
        rollup = rollups.get(deal.stage)
        if rollup is not None:
            rollup.count += 1
            rollup.value += deal.value
    return list(rollups.values())


def upcoming_deals(deals: Sequence[Deal], limit: int = 5) -> list[Deal]:
    """Open deals ordered by expected close date, soonest first (undated last)."""
    open_deals = [deal for deal in deals if not is_closed(deal.stage)]
    open_deals.sort(key=lambda d: (d.expected_close is None, d.expected_close or date.min))
    return open_deals[:limit]


# ── Activity Metrics ────────────────────────────────────────────────────────


def _resolve_now(now: datetime | None) -> datetime:
    return as_utc(now) if now is not None else utcnow()


def _week_start(now: datetime) -> datetime:
    return now - RECENT_WINDOW


def _month_start(now: datetime) -> datetime:
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def activities_since(activities: Sequence[Activity], cutoff: datetime) -> list[Activity]:
    return [a for a in activities if a.timestamp is not None and a.timestamp >= cutoff]


def activities_this_week(activities: Sequence[Activity], now: datetime | None = None) -> list[Activity]:
    """Activities in the trailing seven days."""
    return activities_since(activities, _week_start(_resolve_now(now)))


def activities_this_month(activities: Sequence[Activity], now: datetime | None = None) -> list[Activity]:
    """Activities on or after the first day of the current calendar month."""
    return activities_since(activities, _month_start(_resolve_now(now)))


def activity_stats(activities: Sequence[Activity], now: datetime | None = None) -> ActivityStats:
    now = _resolve_now(now)
    by_type = Counter(a.type.value for a in activities)
    return ActivityStats(
        total=len(activities),
        this_week=len(activities_this_week(activities, now)),
        this_month=len(activities_this_month(activities, now)),
        by_type=dict(by_type),
    )


def recent_activities(activities: Sequence[Activity], limit: int = 5) -> list[Activity]:
    """Newest activities first (undated last)."""
    dated = sorted(
        (a for a in activities if a.timestamp is not None),
        key=lambda a: a.timestamp,
        reverse=True,
    )
    undated = [a for a in activities if a.timestamp is None]
    return (dated + undated)[:limit]


# ── Dashboard ───────────────────────────────────────────────────────────────


def build_dashboard(
    contacts: Sequence[Contact],
    deals: Sequence[Deal],
    activities: Sequence[Activity],
    now: datetime | None = None,
    *,
    upcoming_limit: int | None = None,
    recent_limit: int | None = None,
) -> DashboardMetrics:
    """Aggregate all dashboard figures from full collection snapshots."""
    settings = get_settings()
    now = _resolve_now(now)
    if upcoming_limit is None:
        upcoming_limit = settings.UPCOMING_DEALS_LIMIT
    if recent_limit is None:
        recent_limit = settings.RECENT_ACTIVITIES_LIMIT

    return DashboardMetrics(
        total_contacts=len(contacts),
        total_deals=len(deals),
        pipeline_value=pipeline_value(deals),
        won_value=won_value(deals),
        average_deal_size=average_deal_size(deals),
        win_rate=win_rate(deals),
        stages=stage_rollup(deals),
        activity_stats=activity_stats(activities, now),
        recent_activities=recent_activities(activities, recent_limit),
        upcoming_deals=upcoming_deals(deals, upcoming_limit),
        generated_at=now,
    )


async def load_dashboard(services: CRMServices, now: datetime | None = None) -> DashboardMetrics:
    """Fetch contacts, deals, and activities concurrently, then aggregate.

    The three reads are independent; aggregation waits for all of them.
    Any service error propagates to the caller.
    """
    contacts, deals, activities = await asyncio.gather(
        services.contacts.get_all(),
        services.deals.get_all(),
        services.activities.get_all(),
    )
    metrics = build_dashboard(contacts, deals, activities, now)
    logger.debug(
        "dashboard.built",
        contacts=metrics.total_contacts,
        deals=metrics.total_deals,
        activities=metrics.activity_stats.total,
    )
    return metrics
