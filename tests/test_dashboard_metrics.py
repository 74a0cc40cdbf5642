"""Unit tests for the dashboard aggregation functions.

Tests cover:
- pipeline/won value, average deal size, win rate (including no deals)
- stage_rollup and upcoming_deals
- activity recency windows and stats
- build_dashboard / load_dashboard
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from src.crm.records.schemas import Activity, ActivityType, Deal, DealStage
from src.crm.records.service import CRMServices
from src.crm.views.metrics import (
    activities_this_month,
    activities_this_week,
    activity_stats,
    average_deal_size,
    build_dashboard,
    load_dashboard,
    pipeline_value,
    recent_activities,
    stage_rollup,
    upcoming_deals,
    win_rate,
    won_value,
)

NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)


# ── Deal metrics ────────────────────────────────────────────────────────────


class TestDealMetrics:
    """Totals and ratios over deals."""

    def test_no_deals_reports_zero(self) -> None:
        assert pipeline_value([]) == 0
        assert won_value([]) == 0
        assert average_deal_size([]) == 0
        assert win_rate([]) == 0

    def test_totals(self, sample_deals) -> None:
        assert pipeline_value(sample_deals) == 220000
        assert won_value(sample_deals) == 60000
        assert average_deal_size(sample_deals) == 55000

    def test_win_rate_counts_all_deals(self, sample_deals) -> None:
        assert win_rate(sample_deals) == 25.0

    def test_stage_rollup(self, sample_deals) -> None:
        rollups = stage_rollup(sample_deals)
        assert [r.stage for r in rollups][0] is DealStage.LEAD
        by_stage = {r.stage: r for r in rollups}
        assert by_stage[DealStage.NEGOTIATION].count == 1
        assert by_stage[DealStage.NEGOTIATION].value == 100000
        assert by_stage[DealStage.QUALIFIED].count == 0
        assert DealStage.CLOSED_LOST not in by_stage

    def test_upcoming_deals_open_only_soonest_first(self) -> None:
        deals = [
            Deal(id=1, title="late", stage=DealStage.LEAD, expected_close=date(2024, 6, 1)),
            Deal(id=2, title="won", stage=DealStage.CLOSED_WON, expected_close=date(2024, 1, 1)),
            Deal(id=3, title="undated", stage=DealStage.PROPOSAL),
            Deal(id=4, title="soon", stage=DealStage.QUALIFIED, expected_close=date(2024, 4, 1)),
        ]
        assert [d.id for d in upcoming_deals(deals)] == [4, 1, 3]
        assert [d.id for d in upcoming_deals(deals, limit=1)] == [4]


# ── Activity metrics ────────────────────────────────────────────────────────


def _activity(record_id: int, when: datetime | None, kind: ActivityType = ActivityType.CALL) -> Activity:
    return Activity(id=record_id, type=kind, description="x", contact_id=1, timestamp=when)


class TestActivityMetrics:
    """Recency windows and counts."""

    def test_this_week_is_trailing_seven_days(self) -> None:
        activities = [
            _activity(1, NOW - timedelta(days=1)),
            _activity(2, NOW - timedelta(days=7)),
            _activity(3, NOW - timedelta(days=8)),
            _activity(4, None),
        ]
        assert [a.id for a in activities_this_week(activities, NOW)] == [1, 2]

    def test_this_month_starts_on_the_first(self) -> None:
        activities = [
            _activity(1, datetime(2024, 3, 1, 0, 0, tzinfo=timezone.utc)),
            _activity(2, datetime(2024, 2, 29, 23, 59, tzinfo=timezone.utc)),
        ]
        assert [a.id for a in activities_this_month(activities, NOW)] == [1]

    def test_naive_now_treated_as_utc(self) -> None:
        activities = [_activity(1, NOW - timedelta(hours=1))]
        assert len(activities_this_week(activities, NOW.replace(tzinfo=None))) == 1

    def test_activity_stats(self, sample_activities) -> None:
        stats = activity_stats(sample_activities, NOW)
        assert stats.total == 3
        assert stats.this_week == 2
        assert stats.this_month == 2
        assert stats.by_type == {"call": 1, "email": 1, "meeting": 1}

    def test_activity_stats_empty(self) -> None:
        stats = activity_stats([], NOW)
        assert stats.total == 0
        assert stats.by_type == {}

    def test_recent_activities(self, sample_activities) -> None:
        assert [a.id for a in recent_activities(sample_activities, limit=2)] == [2, 1]


# ── Dashboard ───────────────────────────────────────────────────────────────


class TestDashboard:
    """Tests for build_dashboard and load_dashboard."""

    def test_build_dashboard(self, sample_contacts, sample_deals, sample_activities) -> None:
        metrics = build_dashboard(sample_contacts, sample_deals, sample_activities, NOW)
        assert metrics.total_contacts == 3
        assert metrics.total_deals == 4
        assert metrics.pipeline_value == 220000
        assert metrics.win_rate == 25.0
        assert len(metrics.stages) == 5
        assert metrics.activity_stats.total == 3
        assert [a.id for a in metrics.recent_activities] == [2, 1, 3]
        assert [d.id for d in metrics.upcoming_deals] == [1, 2]
        assert metrics.generated_at == NOW

    def test_build_dashboard_empty(self) -> None:
        metrics = build_dashboard([], [], [], NOW)
        assert metrics.average_deal_size == 0
        assert metrics.win_rate == 0
        assert all(r.count == 0 for r in metrics.stages)

    def test_limits_from_settings(self, monkeypatch, sample_contacts, sample_deals, sample_activities) -> None:
        monkeypatch.setenv("RECENT_ACTIVITIES_LIMIT", "1")
        monkeypatch.setenv("UPCOMING_DEALS_LIMIT", "1")
        metrics = build_dashboard(sample_contacts, sample_deals, sample_activities, NOW)
        assert len(metrics.recent_activities) == 1
        assert len(metrics.upcoming_deals) == 1

    @pytest.mark.asyncio
    async def test_load_dashboard(self, services: CRMServices) -> None:
        metrics = await load_dashboard(services, NOW)
        assert metrics.total_contacts == 3
        assert metrics.total_deals == 4
        assert metrics.won_value == 60000

    @pytest.mark.asyncio
    async def test_load_dashboard_empty(self, empty_services: CRMServices) -> None:
        metrics = await load_dashboard(empty_services, NOW)
        assert metrics.total_deals == 0
        assert metrics.average_deal_size == 0
