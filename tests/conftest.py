"""Shared test fixtures.

Provides:
- Sample contacts, deals and activities with fixed identifiers and dates
- CRMServices seeded with the samples and simulated latency disabled
"""

from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from src.crm.config import get_settings
from src.crm.records.schemas import Activity, ActivityType, Contact, Deal, DealStage
from src.crm.records.service import CRMServices

NO_LATENCY = (0.0, 0.0)


def _ts(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _fresh_settings():
    """Drop the cached Settings so monkeypatched env vars take effect."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def sample_contacts() -> list[Contact]:
    return [
        Contact(
            id=1,
            name="Sarah Johnson",
            email="sarah@techcorp.com",
            phone="+1-555-0101",
            company="TechCorp",
            role="CTO",
            created_at=_ts(2024, 1, 10),
            last_activity=_ts(2024, 3, 1),
        ),
        Contact(
            id=2,
            name="Mike Chen",
            email="mike@innovatelabs.io",
            phone="+1-555-0102",
            company="Innovate Labs",
            role="VP Engineering",
            created_at=_ts(2024, 1, 15),
            last_activity=_ts(2024, 2, 20),
        ),
        Contact(
            id=3,
            name="Emily Davis",
            email="emily@globalretail.com",
            phone="+1-555-0103",
            company="Global Retail",
            role="Procurement Lead",
            created_at=_ts(2024, 2, 1),
            last_activity=None,
        ),
    ]


@pytest.fixture
def sample_deals() -> list[Deal]:
    return [
        Deal(id=1, title="Enterprise License", value=100000, stage=DealStage.NEGOTIATION,
             contact_id=1, probability=70, expected_close=date(2024, 4, 15)),
        Deal(id=2, title="API Integration", value=40000, stage=DealStage.PROPOSAL,
             contact_id=2, probability=50, expected_close=date(2024, 4, 30)),
        Deal(id=3, title="POS Rollout", value=60000, stage=DealStage.CLOSED_WON,
             contact_id=3, probability=100, expected_close=date(2024, 3, 1)),
        Deal(id=4, title="Support Renewal", value=20000, stage=DealStage.CLOSED_LOST,
             contact_id=1, probability=0, expected_close=date(2024, 2, 1)),
    ]


@pytest.fixture
def sample_activities() -> list[Activity]:
    return [
        Activity(id=1, type=ActivityType.CALL, description="Discovery call",
                 contact_id=1, deal_id=1, timestamp=_ts(2024, 3, 10, 9), duration=30),
        Activity(id=2, type=ActivityType.EMAIL, description="Sent proposal",
                 contact_id=2, deal_id=2, timestamp=_ts(2024, 3, 12, 14)),
        Activity(id=3, type=ActivityType.MEETING, description="On-site demo",
                 contact_id=3, timestamp=_ts(2024, 2, 25, 11), duration=90),
    ]


@pytest.fixture
def services(sample_contacts, sample_deals, sample_activities) -> CRMServices:
    """Services seeded with the samples, no simulated latency."""
    return CRMServices.create(
        contacts=sample_contacts,
        deals=sample_deals,
        activities=sample_activities,
        latency=NO_LATENCY,
        default_stage=DealStage.LEAD,
    )


@pytest.fixture
def empty_services() -> CRMServices:
    return CRMServices.create(latency=NO_LATENCY, default_stage=DealStage.LEAD)
