"""Pydantic schemas for CRM records -- contacts, deals, activities.

Defines all structured types for the record layer:
- Enums: DealStage, ActivityType
- Contacts: Contact, ContactCreate, ContactUpdate
- Deals: Deal, DealCreate, DealUpdate
- Activities: Activity, ActivityCreate, ActivityUpdate

Every entity is identified by an integer ``id``. Display fields are ``name``
for contacts and ``title`` for deals. Update payloads carry only optional
fields; unknown keys (including ``id``) are ignored so a caller can never
rewrite a stored identifier through an update.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from enum import Enum
from typing import Annotated

from pydantic import AfterValidator, BaseModel, Field


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC so all timestamps stay comparable."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UTCDateTime = Annotated[datetime, AfterValidator(as_utc)]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _normalize_label(value: str) -> str:
    return " ".join(value.replace("_", " ").replace("-", " ").split()).casefold()


# ── Enums ───────────────────────────────────────────────────────────────────


class DealStage(str, Enum):
    """Sales pipeline stage for a deal.

    Lookup by value is tolerant of case and of ``_``/``-`` in place of
    spaces, so ``DealStage("closed_won")`` resolves to CLOSED_WON.
    """

    LEAD = "Lead"
    QUALIFIED = "Qualified"
    PROPOSAL = "Proposal"
    NEGOTIATION = "Negotiation"
    CLOSED_WON = "Closed Won"
    CLOSED_LOST = "Closed Lost"

    @classmethod
    def _missing_(cls, value: object) -> DealStage | None:
        if isinstance(value, str):
            key = _normalize_label(value)
            for member in cls:
                if member.value.casefold() == key:
                    return member
        return None


class ActivityType(str, Enum):
    """Kind of customer interaction an activity records."""

    CALL = "call"
    EMAIL = "email"
    MEETING = "meeting"
    NOTE = "note"
    TASK = "task"

    @classmethod
    def _missing_(cls, value: object) -> ActivityType | None:
        if isinstance(value, str):
            key = _normalize_label(value)
            for member in cls:
                if member.value == key:
                    return member
        return None


# ── Contact Schemas ─────────────────────────────────────────────────────────


class Contact(BaseModel):
    """A person the sales team tracks."""

    id: int
    name: str = ""
    email: str = ""
    phone: str = ""
    company: str = ""
    role: str = ""
    notes: str = ""
    tags: list[str] = Field(default_factory=list)
    created_at: UTCDateTime | None = None
    last_activity: UTCDateTime | None = None


class ContactCreate(BaseModel):
    """Schema for creating a new contact."""

    name: str = ""
    email: str = ""
    phone: str = ""
    company: str = ""
    role: str = ""
    notes: str = ""
    tags: list[str] = Field(default_factory=list)


class ContactUpdate(BaseModel):
    """Schema for updating a contact (all fields optional)."""

    name: str | None = None
    email: str | None = None
    phone: str | None = None
    company: str | None = None
    role: str | None = None
    notes: str | None = None
    tags: list[str] | None = None


# ── Deal Schemas ────────────────────────────────────────────────────────────


class Deal(BaseModel):
    """A sales opportunity moving through the pipeline."""

    id: int
    title: str = ""
    value: float = Field(default=0.0, ge=0.0)
    stage: DealStage = DealStage.LEAD
    contact_id: int | None = None
    probability: int = Field(default=10, ge=0, le=100)
    expected_close: date | None = None
    tags: list[str] = Field(default_factory=list)
    created_at: UTCDateTime | None = None


class DealCreate(BaseModel):
    """Schema for creating a new deal.

    ``stage`` falls back to the configured default stage and ``probability``
    to that stage's default probability when omitted.
    """

    title: str = ""
    value: float = Field(default=0.0, ge=0.0)
    stage: DealStage | None = None
    contact_id: int | None = None
    probability: int | None = Field(default=None, ge=0, le=100)
    expected_close: date | None = None
    tags: list[str] = Field(default_factory=list)


class DealUpdate(BaseModel):
    """Schema for updating a deal (all fields optional)."""

    title: str | None = None
    value: float | None = Field(default=None, ge=0.0)
    stage: DealStage | None = None
    contact_id: int | None = None
    probability: int | None = Field(default=None, ge=0, le=100)
    expected_close: date | None = None
    tags: list[str] | None = None


# ── Activity Schemas ────────────────────────────────────────────────────────


class Activity(BaseModel):
    """A logged interaction tied to a contact, a deal, or both."""

    id: int
    type: ActivityType = ActivityType.NOTE
    description: str = ""
    contact_id: int | None = None
    deal_id: int | None = None
    timestamp: UTCDateTime | None = None
    duration: int | None = None
    tags: list[str] = Field(default_factory=list)


class ActivityCreate(BaseModel):
    """Schema for logging a new activity (timestamp defaults to now)."""

    type: ActivityType = ActivityType.CALL
    description: str = ""
    contact_id: int | None = None
    deal_id: int | None = None
    timestamp: UTCDateTime | None = None
    duration: int | None = None
    tags: list[str] = Field(default_factory=list)


class ActivityUpdate(BaseModel):
    """Schema for updating an activity (all fields optional)."""

    type: ActivityType | None = None
    description: str | None = None
    contact_id: int | None = None
    deal_id: int | None = None
    timestamp: UTCDateTime | None = None
    duration: int | None = None
    tags: list[str] | None = None
