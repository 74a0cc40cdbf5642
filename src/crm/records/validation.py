"""Form-boundary validation for contact, deal, and activity payloads.

The stores accept whatever the schemas allow; required-field and format
rules live here and run where user input enters the system (the HTTP
handlers). Each validator collects every problem and raises a single
ValidationError mapping field name to message.

With ``partial=True`` (updates) only the fields present in the payload are
checked, so a PATCH that changes one field is not rejected for the others.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

from src.crm.pipeline.stages import InvalidStageError, parse_stage
from src.crm.records.errors import ValidationError

_EMAIL_RE = re.compile(r"\S+@\S+\.\S+")


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _checks(data: Mapping[str, Any], field: str, partial: bool) -> bool:
    """Whether ``field`` should be validated for this payload."""
    return not partial or field in data


def validate_contact(data: Mapping[str, Any], *, partial: bool = False) -> None:
    """Name, email, phone, and company are required; email must look like one."""
    errors: dict[str, str] = {}

    for field, label in (("name", "Name"), ("phone", "Phone number"), ("company", "Company")):
        if _checks(data, field, partial) and _blank(data.get(field)):
            errors[field] = f"{label} is required"

    if _checks(data, "email", partial):
        email = data.get("email")
        if _blank(email):
            errors["email"] = "Email is required"
        elif not _EMAIL_RE.fullmatch(str(email).strip()):
            errors["email"] = "Please enter a valid email address"

    if errors:
        raise ValidationError(errors)


def validate_deal(data: Mapping[str, Any], *, partial: bool = False) -> None:
    """Title, a positive value, a contact, and an expected close date are required."""
    errors: dict[str, str] = {}

    if _checks(data, "title", partial) and _blank(data.get("title")):
        errors["title"] = "Deal title is required"

    if _checks(data, "value", partial):
        value = data.get("value")
        if value is None or not isinstance(value, (int, float)) or value <= 0:
            errors["value"] = "Deal value must be greater than 0"

    if _checks(data, "contact_id", partial) and data.get("contact_id") is None:
        errors["contact_id"] = "Please select a contact"

    if _checks(data, "expected_close", partial) and _blank(data.get("expected_close")):
        errors["expected_close"] = "Expected close date is required"

    if data.get("stage") is not None:
        try:
            parse_stage(data["stage"])
        except InvalidStageError as exc:
            errors["stage"] = str(exc)

    probability = data.get("probability")
    if probability is not None and not 0 <= probability <= 100:
        errors["probability"] = "Probability must be between 0 and 100"

    if errors:
        raise ValidationError(errors)


def validate_activity(data: Mapping[str, Any], *, partial: bool = False) -> None:
    """Description is required, plus a related contact or deal.

    For partial updates the association rule only applies when the payload
    sets both contact_id and deal_id.
    """
    errors: dict[str, str] = {}

    if _checks(data, "description", partial) and _blank(data.get("description")):
        errors["description"] = "Description is required"

    sets_links = "contact_id" in data and "deal_id" in data
    if (not partial or sets_links) and (
        data.get("contact_id") is None and data.get("deal_id") is None
    ):
        errors["contact_id"] = "Please select either a contact or deal"

    duration = data.get("duration")
    if duration is not None and duration < 1:
        errors["duration"] = "Duration must be at least 1 minute"

    if errors:
        raise ValidationError(errors)
