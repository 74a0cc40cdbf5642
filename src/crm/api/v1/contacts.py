"""REST API endpoints for contact management.

CRUD over the contact service plus the searchable/sortable list view and
the deals linked to a contact. Request bodies run the contact form checks
before reaching the service.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from src.crm.api.deps import get_services, http_error
from src.crm.records.errors import CRMError
from src.crm.records.schemas import Contact, Deal
from src.crm.records.service import CRMServices
from src.crm.records.validation import validate_contact
from src.crm.views.filters import ContactSort, deals_for_contact, filter_contacts

router = APIRouter(prefix="/contacts", tags=["contacts"])


# ── Request Schemas ──────────────────────────────────────────────────────────


class CreateContactRequest(BaseModel):
    """Request body for creating a contact."""

    name: str = ""
    email: str = ""
    phone: str = ""
    company: str = ""
    role: str = ""
    notes: str = ""
    tags: list[str] = Field(default_factory=list)


class UpdateContactRequest(BaseModel):
    """Request body for updating a contact (all fields optional)."""

    name: str | None = None
    email: str | None = None
    phone: str | None = None
    company: str | None = None
    role: str | None = None
    notes: str | None = None
    tags: list[str] | None = None


# ── Endpoints ────────────────────────────────────────────────────────────────


@router.get("", response_model=list[Contact])
async def list_contacts(
    search: str = Query(default="", description="Substring of name, email, company or role"),
    sort_by: ContactSort = Query(default=ContactSort.NAME),
    services: CRMServices = Depends(get_services),
) -> list[Contact]:
    """List contacts matching ``search``, sorted by ``sort_by``."""
    contacts = await services.contacts.get_all()
    return filter_contacts(contacts, search=search, sort_by=sort_by)


@router.post("", response_model=Contact, status_code=status.HTTP_201_CREATED)
async def create_contact(
    body: CreateContactRequest,
    services: CRMServices = Depends(get_services),
) -> Contact:
    """Create a contact after the form checks pass."""
    try:
        validate_contact(body.model_dump())
        return await services.contacts.create(body.model_dump())
    except CRMError as exc:
        raise http_error(exc) from exc


@router.get("/{contact_id}", response_model=Contact)
async def get_contact(
    contact_id: int,
    services: CRMServices = Depends(get_services),
) -> Contact:
    try:
        return await services.contacts.get_by_id(contact_id)
    except CRMError as exc:
        raise http_error(exc) from exc


@router.patch("/{contact_id}", response_model=Contact)
async def update_contact(
    contact_id: int,
    body: UpdateContactRequest,
    services: CRMServices = Depends(get_services),
) -> Contact:
    """Merge the fields present in the body; only those fields are validated."""
    changes = body.model_dump(exclude_unset=True)
    try:
        validate_contact(changes, partial=True)
        return await services.contacts.update(contact_id, changes)
    except CRMError as exc:
        raise http_error(exc) from exc


@router.delete("/{contact_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_contact(
    contact_id: int,
    services: CRMServices = Depends(get_services),
) -> None:
    try:
        await services.contacts.delete(contact_id)
    except CRMError as exc:
        raise http_error(exc) from exc


@router.get("/{contact_id}/deals", response_model=list[Deal])
async def list_contact_deals(
    contact_id: int,
    services: CRMServices = Depends(get_services),
) -> list[Deal]:
    """Deals whose contact is ``contact_id`` (404 if the contact is unknown)."""
    try:
        await services.contacts.get_by_id(contact_id)
    except CRMError as exc:
        raise http_error(exc) from exc
    deals = await services.deals.get_all()
    return deals_for_contact(deals, contact_id)
