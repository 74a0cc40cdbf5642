"""Error taxonomy shared by the record services and the HTTP layer.

Service-layer errors propagate to the caller uncaught; the API route
handlers translate them into HTTP responses.
"""

from __future__ import annotations


class CRMError(Exception):
    """Base class for all CRM domain errors."""


class NotFoundError(CRMError, LookupError):
    """Raised when no record with the requested identifier exists."""

    def __init__(self, entity: str, record_id: int) -> None:
        self.entity = entity
        self.record_id = record_id
        super().__init__(f"{entity} not found: {record_id}")


class ValidationError(CRMError, ValueError):
    """Raised at the form boundary when required fields are missing or malformed.

    Attributes:
        errors: Mapping of field name to a human-readable message.
    """

    def __init__(self, errors: dict[str, str]) -> None:
        self.errors = dict(errors)
        fields = ", ".join(sorted(self.errors))
        super().__init__(f"Invalid fields: {fields}")
