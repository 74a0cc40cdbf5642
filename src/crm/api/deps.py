"""FastAPI dependency injection for the record services and error mapping.

The service bundle lives on ``app.state.services`` (set during lifespan
startup, or directly by tests). ``http_error`` translates domain errors
raised by the services into HTTP responses for the route handlers.
"""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from src.crm.pipeline.stages import InvalidStageError
from src.crm.records.errors import CRMError, NotFoundError, ValidationError
from src.crm.records.service import CRMServices


def get_services(request: Request) -> CRMServices:
    """Retrieve the CRMServices bundle from app.state, 503 if not available."""
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Record services not initialized",
        )
    return services


def http_error(exc: CRMError) -> HTTPException:
    """Map a domain error to the HTTPException the caller should see.

    NotFoundError -> 404; ValidationError -> 422 with per-field messages;
    InvalidStageError -> 422; anything else -> 400.
    """
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, ValidationError):
        return HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": str(exc), "errors": exc.errors},
        )
    if isinstance(exc, InvalidStageError):
        return HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(exc),
        )
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
