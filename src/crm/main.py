"""FastAPI application factory.

Creates the app with logging middleware, metrics middleware, CORS, Sentry,
lifespan events that seed the record services from fixtures, and the v1
API router.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.requests import Request
from fastapi.responses import Response

from src.crm.config import get_settings
from src.crm.core.monitoring import MetricsMiddleware, get_metrics_response, init_sentry
from src.crm.api.middleware.logging import LoggingMiddleware, configure_structlog
from src.crm.api.v1.router import router as v1_router
from src.crm.records.fixtures import CRMSnapshot, load_seed_data
from src.crm.records.service import CRMServices


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: configure logging and Sentry, seed the record services."""
    log = structlog.get_logger(__name__)
    settings = get_settings()
    configure_structlog()

    # Initialize Sentry if DSN is configured
    if settings.SENTRY_DSN:
        init_sentry(dsn=settings.SENTRY_DSN, environment=settings.ENVIRONMENT.value)

    # Tests may install their own services before startup
    if getattr(app.state, "services", None) is None:
        if settings.SEED_FIXTURES:
            seed = load_seed_data(settings.get_fixture_dir())
        else:
            seed = CRMSnapshot()
        app.state.services = CRMServices.create(
            contacts=seed.contacts,
            deals=seed.deals,
            activities=seed.activities,
            latency=settings.latency_range(),
            default_stage=settings.DEFAULT_DEAL_STAGE,
        )

    log.info(
        "app.started",
        environment=settings.ENVIRONMENT.value,
        contacts=len(app.state.services.contacts),
        deals=len(app.state.services.deals),
        activities=len(app.state.services.activities),
    )

    yield

    log.info("app.stopped")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="CRM API",
        version="0.1.0",
        description="Contacts, sales pipeline, activity log and dashboard metrics",
        lifespan=lifespan,
    )

    # Middleware is added in reverse order (last added = outermost)

    # CORS middleware
    if settings.CORS_ALLOWED_ORIGINS == "*":
        origins = ["*"]
    else:
        origins = [o.strip() for o in settings.CORS_ALLOWED_ORIGINS.split(",")]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Logging middleware (logs every request with timing)
    app.add_middleware(LoggingMiddleware)

    # Metrics middleware (outermost -- records Prometheus metrics for all requests)
    app.add_middleware(MetricsMiddleware)

    app.include_router(v1_router)

    # Prometheus metrics endpoint (infrastructure route, outside v1 router)
    @app.get("/metrics", include_in_schema=False)
    async def metrics(request: Request) -> Response:
        """Prometheus metrics endpoint."""
        return get_metrics_response()

    return app


# Module-level app for uvicorn
app = create_app()
