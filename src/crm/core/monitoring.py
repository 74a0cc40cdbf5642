"""Prometheus metrics, Sentry integration, and record-operation tracking.

Provides:
- MetricsMiddleware: ASGI middleware for HTTP request metrics
- init_sentry(): Initialize Sentry for the API process
- track_record_operation(): Context manager for record-service call metrics
- get_metrics_response(): Prometheus exposition for the /metrics route
"""

from __future__ import annotations

import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from prometheus_client import (
    REGISTRY,
    Counter,
    Histogram,
    generate_latest,
)
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from src.crm.records.errors import NotFoundError

logger = structlog.get_logger(__name__)

# ── HTTP Metrics ─────────────────────────────────────────────────────────────

http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# ── Record Service Metrics ───────────────────────────────────────────────────

record_operations_total = Counter(
    "crm_record_operations_total",
    "Total record service operations",
    ["entity", "operation", "outcome"],
)

record_operation_duration_seconds = Histogram(
    "crm_record_operation_duration_seconds",
    "Record service operation duration in seconds (includes simulated latency)",
    ["entity", "operation"],
    buckets=(0.001, 0.01, 0.05, 0.1, 0.2, 0.3, 0.4, 0.5, 1.0),
)


# ── Metrics Middleware ───────────────────────────────────────────────────────


def _endpoint_label(request: Request) -> str:
    """Full route template for the matched route, keeping record ids out of labels.

    Some framework versions report the route path relative to the router it
    was included through (``/health`` for ``/api/v1/health``); the missing
    leading segments are taken from the request path. Unmatched requests use
    the raw path.
    """
    route = request.scope.get("route")
    template = getattr(route, "path", None)
    if not template:
        return request.url.path
    actual = request.url.path.rstrip("/").split("/")
    parts = template.rstrip("/").split("/")
    if len(actual) > len(parts):
        prefix = "/".join(actual[: len(actual) - len(parts) + 1])
        return prefix + template
    return template


class MetricsMiddleware(BaseHTTPMiddleware):
    """ASGI middleware that records Prometheus metrics for every HTTP request.

    Records request count and duration per method/endpoint.
    Skips the /metrics endpoint itself to avoid self-referential counting.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path == "/metrics":
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start_time

        endpoint = _endpoint_label(request)

        http_requests_total.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=str(response.status_code),
        ).inc()

        http_request_duration_seconds.labels(
            method=request.method,
            endpoint=endpoint,
        ).observe(duration)

        return response


# ── Record Operation Helper ──────────────────────────────────────────────────


@asynccontextmanager
async def track_record_operation(entity: str, operation: str) -> AsyncGenerator[None, None]:
    """Context manager that tracks record-service call metrics.

    Usage:
        async with track_record_operation("deal", "update"):
            ...

    Records duration and a success/not_found/error outcome. Exceptions are
    re-raised unchanged.
    """
    start_time = time.perf_counter()
    outcome = "success"

    try:
        yield
    except NotFoundError:
        outcome = "not_found"
        raise
    except Exception:
        outcome = "error"
        raise
    finally:
        duration = time.perf_counter() - start_time

        record_operations_total.labels(
            entity=entity,
            operation=operation,
            outcome=outcome,
        ).inc()

        record_operation_duration_seconds.labels(
            entity=entity,
            operation=operation,
        ).observe(duration)


# ── Sentry Integration ───────────────────────────────────────────────────────


def init_sentry(dsn: str, environment: str) -> None:
    """Initialize Sentry SDK for the API process.

    Args:
        dsn: Sentry DSN string.
        environment: Deployment environment (development, staging, production).
    """
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.starlette import StarletteIntegration

    traces_sample_rate = 0.1 if environment == "production" else 1.0

    sentry_sdk.init(
        dsn=dsn,
        environment=environment,
        traces_sample_rate=traces_sample_rate,
        integrations=[
            StarletteIntegration(),
            FastApiIntegration(),
        ],
    )
    logger.info("sentry.initialized", environment=environment)


# ── Metrics Endpoint ─────────────────────────────────────────────────────────


def get_metrics_response() -> Response:
    """Generate Prometheus exposition format response."""
    return Response(
        content=generate_latest(REGISTRY),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
