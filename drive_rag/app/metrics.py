from __future__ import annotations

import time

from fastapi import Request
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.responses import Response

from drive_rag.app.settings import settings

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)
INGESTION_EVENTS = Counter(
    "drive_rag_ingestion_events_total",
    "Ingestion runs by event kind and terminal status",
    ["kind", "status"],
)
QUERY_OUTCOMES = Counter(
    "drive_rag_query_outcomes_total",
    "Answered questions by provenance",
    ["provenance"],
)


async def metrics_middleware(request: Request, call_next):
    if not settings.metrics_enabled:
        return await call_next(request)
    path = request.url.path
    if path == "/metrics":
        return await call_next(request)
    start = time.monotonic()
    status = 500
    try:
        response = await call_next(request)
        status = response.status_code
        return response
    finally:
        duration = time.monotonic() - start
        REQUEST_COUNT.labels(request.method, path, str(status)).inc()
        REQUEST_LATENCY.labels(request.method, path).observe(duration)


def record_ingestion(kind: str, status: str) -> None:
    if settings.metrics_enabled:
        INGESTION_EVENTS.labels(kind, status).inc()


def record_query(provenance: str) -> None:
    if settings.metrics_enabled:
        QUERY_OUTCOMES.labels(provenance).inc()


def metrics_response() -> Response:
    if not settings.metrics_enabled:
        return Response(status_code=404)
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
