"""Prometheus metrics instrumentation."""

from __future__ import annotations

from fastapi import Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

REGISTRY = CollectorRegistry()

REQUEST_COUNT = Counter(
    "ragdesk_requests_total",
    "Total HTTP requests",
    labelnames=("endpoint", "method", "status"),
    registry=REGISTRY,
)

REQUEST_LATENCY = Histogram(
    "ragdesk_request_latency_seconds",
    "Latency of HTTP requests",
    labelnames=("endpoint", "method"),
    registry=REGISTRY,
)

INGEST_DURATION = Histogram(
    "ragdesk_ingest_duration_seconds",
    "PDF ingest pipeline duration",
    registry=REGISTRY,
)

INGEST_OUTCOMES = Counter(
    "ragdesk_ingest_total",
    "PDF ingest outcomes",
    labelnames=("outcome",),
    registry=REGISTRY,
)

INDEX_SIZE = Gauge(
    "ragdesk_index_chunks",
    "Number of embedded chunks stored in the index",
    registry=REGISTRY,
)

RATE_LIMITED = Counter(
    "ragdesk_rate_limited_total",
    "Requests rejected by the rate limiter",
    labelnames=("scope",),
    registry=REGISTRY,
)


def metrics_response() -> Response:
    """Return Prometheus metrics as an HTTP response."""
    payload = generate_latest(REGISTRY)
    return Response(content=payload, media_type=CONTENT_TYPE_LATEST)


__all__ = [
    "REGISTRY",
    "REQUEST_COUNT",
    "REQUEST_LATENCY",
    "INGEST_DURATION",
    "INGEST_OUTCOMES",
    "INDEX_SIZE",
    "RATE_LIMITED",
    "metrics_response",
]
