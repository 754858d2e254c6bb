"""
Prometheus metrics.

HTTP traffic is labelled by route template so claim identifiers do not
explode label cardinality; ingestion runs report their own counters from
the pipeline.
"""

import time

from prometheus_client import Counter, Histogram
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

# ── HTTP metrics ─────────────────────────────────────────────────────────────

http_requests_total = Counter(
    "http_requests_total",
    "HTTP requests by route and status",
    ["method", "route", "status_code"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency by route",
    ["method", "route"],
    buckets=(0.005, 0.025, 0.1, 0.25, 0.5, 1.0, 2.5, 10.0, 60.0),
)

# ── Ingestion metrics ────────────────────────────────────────────────────────

ingestion_runs_total = Counter(
    "ingestion_runs_total",
    "Ingestion runs by outcome",
    ["status"],
)

ingestion_duration_seconds = Histogram(
    "ingestion_duration_seconds",
    "Wall time of successful ingestion runs",
    buckets=(0.1, 0.5, 1.0, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0),
)

claims_ingested_total = Counter(
    "claims_ingested_total",
    "New claims inserted by ingestion runs",
)

_SKIP_PATHS = frozenset({"/metrics"})


def _route_label(request: Request) -> str:
    """Matched route template, e.g. /api/claims/{claim_id}.

    Falls back to collapsing the claim id segment when no route matched.
    """
    route = request.scope.get("route")
    template = getattr(route, "path", None)
    if template:
        return template
    parts = request.url.path.strip("/").split("/")
    if len(parts) == 3 and parts[:2] == ["api", "claims"] and parts[2] != "upload":
        parts[2] = "{claim_id}"
    return "/" + "/".join(parts)


class PrometheusMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        if request.url.path in _SKIP_PATHS:
            return await call_next(request)

        started = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            route = _route_label(request)
            http_requests_total.labels(request.method, route, status_code).inc()
            http_request_duration_seconds.labels(request.method, route).observe(
                time.perf_counter() - started
            )
