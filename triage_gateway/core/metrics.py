"""Prometheus metrics for the application."""

import time

from prometheus_client import Counter, Histogram, Info, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import Match

# --- Metrics ---

APP_INFO = Info("triage_gateway", "Triage agent gateway application info")
APP_INFO.info({"version": "1.0.0", "name": "triage_gateway"})

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30, 60, 180],
)

UPSTREAM_ATTEMPTS = Counter(
    "agent_upstream_attempts_total",
    "Outbound calls to the agent inference API",
    ["outcome"],  # delivered | throttled | network_error
)

AGENT_RESULTS = Counter(
    "agent_gateway_results_total",
    "Gateway results returned to callers",
    ["status", "success"],
)


# --- Middleware ---


# Label for requests no route matched; keeps 404 scans out of the series set
UNMATCHED_PATH = "unmatched"


def _route_path(request: Request) -> str:
    """Return the route template for the request, e.g. ``/api/v1/agent/status``."""
    for route in request.app.router.routes:
        match, _ = route.matches(request.scope)
        if match != Match.NONE:
            return getattr(route, "path", UNMATCHED_PATH)
    return UNMATCHED_PATH


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Collect HTTP request metrics for Prometheus."""

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.url.path == "/metrics":
            return await call_next(request)

        method = request.method
        path = _route_path(request)

        start = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start

        REQUEST_COUNT.labels(method=method, path=path, status=response.status_code).inc()
        REQUEST_DURATION.labels(method=method, path=path).observe(duration)

        return response


def metrics_response() -> Response:
    """Generate Prometheus /metrics response."""
    return Response(
        content=generate_latest(),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
