"""Prometheus metrics, Sentry integration, and LLM call tracking.

Provides:
- MetricsMiddleware: per-route request count and latency
- track_llm_call(): Context manager for model call metrics
- record_pipeline_outcome() / record_notification(): pipeline counters
- init_sentry(): Sentry with view-link secrets scrubbed from events
- get_metrics_response(): Prometheus exposition for /metrics
"""

from __future__ import annotations

import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any
from urllib.parse import parse_qsl, urlencode

from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, Counter, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import Match

# Query parameters never sent to Sentry
SENSITIVE_QUERY_PARAMS = frozenset({"secret", "access_token"})

# ── HTTP ─────────────────────────────────────────────────────────────────────

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

# ── LLM ──────────────────────────────────────────────────────────────────────

llm_requests_total = Counter(
    "llm_requests_total",
    "Total LLM API requests",
    ["model", "operation", "status"],
)

llm_request_duration_seconds = Histogram(
    "llm_request_duration_seconds",
    "LLM API request duration in seconds",
    ["model", "operation"],
    buckets=(0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 40.0, 60.0, 120.0),
)

# ── Transcript Pipeline ──────────────────────────────────────────────────────

pipeline_runs_total = Counter(
    "transcript_pipeline_runs_total",
    "Transcript pipeline runs by terminal outcome",
    ["outcome"],
)

slack_notifications_total = Counter(
    "slack_notifications_total",
    "Slack host notifications by result",
    ["result"],
)


def _route_template(request: Request) -> str:
    """Matched route path, so label cardinality stays bounded."""
    for route in request.app.router.routes:
        match, _ = route.matches(request.scope)
        if match == Match.FULL:
            return getattr(route, "path", request.url.path)
    return "unmatched"


class MetricsMiddleware(BaseHTTPMiddleware):
    """Records request count and duration per method and route."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path == "/metrics":
            return await call_next(request)

        started = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - started

        endpoint = _route_template(request)
        http_requests_total.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=str(response.status_code),
        ).inc()
        http_request_duration_seconds.labels(method=request.method, endpoint=endpoint).observe(elapsed)
        return response


@asynccontextmanager
async def track_llm_call(model: str, operation: str) -> AsyncGenerator[None, None]:
    """Time one model call and count it as success or error.

    Usage:
        async with track_llm_call("openai/gpt-4o", "summary"):
            result = await client.chat.completions.create(...)
    """
    started = time.perf_counter()
    status = "success"
    try:
        yield
    except Exception:
        status = "error"
        raise
    finally:
        llm_requests_total.labels(model=model, operation=operation, status=status).inc()
        llm_request_duration_seconds.labels(model=model, operation=operation).observe(
            time.perf_counter() - started
        )


def record_pipeline_outcome(outcome: str) -> None:
    pipeline_runs_total.labels(outcome=outcome).inc()


def record_notification(result: str) -> None:
    slack_notifications_total.labels(result=result).inc()


# ── Sentry ───────────────────────────────────────────────────────────────────


def scrub_query_string(query: str) -> str:
    """Replace capability tokens in a query string with a placeholder."""
    pairs = [
        (key, "[Filtered]" if key in SENSITIVE_QUERY_PARAMS else value)
        for key, value in parse_qsl(query, keep_blank_values=True)
    ]
    return urlencode(pairs)


def _before_send(event: dict, hint: dict) -> dict:
    request = event.get("request")
    if isinstance(request, dict) and isinstance(request.get("query_string"), str):
        request["query_string"] = scrub_query_string(request["query_string"])
    return event


def init_sentry(dsn: str, environment: str) -> None:
    """Initialize Sentry SDK.

    Args:
        dsn: Sentry DSN string.
        environment: Deployment environment (development, staging, production).
    """
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.starlette import StarletteIntegration

    sentry_sdk.init(
        dsn=dsn,
        environment=environment,
        traces_sample_rate=0.1 if environment == "production" else 1.0,
        integrations=[StarletteIntegration(), FastApiIntegration()],
        before_send=_before_send,
        send_default_pii=False,
    )


def get_metrics_response() -> Response:
    """Generate Prometheus exposition format response."""
    return Response(content=generate_latest(REGISTRY), media_type=CONTENT_TYPE_LATEST)
