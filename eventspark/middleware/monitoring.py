"""
Request monitoring: structured access logs keyed by request id, and the
Prometheus collectors for HTTP traffic and ticket sales.
"""

import time
import uuid
from typing import Any, Callable, Dict

import structlog
from fastapi import Request, Response
from prometheus_client import Counter, Gauge, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware

from eventspark.core.config import settings

structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
        (
            structlog.processors.JSONRenderer()
            if settings.monitoring.LOG_FORMAT == "json"
            else structlog.dev.ConsoleRenderer()
        ),
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=True,
)

access_log = structlog.get_logger("eventspark.access")


class PrometheusMetrics:
    """Collectors for the default registry. Instantiate once per process."""

    def __init__(self) -> None:
        self.http_requests_total = Counter(
            "eventspark_http_requests_total",
            "HTTP requests handled",
            ["method", "endpoint", "status_code"],
        )
        self.http_request_duration_seconds = Histogram(
            "eventspark_http_request_duration_seconds",
            "HTTP request latency",
            ["method", "endpoint"],
            buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
        )
        self.in_flight = Gauge(
            "eventspark_http_requests_in_flight", "Requests currently being served"
        )
        self.unhandled_errors_total = Counter(
            "eventspark_unhandled_errors_total",
            "Exceptions that escaped every handler",
            ["error_type", "endpoint"],
        )
        self.seats_booked_total = Counter(
            "eventspark_seats_booked_total", "Seats reserved", ["kind"]
        )
        self.payments_total = Counter(
            "eventspark_payments_total", "Payment settlements", ["status"]
        )

    def observe(self, method: str, endpoint: str, status_code: int, duration: float) -> None:
        self.http_requests_total.labels(method, endpoint, status_code).inc()
        self.http_request_duration_seconds.labels(method, endpoint).observe(duration)


metrics = PrometheusMetrics()


def _endpoint(request: Request) -> str:
    # route template rather than raw path, so ids don't explode label sets
    route = request.scope.get("route")
    return getattr(route, "path", request.url.path)


class MonitoringMiddleware(BaseHTTPMiddleware):
    """Tags each request with ``X-Request-ID`` (honoring one sent by the client)."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        request.state.request_id = request_id
        log = access_log.bind(
            request_id=request_id, method=request.method, path=request.url.path
        )

        started = time.perf_counter()
        metrics.in_flight.inc()
        try:
            response = await call_next(request)
        except Exception as e:
            metrics.unhandled_errors_total.labels(
                type(e).__name__, _endpoint(request)
            ).inc()
            log.error(
                "request_failed",
                error_type=type(e).__name__,
                duration=round(time.perf_counter() - started, 4),
            )
            raise
        finally:
            metrics.in_flight.dec()

        duration = time.perf_counter() - started
        metrics.observe(request.method, _endpoint(request), response.status_code, duration)
        response.headers["X-Request-ID"] = request_id
        log.info(
            "request_completed",
            status_code=response.status_code,
            duration=round(duration, 4),
        )
        return response


async def get_health_status() -> Dict[str, Any]:
    from eventspark.core.database_manager import db_manager
    from eventspark.utils import cache

    database = await db_manager.health_check()
    redis = await cache.health_check()
    healthy = database["status"] == "healthy" and redis["status"] != "error"
    return {
        "status": "healthy" if healthy else "degraded",
        "version": settings.VERSION,
        "environment": settings.ENVIRONMENT,
        "database": database,
        "cache": redis,
    }


def get_prometheus_metrics() -> bytes:
    return generate_latest()
