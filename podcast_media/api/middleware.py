"""
FastAPI middleware for request tracing, logging and metrics.

- RequestLoggingMiddleware: trace id per request, request/response log lines
- PerformanceLoggingMiddleware: warnings for slow requests (large uploads show up here)
- PrometheusMiddleware: HTTP counters and latency histograms
"""

import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from podcast_media.core.config import settings
from podcast_media.core.logging_config import clear_trace_id, get_logger, set_trace_id
from podcast_media.core.metrics import (
    errors_total,
    http_request_duration_seconds,
    http_requests_in_progress,
    http_requests_total,
)


logger = get_logger(__name__)

TRACE_HEADER = "X-Trace-ID"
CORRELATION_HEADER = "X-Correlation-ID"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Binds a trace id to the logging context for the lifetime of a request.

    The id is taken from X-Trace-ID or X-Correlation-ID when the caller sends
    one, otherwise generated, and echoed back in both headers.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        trace_id = (
            request.headers.get(TRACE_HEADER)
            or request.headers.get(CORRELATION_HEADER)
            or str(uuid.uuid4())
        )
        set_trace_id(trace_id)

        start_time = time.time()
        method = request.method
        path = request.url.path

        logger.info(
            "request_started",
            method=method,
            path=path,
            client_host=request.client.host if request.client else "unknown",
            user_agent=request.headers.get("user-agent", "unknown"),
            content_length=request.headers.get("content-length"),
            caller_id=request.headers.get("X-User-ID"),
        )

        try:
            response = await call_next(request)

            logger.info(
                "request_completed",
                method=method,
                path=path,
                status_code=response.status_code,
                duration_ms=round((time.time() - start_time) * 1000, 2),
            )

            response.headers[TRACE_HEADER] = trace_id
            response.headers[CORRELATION_HEADER] = trace_id
            return response

        except Exception as exc:
            logger.error(
                "request_failed",
                method=method,
                path=path,
                duration_ms=round((time.time() - start_time) * 1000, 2),
                error_type=type(exc).__name__,
                error_message=str(exc),
                exc_info=True,
            )
            raise

        finally:
            clear_trace_id()


class PerformanceLoggingMiddleware(BaseHTTPMiddleware):
    """Logs a warning for requests slower than ``slow_request_threshold_ms``."""

    def __init__(self, app: ASGIApp, slow_request_threshold_ms: float = 1000.0):
        super().__init__(app)
        self.slow_request_threshold_ms = slow_request_threshold_ms

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()
        response = await call_next(request)
        duration_ms = (time.time() - start_time) * 1000

        if duration_ms > self.slow_request_threshold_ms:
            logger.warning(
                "slow_request_detected",
                method=request.method,
                path=request.url.path,
                duration_ms=round(duration_ms, 2),
                threshold_ms=self.slow_request_threshold_ms,
                status_code=response.status_code,
            )

        return response


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Request count, duration, in-flight gauge and unhandled error counter.

    Endpoints are labelled with the route template (``/api/media/{asset_id}``)
    when one matched, so asset ids do not explode label cardinality.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        method = request.method
        if request.url.path == "/metrics":
            return await call_next(request)

        http_requests_in_progress.labels(service=settings.SERVICE_NAME, method=method).inc()
        start_time = time.time()
        status_code = 500

        try:
            response = await call_next(request)
            status_code = response.status_code
            return response

        except Exception as exc:
            errors_total.labels(
                service=settings.SERVICE_NAME,
                error_type=type(exc).__name__,
                endpoint=_endpoint_label(request),
            ).inc()
            raise

        finally:
            endpoint = _endpoint_label(request)
            http_requests_in_progress.labels(service=settings.SERVICE_NAME, method=method).dec()
            http_requests_total.labels(
                service=settings.SERVICE_NAME,
                method=method,
                endpoint=endpoint,
                status=status_code,
            ).inc()
            http_request_duration_seconds.labels(
                service=settings.SERVICE_NAME,
                method=method,
                endpoint=endpoint,
            ).observe(time.time() - start_time)


def _endpoint_label(request: Request) -> str:
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"
