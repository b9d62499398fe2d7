"""Prometheus metric definitions."""

from prometheus_client import Counter, Gauge, Histogram, Info, REGISTRY

from podcast_media.core.config import settings


service_info = Info(
    'service',
    'Service information',
    registry=REGISTRY
)
service_info.info({
    'name': settings.SERVICE_NAME,
    'version': settings.VERSION,
    'environment': settings.ENVIRONMENT,
})


# HTTP Request Metrics
http_requests_total = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['service', 'method', 'endpoint', 'status'],
    registry=REGISTRY
)

http_request_duration_seconds = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['service', 'method', 'endpoint'],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
    registry=REGISTRY
)

http_requests_in_progress = Gauge(
    'http_requests_in_progress',
    'HTTP requests currently in progress',
    ['service', 'method'],
    registry=REGISTRY
)

errors_total = Counter(
    'errors_total',
    'Unhandled errors by type',
    ['service', 'error_type', 'endpoint'],
    registry=REGISTRY
)


# Media storage metrics
media_saves_total = Counter(
    'media_saves_total',
    'Media save attempts',
    ['kind', 'backend', 'status'],  # status: stored, storage_failed, metadata_failed
    registry=REGISTRY
)

media_compensations_total = Counter(
    'media_compensations_total',
    'Compensating deletes after failed metadata writes',
    ['status'],  # status: succeeded, failed
    registry=REGISTRY
)

media_stream_errors_total = Counter(
    'media_stream_errors_total',
    'Streams terminated by a backend or client error mid-transfer',
    ['backend'],
    registry=REGISTRY
)

storage_backend_rebuilds_total = Counter(
    'storage_backend_rebuilds_total',
    'Backend instances built from the active storage configuration',
    ['backend'],
    registry=REGISTRY
)
