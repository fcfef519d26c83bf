"""Prometheus metrics.

Metric families are module-level so every import shares one registration
with the default registry. Record through the helpers below rather than
touching the families directly; they keep label names consistent.

Families (all prefixed ``carenotes_``):
    http_requests_total, http_request_duration_seconds,
    http_request_size_bytes, http_response_size_bytes
    resource_operations_total, resource_operation_duration_seconds
    persistence_timeouts_total
    audit_write_failures_total
    suggestion_calls_total
"""

from __future__ import annotations

import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Histogram, Info, generate_latest

PREFIX = "carenotes"

LATENCY_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0)
SIZE_BUCKETS = (128, 512, 2048, 8192, 32768, 131072, 524288)

HTTP_LABELS = ("method", "endpoint", "status_code")
RESOURCE_LABELS = ("resource", "operation")


def _name(suffix: str) -> str:
    return f"{PREFIX}_{suffix}"


HTTP_REQUEST_COUNT = Counter(_name("http_requests_total"), "HTTP requests served", HTTP_LABELS)
HTTP_REQUEST_DURATION = Histogram(
    _name("http_request_duration_seconds"),
    "Time from request receipt to response",
    HTTP_LABELS,
    buckets=LATENCY_BUCKETS,
)
HTTP_REQUEST_SIZE = Histogram(
    _name("http_request_size_bytes"),
    "Declared request body size",
    ("method", "endpoint"),
    buckets=SIZE_BUCKETS,
)
HTTP_RESPONSE_SIZE = Histogram(
    _name("http_response_size_bytes"),
    "Declared response body size",
    ("method", "endpoint"),
    buckets=SIZE_BUCKETS,
)

RESOURCE_OPERATION_COUNT = Counter(
    _name("resource_operations_total"),
    "Resource service calls by outcome; outcome is success or the exception class",
    (*RESOURCE_LABELS, "outcome"),
)
RESOURCE_OPERATION_DURATION = Histogram(
    _name("resource_operation_duration_seconds"),
    "Resource service call duration",
    RESOURCE_LABELS,
    buckets=LATENCY_BUCKETS,
)
PERSISTENCE_TIMEOUTS = Counter(
    _name("persistence_timeouts_total"),
    "Persistence calls cancelled by the database timeout",
    ("operation",),
)

AUDIT_WRITE_FAILURES = Counter(
    _name("audit_write_failures_total"),
    "Audit records lost because the write failed",
    ("operation",),
)
SUGGESTION_CALLS = Counter(
    _name("suggestion_calls_total"),
    "Suggestion collaborator calls by outcome",
    ("resource", "outcome"),
)

SERVICE_INFO = Info(_name("service"), "Build and environment of the running service")


@dataclass
class MetricsConfig:
    """Whether metrics are published, and where from."""

    enabled: bool = True
    labels: dict[str, str] = field(default_factory=dict)


class MetricsManager:
    """Publishes service info once and renders the exposition format.

    Pass a separate ``registry`` to export an isolated set of collectors.
    """

    def __init__(
        self,
        config: MetricsConfig | None = None,
        registry: CollectorRegistry | None = None,
    ) -> None:
        self.config = config or MetricsConfig()
        self.registry = registry or REGISTRY
        self._initialized = False

    def initialize(
        self,
        service_name: str = PREFIX,
        service_version: str = "0.1.0",
        environment: str = "development",
    ) -> None:
        if self._initialized or not self.config.enabled:
            return
        SERVICE_INFO.info(
            {
                **self.config.labels,
                "name": service_name,
                "version": service_version,
                "environment": environment,
            }
        )
        self._initialized = True

    def get_metrics(self) -> bytes:
        return generate_latest(self.registry)


_manager: MetricsManager | None = None


def get_metrics_manager() -> MetricsManager:
    """Process-wide manager, created on first use."""
    global _manager
    if _manager is None:
        _manager = MetricsManager()
    return _manager


def get_metrics() -> bytes:
    return get_metrics_manager().get_metrics()


@contextmanager
def observe_resource_operation(resource: str, operation: str) -> Iterator[dict[str, str]]:
    """Time a resource service call and count it by outcome.

    The yielded dict's ``outcome`` may be overwritten by the caller. If the
    block raises, the exception class name is used instead.
    """
    labels = {"outcome": "success"}
    started = time.perf_counter()
    try:
        yield labels
    except Exception as e:
        labels["outcome"] = type(e).__name__
        raise
    finally:
        RESOURCE_OPERATION_DURATION.labels(resource, operation).observe(
            time.perf_counter() - started
        )
        RESOURCE_OPERATION_COUNT.labels(resource, operation, labels["outcome"]).inc()


def record_http_request(
    method: str,
    endpoint: str,
    status_code: int,
    duration_seconds: float,
    request_size: int | None = None,
    response_size: int | None = None,
) -> None:
    """Count one served request. ``endpoint`` must already be normalised."""
    status = str(status_code)
    HTTP_REQUEST_COUNT.labels(method, endpoint, status).inc()
    HTTP_REQUEST_DURATION.labels(method, endpoint, status).observe(duration_seconds)
    for histogram, size in ((HTTP_REQUEST_SIZE, request_size), (HTTP_RESPONSE_SIZE, response_size)):
        if size is not None:
            histogram.labels(method, endpoint).observe(size)


def record_persistence_timeout(operation: str) -> None:
    PERSISTENCE_TIMEOUTS.labels(operation).inc()


def record_audit_write_failure(operation: str) -> None:
    AUDIT_WRITE_FAILURES.labels(operation).inc()


def record_suggestion_call(resource: str, outcome: str) -> None:
    """Count a collaborator call; outcome is ok, empty, timeout, error or disabled."""
    SUGGESTION_CALLS.labels(resource, outcome).inc()
