"""Prometheus metrics. See ``carenotes.observability.metrics`` for the families."""

from carenotes.observability.metrics import (
    MetricsConfig,
    MetricsManager,
    get_metrics,
    get_metrics_manager,
    observe_resource_operation,
    record_audit_write_failure,
    record_http_request,
    record_persistence_timeout,
    record_suggestion_call,
)

__all__ = [
    "MetricsConfig",
    "MetricsManager",
    "get_metrics",
    "get_metrics_manager",
    "observe_resource_operation",
    "record_audit_write_failure",
    "record_http_request",
    "record_persistence_timeout",
    "record_suggestion_call",
]
