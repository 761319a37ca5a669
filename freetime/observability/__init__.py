"""
Observability: structured logging, request IDs, metrics.

Usage:
    from freetime.observability import configure_logging, RequestContext

    configure_logging("INFO")
    with RequestContext():
        logger.info("Reconciling")

Metrics:
    from freetime.observability import REGISTRY, gaps_created

    gaps_created.inc(8)
    REGISTRY.to_prometheus()
"""

from .context import RequestContext, generate_request_id, get_request_id, set_request_id
from .logging import HumanFormatter, JSONFormatter, configure_logging
from .metrics import (
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    api_errors,
    batch_duration,
    batch_failures,
    gaps_created,
    gaps_deleted,
    gaps_updated,
    invariant_failures,
    reconcile_duration,
    reconciliations,
    tasks_scheduled,
    timed,
)
from .middleware import CorrelationIdMiddleware, RequestMetricsMiddleware

__all__ = [
    # Logging
    "configure_logging",
    "JSONFormatter",
    "HumanFormatter",
    # Context
    "RequestContext",
    "generate_request_id",
    "get_request_id",
    "set_request_id",
    # Middleware
    "CorrelationIdMiddleware",
    "RequestMetricsMiddleware",
    # Metrics
    "REGISTRY",
    "Counter",
    "Gauge",
    "Histogram",
    "timed",
    "api_errors",
    "batch_duration",
    "batch_failures",
    "gaps_created",
    "gaps_deleted",
    "gaps_updated",
    "invariant_failures",
    "reconcile_duration",
    "reconciliations",
    "tasks_scheduled",
]
