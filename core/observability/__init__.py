"""
Observability Module for the Shipment Pipeline

Provides:
- Structured logging with correlation IDs
- Metrics collection (searches, fetches, enrichment, stage timings)
"""

from core.observability.metrics import (
    MetricsCollector,
    get_metrics,
    record_stage_time,
)

from core.observability.logging import (
    get_logger,
    configure_logging,
    CorrelationContext,
    with_correlation,
)

__all__ = [
    # Metrics
    "MetricsCollector",
    "get_metrics",
    "record_stage_time",
    # Logging
    "get_logger",
    "configure_logging",
    "CorrelationContext",
    "with_correlation",
]
