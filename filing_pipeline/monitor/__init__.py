"""
Observability for the filing pipeline.

This module provides:
- MetricsStore: per-parser counters and a bounded recent-operation buffer
- ParseMetricsCollector: per-filing-type response parser statistics
"""

from .metrics import (
    ParseMetrics,
    ParseMetricsCollector,
)
from .parser_monitor import (
    ParserMetrics,
    ParseOperationRecord,
    MetricsStore,
)

__all__ = [
    # Response parser metrics
    "ParseMetrics",
    "ParseMetricsCollector",
    # Parser operation monitoring
    "ParserMetrics",
    "ParseOperationRecord",
    "MetricsStore",
]
