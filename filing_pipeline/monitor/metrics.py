"""
Response-parser metrics aggregation.

This module provides:
- ParseMetrics, the per-call record produced by parse_response
- ParseMetricsCollector, a bounded store with per-filing-type statistics
"""

import threading
from collections import defaultdict, deque
from dataclasses import asdict, dataclass
from typing import Optional


@dataclass
class ParseMetrics:
    """Timings and outcome of one parse_response call."""
    document_type: str
    extraction_success: bool = False
    validation_success: bool = False
    extraction_time_ms: float = 0.0
    validation_time_ms: float = 0.0
    extraction_method: str = "none"
    error_type: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.extraction_success and self.validation_success

    @property
    def error_key(self) -> str:
        """Bucket used by error statistics."""
        if not self.extraction_success:
            return f"ExtractionFailed:{self.extraction_method}"
        if not self.validation_success:
            return "ValidationFailed"
        return self.error_type or "Unknown"

    def to_dict(self) -> dict:
        return asdict(self)


def _count_stats(keys: list[str]) -> dict[str, dict[str, float]]:
    counts: dict[str, int] = defaultdict(int)
    for key in keys:
        counts[key] += 1
    return {
        key: {"count": count, "percentage": count / len(keys) * 100}
        for key, count in counts.items()
    }


class ParseMetricsCollector:
    """
    Bounded store of ParseMetrics with aggregate views.

    Keeps the most recent ``max_stored`` records. Every statistic accepts an
    optional filing type filter.
    """

    def __init__(self, max_stored: int = 1000):
        self.max_stored = max_stored
        self._metrics: deque[ParseMetrics] = deque(maxlen=max_stored)
        self._lock = threading.Lock()

    def record(self, metric: ParseMetrics) -> None:
        with self._lock:
            self._metrics.append(metric)

    def all_metrics(self) -> list[ParseMetrics]:
        with self._lock:
            return list(self._metrics)

    def _filtered(self, filing_type: Optional[str] = None) -> list[ParseMetrics]:
        metrics = self.all_metrics()
        if filing_type is None:
            return metrics
        return [m for m in metrics if m.document_type == str(getattr(filing_type, "value", filing_type))]

    def success_rate(self, filing_type: Optional[str] = None) -> float:
        """Percentage of calls where both extraction and validation succeeded."""
        metrics = self._filtered(filing_type)
        if not metrics:
            return 0.0
        return sum(1 for m in metrics if m.succeeded) / len(metrics) * 100

    def average_extraction_time(self, filing_type: Optional[str] = None) -> float:
        metrics = self._filtered(filing_type)
        if not metrics:
            return 0.0
        return sum(m.extraction_time_ms for m in metrics) / len(metrics)

    def average_validation_time(self, filing_type: Optional[str] = None) -> float:
        """Average over calls that got as far as validation."""
        metrics = [m for m in self._filtered(filing_type) if m.extraction_success]
        if not metrics:
            return 0.0
        return sum(m.validation_time_ms for m in metrics) / len(metrics)

    def extraction_method_stats(self, filing_type: Optional[str] = None) -> dict[str, dict[str, float]]:
        metrics = self._filtered(filing_type)
        if not metrics:
            return {}
        return _count_stats([m.extraction_method for m in metrics])

    def error_stats(self, filing_type: Optional[str] = None) -> dict[str, dict[str, float]]:
        """Counts and percentages per error bucket, over failed calls only."""
        failed = [
            m for m in self._filtered(filing_type)
            if m.error_type or not m.extraction_success or not m.validation_success
        ]
        if not failed:
            return {}
        return _count_stats([m.error_key for m in failed])

    def summary(self, filing_type: Optional[str] = None) -> dict:
        summary = {
            "total_requests": len(self._filtered(filing_type)),
            "success_rate": self.success_rate(filing_type),
            "average_extraction_time_ms": self.average_extraction_time(filing_type),
            "average_validation_time_ms": self.average_validation_time(filing_type),
            "extraction_methods": self.extraction_method_stats(filing_type),
            "errors": self.error_stats(filing_type),
        }
        if filing_type is None:
            summary["by_filing_type"] = self._filing_type_breakdown()
        return summary

    def _filing_type_breakdown(self) -> dict[str, dict]:
        breakdown = {}
        for document_type in sorted({m.document_type for m in self.all_metrics() if m.document_type}):
            breakdown[document_type] = {
                "count": len(self._filtered(document_type)),
                "success_rate": self.success_rate(document_type),
                "average_extraction_time_ms": self.average_extraction_time(document_type),
            }
        return breakdown

    def clear(self) -> None:
        with self._lock:
            self._metrics.clear()

    def __len__(self) -> int:
        return len(self.all_metrics())
