"""
Parser operation monitoring.

Tracks per-parser counters (attempts, successes, failures, retries, timing,
failures by error category) and keeps a bounded, most-recent-first buffer of
individual operation records for ad-hoc inspection.

The store is observational only: resetting it, or not passing one at all,
never changes what a parser returns.

Usage:
    store = MetricsStore()
    sections = store.monitored("html", "10-K", lambda: parse_html(html))
    print(store.generate_report("html"))
"""

import copy
import logging
import secrets
import threading
import time
from collections import deque
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional, TypeVar

from ..recovery.errors import ParserError, ParserErrorCategory

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_RECENT_OPERATIONS = 100
REPORT_RECENT_OPERATIONS = 10


@dataclass
class ParserMetrics:
    """Aggregate counters for one parser type."""
    total_attempts: int = 0
    success_count: int = 0
    failure_count: int = 0
    retry_count: int = 0
    total_parsing_time_ms: float = 0.0
    average_parsing_time_ms: float = 0.0
    error_count_by_category: dict[str, int] = field(default_factory=dict)
    last_error: Optional[str] = None
    last_success_time: Optional[float] = None
    last_error_time: Optional[float] = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ParseOperationRecord:
    """One monitored parse operation."""
    id: str
    parser_type: str
    source_type: str
    start_time: float
    end_time: Optional[float] = None
    elapsed_ms: Optional[float] = None
    success: bool = False
    error_category: Optional[ParserErrorCategory] = None
    error_message: Optional[str] = None
    used_fallback: bool = False
    used_retry: bool = False
    retry_count: int = 0
    result_size: Optional[int] = None
    metadata_size: Optional[int] = None

    def to_dict(self) -> dict:
        data = asdict(self)
        if self.error_category is not None:
            data["error_category"] = self.error_category.value
        return data


def _operation_id(parser_type: str) -> str:
    return f"{parser_type}-{int(time.time() * 1000)}-{secrets.token_hex(4)}"


class MetricsStore:
    """
    Thread-safe parser metrics and recent-operation buffer.

    Success rates are fractions in [0, 1].
    """

    def __init__(self, max_recent_operations: int = DEFAULT_MAX_RECENT_OPERATIONS):
        self.max_recent_operations = max_recent_operations
        self._metrics: dict[str, ParserMetrics] = {}
        self._recent: deque[ParseOperationRecord] = deque()
        self._by_id: dict[str, ParseOperationRecord] = {}
        self._lock = threading.Lock()

    # =========================================================================
    # Recording
    # =========================================================================

    def _metrics_for(self, parser_type: str) -> ParserMetrics:
        if parser_type not in self._metrics:
            self._metrics[parser_type] = ParserMetrics()
        return self._metrics[parser_type]

    def start_operation(self, parser_type: str, source_type: str) -> str:
        """Register a new operation and return its id."""
        record = ParseOperationRecord(
            id=_operation_id(parser_type),
            parser_type=parser_type,
            source_type=source_type,
            start_time=time.time(),
        )
        with self._lock:
            self._recent.appendleft(record)
            self._by_id[record.id] = record
            while len(self._recent) > self.max_recent_operations:
                evicted = self._recent.pop()
                self._by_id.pop(evicted.id, None)
            self._metrics_for(parser_type).total_attempts += 1
        return record.id

    def _finish(self, operation_id: str) -> Optional[ParseOperationRecord]:
        record = self._by_id.get(operation_id)
        if record is None:
            logger.warning(f"Cannot find operation record for ID: {operation_id}")
            return None
        record.end_time = time.time()
        record.elapsed_ms = (record.end_time - record.start_time) * 1000
        return record

    def record_success(
        self,
        operation_id: str,
        result_size: Optional[int] = None,
        metadata_size: Optional[int] = None,
        used_fallback: bool = False,
        used_retry: bool = False,
        retry_count: int = 0,
    ) -> None:
        with self._lock:
            record = self._finish(operation_id)
            if record is None:
                return
            record.success = True
            record.used_fallback = used_fallback
            record.used_retry = used_retry
            record.retry_count = retry_count
            record.result_size = result_size
            record.metadata_size = metadata_size

            metrics = self._metrics_for(record.parser_type)
            metrics.success_count += 1
            metrics.total_parsing_time_ms += record.elapsed_ms
            metrics.average_parsing_time_ms = metrics.total_parsing_time_ms / metrics.success_count
            metrics.last_success_time = record.end_time
            metrics.retry_count += retry_count

        logger.debug(f"Successful parsing operation: {operation_id} ({record.elapsed_ms:.1f}ms)")

    def record_failure(
        self,
        operation_id: str,
        error: BaseException,
        used_retry: bool = False,
        retry_count: int = 0,
    ) -> None:
        with self._lock:
            record = self._finish(operation_id)
            if record is None:
                return
            record.success = False
            record.used_retry = used_retry
            record.retry_count = retry_count
            record.error_message = str(error)
            if isinstance(error, ParserError):
                record.error_category = error.category
                record.used_fallback = error.should_use_fallback()

            metrics = self._metrics_for(record.parser_type)
            metrics.failure_count += 1
            metrics.last_error = f"{type(error).__name__}: {error}"
            metrics.last_error_time = record.end_time
            if record.error_category is not None:
                key = record.error_category.value
                metrics.error_count_by_category[key] = metrics.error_count_by_category.get(key, 0) + 1
            metrics.retry_count += retry_count

        logger.warning(
            f"Parsing operation failed: {operation_id} ({record.elapsed_ms:.1f}ms, "
            f"parser: {record.parser_type}): {error}"
        )

    def monitored(
        self,
        parser_type: str,
        source_type: str,
        fn: Callable[[], T],
        get_result_size: Optional[Callable[[T], int]] = None,
        get_metadata_size: Optional[Callable[[T], int]] = None,
    ) -> T:
        """Run fn as a monitored operation; exceptions are recorded and re-raised."""
        operation_id = self.start_operation(parser_type, source_type)
        try:
            result = fn()
        except Exception as e:
            used_retry = isinstance(e, ParserError) and e.should_retry()
            self.record_failure(operation_id, e, used_retry=used_retry)
            raise

        self.record_success(
            operation_id,
            result_size=get_result_size(result) if get_result_size else None,
            metadata_size=get_metadata_size(result) if get_metadata_size else None,
        )
        return result

    # =========================================================================
    # Queries
    # =========================================================================

    def get_metrics(self, parser_type: str) -> ParserMetrics:
        """Snapshot of one parser's counters (zeros for an unseen parser)."""
        with self._lock:
            metrics = self._metrics.get(parser_type)
            return copy.deepcopy(metrics) if metrics is not None else ParserMetrics()

    def get_all_metrics(self) -> dict[str, ParserMetrics]:
        with self._lock:
            return copy.deepcopy(self._metrics)

    def get_recent_operations(
        self,
        limit: int = DEFAULT_MAX_RECENT_OPERATIONS,
        parser_type: Optional[str] = None,
        success: Optional[bool] = None,
        since: Optional[float] = None,
        until: Optional[float] = None,
        predicate: Optional[Callable[[ParseOperationRecord], bool]] = None,
    ) -> list[ParseOperationRecord]:
        """
        Recent operations, most recent first.

        Args:
            limit: Maximum records returned
            parser_type: Only this parser type
            success: Only successful (True) or failed (False) operations
            since: Only operations started at or after this epoch time
            until: Only operations started at or before this epoch time
            predicate: Arbitrary extra filter
        """
        with self._lock:
            records = [copy.copy(r) for r in self._recent]

        if parser_type is not None:
            records = [r for r in records if r.parser_type == parser_type]
        if success is not None:
            records = [r for r in records if r.success == success]
        if since is not None:
            records = [r for r in records if r.start_time >= since]
        if until is not None:
            records = [r for r in records if r.start_time <= until]
        if predicate is not None:
            records = [r for r in records if predicate(r)]

        records.sort(key=lambda r: r.start_time, reverse=True)
        return records[:limit]

    def get_success_rate(self, parser_type: str) -> float:
        metrics = self.get_metrics(parser_type)
        if metrics.total_attempts == 0:
            return 0.0
        return metrics.success_count / metrics.total_attempts

    def get_error_distribution(self, parser_type: str) -> dict[str, dict[str, float]]:
        """Failure counts and percentages per error category."""
        metrics = self.get_metrics(parser_type)
        if metrics.failure_count == 0:
            return {}
        return {
            category: {"count": count, "percentage": count / metrics.failure_count * 100}
            for category, count in metrics.error_count_by_category.items()
        }

    def _overall_success_rate(self) -> float:
        all_metrics = self.get_all_metrics().values()
        attempts = sum(m.total_attempts for m in all_metrics)
        successes = sum(m.success_count for m in all_metrics)
        return successes / attempts if attempts else 0.0

    def generate_report(self, parser_type: Optional[str] = None) -> dict[str, Any]:
        """Performance report for one parser type, or for all of them."""
        if parser_type is not None:
            return {
                "parser_type": parser_type,
                "metrics": self.get_metrics(parser_type).to_dict(),
                "error_distribution": self.get_error_distribution(parser_type),
                "success_rate": self.get_success_rate(parser_type),
                "recent_operations": [
                    r.to_dict()
                    for r in self.get_recent_operations(REPORT_RECENT_OPERATIONS, parser_type=parser_type)
                ],
                "generated_at": datetime.now(timezone.utc).isoformat(),
            }

        all_metrics = self.get_all_metrics()
        return {
            "summary": {
                "total_parsers": len(all_metrics),
                "total_operations": sum(m.total_attempts for m in all_metrics.values()),
                "overall_success_rate": self._overall_success_rate(),
                "recent_operations": [r.to_dict() for r in self.get_recent_operations(REPORT_RECENT_OPERATIONS)],
            },
            "parser_reports": {name: self.generate_report(name) for name in all_metrics},
        }

    def reset(self) -> None:
        with self._lock:
            self._metrics.clear()
            self._recent.clear()
            self._by_id.clear()
