"""
Headline financial metrics sniffed from extracted sections.

Text sections are searched with "<label>: <amount>" patterns; TABLE sections
are searched by row label, taking the value from the first column whose
header looks like a period (a year, a quarter). The first hit per metric
wins, in section order.
"""

import logging
import re
from typing import Optional

from .models import FilingSection, FilingSectionType, FinancialMetricValue

logger = logging.getLogger(__name__)

AMOUNT = r"([$€£]?\d[\d,.]*(?:\s*(?:billion|million|thousand|[bmk])\b)?)(?:\s*(?:USD|EUR|GBP))?"
PER_SHARE_AMOUNT = r"([$€£]?\d[\d,.]*)(?:\s*(?:USD|EUR|GBP))?"

METRIC_PATTERNS = {
    "Revenue": [
        re.compile(rf"(?:Total\s+)?Revenues?(?:\s+and\s+Other\s+Income)?[:\s]+{AMOUNT}", re.IGNORECASE),
    ],
    "Net Income": [
        re.compile(rf"Net\s+Income(?:\s+\(Loss\))?[:\s]+{AMOUNT}", re.IGNORECASE),
        re.compile(rf"Net\s+Earnings[:\s]+{AMOUNT}", re.IGNORECASE),
    ],
    "Earnings Per Share": [
        re.compile(rf"(?:Basic\s+)?Earnings\s+Per\s+Share[:\s]+{PER_SHARE_AMOUNT}", re.IGNORECASE),
        re.compile(rf"EPS[:\s]+{PER_SHARE_AMOUNT}", re.IGNORECASE),
    ],
    "Total Assets": [
        re.compile(rf"Total\s+Assets[:\s]+{AMOUNT}", re.IGNORECASE),
        re.compile(rf"Assets[:\s]+{AMOUNT}", re.IGNORECASE),
    ],
    "Total Liabilities": [
        re.compile(rf"Total\s+Liabilities[:\s]+{AMOUNT}", re.IGNORECASE),
        re.compile(rf"Liabilities[:\s]+{AMOUNT}", re.IGNORECASE),
    ],
    "Cash and Cash Equivalents": [
        re.compile(rf"Cash\s+and\s+Cash\s+Equivalents[:\s]+{AMOUNT}", re.IGNORECASE),
        re.compile(rf"Cash(?:\s+and\s+(?:cash\s+)?equivalents)?[:\s]+{AMOUNT}", re.IGNORECASE),
    ],
}

PERIOD_HEADER_PATTERN = re.compile(r"20\d{2}|q\d|quarter|period", re.IGNORECASE)


def _clean(value: str) -> str:
    return value.strip().rstrip(".,")


def _search_text(content: str, patterns: list[re.Pattern]) -> Optional[str]:
    for pattern in patterns:
        match = pattern.search(content)
        if match and match.group(1):
            return _clean(match.group(1))
    return None


def _value_columns(header: list[str]) -> list[int]:
    columns = [i for i, cell in enumerate(header) if PERIOD_HEADER_PATTERN.search(cell)]
    if not columns and len(header) > 1:
        columns = [len(header) - 1]
    return columns


def extract_metrics_from_table(section: FilingSection, metrics: dict[str, FinancialMetricValue]) -> None:
    """Fill metrics not yet found from a table's labelled rows, in place."""
    rows = section.table_data or []
    if len(rows) < 2:
        return

    columns = _value_columns(rows[0])
    if not columns:
        return

    for row in rows[1:]:
        if len(row) <= columns[0]:
            continue
        label = row[0].lower()
        for metric in METRIC_PATTERNS:
            if metric in metrics or metric.lower() not in label:
                continue
            value = row[columns[0]].strip()
            if value:
                metrics[metric] = FinancialMetricValue(value=value, source=section.title or "Financial Table")


def extract_financial_metrics(sections: list[FilingSection]) -> dict[str, FinancialMetricValue]:
    """
    Find headline metrics across all sections, descending into children.

    Returns:
        Metric name -> value as written plus the title of its section
    """
    metrics: dict[str, FinancialMetricValue] = {}
    for top in sections:
        for section in top.iter_sections():
            if section.content:
                for metric, patterns in METRIC_PATTERNS.items():
                    if metric in metrics:
                        continue
                    value = _search_text(section.content, patterns)
                    if value:
                        metrics[metric] = FinancialMetricValue(
                            value=value, source=section.title or "Untitled Section",
                        )
            if section.type == FilingSectionType.TABLE:
                extract_metrics_from_table(section, metrics)

    logger.debug(f"Found {len(metrics)} financial metrics")
    return metrics
