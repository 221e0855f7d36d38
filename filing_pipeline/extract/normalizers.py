"""
Field Normalization Utilities

Converts dates, currency amounts and percentages from the many shapes a model
reply uses into one comparable format:

1. Dates       -> YYYY-MM-DD
2. Currency    -> $1,234.56
3. Percentages -> 12.34%

Normalizers never raise: an input they cannot read comes back unchanged
(currency and percentage gain their symbol if it was missing).
"""

import logging
import re
from datetime import datetime
from typing import Any, Optional, Union

from dateutil import parser as date_parser

from ..parse.models import FilingType

logger = logging.getLogger(__name__)


# =============================================================================
# DATES
# =============================================================================

MONTHS = [
    "january", "february", "march", "april", "may", "june",
    "july", "august", "september", "october", "november", "december",
]
SHORT_MONTHS = [m[:3] for m in MONTHS]

ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
LONG_MONTH_DATE = re.compile(r"([A-Za-z]+)\s+(\d{1,2}),?\s+(\d{4})")    # January 15, 2023
SLASH_DATE = re.compile(r"(\d{1,2})/(\d{1,2})/(\d{4})")                 # 01/15/2023
DASH_DATE = re.compile(r"(\d{1,2})-(\d{1,2})-(\d{4})")                  # 01-15-2023
SHORT_MONTH_DATE = re.compile(r"(\d{1,2})\s+([A-Za-z]{3})\s+(\d{4})")   # 15 Jan 2023

# Missing parts in generic parsing default to January 1st
_DATE_DEFAULT = datetime(2000, 1, 1)


def month_index(month: str) -> int:
    """Zero-based month from a full or abbreviated name; unknown names are January."""
    name = month.lower()
    for i, full in enumerate(MONTHS):
        if full.startswith(name):
            return i
    if name in SHORT_MONTHS:
        return SHORT_MONTHS.index(name)
    return 0


def _iso(year: str, month: int, day: str) -> str:
    return f"{year}-{month:02d}-{int(day):02d}"


def normalize_date(value: str) -> str:
    """Normalize a date string to YYYY-MM-DD, or return it unchanged."""
    if ISO_DATE.match(value):
        return value

    match = LONG_MONTH_DATE.search(value)
    if match:
        month, day, year = match.groups()
        return _iso(year, month_index(month) + 1, day)

    match = SLASH_DATE.search(value) or DASH_DATE.search(value)
    if match:
        month, day, year = match.groups()
        return _iso(year, int(month), day)

    match = SHORT_MONTH_DATE.search(value)
    if match:
        day, month, year = match.groups()
        return _iso(year, month_index(month) + 1, day)

    try:
        return date_parser.parse(value, default=_DATE_DEFAULT).date().isoformat()
    except (ValueError, OverflowError):
        logger.debug(f"Unrecognized date format: {value!r}")
        return value


# =============================================================================
# CURRENCY AND PERCENTAGES
# =============================================================================

FORMATTED_CURRENCY = re.compile(r"^\$[\d,]+\.\d{2}$")
FORMATTED_PERCENTAGE = re.compile(r"^(-?\d+(?:\.\d+)?)%$")
LEADING_NUMBER = re.compile(r"^-?(?:\d+\.?\d*|\.\d+)")

BASIS_POINT_THRESHOLD = 100


def _numeric_part(text: str) -> Optional[float]:
    """Digits, '.' and '-' only, keeping just the last decimal point."""
    numeric = re.sub(r"[^\d.\-]", "", text)
    if numeric.count(".") > 1:
        last = numeric.rfind(".")
        numeric = numeric[:last].replace(".", "") + numeric[last:]
    match = LEADING_NUMBER.match(numeric)
    return float(match.group()) if match else None


def normalize_currency(value: Union[str, int, float]) -> str:
    """Render a monetary amount as $X,XXX.XX."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return f"${value:,.2f}"

    text = str(value).strip()
    if FORMATTED_CURRENCY.match(text):
        return text

    amount = _numeric_part(text)
    if amount is None:
        return text if "$" in text else f"${text}"
    return f"${amount:,.2f}"


def normalize_percentage(value: Union[str, int, float]) -> str:
    """
    Render a percentage as X.XX%.

    Numbers in (-1, 1) are fractions (0.25 -> 25.00%). Magnitudes above 100
    without an explicit '%' are basis points (150 -> 1.50%).
    """
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if -1 < value < 1:
            return f"{value * 100:.2f}%"
        if value > BASIS_POINT_THRESHOLD:
            return f"{value / 100:.2f}%"
        return f"{value:.2f}%"

    text = str(value).strip()
    match = FORMATTED_PERCENTAGE.match(text)
    if match:
        return f"{float(match.group(1)):.2f}%"

    number = _numeric_part(text)
    if number is None:
        return text if "%" in text else f"{text}%"
    if "%" not in text and number > BASIS_POINT_THRESHOLD:
        number /= 100
    return f"{number:.2f}%"


# =============================================================================
# FILING-SPECIFIC FIELDS
# =============================================================================

COMPENSATION_FIELDS = ["salary", "bonus", "stockAwards", "optionAwards", "total"]

FINANCIAL_REPORT_TYPES = {
    FilingType.FORM_10K,
    FilingType.FORM_10Q,
    FilingType.FORM_20F,
    FilingType.FORM_6K,
}


def _is_amount(value: Any) -> bool:
    return isinstance(value, (str, int, float)) and not isinstance(value, bool)


def _normalize_financials(items: list) -> list:
    normalized = []
    for item in items:
        if not isinstance(item, dict):
            normalized.append(item)
            continue
        item = dict(item)
        if _is_amount(item.get("value")):
            item["value"] = normalize_currency(item["value"])
        if _is_amount(item.get("growth")):
            item["growth"] = normalize_percentage(item["growth"])
        normalized.append(item)
    return normalized


def _normalize_compensation(items: list) -> list:
    normalized = []
    for item in items:
        if not isinstance(item, dict):
            normalized.append(item)
            continue
        item = dict(item)
        for field in COMPENSATION_FIELDS:
            if item.get(field) and _is_amount(item[field]):
                item[field] = normalize_currency(item[field])
        normalized.append(item)
    return normalized


def normalize_fields(data: Any, filing_type: FilingType) -> Any:
    """
    Apply date/currency/percentage normalization for a filing type.

    Returns a new dict; non-dict data is returned as-is.
    """
    if not isinstance(data, dict):
        return data

    filing_type = FilingType.parse(filing_type)
    normalized = dict(data)

    for key in ("filingDate", "reportDate"):
        if normalized.get(key) and isinstance(normalized[key], str):
            normalized[key] = normalize_date(normalized[key])

    period = normalized.get("period")
    if period and isinstance(period, str) and re.search(r"\d{4}", period):
        normalized["period"] = normalize_date(period)

    if filing_type in FINANCIAL_REPORT_TYPES:
        if isinstance(normalized.get("financials"), list):
            normalized["financials"] = _normalize_financials(normalized["financials"])

    elif filing_type == FilingType.DEF_14A:
        if isinstance(normalized.get("executiveCompensation"), list):
            normalized["executiveCompensation"] = _normalize_compensation(
                normalized["executiveCompensation"]
            )
        if normalized.get("meetingDate") and isinstance(normalized["meetingDate"], str):
            normalized["meetingDate"] = normalize_date(normalized["meetingDate"])

    return normalized
