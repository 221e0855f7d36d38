"""
Response parser: model reply text -> validated filing summary.

Steps, each recovered locally before anything surfaces to the caller:
1. extract JSON (strategy cascade)
2. repair-and-retry when extraction failed
3. validate against the filing-type schema
4. salvage individually valid fields when validation failed
5. normalize dates, currency and percentages (opt-in)

Messy replies never raise; they come back as ParseResult(success=False).

Usage:
    result = parse_response(reply_text, FilingType.FORM_10K, ParseOptions(normalize=True))
    if result.success and not result.partial:
        store(result.data)
"""

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Iterator, Optional

from pydantic import BaseModel

from ..monitor.metrics import ParseMetrics, ParseMetricsCollector
from ..parse.models import FilingType
from ..validate.validators import extract_valid_fields, validate_against_schema
from .json_extractors import (
    ANY_FENCE,
    ExtractedJSON,
    ExtractionMethod,
    extract_json,
    repair_json,
)
from .normalizers import normalize_fields

logger = logging.getLogger(__name__)

EXTRACTION_FAILED_ERROR = "Failed to extract JSON from response"


class ParseOptions(BaseModel):
    """Options for parse_response."""

    allow_partial: bool = True        # Key-value scraping and per-field salvage
    strict_validation: bool = False
    max_attempts: int = 3             # Repair attempts after extraction fails
    normalize: bool = False
    collect_metrics: bool = False


@dataclass
class ParseResult:
    """
    Outcome handed to the summarization caller.

    success=False implies data is None. partial=True marks usable data that
    did not fully satisfy validation.
    """
    success: bool
    data: Optional[dict[str, Any]] = None
    raw: Optional[str] = None
    errors: Optional[list[str]] = None
    partial: bool = False
    metrics: Optional[ParseMetrics] = None

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "data": self.data,
            "raw": self.raw,
            "errors": self.errors,
            "partial": self.partial,
            "metrics": self.metrics.to_dict() if self.metrics else None,
        }


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


def _repair_candidates(text: str, extracted: ExtractedJSON) -> Iterator[str]:
    """Progressively narrower spans of the reply to repair."""
    yield extracted.raw or text

    fence = ANY_FENCE.search(text)
    if fence:
        yield fence.group(1).strip()

    first, last = text.find("{"), text.rfind("}")
    if first != -1 and last > first:
        yield text[first:last + 1]


def repair_and_parse(text: str, extracted: ExtractedJSON, max_attempts: int) -> ExtractedJSON:
    """
    Retry a failed extraction on repaired text.

    Returns a successful ExtractedJSON labelled '<method>-repaired', or the
    original failure when no candidate parses within max_attempts.
    """
    seen = set()
    attempts = 0
    for candidate in _repair_candidates(text, extracted):
        if attempts >= max_attempts:
            break
        if candidate in seen:
            continue
        seen.add(candidate)
        attempts += 1

        repaired = repair_json(candidate)
        try:
            parsed = json.loads(repaired)
        except json.JSONDecodeError:
            continue
        logger.debug(f"Repaired JSON on attempt {attempts}")
        return ExtractedJSON(
            raw=repaired,
            parsed=parsed,
            extraction_method=ExtractionMethod.repaired(extracted.extraction_method),
            success=True,
        )
    return extracted


def build_parse_result(
    extracted: ExtractedJSON,
    filing_type: FilingType,
    options: ParseOptions,
    metrics: ParseMetrics,
) -> ParseResult:
    """Validation, partial salvage and normalization for a successful extraction."""
    validation_start = time.perf_counter()
    validation = validate_against_schema(extracted.parsed, filing_type, options.strict_validation)
    metrics.validation_time_ms = _elapsed_ms(validation_start)
    metrics.validation_success = validation.valid

    if validation.valid:
        data = validation.validated_data
    elif options.allow_partial:
        data = extract_valid_fields(extracted.parsed, filing_type)
    else:
        data = None

    if options.normalize and data:
        data = normalize_fields(data, filing_type)

    has_data = bool(data)
    if not validation.valid:
        logger.debug(
            f"Validation failed for {filing_type.value}: {validation.errors} "
            f"(salvaged {len(data or {})} fields)"
        )

    return ParseResult(
        success=validation.valid or has_data,
        data=data if has_data else None,
        raw=extracted.raw,
        errors=None if validation.valid else validation.errors,
        partial=not validation.valid and has_data,
        metrics=metrics if options.collect_metrics else None,
    )


def parse_response(
    text: str,
    filing_type: Any = FilingType.GENERIC,
    options: Optional[ParseOptions] = None,
    collector: Optional[ParseMetricsCollector] = None,
) -> ParseResult:
    """
    Parse a model reply into filing-specific structured data.

    Args:
        text: Raw model reply
        filing_type: FilingType or form name (unknown names use the Generic schema)
        options: Parse options (defaults to ParseOptions())
        collector: Optional metrics sink; every call is recorded when given

    Returns:
        ParseResult (never raises for malformed replies)
    """
    options = options or ParseOptions()
    filing_type = FilingType.parse(filing_type)
    metrics = ParseMetrics(document_type=filing_type.value)
    start = time.perf_counter()

    try:
        extracted = extract_json(text, allow_partial=options.allow_partial)

        if not extracted.success and options.max_attempts > 0:
            extracted = repair_and_parse(text, extracted, options.max_attempts)

        metrics.extraction_time_ms = _elapsed_ms(start)
        metrics.extraction_method = extracted.extraction_method
        metrics.extraction_success = extracted.success

        if not extracted.success:
            logger.warning(f"No JSON found in {filing_type.value} response ({len(text)} chars)")
            result = ParseResult(
                success=False,
                errors=[extracted.error or EXTRACTION_FAILED_ERROR],
                raw=text,
                metrics=metrics if options.collect_metrics else None,
            )
        else:
            result = build_parse_result(extracted, filing_type, options, metrics)
    except Exception as e:
        logger.exception(f"Unexpected error parsing {filing_type.value} response")
        metrics.error_type = type(e).__name__
        if not metrics.extraction_time_ms:
            metrics.extraction_time_ms = _elapsed_ms(start)
        result = ParseResult(
            success=False,
            errors=[str(e)],
            raw=text,
            metrics=metrics if options.collect_metrics else None,
        )

    if collector is not None:
        collector.record(metrics)
    return result
