"""
Filing Processing Pipeline.

Detects the document format (HTML, PDF or XBRL), runs the matching
extractor with a simplified fallback, and assembles a ParsedFiling with
the sections that matter for the filing type.
"""

import logging
import re
import time
from datetime import date
from typing import Any, Callable, Iterable, Optional, Union

from ..monitor.parser_monitor import MetricsStore
from ..recovery.errors import (
    ParserErrorCategory,
    RecoveryStrategy,
    Result,
    capture,
    create_parser_error,
    with_error_handling,
)
from ..recovery.simplification import SimplificationStrategy, create_simplified_options
from ..validate.filing_rules import validate_parsed_filing
from .file_types import detect_file_type
from .financial_metrics import extract_financial_metrics
from .html_extractor import parse_html
from .models import (
    FilingSection,
    FilingSectionType,
    FilingType,
    FileType,
    ParsedFiling,
    PDFExtractorOptions,
)
from .pdf_extractor import parse_pdf
from .xbrl_extractor import financial_metric_sections, parse_xbrl_sections, xbrl_filing_metadata

logger = logging.getLogger(__name__)

DEFAULT_MAX_FULL_TEXT_LENGTH = 500000

# Headings worth surfacing per filing type, matched as title substrings
IMPORTANT_SECTIONS = {
    FilingType.FORM_10K: [
        "Management's Discussion and Analysis",
        "Risk Factors",
        "Financial Statements",
        "Notes to Financial Statements",
        "Controls and Procedures",
        "Quantitative and Qualitative Disclosures about Market Risk",
        "Executive Compensation",
        "Business",
    ],
    FilingType.FORM_10Q: [
        "Management's Discussion and Analysis",
        "Risk Factors",
        "Financial Statements",
        "Notes to Financial Statements",
        "Controls and Procedures",
        "Quantitative and Qualitative Disclosures about Market Risk",
    ],
    FilingType.FORM_8K: [
        "Item 1.01",
        "Item 2.01",
        "Item 5.02",
        "Item 7.01",
        "Item 8.01",
        "Item 9.01",
    ],
    FilingType.FORM_4: [
        "Table I",
        "Table II",
        "Reporting Owner",
        "Transactions",
    ],
}

COMPANY_NAME_PATTERN = re.compile(r"([A-Z][A-Z\s&,.]+)(?:\s+\(|\s+-)")
CIK_PATTERNS = [re.compile(r"CIK\s*[#:]?\s*(\d+)", re.IGNORECASE), re.compile(r"(\d{10})")]
FILED_DATE_PATTERN = re.compile(
    r"(?:filed|date|as of)[\s:]*(\d{1,2})[-/](\d{1,2})[-/](\d{2,4})", re.IGNORECASE
)

Extractor = Callable[[Any, PDFExtractorOptions], list[FilingSection]]

_EXTRACTORS: dict[FileType, tuple[Extractor, ParserErrorCategory]] = {
    FileType.HTML: (parse_html, ParserErrorCategory.HTML),
    FileType.PDF: (parse_pdf, ParserErrorCategory.PDF),
    FileType.XBRL: (parse_xbrl_sections, ParserErrorCategory.XBRL),
}


# =============================================================================
# Section lookup and metadata
# =============================================================================

def find_section_content(sections: list[FilingSection], name: str) -> Optional[str]:
    """
    Content of the section titled ``name``, or the text from its first mention.

    Titles are checked first across the given level; otherwise sections are
    scanned in order for a textual mention, descending into children.
    """
    for section in sections:
        if section.title and name in section.title:
            return section.content

    for section in sections:
        position = section.content.find(name)
        if position != -1:
            return section.content[position:]
        if section.children:
            found = find_section_content(section.children, name)
            if found:
                return found
    return None


def extract_important_sections(sections: list[FilingSection], filing_type: FilingType) -> dict[str, str]:
    important = {}
    for name in IMPORTANT_SECTIONS.get(filing_type, []):
        content = find_section_content(sections, name)
        if content:
            important[name] = content
    return important


def _parse_filed_date(text: str) -> Optional[date]:
    match = FILED_DATE_PATTERN.search(text)
    if not match:
        return None
    month, day, year = match.groups()
    if len(year) == 2:
        year = f"20{year}"
    try:
        return date(int(year), int(month), int(day))
    except ValueError:
        logger.debug(f"Ignoring invalid filed date: {match.group(0)}")
        return None


def extract_filing_metadata(sections: list[FilingSection]) -> dict[str, Any]:
    """Company name, CIK and filing date sniffed from the title section."""
    title_section = next(
        (
            s for s in sections
            if s.type == FilingSectionType.TITLE
            or (s.type == FilingSectionType.SECTION and s.title and "Document" in s.title)
        ),
        None,
    )
    if title_section is None:
        return {}

    text = title_section.content
    metadata: dict[str, Any] = {}

    match = COMPANY_NAME_PATTERN.search(text)
    if match:
        metadata["company_name"] = match.group(1).strip()

    for pattern in CIK_PATTERNS:
        match = pattern.search(text)
        if match:
            metadata["cik"] = match.group(1)
            break

    filed = _parse_filed_date(text)
    if filed:
        metadata["filing_date"] = filed
    return metadata


def build_full_text(sections: list[FilingSection], max_length: int = DEFAULT_MAX_FULL_TEXT_LENGTH) -> str:
    text = "\n\n".join(
        s.content for top in sections for s in top.iter_sections() if s.content
    ).strip()
    if len(text) > max_length:
        text = text[:max_length] + "..."
    return text


# =============================================================================
# Entry point
# =============================================================================

def parse_filing(
    content: Union[str, bytes],
    filing_type: Any = FilingType.GENERIC,
    options: Optional[PDFExtractorOptions] = None,
    store: Optional[MetricsStore] = None,
    include_full_text: bool = False,
    max_full_text_length: int = DEFAULT_MAX_FULL_TEXT_LENGTH,
    fallback_strategies: Optional[Iterable[SimplificationStrategy]] = None,
    extract_metrics: bool = True,
    apply_rules: bool = True,
) -> Result[ParsedFiling]:
    """
    Extract a filing document into a ParsedFiling.

    Args:
        content: Raw HTML or PDF content
        filing_type: FilingType or form name
        options: Extractor options (defaults to PDFExtractorOptions())
        store: Optional MetricsStore recording the operation
        include_full_text: Also build the concatenated plain text
        max_full_text_length: Cap for the full text
        fallback_strategies: Degradations for the retry after a failed
            extraction (default: basic text only)
        extract_metrics: Sniff headline financial metrics from the sections
        apply_rules: Run the ParsedFiling rules, keeping their fixes and
            recording failures in validation_issues

    Returns:
        Result holding the ParsedFiling, or the error that stopped extraction
    """
    start = time.perf_counter()
    filing_type = FilingType.parse(filing_type)
    options = options or PDFExtractorOptions()
    strategies = list(fallback_strategies or [SimplificationStrategy.BASIC_TEXT])
    file_type = detect_file_type(content)

    if file_type == FileType.UNKNOWN:
        error = create_parser_error(
            ParserErrorCategory.INVALID_INPUT,
            "Unsupported or unrecognized document format",
            recovery=RecoveryStrategy.ABORT,
            context={"filing_type": filing_type.value, "content_length": len(content)},
        )
        if store is not None:
            store.record_failure(store.start_operation(file_type.value, filing_type.value), error)
        return Result.failure(error.info)

    extractor, category = _EXTRACTORS[file_type]
    used_fallback = False

    def primary() -> list[FilingSection]:
        return extractor(content, options)

    def fallback() -> list[FilingSection]:
        nonlocal used_fallback
        used_fallback = True
        logger.info(f"Retrying {file_type.value} extraction with {[s.value for s in strategies]}")
        return extractor(content, create_simplified_options(options, strategies))

    def run() -> list[FilingSection]:
        return with_error_handling(
            primary,
            fallback=fallback,
            context={"filing_type": filing_type.value, "file_type": file_type.value},
            default_category=category,
        )

    if store is not None:
        result = capture(
            lambda: store.monitored(file_type.value, filing_type.value, run, get_result_size=len),
            default_category=category,
        )
    else:
        result = capture(run, default_category=category)

    if not result.ok:
        return Result.failure(result.error)

    sections = result.value
    important = extract_important_sections(sections, filing_type)
    metadata = extract_filing_metadata(sections)
    if file_type == FileType.XBRL:
        important.update(financial_metric_sections(sections))
        metadata.update(xbrl_filing_metadata(sections))

    parsed = ParsedFiling(
        filing_type=filing_type,
        file_type=file_type,
        sections=sections,
        tables=[s for s in sections if s.type == FilingSectionType.TABLE],
        lists=[s for s in sections if s.type == FilingSectionType.LIST],
        important_sections=important,
        full_text=build_full_text(sections, max_full_text_length) if include_full_text else None,
        used_fallback=used_fallback,
        financial_metrics=extract_financial_metrics(sections) if extract_metrics else {},
        **metadata,
    )

    if apply_rules:
        report = validate_parsed_filing(parsed, IMPORTANT_SECTIONS.get(filing_type))
        if report.is_fixed:
            parsed = report.fixed_data
        parsed.validation_issues = [failure.describe() for failure in report.failures]

    parsed.processing_time_ms = int((time.perf_counter() - start) * 1000)

    logger.info(
        f"Parsed {filing_type.value} {file_type.value}: {len(sections)} sections, "
        f"{len(parsed.tables)} tables, {len(parsed.important_sections)} important sections"
        + (" (fallback)" if used_fallback else "")
    )
    return Result.success(parsed)
