"""
XBRL extractor for SEC filings.

Handles both XBRL instance documents (XML) and inline XBRL (facts tagged
inside the filing HTML). Contexts, units and facts are collected into an
XBRLDocument; parse_xbrl_sections then lays that out as FilingSection nodes:
- SECTION "Document Information" with the dei cover facts
- SECTION "XBRL Contexts" / "XBRL Units" as JSON
- SECTION "Financial Metric: <name>" per standardized metric found
- TABLE "XBRL Facts" with one row per fact

Usage:
    document = parse_xbrl(content)
    for fact in document.standardized_metrics["Revenue"]:
        print(fact.qualified_name, fact.value, fact.context_ref)
"""

import json
import logging
import re
from typing import Any, Callable, Optional, Union

from bs4 import BeautifulSoup, Tag
from dateutil import parser as date_parser
from pydantic import BaseModel

from ..recovery.errors import ParserError, ParserErrorCategory, create_parser_error
from .html_extractor import normalize_whitespace, table_data_to_string, truncate
from .models import (
    ExtractorOptions,
    FilingSection,
    FilingSectionType,
    XBRLContext,
    XBRLDocument,
    XBRLFact,
    XBRLUnit,
)

logger = logging.getLogger(__name__)

INLINE_SNIFF_LENGTH = 1000
INLINE_HTML_PATTERN = re.compile(r"<html", re.IGNORECASE)
NAMESPACE_PATTERN = re.compile(r"xmlns:([\w.-]+)\s*=\s*[\"']([^\"']+)[\"']")

# Inline XBRL wrappers; the concept is in their name attribute
INLINE_FACT_TAGS = ("nonfraction", "nonnumeric", "fraction")

# Substrings of concept names, matched case-insensitively
STANDARD_FINANCIAL_METRICS = {
    "Revenue": [
        "Revenue",
        "RevenueFromContractWithCustomerExcludingAssessedTax",
        "Revenues",
        "SalesRevenueNet",
        "TotalRevenuesAndOtherIncome",
    ],
    "NetIncome": ["NetIncomeLoss", "ProfitLoss", "NetIncome", "NetEarningsLoss"],
    "TotalAssets": ["Assets", "AssetsCurrent", "AssetsTotal"],
    "TotalLiabilities": ["Liabilities", "LiabilitiesCurrent", "LiabilitiesTotal"],
    "EPS": ["EarningsPerShareBasic", "EarningsPerShareDiluted"],
    "OperatingIncome": ["OperatingIncomeLoss", "GrossProfit", "OperatingProfit"],
    "CashAndEquivalents": [
        "CashAndCashEquivalentsAtCarryingValue",
        "Cash",
        "CashEquivalentsAndShortTermInvestments",
    ],
}

# dei cover-page concepts -> document_info keys
DOCUMENT_INFO_CONCEPTS = {
    "DocumentType": "document_type",
    "EntityRegistrantName": "company_name",
    "EntityCentralIndexKey": "cik",
    "DocumentPeriodEndDate": "filing_date",
    "DocumentFiscalYearFocus": "fiscal_year",
    "DocumentFiscalPeriodFocus": "fiscal_period",
}

DOCUMENT_INFO_TITLE = "Document Information"
CONTEXTS_TITLE = "XBRL Contexts"
UNITS_TITLE = "XBRL Units"
FACTS_TITLE = "XBRL Facts"
FINANCIAL_METRIC_PREFIX = "Financial Metric: "
FACT_TABLE_HEADER = ["Concept", "Value", "Context", "Unit", "Decimals"]
FACT_VALUE_PREVIEW = 500


# =============================================================================
# Tag helpers
# =============================================================================
# The XML parser keeps case and splits off the prefix; the HTML parser used for
# inline documents lowercases names and leaves "prefix:name" in tag.name.

def _local_name(tag: Tag) -> str:
    return tag.name.rsplit(":", 1)[-1].lower()


def _matcher(local: str) -> Callable[[Any], bool]:
    local = local.lower()
    return lambda tag: isinstance(tag, Tag) and _local_name(tag) == local


def _find(node: Optional[Tag], local: str) -> Optional[Tag]:
    if node is None:
        return None
    return node.find(_matcher(local))


def _find_all(node: Optional[Tag], local: str) -> list[Tag]:
    if node is None:
        return []
    return node.find_all(_matcher(local))


def _attr(tag: Tag, name: str) -> Optional[str]:
    value = tag.get(name)
    if value is None:
        value = tag.get(name.lower())
    return value


def _text(tag: Optional[Tag]) -> Optional[str]:
    if tag is None:
        return None
    return normalize_whitespace(tag.get_text(separator=" ")) or None


def _split_name(name: str) -> tuple[Optional[str], str]:
    prefix, _, local = name.rpartition(":")
    return (prefix or None), local


def _safe_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


# =============================================================================
# Contexts, units and facts
# =============================================================================

def _members(container: Optional[Tag]) -> dict[str, str]:
    members = {}
    for tag in _find_all(container, "explicitMember") + _find_all(container, "typedMember"):
        dimension = _attr(tag, "dimension")
        if dimension:
            members[dimension] = _text(tag) or ""
    return members


def extract_contexts(soup: BeautifulSoup) -> dict[str, XBRLContext]:
    contexts = {}
    for tag in _find_all(soup, "context"):
        context_id = tag.get("id")
        if not context_id:
            continue
        identifier = _find(tag, "identifier")
        period = _find(tag, "period")
        contexts[context_id] = XBRLContext(
            context_id=context_id,
            entity_scheme=_attr(identifier, "scheme") if identifier is not None else None,
            entity_identifier=_text(identifier),
            segment=_members(_find(tag, "segment")),
            scenario=_members(_find(tag, "scenario")),
            period_start=_text(_find(period, "startDate")),
            period_end=_text(_find(period, "endDate")),
            instant=_text(_find(period, "instant")),
        )
    return contexts


def extract_units(soup: BeautifulSoup) -> dict[str, XBRLUnit]:
    units = {}
    for tag in _find_all(soup, "unit"):
        unit_id = tag.get("id")
        if not unit_id:
            continue
        divide = _find(tag, "divide")
        if divide is not None:
            units[unit_id] = XBRLUnit(
                unit_id=unit_id,
                numerator=[_text(m) for m in _find_all(_find(divide, "unitNumerator"), "measure") if _text(m)],
                denominator=[_text(m) for m in _find_all(_find(divide, "unitDenominator"), "measure") if _text(m)],
            )
        else:
            units[unit_id] = XBRLUnit(
                unit_id=unit_id,
                measures=[_text(m) for m in _find_all(tag, "measure") if _text(m)],
            )
    return units


def _parse_fact(tag: Tag, namespaces: dict[str, str]) -> Optional[XBRLFact]:
    context_ref = _attr(tag, "contextRef")
    if context_ref is None:
        return None

    if _local_name(tag) in INLINE_FACT_TAGS:
        name = tag.get("name", "")
        if not name:
            return None
        prefix, concept = _split_name(name)
    elif tag.prefix:
        prefix, concept = tag.prefix, _split_name(tag.name)[1]
    else:
        prefix, concept = _split_name(tag.name)

    value = _text(tag) or ""
    if tag.get("sign") == "-" and value:
        value = f"-{value}"

    return XBRLFact(
        concept_name=concept,
        prefix=prefix,
        namespace=namespaces.get(prefix) if prefix else None,
        context_ref=context_ref,
        unit_ref=_attr(tag, "unitRef"),
        decimals=tag.get("decimals"),
        scale=_safe_int(tag.get("scale")),
        value=value,
    )


def extract_facts(soup: BeautifulSoup, namespaces: dict[str, str]) -> list[XBRLFact]:
    """Every element carrying a contextRef, in document order."""
    facts = []
    for tag in soup.find_all(lambda t: _attr(t, "contextRef") is not None):
        fact = _parse_fact(tag, namespaces)
        if fact:
            facts.append(fact)
    return facts


def standardize_metrics(facts: list[XBRLFact]) -> dict[str, list[XBRLFact]]:
    """
    Group numeric facts under the standard metric names.

    A fact joins a metric when one of the metric's concept names occurs in
    its concept name, ignoring case. Facts without a unit are text and are
    never grouped.
    """
    metrics: dict[str, list[XBRLFact]] = {}
    for metric, concepts in STANDARD_FINANCIAL_METRICS.items():
        needles = [c.lower() for c in concepts]
        metrics[metric] = [
            fact for fact in facts
            if fact.unit_ref and any(needle in fact.concept_name.lower() for needle in needles)
        ]
    return metrics


def _document_info(facts: list[XBRLFact]) -> dict[str, str]:
    info = {}
    for fact in facts:
        key = DOCUMENT_INFO_CONCEPTS.get(fact.concept_name)
        if key and fact.prefix == "dei" and fact.value and key not in info:
            info[key] = fact.value
    return info


def _load(content: Union[str, bytes]) -> tuple[BeautifulSoup, bool]:
    if isinstance(content, bytes):
        content = content.decode("utf-8", errors="replace")
    if not isinstance(content, str):
        raise create_parser_error(
            ParserErrorCategory.XBRL,
            f"Expected XBRL text, got {type(content).__name__}",
        )

    inline = bool(INLINE_HTML_PATTERN.search(content[:INLINE_SNIFF_LENGTH]))
    try:
        return BeautifulSoup(content, "html.parser" if inline else "lxml-xml"), inline
    except Exception as e:
        raise create_parser_error(
            ParserErrorCategory.XBRL,
            f"Failed to parse XBRL: {e}",
            original_error=e,
        ) from e


def parse_xbrl(content: Union[str, bytes]) -> XBRLDocument:
    """
    Parse an XBRL instance or inline XBRL document.

    Raises:
        ParserError: Category XBRL when the input cannot be parsed or holds
            neither contexts nor facts
    """
    soup, inline = _load(content)
    text = content.decode("utf-8", errors="replace") if isinstance(content, bytes) else content
    namespaces: dict[str, str] = {}
    for prefix, uri in NAMESPACE_PATTERN.findall(text):
        namespaces.setdefault(prefix, uri)

    try:
        contexts = extract_contexts(soup)
        units = extract_units(soup)
        facts = extract_facts(soup, namespaces)
    except Exception as e:
        raise create_parser_error(
            ParserErrorCategory.XBRL,
            f"Failed to extract XBRL content: {e}",
            original_error=e,
        ) from e

    if not contexts and not facts:
        raise create_parser_error(
            ParserErrorCategory.XBRL,
            "No XBRL contexts or facts found",
            context={"inline": inline, "content_length": len(text)},
        )

    missing = {f.context_ref for f in facts} - set(contexts)
    if missing:
        logger.warning(f"{len(missing)} context references have no matching context")

    logger.debug(
        f"Parsed {'inline ' if inline else ''}XBRL: {len(contexts)} contexts, "
        f"{len(units)} units, {len(facts)} facts"
    )
    return XBRLDocument(
        inline=inline,
        contexts=contexts,
        units=units,
        facts=facts,
        standardized_metrics=standardize_metrics(facts),
        namespaces=namespaces,
        document_info=_document_info(facts),
    )


# =============================================================================
# Sections
# =============================================================================

def _describe_fact(fact: XBRLFact, contexts: dict[str, XBRLContext]) -> str:
    context = contexts.get(fact.context_ref)
    period = context.describe_period() if context else ""
    return f"{fact.qualified_name}: {fact.value} {period}".strip()


def _compact(model: BaseModel) -> dict:
    return {k: v for k, v in model.model_dump().items() if v not in (None, {}, [])}


def _json_section(title: str, payload: dict, options: ExtractorOptions) -> FilingSection:
    return FilingSection(
        type=FilingSectionType.SECTION,
        title=title,
        content=truncate(json.dumps(payload, indent=2), options.max_section_length),
    )


def parse_xbrl_sections(
    content: Union[str, bytes],
    options: Optional[ExtractorOptions] = None,
) -> list[FilingSection]:
    """
    Parse XBRL into sections.

    Contexts and units are skipped when extract_sections is off and the
    facts table when extract_tables is off; document information and the
    metric sections are always produced.

    Raises:
        ParserError: Category XBRL
    """
    options = options or ExtractorOptions()
    document = parse_xbrl(content)

    try:
        sections = [FilingSection(
            type=FilingSectionType.SECTION,
            title=DOCUMENT_INFO_TITLE,
            content=truncate(json.dumps(document.document_info, indent=2), options.max_section_length),
            metadata={
                "document_info": document.document_info,
                "inline": document.inline,
                "fact_count": len(document.facts),
            },
        )]

        if options.extract_sections:
            if document.contexts:
                sections.append(_json_section(CONTEXTS_TITLE, {
                    cid: _compact(ctx) for cid, ctx in document.contexts.items()
                }, options))
            if document.units:
                sections.append(_json_section(UNITS_TITLE, {
                    uid: _compact(unit) for uid, unit in document.units.items()
                }, options))

        for metric, facts in document.standardized_metrics.items():
            if not facts:
                continue
            sections.append(FilingSection(
                type=FilingSectionType.SECTION,
                title=f"{FINANCIAL_METRIC_PREFIX}{metric}",
                content=truncate(
                    "\n\n".join(_describe_fact(f, document.contexts) for f in facts),
                    options.max_section_length,
                ),
                metadata={"metric": metric, "concepts": sorted({f.qualified_name for f in facts})},
            ))

        if options.extract_tables and document.facts:
            rows = [FACT_TABLE_HEADER] + [
                [
                    f.qualified_name,
                    truncate(f.value, FACT_VALUE_PREVIEW),
                    f.context_ref,
                    f.unit_ref or "",
                    f.decimals or "",
                ]
                for f in document.facts
            ]
            sections.append(FilingSection(
                type=FilingSectionType.TABLE,
                title=FACTS_TITLE,
                content=truncate(table_data_to_string(rows), options.max_section_length),
                table_data=rows,
            ))
    except ParserError:
        raise
    except Exception as e:
        raise create_parser_error(
            ParserErrorCategory.XBRL,
            f"Failed to build XBRL sections: {e}",
            original_error=e,
        ) from e

    logger.debug(f"Extracted {len(sections)} sections from XBRL")
    return sections


def xbrl_filing_metadata(sections: list[FilingSection]) -> dict[str, Any]:
    """Company name, CIK and filing date from the Document Information section."""
    info_section = next((s for s in sections if s.title == DOCUMENT_INFO_TITLE and s.metadata), None)
    if info_section is None:
        return {}

    info = info_section.metadata.get("document_info", {})
    metadata: dict[str, Any] = {}
    if info.get("company_name"):
        metadata["company_name"] = info["company_name"]
    if info.get("cik"):
        metadata["cik"] = info["cik"]
    if info.get("filing_date"):
        try:
            metadata["filing_date"] = date_parser.parse(info["filing_date"]).date()
        except (ValueError, OverflowError):
            logger.debug(f"Ignoring unparseable period end date: {info['filing_date']!r}")
    return metadata


def financial_metric_sections(sections: list[FilingSection]) -> dict[str, str]:
    """Metric sections keyed by title, for ParsedFiling.important_sections."""
    return {
        s.title: s.content
        for s in sections
        if s.title and s.title.startswith(FINANCIAL_METRIC_PREFIX)
    }
