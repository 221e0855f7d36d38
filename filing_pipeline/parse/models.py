"""
Pydantic models for filing content extraction.
"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class FilingSectionType(str, Enum):
    """Type of node in the extracted document tree."""
    TITLE = "title"
    HEADER = "header"
    PARAGRAPH = "paragraph"
    TABLE = "table"
    LIST = "list"
    SECTION = "section"


class FilingType(str, Enum):
    """SEC form types with a dedicated schema and context profile."""
    FORM_10K = "10-K"
    FORM_10Q = "10-Q"
    FORM_8K = "8-K"
    FORM_20F = "20-F"
    FORM_6K = "6-K"
    FORM_S1 = "S-1"
    FORM_S4 = "S-4"
    FORM_424B = "424B"
    DEF_14A = "DEF 14A"
    FORM_4 = "4"
    GENERIC = "Generic"

    @classmethod
    def parse(cls, value: Optional[str]) -> "FilingType":
        """Map a form name to a FilingType; anything unrecognised is GENERIC."""
        if isinstance(value, cls):
            return value
        if not value:
            return cls.GENERIC
        key = " ".join(str(value).split()).upper()
        for member in cls:
            if member.value.upper() == key:
                return member
        if key.startswith("424B"):
            return cls.FORM_424B
        return _FILING_TYPE_ALIASES.get(key, cls.GENERIC)


_FILING_TYPE_ALIASES = {
    "FORM 4": FilingType.FORM_4,
    "FORM4": FilingType.FORM_4,
    "DEF14A": FilingType.DEF_14A,
    "10K": FilingType.FORM_10K,
    "10Q": FilingType.FORM_10Q,
    "8K": FilingType.FORM_8K,
}


class FileType(str, Enum):
    """Raw document format."""
    HTML = "html"
    PDF = "pdf"
    XBRL = "xbrl"        # Instance documents and inline XBRL
    UNKNOWN = "unknown"


# =============================================================================
# Extracted Content
# =============================================================================

class FilingSection(BaseModel):
    """A node in the extracted-document tree. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    type: FilingSectionType
    title: Optional[str] = None
    content: str = ""                          # Normalized, length-capped text
    raw_html: Optional[str] = None
    table_data: Optional[list[list[str]]] = None
    list_items: Optional[list[str]] = None
    children: Optional[list["FilingSection"]] = None   # SECTION only
    metadata: Optional[dict[str, Any]] = None

    def iter_sections(self):
        """Yield this section and every descendant, depth first."""
        yield self
        for child in self.children or []:
            yield from child.iter_sections()


class FinancialMetricValue(BaseModel):
    """A headline figure found in the filing text or tables."""
    value: str                 # As written, e.g. "$4.2 billion"
    source: str                # Title of the section it came from


class ParsedFiling(BaseModel):
    """Extraction result for one filing document."""
    filing_type: FilingType
    file_type: FileType
    sections: list[FilingSection] = Field(default_factory=list)
    tables: list[FilingSection] = Field(default_factory=list)
    lists: list[FilingSection] = Field(default_factory=list)
    important_sections: dict[str, str] = Field(default_factory=dict)
    company_name: Optional[str] = None
    cik: Optional[str] = None
    filing_date: Optional[date] = None
    full_text: Optional[str] = None
    used_fallback: bool = False
    financial_metrics: dict[str, FinancialMetricValue] = Field(default_factory=dict)
    validation_issues: list[str] = Field(default_factory=list)   # "<severity>: <message>"

    # Processing metadata
    parsed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    processing_time_ms: int = 0

    @property
    def total_chars(self) -> int:
        return sum(len(s.content) for top in self.sections for s in top.iter_sections())


# =============================================================================
# XBRL Models
# =============================================================================

class XBRLContext(BaseModel):
    """Entity, period and dimensions a fact is reported against."""
    context_id: str
    entity_scheme: Optional[str] = None
    entity_identifier: Optional[str] = None
    segment: dict[str, str] = Field(default_factory=dict)    # dimension -> member
    scenario: dict[str, str] = Field(default_factory=dict)
    period_start: Optional[str] = None
    period_end: Optional[str] = None
    instant: Optional[str] = None

    def describe_period(self) -> str:
        if self.instant:
            return f"As of {self.instant}"
        if self.period_start or self.period_end:
            return f"From {self.period_start or '?'} to {self.period_end or '?'}"
        return ""


class XBRLUnit(BaseModel):
    """Measurement unit; ratios carry numerator and denominator measures."""
    unit_id: str
    measures: list[str] = Field(default_factory=list)
    numerator: list[str] = Field(default_factory=list)
    denominator: list[str] = Field(default_factory=list)


class XBRLFact(BaseModel):
    """One reported value."""
    concept_name: str                # Local name, e.g. "Revenues"
    prefix: Optional[str] = None     # e.g. "us-gaap"
    namespace: Optional[str] = None
    context_ref: str
    unit_ref: Optional[str] = None
    decimals: Optional[str] = None   # "INF" is legal, so kept as text
    scale: Optional[int] = None
    value: str

    @property
    def qualified_name(self) -> str:
        return f"{self.prefix}:{self.concept_name}" if self.prefix else self.concept_name


class XBRLDocument(BaseModel):
    """Everything pulled out of one XBRL or inline XBRL document."""
    inline: bool = False
    contexts: dict[str, XBRLContext] = Field(default_factory=dict)
    units: dict[str, XBRLUnit] = Field(default_factory=dict)
    facts: list[XBRLFact] = Field(default_factory=list)
    standardized_metrics: dict[str, list[XBRLFact]] = Field(default_factory=dict)
    namespaces: dict[str, str] = Field(default_factory=dict)
    document_info: dict[str, str] = Field(default_factory=dict)


# =============================================================================
# Extractor Options
# =============================================================================

class ExtractorOptions(BaseModel):
    """Options recognized by the HTML and PDF extractors."""

    include_raw_html: bool = False
    max_section_length: int = 100000      # Characters; longer content gets "..."
    preserve_whitespace: bool = False
    extract_tables: bool = True
    extract_lists: bool = True
    remove_boilerplate: bool = True

    # Degradation switches (set by create_simplified_options)
    extract_sections: bool = True         # False = whole-body text only
    paragraph_limit: Optional[int] = None
    low_memory_mode: bool = False
    stream_processing: bool = False


class PDFExtractorOptions(ExtractorOptions):
    """PDF extractor options."""

    extract_metadata: bool = True
