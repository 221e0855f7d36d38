"""
Document parsing and chunking package.

This package provides tools for extracting SEC filings (HTML, PDF and XBRL) into
section trees, detecting document formats, and sizing text for a model's
context window.
"""

from .models import (
    # Enums
    FilingSectionType,
    FilingType,
    FileType,
    # Extracted content
    FilingSection,
    ParsedFiling,
    XBRLContext,
    XBRLUnit,
    XBRLFact,
    XBRLDocument,
    # Options
    ExtractorOptions,
    PDFExtractorOptions,
)

from .html_extractor import (
    parse_html,
    extract_document_structure,
    extract_tables,
    extract_lists,
    extract_table_data,
    remove_boilerplate,
    get_text_content,
    normalize_whitespace,
    table_data_to_string,
    list_items_to_string,
)

from .pdf_extractor import (
    PDFTable,
    parse_pdf,
    parse_pdf_file,
    split_text_sections,
    detect_tables,
    format_table_as_text,
    is_heading_line,
)

from .xbrl_extractor import (
    STANDARD_FINANCIAL_METRICS,
    parse_xbrl,
    parse_xbrl_sections,
    standardize_metrics,
)

from .file_types import (
    is_pdf,
    is_html,
    is_xbrl,
    detect_file_type,
)

from .context_window import (
    ChunkStrategy,
    ContextWindowConfig,
    DEFAULT_CONTEXT_CONFIGS,
    SECTION_TOKEN_BUDGETS,
    get_context_config,
    split_document_into_chunks,
    estimate_token_count,
    needs_chunking,
    chunk_for_filing,
)

from .processor import (
    IMPORTANT_SECTIONS,
    find_section_content,
    extract_important_sections,
    extract_filing_metadata,
    build_full_text,
    parse_filing,
)

__all__ = [
    # Enums
    "FilingSectionType",
    "FilingType",
    "FileType",
    # Extracted content
    "FilingSection",
    "ParsedFiling",
    "XBRLContext",
    "XBRLUnit",
    "XBRLFact",
    "XBRLDocument",
    # Options
    "ExtractorOptions",
    "PDFExtractorOptions",
    # HTML
    "parse_html",
    "extract_document_structure",
    "extract_tables",
    "extract_lists",
    "extract_table_data",
    "remove_boilerplate",
    "get_text_content",
    "normalize_whitespace",
    "table_data_to_string",
    "list_items_to_string",
    # PDF
    "PDFTable",
    "parse_pdf",
    "parse_pdf_file",
    "split_text_sections",
    "detect_tables",
    "format_table_as_text",
    "is_heading_line",
    # XBRL
    "STANDARD_FINANCIAL_METRICS",
    "parse_xbrl",
    "parse_xbrl_sections",
    "standardize_metrics",
    # File types
    "is_pdf",
    "is_html",
    "is_xbrl",
    "detect_file_type",
    # Context window
    "ChunkStrategy",
    "ContextWindowConfig",
    "DEFAULT_CONTEXT_CONFIGS",
    "SECTION_TOKEN_BUDGETS",
    "get_context_config",
    "split_document_into_chunks",
    "estimate_token_count",
    "needs_chunking",
    "chunk_for_filing",
    # Processing
    "IMPORTANT_SECTIONS",
    "find_section_content",
    "extract_important_sections",
    "extract_filing_metadata",
    "build_full_text",
    "parse_filing",
]
