"""
Structured data extraction from model replies.

This package provides:
- JSON extraction strategies and textual repair for messy replies
- Date, currency and percentage normalization per filing type
- The response parser (extract -> repair -> validate -> salvage -> normalize)
- An incremental streaming parser for replies delivered in chunks
"""

from .json_extractors import (
    ExtractionMethod,
    ExtractedJSON,
    extract_from_code_block,
    extract_using_bracket_matching,
    extract_largest_structure,
    attempt_partial_extraction,
    find_balanced_objects,
    scan_key_values,
    extract_json,
    repair_json,
    parse_repaired,
)

from .normalizers import (
    normalize_date,
    normalize_currency,
    normalize_percentage,
    normalize_fields,
)

from .response_parser import (
    ParseOptions,
    ParseResult,
    repair_and_parse,
    build_parse_result,
    parse_response,
)

from .streaming import (
    StreamEventType,
    StreamState,
    StreamEvent,
    StreamingOptions,
    StreamingParser,
    step,
    parse_stream,
)

__all__ = [
    # JSON extraction
    "ExtractionMethod",
    "ExtractedJSON",
    "extract_from_code_block",
    "extract_using_bracket_matching",
    "extract_largest_structure",
    "attempt_partial_extraction",
    "find_balanced_objects",
    "scan_key_values",
    "extract_json",
    "repair_json",
    "parse_repaired",
    # Normalization
    "normalize_date",
    "normalize_currency",
    "normalize_percentage",
    "normalize_fields",
    # Response parser
    "ParseOptions",
    "ParseResult",
    "repair_and_parse",
    "build_parse_result",
    "parse_response",
    # Streaming
    "StreamEventType",
    "StreamState",
    "StreamEvent",
    "StreamingOptions",
    "StreamingParser",
    "step",
    "parse_stream",
]
