"""
JSON extraction from free-form model replies.

Models wrap JSON in prose, code fences, or both, and sometimes return
truncated or slightly invalid JSON. extract_json tries, in order:

1. codeBlock:          a ```json fence, then any ``` fence
2. bracketMatching:    first '{' to last '}'
3. largestStructure:   every balanced top-level object, largest that parses
4. partialExtraction:  "key": value pairs scraped with a regex (opt-in)

repair_json applies a fixed sequence of textual fixes for the usual defects
(trailing commas, unquoted keys, single quotes, bare identifiers, control
characters).
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Optional

logger = logging.getLogger(__name__)


class ExtractionMethod:
    """Tags identifying which strategy produced an ExtractedJSON."""
    CODE_BLOCK = "codeBlock"
    BRACKET_MATCHING = "bracketMatching"
    LARGEST_STRUCTURE = "largestStructure"
    PARTIAL_EXTRACTION = "partialExtraction"
    STREAMING = "streaming"
    STREAMING_REPAIRED = "streaming-repaired"
    STREAMING_PARTIAL = "streaming-partial"
    NONE = "none"

    REPAIRED_SUFFIX = "-repaired"

    @classmethod
    def repaired(cls, method: str) -> str:
        return f"{method}{cls.REPAIRED_SUFFIX}"


@dataclass
class ExtractedJSON:
    """
    Result of one extraction attempt.

    success=True implies parsed is set and error is None.
    """
    raw: str
    extraction_method: str
    success: bool
    parsed: Any = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "raw": self.raw,
            "parsed": self.parsed,
            "error": self.error,
            "extraction_method": self.extraction_method,
            "success": self.success,
        }


def _failure(method: str, error: str) -> ExtractedJSON:
    return ExtractedJSON(raw="", extraction_method=method, success=False, error=error)


# =============================================================================
# Extraction strategies
# =============================================================================

JSON_FENCE = re.compile(r"```(?:json)\s*([\s\S]*?)```")
ANY_FENCE = re.compile(r"```\s*([\s\S]*?)```")

# "key": "string" | {object} | [array] | bare literal
KEY_VALUE_PATTERN = re.compile(
    r'"([^"]+)":\s*(?:"([^"]*)"|\{([^}]*)\}|(\[[^\]]*\])|([^,}\]]+))'
)


def extract_from_code_block(text: str) -> ExtractedJSON:
    match = JSON_FENCE.search(text) or ANY_FENCE.search(text)
    if not match or not match.group(1):
        return _failure(ExtractionMethod.CODE_BLOCK, "No JSON code blocks found")

    json_text = match.group(1).strip()
    try:
        parsed = json.loads(json_text)
    except json.JSONDecodeError as e:
        return _failure(ExtractionMethod.CODE_BLOCK, str(e))
    return ExtractedJSON(raw=json_text, parsed=parsed, extraction_method=ExtractionMethod.CODE_BLOCK, success=True)


def extract_using_bracket_matching(text: str) -> ExtractedJSON:
    first, last = text.find("{"), text.rfind("}")
    if first == -1 or last <= first:
        return _failure(ExtractionMethod.BRACKET_MATCHING, "No JSON object with matching braces found")

    json_text = text[first:last + 1]
    try:
        parsed = json.loads(json_text)
    except json.JSONDecodeError as e:
        return _failure(ExtractionMethod.BRACKET_MATCHING, str(e))
    return ExtractedJSON(
        raw=json_text, parsed=parsed, extraction_method=ExtractionMethod.BRACKET_MATCHING, success=True
    )


def find_balanced_objects(text: str) -> list[str]:
    """Every depth-0 {...} span, ignoring braces inside string literals."""
    spans = []
    open_index = -1
    depth = 0
    in_string = False
    escaped = False

    for i, char in enumerate(text):
        if char == '"' and not escaped:
            in_string = not in_string
        elif char == "\\" and in_string:
            escaped = not escaped
        else:
            escaped = False

        if in_string:
            continue
        if char == "{":
            if depth == 0:
                open_index = i
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0 and open_index != -1:
                spans.append(text[open_index:i + 1])
                open_index = -1

    return spans


def extract_largest_structure(text: str) -> ExtractedJSON:
    for candidate in sorted(find_balanced_objects(text), key=len, reverse=True):
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        return ExtractedJSON(
            raw=candidate, parsed=parsed, extraction_method=ExtractionMethod.LARGEST_STRUCTURE, success=True
        )
    return _failure(ExtractionMethod.LARGEST_STRUCTURE, "No valid JSON structures found")


def _parse_bare_literal(value: str) -> Any:
    value = value.strip()
    try:
        number = float(value)
    except ValueError:
        pass
    else:
        return int(number) if number.is_integer() and re.fullmatch(r"-?\d+", value) else number
    if value == "true":
        return True
    if value == "false":
        return False
    if value == "null":
        return None
    return value


def scan_key_values(text: str) -> dict[str, Any]:
    """
    Scrape "key": value pairs without requiring balanced braces.

    Best effort: nested values beyond one level and escaped quotes are not
    handled; later duplicates of a key win.
    """
    pairs: dict[str, Any] = {}
    for match in KEY_VALUE_PATTERN.finditer(text):
        key, string_value, object_value, array_value, other_value = match.groups()

        if string_value is not None:
            pairs[key] = string_value
        elif object_value:
            try:
                pairs[key] = json.loads(f"{{{object_value}}}")
            except json.JSONDecodeError:
                pairs[key] = object_value
        elif array_value:
            try:
                pairs[key] = json.loads(array_value)
            except json.JSONDecodeError:
                pairs[key] = array_value
        elif other_value and other_value.strip():
            pairs[key] = _parse_bare_literal(other_value)
    return pairs


def attempt_partial_extraction(text: str) -> ExtractedJSON:
    pairs = scan_key_values(text)
    if not pairs:
        return _failure(ExtractionMethod.PARTIAL_EXTRACTION, "No key-value pairs found for partial extraction")
    return ExtractedJSON(
        raw=json.dumps(pairs),
        parsed=pairs,
        extraction_method=ExtractionMethod.PARTIAL_EXTRACTION,
        success=True,
    )


def extract_json(text: str, allow_partial: bool = False) -> ExtractedJSON:
    """
    Extract a JSON value from model text using the strategy cascade.

    Args:
        text: Raw model reply
        allow_partial: Enable the key-value scraping fallback

    Returns:
        The first successful ExtractedJSON, or a failure with method "none"
    """
    strategies = [extract_from_code_block, extract_using_bracket_matching, extract_largest_structure]
    if allow_partial:
        strategies.append(attempt_partial_extraction)

    for strategy in strategies:
        result = strategy(text)
        if result.success:
            logger.debug(f"Extracted JSON via {result.extraction_method}")
            return result

    return _failure(ExtractionMethod.NONE, "Failed to extract JSON with any method")


# =============================================================================
# Repair
# =============================================================================

JSON_REPAIRS = [
    # Trailing commas in objects and arrays
    (re.compile(r",\s*}"), "}"),
    (re.compile(r",\s*\]"), "]"),
    # Unquoted property names
    (re.compile(r"([{,]\s*)([a-zA-Z0-9_$]+)(\s*:)"), r'\1"\2"\3'),
    # Single-quoted strings
    (re.compile(r"'([^'\\]*(\\.[^'\\]*)*)'(\s*[,}:\]])"), r'"\1"\3'),
    # Single-quoted property names
    (re.compile(r"([{,]\s*)'([^'\\]*(\\.[^'\\]*)*)'(\s*:)"), r'\1"\2"\4'),
    # Bare identifier values (true/false/null stay literals)
    (re.compile(r":\s*(?!(?:true|false|null)\b)([a-zA-Z][a-zA-Z0-9_$]*)(\s*[,}])"), r': "\1"\2'),
    # Control characters
    (re.compile(r"[\x00-\x1f]+"), ""),
]


def repair_json(text: str) -> str:
    """Apply the fixed repair sequence. The result is not guaranteed to parse."""
    for pattern, replacement in JSON_REPAIRS:
        text = pattern.sub(replacement, text)
    return text


def parse_repaired(text: str) -> Any:
    """Repair then decode; raises json.JSONDecodeError when still invalid."""
    return json.loads(repair_json(text))
