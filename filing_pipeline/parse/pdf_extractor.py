"""
PDF content extractor for SEC filings.

Uses pdfplumber for text, metadata and word positions. Sectioning is a
line heuristic (short, upper-case lines are headings); tables are inferred
from word coordinates because filings rarely carry ruling lines that
pdfplumber's own table finder could use.

Usage:
    sections = parse_pdf_file("filings/acme-10k.pdf")
    tables = [s for s in sections if s.type == FilingSectionType.TABLE]
"""

import json
import logging
import re
from collections import defaultdict
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Any, Optional, Union

import pdfplumber

from ..recovery.errors import ParserError, ParserErrorCategory, create_parser_error
from .models import FilingSection, FilingSectionType, PDFExtractorOptions

logger = logging.getLogger(__name__)

# Heading heuristic: short line, upper case or identifier-like
HEADING_MAX_LENGTH = 60
HEADING_PATTERN = re.compile(r"^[A-Z0-9\s.\-]+$")

# Table heuristic
ROW_PROXIMITY = 0.5        # Max y gap joining a single-item row to the next row
MIN_TABLE_ROWS = 3
COLUMN_RECURRENCE = 0.5    # Share of candidate rows an x position must appear in

DEFAULT_SECTION_TITLE = "Main Content"
METADATA_SECTION_TITLE = "Metadata"


@dataclass
class PDFTable:
    """A table inferred from one page's word positions."""
    page_number: int
    data: list[list[str]]


# =============================================================================
# Text helpers
# =============================================================================

def is_heading_line(line: str) -> bool:
    """Short line that is all upper case or matches the identifier charset."""
    return len(line.strip()) < HEADING_MAX_LENGTH and (
        line.upper() == line or bool(HEADING_PATTERN.match(line))
    )


def extract_paragraphs(text: str) -> list[FilingSection]:
    """Blank-line separated blocks as PARAGRAPH sections."""
    return [
        FilingSection(type=FilingSectionType.PARAGRAPH, content=block.strip())
        for block in re.split(r"\n\s*\n", text)
        if block.strip()
    ]


def extract_headers(text: str) -> list[FilingSection]:
    """Heading-like lines as HEADER sections."""
    headers = []
    for line in text.split("\n"):
        trimmed = line.strip()
        if trimmed and is_heading_line(trimmed):
            headers.append(FilingSection(type=FilingSectionType.HEADER, content=trimmed))
    return headers


def split_text_sections(
    text: str,
    options: Optional[PDFExtractorOptions] = None,
) -> list[FilingSection]:
    """
    Split extracted text into SECTIONs at heading lines.

    A heading only closes the current section once it has content; leading
    lines (headings included) land in a "Main Content" section.
    """
    options = options or PDFExtractorOptions()
    lines = [line for line in text.split("\n") if line.strip()]
    if options.paragraph_limit is not None:
        lines = lines[:options.paragraph_limit]

    sections = []
    current_title: Optional[str] = None
    content: list[str] = []

    def close():
        if options.preserve_whitespace:
            joined = "\n".join(content)
        else:
            joined = "\n".join(" ".join(line.split()) for line in content)
        if options.max_section_length and len(joined) > options.max_section_length:
            joined = joined[:options.max_section_length] + "..."
        sections.append(FilingSection(
            type=FilingSectionType.SECTION,
            title=current_title,
            content=joined,
        ))

    for line in lines:
        if is_heading_line(line) and content:
            close()
            current_title = line.strip()
            content = []
        else:
            if current_title is None:
                current_title = DEFAULT_SECTION_TITLE
            content.append(line)

    if content:
        close()

    return sections


# =============================================================================
# Table detection
# =============================================================================

def _group_rows(words: list[dict]) -> dict[float, list[tuple[float, str]]]:
    rows: dict[float, list[tuple[float, str]]] = defaultdict(list)
    for word in words:
        text = word.get("text", "")
        if not text:
            continue
        rows[round(float(word["top"]), 2)].append((float(word["x0"]), text))
    return rows


def _candidate_row_groups(rows: dict[float, list], ys: list[float]) -> list[list[float]]:
    candidates = []
    current: list[float] = []

    for i, y in enumerate(ys):
        if len(rows[y]) >= 2:
            current.append(y)
        elif (
            i + 1 < len(ys)
            and ys[i + 1] - y < ROW_PROXIMITY
            and len(rows[ys[i + 1]]) >= 2
        ):
            current.append(y)
        elif current:
            if len(current) >= MIN_TABLE_ROWS:
                candidates.append(current)
            current = []

    if len(current) >= MIN_TABLE_ROWS:
        candidates.append(current)
    return candidates


def _column_positions(rows: dict[float, list], table_ys: list[float]) -> list[float]:
    counts: dict[float, int] = defaultdict(int)
    for y in table_ys:
        for x, _ in rows[y]:
            counts[round(x, 1)] += 1
    threshold = len(table_ys) * COLUMN_RECURRENCE
    return sorted(x for x, count in counts.items() if count >= threshold)


def detect_tables(words: list[dict], page_number: int = 1) -> list[PDFTable]:
    """
    Infer tables from word positions on one page.

    Args:
        words: Dicts with x0, top and text (pdfplumber extract_words shape)
        page_number: Page number used for the table title

    Returns:
        Tables with at least MIN_TABLE_ROWS rows and one inferred column
    """
    rows = _group_rows(words)
    ys = sorted(rows)
    tables = []

    for table_ys in _candidate_row_groups(rows, ys):
        columns = _column_positions(rows, table_ys)
        if not columns:
            continue

        data = []
        for y in table_ys:
            cells = [""] * len(columns)
            for x, text in sorted(rows[y]):
                nearest = min(range(len(columns)), key=lambda i: abs(x - columns[i]))
                cells[nearest] = f"{cells[nearest]} {text}" if cells[nearest] else text
            data.append(cells)

        tables.append(PDFTable(page_number=page_number, data=data))

    return tables


def format_table_as_text(rows: list[list[str]]) -> str:
    """Render rows with every column padded to its widest cell plus two spaces."""
    if not rows:
        return ""
    widths = [0] * max(len(row) for row in rows)
    for row in rows:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], len(cell))
    return "".join(
        "".join(cell.ljust(widths[i] + 2) for i, cell in enumerate(row)) + "\n"
        for row in rows
    )


# =============================================================================
# Public API
# =============================================================================

def _stringify_metadata(info: dict[str, Any]) -> dict[str, str]:
    metadata = {}
    for key, value in info.items():
        if isinstance(value, bytes):
            value = value.decode("utf-8", errors="replace")
        metadata[str(key)] = str(value)
    return metadata


def parse_pdf(
    data: Union[bytes, BytesIO],
    options: Optional[PDFExtractorOptions] = None,
) -> list[FilingSection]:
    """
    Parse a PDF filing into sections.

    Args:
        data: Raw PDF bytes or a binary stream
        options: Extractor options (defaults to PDFExtractorOptions())

    Returns:
        TITLE (from metadata), optional Metadata section, text SECTIONs,
        then TABLE sections

    Raises:
        ParserError: Category PDF when the document cannot be opened or read
    """
    options = options or PDFExtractorOptions()
    stream = BytesIO(data) if isinstance(data, (bytes, bytearray)) else data

    page_texts = []
    page_tables: list[PDFTable] = []
    try:
        with pdfplumber.open(stream) as pdf:
            metadata = _stringify_metadata(pdf.metadata or {})
            logger.debug(f"PDF has {len(pdf.pages)} pages")

            for page in pdf.pages:
                page_texts.append(page.extract_text() or "")

                if options.extract_tables:
                    try:
                        page_tables.extend(detect_tables(page.extract_words(), page.page_number))
                    except Exception as e:
                        logger.warning(f"Table detection failed on page {page.page_number}: {e}")

                if options.low_memory_mode:
                    page.flush_cache()
    except ParserError:
        raise
    except Exception as e:
        raise create_parser_error(
            ParserErrorCategory.PDF,
            f"Failed to parse PDF: {e}",
            original_error=e,
        ) from e

    sections = []
    title = metadata.get("Title", "").strip()
    if title:
        sections.append(FilingSection(type=FilingSectionType.TITLE, content=title))

    if options.extract_metadata and metadata:
        sections.append(FilingSection(
            type=FilingSectionType.SECTION,
            title=METADATA_SECTION_TITLE,
            content=json.dumps(metadata, indent=2),
            metadata=metadata,
        ))

    sections.extend(split_text_sections("\n".join(page_texts), options))

    for table in page_tables:
        sections.append(FilingSection(
            type=FilingSectionType.TABLE,
            title=f"Table (Page {table.page_number})",
            content=format_table_as_text(table.data),
            table_data=table.data,
        ))

    logger.debug(f"Extracted {len(sections)} sections ({len(page_tables)} tables) from PDF")
    return sections


def parse_pdf_file(
    path: Union[str, Path],
    options: Optional[PDFExtractorOptions] = None,
) -> list[FilingSection]:
    """Read a PDF from disk and parse it. OSError becomes a FILE_ACCESS ParserError."""
    path = Path(path)
    try:
        data = path.read_bytes()
    except OSError as e:
        raise create_parser_error(
            ParserErrorCategory.FILE_ACCESS,
            f"Failed to read PDF file {path}: {e}",
            original_error=e,
            context={"path": str(path)},
        ) from e
    return parse_pdf(data, options)
