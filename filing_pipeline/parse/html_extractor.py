"""
HTML content extractor for SEC filings.

Turns raw filing HTML into an ordered list of FilingSection nodes:
- TITLE from <title>
- SECTION tree from top-level div/section/article containers
- TABLE and LIST sections from a second pass over the original structure

Usage:
    sections = parse_html(html, ExtractorOptions(include_raw_html=True))
    for section in sections:
        print(section.type, section.title, section.content[:80])
"""

import copy
import logging
import re
from typing import Optional, Union

from bs4 import BeautifulSoup, Tag

from ..recovery.errors import ParserError, ParserErrorCategory, create_parser_error
from .models import ExtractorOptions, FilingSection, FilingSectionType

logger = logging.getLogger(__name__)

HEADING_TAGS = ["h1", "h2", "h3", "h4", "h5", "h6"]
CONTAINER_TAGS = ("div", "section", "article")

# Removed before any structural extraction when remove_boilerplate is set
BOILERPLATE_SELECTORS = [
    "script, style, meta, link, noscript",
    # SEC EDGAR chrome
    ".edgar-header, .edgar-footer, .filer-info",
    # Navigation
    ".nav, .navigation, .menu, .header, .footer, nav, footer",
]

TOP_LEVEL_SELECTOR = "body > div, body > section, body > article"

TRUNCATION_MARKER = "..."


# =============================================================================
# Text helpers
# =============================================================================

def normalize_whitespace(text: str) -> str:
    """Collapse runs of whitespace to single spaces and trim."""
    return re.sub(r"\s+", " ", text).strip()


def get_text_content(element: Tag, preserve_whitespace: bool = False) -> str:
    """Text of an element, whitespace-normalized unless preserve_whitespace."""
    if preserve_whitespace:
        return element.get_text().strip()
    return normalize_whitespace(element.get_text(separator=" "))


def truncate(text: str, max_length: Optional[int]) -> str:
    if max_length and len(text) > max_length:
        return text[:max_length] + TRUNCATION_MARKER
    return text


def table_data_to_string(table_data: list[list[str]]) -> str:
    """Render table rows as 'cell | cell' lines."""
    return "\n".join(" | ".join(row) for row in table_data)


def list_items_to_string(items: list[str], ordered: bool) -> str:
    """Render list items numbered (ordered) or bulleted."""
    if ordered:
        return "\n".join(f"{i}. {item}" for i, item in enumerate(items, 1))
    return "\n".join(f"• {item}" for item in items)


def _load(html: Union[str, bytes, BeautifulSoup]) -> BeautifulSoup:
    if isinstance(html, BeautifulSoup):
        return html
    if isinstance(html, bytes):
        html = html.decode("utf-8", errors="replace")
    if not isinstance(html, str):
        raise create_parser_error(
            ParserErrorCategory.HTML,
            f"Expected HTML text, got {type(html).__name__}",
        )
    try:
        return BeautifulSoup(html, "lxml")
    except Exception as e:
        raise create_parser_error(
            ParserErrorCategory.HTML,
            f"Failed to parse HTML: {e}",
            original_error=e,
        ) from e


def _preceding_heading(element: Tag) -> Optional[str]:
    prev = element.find_previous_sibling()
    if prev is not None and prev.name in HEADING_TAGS:
        return prev.get_text().strip() or None
    return None


# =============================================================================
# Structure extraction
# =============================================================================

def remove_boilerplate(soup: BeautifulSoup) -> int:
    """Strip scripts, styles, EDGAR chrome and navigation. Returns count removed."""
    removed = 0
    for selector in BOILERPLATE_SELECTORS:
        for element in soup.select(selector):
            element.decompose()
            removed += 1
    return removed


def _limit_paragraphs(soup: BeautifulSoup, limit: int) -> None:
    for paragraph in soup.find_all("p")[limit:]:
        paragraph.decompose()


def _nested_containers(element: Tag) -> list[Tag]:
    """Closest container descendants (not containers nested inside those)."""
    found = []
    for child in element.children:
        if not isinstance(child, Tag):
            continue
        if child.name in CONTAINER_TAGS:
            found.append(child)
        else:
            found.extend(_nested_containers(child))
    return found


def _extract_section(element: Tag, options: ExtractorOptions) -> Optional[FilingSection]:
    """
    Extract one container recursively.

    The first heading becomes the title and is removed. Nested containers are
    extracted and removed before this element's own text is read, so content
    only holds text no child claimed.
    """
    title = None
    heading = element.find(HEADING_TAGS)
    if heading is not None:
        title = heading.get_text().strip() or None
        heading.decompose()

    children = []
    for child in _nested_containers(element):
        child_section = _extract_section(child, options)
        if child_section is not None:
            children.append(child_section)
            child.extract()

    content = truncate(
        get_text_content(element, options.preserve_whitespace),
        options.max_section_length,
    )

    if not content and not children:
        return None

    return FilingSection(
        type=FilingSectionType.SECTION,
        title=title,
        content=content,
        raw_html=element.decode_contents() if options.include_raw_html else None,
        children=children or None,
    )


def _extract_body(soup: BeautifulSoup, options: ExtractorOptions) -> Optional[FilingSection]:
    body = soup.body or soup
    content = truncate(
        get_text_content(body, options.preserve_whitespace),
        options.max_section_length,
    )
    if not content:
        return None
    return FilingSection(
        type=FilingSectionType.SECTION,
        content=content,
        raw_html=body.decode_contents() if options.include_raw_html else None,
    )


def extract_document_structure(
    soup: BeautifulSoup,
    options: ExtractorOptions,
) -> list[FilingSection]:
    """TITLE plus the container tree, or a whole-body section when there is no tree."""
    sections = []

    title_tag = soup.find("title")
    if title_tag is not None:
        title = title_tag.get_text().strip()
        if title:
            sections.append(FilingSection(
                type=FilingSectionType.TITLE,
                content=title,
                raw_html=title_tag.decode_contents() if options.include_raw_html else None,
            ))
        # Keep the title out of the body text
        title_tag.decompose()

    found_containers = False
    if options.extract_sections:
        for element in soup.select(TOP_LEVEL_SELECTOR):
            section = _extract_section(element, options)
            if section is not None:
                sections.append(section)
                found_containers = True

    if not found_containers:
        body_section = _extract_body(soup, options)
        if body_section is not None:
            sections.append(body_section)

    return sections


# =============================================================================
# Tables and lists
# =============================================================================

def extract_table_data(table: Tag, preserve_whitespace: bool = False) -> list[list[str]]:
    """Rows of cell text, header rows included, each row read once."""
    table_data = []
    for row in table.find_all("tr"):
        cells = [
            get_text_content(cell, preserve_whitespace)
            for cell in row.find_all(["td", "th"])
        ]
        if cells:
            table_data.append(cells)
    return table_data


def extract_tables(soup: BeautifulSoup, options: ExtractorOptions) -> list[FilingSection]:
    tables = []
    for table in soup.find_all("table"):
        table_data = extract_table_data(table, options.preserve_whitespace)
        if not table_data:
            continue

        caption = table.find("caption")
        if caption is not None:
            title = caption.get_text().strip() or None
        else:
            title = _preceding_heading(table)

        tables.append(FilingSection(
            type=FilingSectionType.TABLE,
            title=title,
            content=truncate(table_data_to_string(table_data), options.max_section_length),
            table_data=table_data,
            raw_html=table.decode_contents() if options.include_raw_html else None,
        ))
    return tables


def extract_lists(soup: BeautifulSoup, options: ExtractorOptions) -> list[FilingSection]:
    lists = []
    for list_tag in soup.find_all(["ul", "ol"]):
        items = []
        for item in list_tag.find_all("li"):
            text = get_text_content(item, options.preserve_whitespace)
            if text:
                items.append(text)
        if not items:
            continue

        lists.append(FilingSection(
            type=FilingSectionType.LIST,
            title=_preceding_heading(list_tag),
            content=truncate(
                list_items_to_string(items, ordered=list_tag.name == "ol"),
                options.max_section_length,
            ),
            list_items=items,
            raw_html=list_tag.decode_contents() if options.include_raw_html else None,
        ))
    return lists


# =============================================================================
# Public API
# =============================================================================

def parse_html(
    html: Union[str, bytes],
    options: Optional[ExtractorOptions] = None,
) -> list[FilingSection]:
    """
    Parse filing HTML into sections.

    Args:
        html: Raw HTML text (bytes are decoded as UTF-8)
        options: Extractor options (defaults to ExtractorOptions())

    Returns:
        Ordered sections: TITLE, SECTION tree, then TABLE and LIST sections

    Raises:
        ParserError: Category HTML when the input cannot be parsed at all
    """
    options = options or ExtractorOptions()
    soup = _load(html)

    try:
        if options.remove_boilerplate:
            removed = remove_boilerplate(soup)
            logger.debug(f"Removed {removed} boilerplate elements")

        if options.paragraph_limit is not None:
            _limit_paragraphs(soup, options.paragraph_limit)

        # The section walk is destructive; tables and lists come from the original
        needs_structure_pass = options.extract_tables or options.extract_lists
        original = copy.copy(soup) if needs_structure_pass else None

        sections = extract_document_structure(soup, options)

        if options.extract_tables:
            sections.extend(extract_tables(original, options))
        if options.extract_lists:
            sections.extend(extract_lists(original, options))
    except ParserError:
        raise
    except Exception as e:
        raise create_parser_error(
            ParserErrorCategory.HTML,
            f"Failed to extract HTML structure: {e}",
            original_error=e,
        ) from e

    logger.debug(f"Extracted {len(sections)} top-level sections from HTML")
    return sections


def extract_paragraphs(html: Union[str, bytes, BeautifulSoup]) -> list[FilingSection]:
    """Every non-empty <p> as a PARAGRAPH section."""
    soup = _load(html)
    paragraphs = []
    for element in soup.find_all("p"):
        content = normalize_whitespace(element.get_text(separator=" "))
        if content:
            paragraphs.append(FilingSection(type=FilingSectionType.PARAGRAPH, content=content))
    return paragraphs


def extract_headers(html: Union[str, bytes, BeautifulSoup]) -> list[FilingSection]:
    """Every non-empty h1-h6 as a HEADER section."""
    soup = _load(html)
    headers = []
    for element in soup.find_all(HEADING_TAGS):
        content = normalize_whitespace(element.get_text(separator=" "))
        if content:
            headers.append(FilingSection(type=FilingSectionType.HEADER, content=content))
    return headers
