"""
Tests for the HTML content extractor.

Tests cover:
1. Minimal documents and the whole-body fallback
2. Boilerplate removal
3. Recursive container sections
4. Table and list extraction from the original structure
5. Options: raw HTML, truncation, paragraph limit, basic-text mode
6. Malformed input errors
"""

import pytest

from filing_pipeline.parse.html_extractor import (
    extract_headers,
    extract_paragraphs,
    list_items_to_string,
    normalize_whitespace,
    parse_html,
    table_data_to_string,
)
from filing_pipeline.parse.models import ExtractorOptions, FilingSectionType
from filing_pipeline.recovery.errors import ParserError, ParserErrorCategory


def _all_content(sections) -> str:
    return " ".join(s.content for top in sections for s in top.iter_sections())


class TestMinimalDocuments:
    """Tests for small and structureless HTML."""

    def test_minimal_document_keeps_text(self):
        """Test that a body with no containers falls back to one section."""
        sections = parse_html("<html><body><h1>T</h1><p>hello</p></body></html>")

        assert sections
        assert all(s.type in (FilingSectionType.TITLE, FilingSectionType.SECTION) for s in sections)
        assert "hello" in _all_content(sections)

    def test_title_extracted(self):
        """Test that <title> becomes a TITLE section and stays out of the body."""
        html = "<html><head><title>Form 10-K</title></head><body><p>text</p></body></html>"
        sections = parse_html(html)

        assert sections[0].type == FilingSectionType.TITLE
        assert sections[0].content == "Form 10-K"
        assert "Form 10-K" not in sections[1].content

    def test_bytes_decoded(self):
        """Test that bytes input is decoded as UTF-8."""
        sections = parse_html("<html><body><p>café</p></body></html>".encode("utf-8"))
        assert "café" in _all_content(sections)

    def test_empty_body(self):
        """Test that an empty document yields no sections."""
        assert parse_html("<html><body></body></html>") == []


class TestStructure:
    """Tests for container walking on a realistic filing."""

    def test_section_order(self, filing_html):
        """Test TITLE, section tree, then TABLE and LIST sections."""
        sections = parse_html(filing_html)
        types = [s.type for s in sections]

        assert types == [
            FilingSectionType.TITLE,
            FilingSectionType.SECTION,
            FilingSectionType.SECTION,
            FilingSectionType.TABLE,
            FilingSectionType.LIST,
        ]

    def test_boilerplate_removed(self, filing_html):
        """Test that scripts, EDGAR chrome and footers are stripped."""
        content = _all_content(parse_html(filing_html))

        assert "tracking" not in content
        assert "EDGAR header noise" not in content
        assert "Footer links" not in content

    def test_boilerplate_kept_when_disabled(self, filing_html):
        """Test that remove_boilerplate=False keeps EDGAR chrome."""
        sections = parse_html(filing_html, ExtractorOptions(remove_boilerplate=False))
        assert "EDGAR header noise" in _all_content(sections)

    def test_heading_becomes_title(self, filing_html):
        """Test that the first heading titles the section and leaves its content."""
        risk = parse_html(filing_html)[1]

        assert risk.title == "Risk Factors"
        assert risk.content == "Our business is subject to competition."

    def test_nested_containers_become_children(self, filing_html):
        """Test that nested divs are children and their text is not repeated."""
        risk = parse_html(filing_html)[1]

        assert len(risk.children) == 1
        child = risk.children[0]
        assert child.title == "Market Risk"
        assert child.content == "Interest rates may rise."
        assert "Interest rates" not in risk.content

    def test_table_from_original_structure(self, filing_html):
        """Test table data, title from preceding heading, and text rendering."""
        table = parse_html(filing_html)[3]

        assert table.title == "Segment results"
        assert table.table_data == [["Segment", "Revenue"], ["Cloud", "$1,200"]]
        assert table.content == "Segment | Revenue\nCloud | $1,200"

    def test_table_caption_title(self):
        """Test that a caption wins over the preceding heading."""
        html = (
            "<html><body><h2>Heading</h2><table><caption>Fees</caption>"
            "<thead><tr><th>Class</th></tr></thead><tbody><tr><td>A</td></tr></tbody>"
            "</table></body></html>"
        )
        tables = [s for s in parse_html(html) if s.type == FilingSectionType.TABLE]

        assert tables[0].title == "Fees"
        assert tables[0].table_data == [["Class"], ["A"]]

    def test_ordered_list(self, filing_html):
        """Test ordered list numbering and title."""
        lst = parse_html(filing_html)[4]

        assert lst.title == "Priorities"
        assert lst.list_items == ["Grow cloud", "Cut costs"]
        assert lst.content == "1. Grow cloud\n2. Cut costs"

    def test_unordered_list_bullets(self):
        """Test that unordered lists use bullets."""
        html = "<html><body><ul><li>One</li><li>Two</li></ul></body></html>"
        lists = [s for s in parse_html(html) if s.type == FilingSectionType.LIST]
        assert lists[0].content == "• One\n• Two"


class TestOptions:
    """Tests for extractor options."""

    def test_skip_tables_and_lists(self, filing_html):
        """Test that disabled passes produce no TABLE/LIST sections."""
        options = ExtractorOptions(extract_tables=False, extract_lists=False)
        types = {s.type for s in parse_html(filing_html, options)}

        assert FilingSectionType.TABLE not in types
        assert FilingSectionType.LIST not in types

    def test_truncation(self):
        """Test that long content is cut and marked."""
        html = f"<html><body><div><p>{'a' * 50}</p></div></body></html>"
        section = parse_html(html, ExtractorOptions(max_section_length=10))[0]
        assert section.content == "a" * 10 + "..."

    def test_raw_html(self):
        """Test that include_raw_html keeps the inner markup."""
        html = "<html><body><div><p>text</p></div></body></html>"
        section = parse_html(html, ExtractorOptions(include_raw_html=True))[0]
        assert "<p>text</p>" in section.raw_html

    def test_paragraph_limit(self):
        """Test that only the first N paragraphs survive."""
        html = "<html><body><p>one</p><p>two</p><p>three</p></body></html>"
        content = _all_content(parse_html(html, ExtractorOptions(paragraph_limit=2)))

        assert "two" in content
        assert "three" not in content

    def test_basic_text_mode(self, filing_html):
        """Test that extract_sections=False yields a single body section."""
        options = ExtractorOptions(extract_sections=False, extract_tables=False, extract_lists=False)
        sections = parse_html(filing_html, options)

        assert [s.type for s in sections] == [FilingSectionType.TITLE, FilingSectionType.SECTION]
        assert "Interest rates may rise." in sections[1].content

    def test_preserve_whitespace(self):
        """Test that preserve_whitespace keeps inner newlines."""
        html = "<html><body><div><pre>line one\nline two</pre></div></body></html>"
        section = parse_html(html, ExtractorOptions(preserve_whitespace=True))[0]
        assert "line one\nline two" in section.content


class TestErrors:
    """Tests for malformed input."""

    def test_non_string_input(self):
        """Test that non-text input raises an HTML ParserError."""
        with pytest.raises(ParserError) as exc_info:
            parse_html(12345)
        assert exc_info.value.category == ParserErrorCategory.HTML


class TestHelpers:
    """Tests for standalone helpers."""

    def test_extract_paragraphs(self, filing_html):
        """Test paragraph extraction."""
        paragraphs = extract_paragraphs(filing_html)
        assert [p.content for p in paragraphs][:2] == [
            "Our business is subject to competition.",
            "Interest rates may rise.",
        ]
        assert all(p.type == FilingSectionType.PARAGRAPH for p in paragraphs)

    def test_extract_headers(self, filing_html):
        """Test heading extraction in document order."""
        headers = [h.content for h in extract_headers(filing_html)]
        assert headers[:3] == ["Risk Factors", "Market Risk", "Management's Discussion and Analysis"]

    def test_normalize_whitespace(self):
        """Test whitespace collapsing."""
        assert normalize_whitespace("  a \n\t b  ") == "a b"

    def test_renderers(self):
        """Test table and list text rendering."""
        assert table_data_to_string([["a", "b"], ["c", "d"]]) == "a | b\nc | d"
        assert list_items_to_string(["x", "y"], ordered=True) == "1. x\n2. y"
