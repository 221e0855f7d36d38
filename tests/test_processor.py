"""
Tests for the filing processor.

Tests cover:
1. HTML and PDF filings end to end
2. Important-section lookup per filing type
3. Title metadata: company name, CIK, filing date
4. Unsupported input, fallback extraction and monitoring
5. XBRL filings with document metadata and metric sections
6. Financial metrics and rule checks on the assembled filing
"""

from datetime import date

import pytest

from filing_pipeline.parse import processor
from filing_pipeline.parse.models import FileType, FilingSection, FilingSectionType, FilingType
from filing_pipeline.parse.processor import (
    build_full_text,
    extract_filing_metadata,
    find_section_content,
    parse_filing,
)
from filing_pipeline.recovery.errors import ParserErrorCategory, RecoveryStrategy


# ─── Test Data ───

def _section(title, content, children=None):
    return FilingSection(type=FilingSectionType.SECTION, title=title, content=content, children=children)


def _title(content):
    return FilingSection(type=FilingSectionType.TITLE, content=content)


class TestParseFilingHTML:
    """End-to-end HTML filings."""

    def test_annual_report(self, filing_html):
        """Test sections, tables, lists and important sections of a 10-K."""
        result = parse_filing(filing_html, FilingType.FORM_10K)
        assert result.ok is True

        filing = result.unwrap()
        assert filing.file_type == FileType.HTML
        assert filing.filing_type == FilingType.FORM_10K
        assert len(filing.tables) == 1
        assert len(filing.lists) == 1
        assert set(filing.important_sections) == {"Risk Factors", "Management's Discussion and Analysis"}
        assert filing.important_sections["Risk Factors"] == "Our business is subject to competition."
        assert filing.used_fallback is False
        assert filing.full_text is None
        assert filing.parsed_at.tzinfo is not None

    def test_title_metadata(self, filing_html):
        """Test company name and CIK from the document title."""
        filing = parse_filing(filing_html, "10-K").unwrap()

        assert filing.company_name == "ACME CORP"
        assert filing.cik == "0000123456"
        assert filing.filing_date is None

    def test_full_text_includes_nested_sections(self, filing_html):
        """Test that full text covers child sections."""
        filing = parse_filing(filing_html, include_full_text=True).unwrap()

        assert "Interest rates may rise." in filing.full_text
        assert "Our business is subject to competition." in filing.full_text

    def test_bytes_input(self, filing_html):
        """Test that HTML bytes are detected and decoded."""
        filing = parse_filing(filing_html.encode("utf-8"), "Form 4").unwrap()

        assert filing.file_type == FileType.HTML
        assert filing.filing_type == FilingType.FORM_4

    def test_form_without_important_sections(self, filing_html):
        """Test that filing types without a list get no important sections."""
        assert parse_filing(filing_html, "S-1").unwrap().important_sections == {}


class TestParseFilingPDF:
    """End-to-end PDF filings."""

    def test_pdf_filing(self, filing_pdf):
        """Test that PDF bytes go through the PDF extractor."""
        filing = parse_filing(filing_pdf, FilingType.FORM_10K, include_full_text=True).unwrap()

        assert filing.file_type == FileType.PDF
        assert filing.sections[0].content == "Acme Annual Report"
        assert "Rates may change." in filing.full_text


class TestFailures:
    """Tests for unsupported input, fallback and monitoring."""

    def test_unknown_format(self, store):
        """Test that unrecognised content fails with INVALID_INPUT/ABORT."""
        result = parse_filing("just some plain text", FilingType.FORM_8K, store=store)

        assert result.ok is False
        assert result.error.category == ParserErrorCategory.INVALID_INPUT
        assert result.error.recovery == RecoveryStrategy.ABORT
        assert store.get_metrics("unknown").failure_count == 1

    def test_store_records_success(self, filing_html, store):
        """Test that a monitored parse records the section count."""
        filing = parse_filing(filing_html, "10-K", store=store).unwrap()

        assert store.get_metrics("html").success_count == 1
        record = store.get_recent_operations()[0]
        assert record.source_type == "10-K"
        assert record.result_size == len(filing.sections)

    def test_fallback_extraction(self, filing_html, monkeypatch):
        """Test that a failed extraction is retried with simplified options."""
        seen_options = []

        def flaky_extractor(content, options):
            seen_options.append(options)
            if options.extract_sections:
                raise ValueError("html structure too deep")
            return [_section(None, "plain body text")]

        monkeypatch.setitem(processor._EXTRACTORS, FileType.HTML, (flaky_extractor, ParserErrorCategory.HTML))
        filing = parse_filing(filing_html, "10-K").unwrap()

        assert filing.used_fallback is True
        assert filing.sections[0].content == "plain body text"
        assert seen_options[1].extract_tables is False

    def test_fallback_failure(self, filing_html, monkeypatch, store):
        """Test that a failing fallback yields an INTERNAL failure and is recorded."""
        def broken_extractor(content, options):
            raise ValueError("html structure too deep")

        monkeypatch.setitem(processor._EXTRACTORS, FileType.HTML, (broken_extractor, ParserErrorCategory.HTML))
        result = parse_filing(filing_html, "10-K", store=store)

        assert result.ok is False
        assert result.error.category == ParserErrorCategory.INTERNAL
        assert store.get_metrics("html").error_count_by_category == {"internal": 1}


class TestSectionHelpers:
    """Tests for section lookup, metadata and full text."""

    def test_title_match_wins(self):
        """Test that a title match beats an earlier textual mention."""
        sections = [
            _section("Overview", "See Risk Factors below."),
            _section("Item 1A. Risk Factors", "Competition is intense."),
        ]
        assert find_section_content(sections, "Risk Factors") == "Competition is intense."

    def test_mention_in_child(self):
        """Test that mentions are found in children, from the mention onwards."""
        sections = [_section("Part II", "", children=[_section("Notes", "Cash and Liquidity remain strong.")])]
        assert find_section_content(sections, "Liquidity") == "Liquidity remain strong."

    def test_not_found(self):
        """Test a missing section."""
        assert find_section_content([_section("A", "b")], "Business") is None

    def test_filed_date(self):
        """Test filing date parsing from the title."""
        metadata = extract_filing_metadata([_title("BETA INC - Current report filed 03/15/24")])

        assert metadata["company_name"] == "BETA INC"
        assert metadata["filing_date"] == date(2024, 3, 15)
        assert "cik" not in metadata

    def test_document_section_as_title(self):
        """Test that a 'Document' section stands in for a missing title."""
        metadata = extract_filing_metadata([_section("Document 1", "CIK: 320193")])
        assert metadata == {"cik": "320193"}

    def test_no_title(self):
        """Test that no title section means no metadata."""
        assert extract_filing_metadata([_section("Body", "text")]) == {}

    @pytest.mark.parametrize("max_length,expected", [(100, "abc\n\ndef"), (4, "abc\n...")])
    def test_build_full_text(self, max_length, expected):
        """Test joining and truncation."""
        sections = [_section("A", "abc"), _section("B", "def")]
        assert build_full_text(sections, max_length) == expected


class TestParseFilingXBRL:
    """End-to-end XBRL and inline XBRL filings."""

    def test_instance_document(self, xbrl_instance, store):
        """Test detection, document metadata and metric sections."""
        filing = parse_filing(xbrl_instance, FilingType.FORM_10K, store=store).unwrap()

        assert filing.file_type == FileType.XBRL
        assert filing.company_name == "Acme Corp"
        assert filing.cik == "0000123456"
        assert filing.filing_date == date(2023, 12, 31)
        assert "Financial Metric: Revenue" in filing.important_sections
        assert len(filing.tables) == 1
        assert filing.validation_issues == []
        assert store.get_metrics("xbrl").success_count == 1

    def test_inline_document(self, inline_xbrl):
        """Test that inline XBRL is routed to the XBRL extractor."""
        filing = parse_filing(inline_xbrl, "10-Q").unwrap()

        assert filing.file_type == FileType.XBRL
        assert filing.company_name == "Beta Inc"
        assert filing.filing_date == date(2024, 3, 31)
        assert filing.important_sections["Financial Metric: NetIncome"].startswith("us-gaap:NetIncomeLoss: -40")

    def test_empty_xbrl_fails(self, store):
        """Test that XBRL without contexts or facts is a failed parse."""
        result = parse_filing('<?xml version="1.0"?><xbrl></xbrl>', "10-K", store=store)

        assert result.ok is False
        assert store.get_metrics("xbrl").failure_count == 1


class TestMetricsAndRules:
    """Tests for financial metrics and rule checks on parsed filings."""

    def test_metrics_from_xbrl_sections(self, xbrl_instance):
        """Test that metric sections feed the headline metrics."""
        filing = parse_filing(xbrl_instance, "10-K").unwrap()

        assert filing.financial_metrics["Revenue"].value == "5000000000"
        assert filing.financial_metrics["Revenue"].source == "Financial Metric: Revenue"

    def test_metrics_can_be_skipped(self, xbrl_instance):
        """Test extract_metrics=False."""
        assert parse_filing(xbrl_instance, "10-K", extract_metrics=False).unwrap().financial_metrics == {}

    def test_fallback_filing_reports_issues(self, filing_html, monkeypatch):
        """Test that a thin fallback extraction still succeeds with issues recorded."""
        def flaky_extractor(content, options):
            if options.extract_sections:
                raise ValueError("html structure too deep")
            return [_section(None, "plain body text")]

        monkeypatch.setitem(processor._EXTRACTORS, FileType.HTML, (flaky_extractor, ParserErrorCategory.HTML))
        filing = parse_filing(filing_html, "10-K").unwrap()

        assert "error: Extracted text is too short (15 < 100 characters)" in filing.validation_issues
        assert "warning: None of the 8 expected sections were found" in filing.validation_issues

    def test_future_filed_date_cleared(self, monkeypatch):
        """Test that the rule fixes are kept on the returned filing."""
        future = [
            _title("GAMMA CORP - Report filed 01/01/99"),
            _section("Business", "Gamma makes gadgets. " * 10),
        ]
        monkeypatch.setitem(processor._EXTRACTORS, FileType.HTML, (lambda c, o: future, ParserErrorCategory.HTML))

        filing = parse_filing("<html><body></body></html>", "8-K").unwrap()
        assert filing.company_name == "GAMMA CORP"
        assert filing.filing_date is None
        assert any("in the future" in issue for issue in filing.validation_issues)

    def test_rules_can_be_skipped(self, filing_html):
        """Test apply_rules=False."""
        filing = parse_filing(filing_html, "S-1", apply_rules=False).unwrap()
        assert filing.validation_issues == []
