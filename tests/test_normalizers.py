"""
Tests for field normalization.

Tests cover:
1. Date formats -> YYYY-MM-DD
2. Currency rendering
3. Percentages, fractions and basis points
4. Filing-type specific field normalization
"""

import pytest

from filing_pipeline.extract.normalizers import (
    month_index,
    normalize_currency,
    normalize_date,
    normalize_fields,
    normalize_percentage,
)
from filing_pipeline.parse.models import FilingType


class TestNormalizeDate:
    """Tests for normalize_date."""

    @pytest.mark.parametrize("value", ["January 15, 2023", "01/15/2023", "01-15-2023", "15 Jan 2023"])
    def test_known_formats(self, value):
        """Test that every recognised layout gives the same ISO date."""
        assert normalize_date(value) == "2023-01-15"

    def test_iso_unchanged(self):
        """Test that ISO dates pass through."""
        assert normalize_date("2023-01-15") == "2023-01-15"

    def test_abbreviated_month_name(self):
        """Test prefix matching of month names."""
        assert normalize_date("Sept 5, 2023") == "2023-09-05"
        assert month_index("Dec") == 11

    def test_generic_fallback(self):
        """Test that dateutil handles month-year text, defaulting to the 1st."""
        assert normalize_date("March 2023") == "2023-03-01"

    def test_unreadable_returned_unchanged(self):
        """Test that garbage is returned as-is."""
        assert normalize_date("pending") == "pending"


class TestNormalizeCurrency:
    """Tests for normalize_currency."""

    def test_number(self):
        """Test numeric input."""
        assert normalize_currency(1234.5) == "$1,234.50"
        assert normalize_currency(0) == "$0.00"

    def test_already_formatted(self):
        """Test that formatted amounts are kept."""
        assert normalize_currency("$1,234.56") == "$1,234.56"

    def test_text_amounts(self):
        """Test that stray text and separators are removed."""
        assert normalize_currency("1234") == "$1,234.00"
        assert normalize_currency("USD 2,500,000") == "$2,500,000.00"

    def test_unreadable_gets_symbol(self):
        """Test that text without digits only gains a dollar sign."""
        assert normalize_currency("N/A") == "$N/A"
        assert normalize_currency("$TBD") == "$TBD"


class TestNormalizePercentage:
    """Tests for normalize_percentage."""

    def test_fraction(self):
        """Test that values in (-1, 1) are fractions."""
        assert normalize_percentage(0.25) == "25.00%"

    def test_plain_number(self):
        """Test that values between 1 and 100 are kept."""
        assert normalize_percentage(12) == "12.00%"

    def test_basis_points(self):
        """Test that numbers above 100 are basis points."""
        assert normalize_percentage(150) == "1.50%"
        assert normalize_percentage("150") == "1.50%"

    def test_explicit_percent_text(self):
        """Test formatted and signed percentages."""
        assert normalize_percentage("25%") == "25.00%"
        assert normalize_percentage("-3%") == "-3.00%"
        assert normalize_percentage("12.5 percent") == "12.50%"

    def test_unreadable_gets_symbol(self):
        """Test that text without digits only gains a percent sign."""
        assert normalize_percentage("n/a") == "n/a%"


class TestNormalizeFields:
    """Tests for normalize_fields."""

    def test_annual_report_fields(self):
        """Test dates, period and financials on a 10-K payload."""
        data = {
            "company": "Acme",
            "filingDate": "January 15, 2023",
            "period": "12/31/2022",
            "financials": [{"label": "Revenue", "value": "1200", "growth": 0.08}],
        }
        normalized = normalize_fields(data, FilingType.FORM_10K)

        assert normalized["filingDate"] == "2023-01-15"
        assert normalized["period"] == "2022-12-31"
        assert normalized["financials"] == [{"label": "Revenue", "value": "$1,200.00", "growth": "8.00%"}]

    def test_input_not_mutated(self):
        """Test that a new dict is returned."""
        data = {"financials": [{"value": 5}]}
        normalize_fields(data, FilingType.FORM_10Q)
        assert data == {"financials": [{"value": 5}]}

    def test_period_without_year_kept(self):
        """Test that a period with no four-digit year is left alone."""
        assert normalize_fields({"period": "Q3"}, "10-Q")["period"] == "Q3"

    def test_proxy_statement_fields(self):
        """Test compensation and meeting date on a DEF 14A payload."""
        data = {
            "meetingDate": "05/20/2024",
            "executiveCompensation": [{"name": "Jane", "salary": 500000, "bonus": 0}],
        }
        normalized = normalize_fields(data, "DEF 14A")

        assert normalized["meetingDate"] == "2024-05-20"
        assert normalized["executiveCompensation"][0]["salary"] == "$500,000.00"
        assert normalized["executiveCompensation"][0]["bonus"] == 0

    def test_other_types_skip_financials(self):
        """Test that an 8-K keeps financial values untouched."""
        data = {"financials": [{"value": "1200"}]}
        assert normalize_fields(data, FilingType.FORM_8K)["financials"] == [{"value": "1200"}]

    def test_non_dict_passthrough(self):
        """Test that lists and scalars are returned as-is."""
        assert normalize_fields([1, 2], FilingType.GENERIC) == [1, 2]
