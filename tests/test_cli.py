"""
Tests for the command-line entry point.

Tests cover:
1. Filing summary output
2. Reply parsing and monitoring report output
3. Exit codes for unreadable and unsupported files
4. XBRL summaries with financial metrics
"""

import json

from filing_pipeline.__main__ import main


class TestMain:
    """Tests for main()."""

    def test_summary(self, tmp_path, filing_html, capsys):
        """Test that a filing summary is printed."""
        path = tmp_path / "acme-10k.htm"
        path.write_text(filing_html, encoding="utf-8")

        assert main([str(path), "--filing-type", "10-K", "--chunks"]) == 0

        out = capsys.readouterr().out
        assert "PARSED 10-K (HTML)" in out
        assert "Company: ACME CORP" in out
        assert "Risk Factors" in out
        assert "Chunk 1:" in out

    def test_response_and_report(self, tmp_path, filing_html, capsys):
        """Test reply parsing output and the monitor report."""
        filing = tmp_path / "acme.htm"
        filing.write_text(filing_html, encoding="utf-8")
        reply = tmp_path / "reply.txt"
        reply.write_text('```json\n{"company": "Acme"}\n```', encoding="utf-8")

        assert main([str(filing), "--response", str(reply), "--report"]) == 0

        out = capsys.readouterr().out
        assert '"company": "Acme"' in out
        assert "MONITOR REPORT" in out
        assert json.dumps("html") in out

    def test_missing_file(self, tmp_path):
        """Test exit code 1 for an unreadable file."""
        assert main([str(tmp_path / "missing.htm")]) == 1

    def test_unsupported_file(self, tmp_path, capsys):
        """Test exit code 1 for content that is neither HTML nor PDF."""
        path = tmp_path / "notes.txt"
        path.write_text("plain notes", encoding="utf-8")

        assert main([str(path)]) == 1
        assert "Extraction failed" in capsys.readouterr().err

    def test_xbrl_summary(self, tmp_path, xbrl_instance, capsys):
        """Test that XBRL metadata and headline metrics are printed."""
        path = tmp_path / "acme-10k.xml"
        path.write_text(xbrl_instance, encoding="utf-8")

        assert main([str(path), "--filing-type", "10-K"]) == 0

        out = capsys.readouterr().out
        assert "PARSED 10-K (XBRL)" in out
        assert "Company: Acme Corp" in out
        assert "Filed: 2023-12-31" in out
        assert "Revenue: 5000000000 (Financial Metric: Revenue)" in out
