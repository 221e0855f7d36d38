"""
Shared fixtures for filing pipeline tests.
"""

import pytest

from filing_pipeline.monitor.parser_monitor import MetricsStore


# ─── Sample Documents ───

FILING_HTML = """<!DOCTYPE html>
<html>
<head>
  <title>ACME CORP - Annual Report CIK 0000123456</title>
  <script>var tracking = 1;</script>
</head>
<body>
  <div class="edgar-header">EDGAR header noise</div>
  <div>
    <h1>Risk Factors</h1>
    <p>Our business is subject to competition.</p>
    <div>
      <h2>Market Risk</h2>
      <p>Interest rates may rise.</p>
    </div>
  </div>
  <div>
    <h2>Management's Discussion and Analysis</h2>
    <p>Revenue grew 12% year over year.</p>
    <h3>Segment results</h3>
    <table>
      <tr><th>Segment</th><th>Revenue</th></tr>
      <tr><td>Cloud</td><td>$1,200</td></tr>
    </table>
    <h3>Priorities</h3>
    <ol><li>Grow cloud</li><li>Cut costs</li></ol>
  </div>
  <div class="footer">Footer links</div>
</body>
</html>
"""

XBRL_INSTANCE = """<?xml version="1.0" encoding="UTF-8"?>
<xbrli:xbrl xmlns:xbrli="http://www.xbrl.org/2003/instance"
  xmlns:us-gaap="http://fasb.org/us-gaap/2023"
  xmlns:dei="http://xbrl.sec.gov/dei/2023"
  xmlns:iso4217="http://www.xbrl.org/2003/iso4217"
  xmlns:xbrldi="http://xbrl.org/2006/xbrldi"
  xmlns:srt="http://fasb.org/srt/2023">
  <xbrli:context id="FY2023">
    <xbrli:entity>
      <xbrli:identifier scheme="http://www.sec.gov/CIK">0000123456</xbrli:identifier>
    </xbrli:entity>
    <xbrli:period>
      <xbrli:startDate>2023-01-01</xbrli:startDate>
      <xbrli:endDate>2023-12-31</xbrli:endDate>
    </xbrli:period>
  </xbrli:context>
  <xbrli:context id="I2023_Cloud">
    <xbrli:entity>
      <xbrli:identifier scheme="http://www.sec.gov/CIK">0000123456</xbrli:identifier>
      <xbrli:segment>
        <xbrldi:explicitMember dimension="srt:SegmentAxis">acme:CloudMember</xbrldi:explicitMember>
      </xbrli:segment>
    </xbrli:entity>
    <xbrli:period>
      <xbrli:instant>2023-12-31</xbrli:instant>
    </xbrli:period>
  </xbrli:context>
  <xbrli:unit id="USD">
    <xbrli:measure>iso4217:USD</xbrli:measure>
  </xbrli:unit>
  <xbrli:unit id="USDPerShare">
    <xbrli:divide>
      <xbrli:unitNumerator><xbrli:measure>iso4217:USD</xbrli:measure></xbrli:unitNumerator>
      <xbrli:unitDenominator><xbrli:measure>xbrli:shares</xbrli:measure></xbrli:unitDenominator>
    </xbrli:divide>
  </xbrli:unit>
  <dei:DocumentType contextRef="FY2023">10-K</dei:DocumentType>
  <dei:EntityRegistrantName contextRef="FY2023">Acme Corp</dei:EntityRegistrantName>
  <dei:EntityCentralIndexKey contextRef="FY2023">0000123456</dei:EntityCentralIndexKey>
  <dei:DocumentPeriodEndDate contextRef="FY2023">2023-12-31</dei:DocumentPeriodEndDate>
  <dei:DocumentFiscalYearFocus contextRef="FY2023">2023</dei:DocumentFiscalYearFocus>
  <us-gaap:Revenues contextRef="FY2023" unitRef="USD" decimals="-6">5000000000</us-gaap:Revenues>
  <us-gaap:NetIncomeLoss contextRef="FY2023" unitRef="USD" decimals="-6">750000000</us-gaap:NetIncomeLoss>
  <us-gaap:Assets contextRef="I2023_Cloud" unitRef="USD" decimals="-6">12000000000</us-gaap:Assets>
  <us-gaap:EarningsPerShareBasic contextRef="FY2023" unitRef="USDPerShare" decimals="2">3.25</us-gaap:EarningsPerShareBasic>
</xbrli:xbrl>
"""

INLINE_XBRL_HTML = """<html xmlns="http://www.w3.org/1999/xhtml" xmlns:ix="http://www.xbrl.org/2013/inlineXBRL" xmlns:xbrli="http://www.xbrl.org/2003/instance" xmlns:us-gaap="http://fasb.org/us-gaap/2023" xmlns:dei="http://xbrl.sec.gov/dei/2023" xmlns:iso4217="http://www.xbrl.org/2003/iso4217">
<head><title>Beta Inc 10-Q</title></head>
<body>
<div style="display:none">
  <ix:header>
    <ix:hidden>
      <ix:nonNumeric name="dei:DocumentType" contextRef="Q1">10-Q</ix:nonNumeric>
      <ix:nonNumeric name="dei:EntityRegistrantName" contextRef="Q1">Beta Inc</ix:nonNumeric>
    </ix:hidden>
    <ix:resources>
      <xbrli:context id="Q1">
        <xbrli:entity><xbrli:identifier scheme="http://www.sec.gov/CIK">0000654321</xbrli:identifier></xbrli:entity>
        <xbrli:period><xbrli:startDate>2024-01-01</xbrli:startDate><xbrli:endDate>2024-03-31</xbrli:endDate></xbrli:period>
      </xbrli:context>
      <xbrli:unit id="USD"><xbrli:measure>iso4217:USD</xbrli:measure></xbrli:unit>
    </ix:resources>
  </ix:header>
</div>
<p>Quarter ended <ix:nonNumeric name="dei:DocumentPeriodEndDate" contextRef="Q1">March 31, 2024</ix:nonNumeric></p>
<p>Revenue was $<ix:nonFraction name="us-gaap:Revenues" contextRef="Q1" unitRef="USD" decimals="-6" scale="6">1,250</ix:nonFraction> million.</p>
<p>Net loss was $<ix:nonFraction name="us-gaap:NetIncomeLoss" contextRef="Q1" unitRef="USD" decimals="-6" scale="6" sign="-">40</ix:nonFraction> million.</p>
</body>
</html>
"""


def _pdf_string(text: str) -> str:
    return text.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")


def build_pdf(lines: list[str], title: str = None) -> bytes:
    """
    Build a one-page PDF with each line drawn 20pt below the previous one.

    Uses the standard Helvetica font so no font data needs embedding.
    """
    ops = ["BT", "/F1 12 Tf", "72 720 Td"]
    for i, line in enumerate(lines):
        if i:
            ops.append("0 -20 Td")
        ops.append(f"({_pdf_string(line)}) Tj")
    ops.append("ET")
    stream = "\n".join(ops).encode("latin-1")

    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>",
        b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
        b"/Contents 4 0 R /Resources << /Font << /F1 5 0 R >> >> >>",
        b"<< /Length " + str(len(stream)).encode() + b" >>\nstream\n" + stream + b"\nendstream",
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica /Encoding /WinAnsiEncoding >>",
    ]
    if title is not None:
        objects.append(f"<< /Title ({_pdf_string(title)}) >>".encode("latin-1"))

    output = bytearray(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(objects, start=1):
        offsets.append(len(output))
        output += f"{number} 0 obj\n".encode() + body + b"\nendobj\n"

    xref_offset = len(output)
    output += f"xref\n0 {len(objects) + 1}\n".encode()
    output += b"0000000000 65535 f \n"
    for offset in offsets:
        output += f"{offset:010d} 00000 n \n".encode()

    trailer = f"<< /Size {len(objects) + 1} /Root 1 0 R"
    if title is not None:
        trailer += f" /Info {len(objects)} 0 R"
    trailer += " >>"
    output += f"trailer\n{trailer}\nstartxref\n{xref_offset}\n%%EOF\n".encode()
    return bytes(output)


# ─── Fixtures ───

@pytest.fixture
def filing_html() -> str:
    return FILING_HTML


@pytest.fixture
def filing_pdf() -> bytes:
    return build_pdf(
        ["RISK FACTORS", "Our business faces risks.", "MARKET RISK", "Rates may change."],
        title="Acme Annual Report",
    )


@pytest.fixture
def store() -> MetricsStore:
    return MetricsStore(max_recent_operations=5)


@pytest.fixture
def xbrl_instance() -> str:
    return XBRL_INSTANCE


@pytest.fixture
def inline_xbrl() -> str:
    return INLINE_XBRL_HTML
