"""
CLI interface for the filing pipeline.

Usage:
    python -m filing_pipeline data/aapl-10k.htm --filing-type 10-K
    python -m filing_pipeline data/aapl-10k.htm --filing-type 10-K --config configs/pipeline.yaml
    python -m filing_pipeline data/aapl-10k.htm --filing-type 10-K --response replies/aapl.txt
    python -m filing_pipeline data/form4.pdf --filing-type 4 --chunks --report
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from .config import load_config, validate_config
from .extract.response_parser import parse_response
from .monitor.metrics import ParseMetricsCollector
from .monitor.parser_monitor import MetricsStore
from .parse.context_window import chunk_for_filing, estimate_token_count
from .parse.models import FilingType
from .parse.processor import parse_filing
from .recovery.retry import with_retry

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


def print_filing_summary(parsed) -> None:
    print(f"\n{'='*60}")
    print(f"PARSED {parsed.filing_type.value} ({parsed.file_type.value.upper()})")
    print(f"{'='*60}")
    if parsed.company_name:
        print(f"Company: {parsed.company_name}")
    if parsed.cik:
        print(f"CIK: {parsed.cik}")
    if parsed.filing_date:
        print(f"Filed: {parsed.filing_date.isoformat()}")
    print(f"Sections: {len(parsed.sections)}")
    print(f"Tables: {len(parsed.tables)}")
    print(f"Lists: {len(parsed.lists)}")
    print(f"Characters: {parsed.total_chars:,}")
    print(f"Processing time: {parsed.processing_time_ms}ms")
    if parsed.used_fallback:
        print("Note: extracted with simplified options after a failure")

    print("\nTop-level sections:")
    for section in parsed.sections:
        title = section.title or section.content[:60]
        print(f"  [{section.type.value}] {title}")

    if parsed.important_sections:
        print("\nImportant sections:")
        for name, content in parsed.important_sections.items():
            print(f"  {name}: {len(content):,} chars")

    if parsed.financial_metrics:
        print("\nFinancial metrics:")
        for name, metric in parsed.financial_metrics.items():
            print(f"  {name}: {metric.value} ({metric.source})")

    if parsed.validation_issues:
        print("\nValidation issues:")
        for issue in parsed.validation_issues:
            print(f"  {issue}")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        prog="filing_pipeline",
        description="Extract SEC filings and parse structured model replies",
    )
    parser.add_argument("file", type=Path, help="Filing document (HTML, PDF or XBRL)")
    parser.add_argument("--filing-type", default="Generic", help="Form type, e.g. 10-K, 8-K, DEF 14A")
    parser.add_argument("--config", type=Path, help="Pipeline config YAML")
    parser.add_argument("--response", type=Path, help="Saved model reply to parse and validate")
    parser.add_argument("--chunks", action="store_true", help="Show context-window chunking")
    parser.add_argument("--report", action="store_true", help="Print the monitoring report")
    args = parser.parse_args(argv)

    config = load_config(args.config)
    for warning in validate_config(config):
        logger.warning(f"Config warning: {warning}")

    filing_type = FilingType.parse(args.filing_type)
    if filing_type == FilingType.GENERIC and args.filing_type != FilingType.GENERIC.value:
        logger.warning(f"Unrecognized filing type {args.filing_type!r}, using Generic")

    store = MetricsStore(config.monitor.max_recent_operations) if config.monitor.enabled else None

    try:
        content = with_retry(args.file.read_bytes, config.retry)
    except OSError as e:
        logger.error(f"Cannot read {args.file}: {e}")
        return 1

    result = parse_filing(
        content,
        filing_type,
        options=config.extractor,
        store=store,
        include_full_text=args.chunks,
        fallback_strategies=config.fallback_strategies,
    )
    if not result.ok:
        print(f"Extraction failed: [{result.error.code}] {result.error.message}", file=sys.stderr)
        return 1

    parsed = result.value
    print_filing_summary(parsed)

    if args.chunks and parsed.full_text:
        chunks = chunk_for_filing(parsed.full_text, filing_type, overrides=config.context.as_overrides())
        print(f"\nContext window: {estimate_token_count(parsed.full_text):,} tokens est., {len(chunks)} chunk(s)")
        for i, chunk in enumerate(chunks, 1):
            print(f"  Chunk {i}: {len(chunk):,} chars")

    if args.response:
        collector = ParseMetricsCollector(config.monitor.max_stored_metrics)
        reply = args.response.read_text(encoding="utf-8")
        parse_result = parse_response(reply, filing_type, config.parse, collector=collector)
        print(f"\n{'='*60}")
        print("MODEL REPLY")
        print(f"{'='*60}")
        print(json.dumps(parse_result.to_dict(), indent=2, default=str))

    if args.report and store is not None:
        print(f"\n{'='*60}")
        print("MONITOR REPORT")
        print(f"{'='*60}")
        print(json.dumps(store.generate_report(), indent=2, default=str))

    return 0


if __name__ == "__main__":
    sys.exit(main())
