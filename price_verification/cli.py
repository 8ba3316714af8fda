"""
Command line interface.

    python -m price_verification compare --catalogue catalogue.csv --invoice invoice.xlsx \
        --invoice-currency EUR --catalogue-currency GBP --output report.csv
    python -m price_verification search --catalogue catalogue.csv "olive oil"
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

from price_verification.comparison.engine import ComparisonEngine
from price_verification.comparison.export import export_report_to_csv
from price_verification.comparison.summary import generate_report_summary
from price_verification.config.config_manager import get_config_manager
from price_verification.connectors.openai_connector import OpenAIMatchConnector
from price_verification.currency.currencies import format_price
from price_verification.currency.rate_providers import (
    ExchangeRateAPIProvider, RateProvider, StaticRateProvider
)
from price_verification.matching.ai_matcher import AIMatchLayer
from price_verification.matching.confidence import score_to_percentage
from price_verification.matching.fuzzy_index import FuzzyIndex
from price_verification.models import (
    MatchingSettings, PriceVerificationError, ValidationError, catalogue_items_from_dicts
)

logger = logging.getLogger(__name__)


def read_rows(path: str) -> List[Dict[str, Any]]:
    """
    Read item rows from a CSV, Excel (.xlsx) or JSON file.

    Every cell is read as text; empty cells become None.

    Raises:
        ValidationError: If the file type is unsupported or the file cannot be read
    """
    file_path = Path(path)
    suffix = file_path.suffix.lower()

    try:
        if suffix == '.csv':
            df = pd.read_csv(file_path, dtype=str)
        elif suffix == '.xlsx':
            df = pd.read_excel(file_path, sheet_name=0, dtype=str)
        elif suffix == '.json':
            df = pd.read_json(file_path, orient='records', dtype=False)
        else:
            raise ValidationError(f"Unsupported file type: {file_path.name}")
    except FileNotFoundError as e:
        raise ValidationError(f"File not found: {path}") from e
    except pd.errors.EmptyDataError:
        return []
    except ValueError as e:
        raise ValidationError(f"Could not read {path}: {e}") from e

    df = df.astype(object).where(pd.notna(df), None)
    return df.to_dict(orient='records')


def build_rate_provider(source: str) -> RateProvider:
    if source == 'live':
        return ExchangeRateAPIProvider.from_config(get_config_manager().load_rate_api_config())
    return StaticRateProvider()


def build_ai_layer(settings: MatchingSettings) -> Optional[AIMatchLayer]:
    if not settings.enable_ai_matching:
        return None
    config = get_config_manager().load_ai_config()
    if config is None:
        logger.warning("AI matching is enabled but no credentials are configured, skipping the AI layer")
        return None
    return AIMatchLayer.from_config(OpenAIMatchConnector(config), config, settings)


def _print_summary(report, summary: Dict[str, Any]):
    currency = report.catalogue_currency
    print(f"Lines compared:   {report.total_items}")
    print(f"Matched:          {report.matched_items} ({summary['matched_percentage']}%)")
    print(f"Overcharged:      {summary['overcharge_count']} "
          f"(total {format_price(report.total_overcharge, currency)})")
    print(f"Undercharged:     {summary['undercharge_count']} "
          f"(total {format_price(report.total_undercharge, currency)})")
    print(f"Unmatched:        {summary['unmatched_count']}")
    print(f"Net difference:   {format_price(summary['net_difference'], currency)}")
    if report.exchange_rate is not None:
        print(f"Exchange rate:    1 {report.invoice_currency} = {report.exchange_rate} {currency}")
    for item in summary['top_overcharges']:
        print(f"  + {item.invoice_line_item.product_name}: "
              f"{format_price(item.price_difference, currency)} per unit")
    for warning in report.warnings:
        print(f"Warning: {warning}")


def run_compare(args: argparse.Namespace) -> int:
    settings = get_config_manager().load_matching_settings()
    if args.ai:
        settings.enable_ai_matching = True

    engine = ComparisonEngine(settings=settings, ai_layer=build_ai_layer(settings))
    report = engine.compare(
        read_rows(args.invoice),
        read_rows(args.catalogue),
        args.invoice_currency,
        args.catalogue_currency,
        rate_provider=build_rate_provider(args.rates)
    )

    if args.json:
        print(report.to_json())
    else:
        _print_summary(report, generate_report_summary(report))

    if args.output:
        Path(args.output).write_text(export_report_to_csv(report), encoding='utf-8')
        logger.info(f"Report written to {args.output}")
    return 0


def run_search(args: argparse.Namespace) -> int:
    settings = get_config_manager().load_matching_settings()
    index = FuzzyIndex.build(catalogue_items_from_dicts(read_rows(args.catalogue)), settings)

    suggestions = index.find_matches(args.query, max_results=args.limit)
    if args.json:
        print(json.dumps([s.to_dict() for s in suggestions], indent=2))
        return 0

    if not suggestions:
        print(f"No catalogue items match '{args.query}'")
    for suggestion in suggestions:
        item = suggestion.catalogue_item
        sku = f" [{item.sku}]" if item.sku else ""
        print(f"{item.id}: {item.product_name}{sku} - {score_to_percentage(suggestion.score)}% "
              f"({suggestion.confidence.value}, {suggestion.matched_on.value})")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='price_verification',
                                     description="Compare invoice prices against a supplier catalogue")
    parser.add_argument('-v', '--verbose', action='store_true', help="Enable debug logging")
    subparsers = parser.add_subparsers(dest='command', required=True)

    compare_parser = subparsers.add_parser('compare', help="Compare an invoice against a catalogue")
    compare_parser.add_argument('--catalogue', required=True, help="Catalogue file (CSV, XLSX or JSON)")
    compare_parser.add_argument('--invoice', required=True, help="Invoice items file (CSV, XLSX or JSON)")
    compare_parser.add_argument('--invoice-currency', default='USD')
    compare_parser.add_argument('--catalogue-currency', default='USD')
    compare_parser.add_argument('--rates', choices=['static', 'live'], default='static',
                                help="Exchange-rate source")
    compare_parser.add_argument('--ai', action='store_true', help="Enable the AI matching layer")
    compare_parser.add_argument('--output', help="Write the report as CSV to this path")
    compare_parser.add_argument('--json', action='store_true', help="Print the full report as JSON")
    compare_parser.set_defaults(handler=run_compare)

    search_parser = subparsers.add_parser('search', help="Search a catalogue by product name or SKU")
    search_parser.add_argument('--catalogue', required=True, help="Catalogue file (CSV, XLSX or JSON)")
    search_parser.add_argument('--limit', type=int, default=5)
    search_parser.add_argument('--json', action='store_true')
    search_parser.add_argument('query')
    search_parser.set_defaults(handler=run_search)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stderr
    )

    try:
        return args.handler(args)
    except PriceVerificationError as e:
        logger.error(str(e))
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
