"""
CSV export of comparison reports.

Rows are materialised into a pandas DataFrame so the same table can be
written as CSV or handed to other tabular consumers. The converted price
and exchange rate columns only exist when invoice and catalogue currencies
differ.
"""

import csv
import io
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

import pandas as pd

from price_verification.models import ComparisonReport

import logging
logger = logging.getLogger(__name__)

NOT_AVAILABLE = "N/A"


def _text(value) -> str:
    if value is None or value == '':
        return NOT_AVAILABLE
    return str(value)


def _percentage(value: Optional[Decimal]) -> str:
    if value is None:
        return NOT_AVAILABLE
    return f"{value.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)}%"


def report_columns(report: ComparisonReport) -> List[str]:
    invoice_code, catalogue_code = report.invoice_currency, report.catalogue_currency
    converted = report.has_currency_conversion

    columns = [
        "Product Name (Invoice)",
        "Product Name (Catalogue)",
        "SKU",
        "Quantity",
        "Unit",
        f"Invoice Price ({invoice_code})",
    ]
    if converted:
        columns.append(f"Converted Price ({catalogue_code})")
    columns += [
        f"Catalogue Price ({catalogue_code})",
        f"Difference ({catalogue_code})",
        "% Difference",
        "Status",
        "Match Confidence",
    ]
    if converted:
        columns.append("Exchange Rate")
    return columns


def build_report_rows(report: ComparisonReport) -> pd.DataFrame:
    """
    One row per report item, every cell already rendered as text.

    Returns:
        DataFrame with the export columns, in report item order
    """
    converted = report.has_currency_conversion
    rows = []

    for item in report.items:
        line = item.invoice_line_item
        catalogue_item = item.catalogue_item

        row = [
            line.product_name,
            _text(catalogue_item.product_name if catalogue_item else None),
            _text(catalogue_item.sku if catalogue_item else None),
            str(line.quantity),
            _text(line.unit),
            str(item.invoice_price),
        ]
        if converted:
            row.append(_text(item.invoice_price_converted))
        row += [
            _text(item.catalogue_price),
            _text(item.price_difference),
            _percentage(item.percentage_diff),
            item.status.value,
            item.match_confidence.value,
        ]
        if converted:
            row.append(_text(item.exchange_rate))
        rows.append(row)

    return pd.DataFrame(rows, columns=report_columns(report), dtype=object)


def export_report_to_csv(report: ComparisonReport, report_id: Optional[str] = None,
                         created_at: Optional[str] = None) -> str:
    """
    Render a report as CSV text.

    A ``#`` metadata block precedes the table. Report id and creation time
    are written only when given; nothing here reads the clock.

    Args:
        report: Comparison report
        report_id: Optional identifier of the stored report
        created_at: Optional creation timestamp, already formatted

    Returns:
        CSV text with every cell quoted
    """
    invoice_code, catalogue_code = report.invoice_currency, report.catalogue_currency

    metadata = []
    if report_id:
        metadata.append(f"# Report ID: {report_id}")
    if created_at:
        metadata.append(f"# Created: {created_at}")
    metadata.append(f"# Invoice Currency: {invoice_code}")
    metadata.append(f"# Catalogue Currency: {catalogue_code}")
    if report.exchange_rate is not None:
        metadata.append(f"# Exchange Rate: 1 {invoice_code} = {report.exchange_rate} {catalogue_code}")

    output = io.StringIO()
    build_report_rows(report).to_csv(output, index=False, quoting=csv.QUOTE_ALL, lineterminator="\n")

    logger.debug(f"Exported report with {len(report.items)} rows to CSV")
    return "\n".join(metadata) + "\n\n" + output.getvalue()
