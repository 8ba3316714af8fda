"""
Summary statistics for comparison reports.
"""

from decimal import Decimal
from typing import Any, Dict, List

from price_verification.models import ComparisonItem, ComparisonReport, ComparisonStatus


def _exposure(items: List[ComparisonItem]) -> Decimal:
    """Difference times quantity, summed."""
    return sum((abs(item.price_difference) * item.invoice_line_item.quantity for item in items), Decimal(0))


def generate_report_summary(report: ComparisonReport, top_count: int = 5) -> Dict[str, Any]:
    """
    Headline figures for a report.

    ``net_difference`` is total overcharge minus total undercharge, per
    unit. The exposure figures weight each difference by the invoiced
    quantity. ``top_overcharges`` are the largest overcharges by absolute
    difference, ties in line order.
    """
    overcharges = [item for item in report.items if item.status == ComparisonStatus.OVERCHARGE]
    undercharges = [item for item in report.items if item.status == ComparisonStatus.UNDERCHARGE]

    matched_percentage = (round(report.matched_items / report.total_items * 100)
                          if report.total_items > 0 else 0)
    top = sorted(overcharges, key=lambda item: abs(item.price_difference), reverse=True)[:top_count]

    return {
        'matched_percentage': matched_percentage,
        'overcharge_count': len(overcharges),
        'undercharge_count': len(undercharges),
        'unmatched_count': report.unmatched_count,
        'net_difference': report.total_overcharge - report.total_undercharge,
        'overcharge_exposure': _exposure(overcharges),
        'undercharge_exposure': _exposure(undercharges),
        'top_overcharges': top
    }
