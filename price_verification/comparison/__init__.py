"""
Price comparison of invoices against catalogues: the comparison engine,
report summary statistics and CSV export.
"""

from .engine import ComparisonEngine, compare
from .export import build_report_rows, export_report_to_csv
from .summary import generate_report_summary

__all__ = [
    "ComparisonEngine",
    "compare",
    "build_report_rows",
    "export_report_to_csv",
    "generate_report_summary"
]
