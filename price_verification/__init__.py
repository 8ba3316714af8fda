"""
Price Verification System

Compares the prices on supplier invoices and receipts against a price
catalogue: every invoice line is matched to a catalogue item, converted
into the catalogue currency and flagged as a match, an overcharge or an
undercharge.

This package provides:
- Core data models for catalogues, invoices and comparison reports
- Layered product matching (exact, heuristic, fuzzy, AI)
- Currency conversion with static and live exchange rates
- Report summaries and CSV export
- Configuration management
"""

from .models import (
    # Core data models
    CatalogueItem,
    InvoiceLineItem,
    MatchSuggestion,
    MatchResult,
    ComparisonItem,
    ComparisonReport,

    # Configuration models
    MatchingSettings,
    RateAPIConnectionConfig,
    AIConnectionConfig,
    ConnectionTestResult,

    # Enums
    MatchConfidence,
    MatchedOn,
    MatchLayer,
    ComparisonStatus,
    ConnectionType,

    # Exceptions
    PriceVerificationError,
    ValidationError,
    UnsupportedCurrencyError,
    MatchProviderError,
    ConfigurationError
)
from .comparison import ComparisonEngine, compare, export_report_to_csv, generate_report_summary
from .currency import CachingRateProvider, ExchangeRateAPIProvider, StaticRateProvider, convert
from .matching import FuzzyIndex, ProductMatcher, normalize_text

__version__ = "1.0.0"

__all__ = [
    # Core data models
    "CatalogueItem",
    "InvoiceLineItem",
    "MatchSuggestion",
    "MatchResult",
    "ComparisonItem",
    "ComparisonReport",

    # Configuration models
    "MatchingSettings",
    "RateAPIConnectionConfig",
    "AIConnectionConfig",
    "ConnectionTestResult",

    # Enums
    "MatchConfidence",
    "MatchedOn",
    "MatchLayer",
    "ComparisonStatus",
    "ConnectionType",

    # Exceptions
    "PriceVerificationError",
    "ValidationError",
    "UnsupportedCurrencyError",
    "MatchProviderError",
    "ConfigurationError",

    # Engine
    "ComparisonEngine",
    "compare",
    "export_report_to_csv",
    "generate_report_summary",
    "CachingRateProvider",
    "ExchangeRateAPIProvider",
    "StaticRateProvider",
    "convert",
    "FuzzyIndex",
    "ProductMatcher",
    "normalize_text"
]
