"""
Currency support: supported currencies, exchange-rate providers and
conversion of invoice prices into the catalogue currency.
"""

from .converter import ConversionResult, convert, format_price_with_conversion
from .currencies import (
    SUPPORTED_CURRENCIES, Currency, format_price, get_currency_info, get_currency_symbol,
    normalize_currency_code
)
from .rate_providers import (
    FALLBACK_RATES_FROM_USD, CachingRateProvider, ExchangeRateAPIProvider, RateProvider,
    StaticRateProvider
)

__all__ = [
    "ConversionResult",
    "convert",
    "format_price_with_conversion",
    "SUPPORTED_CURRENCIES",
    "Currency",
    "format_price",
    "get_currency_info",
    "get_currency_symbol",
    "normalize_currency_code",
    "FALLBACK_RATES_FROM_USD",
    "CachingRateProvider",
    "ExchangeRateAPIProvider",
    "RateProvider",
    "StaticRateProvider"
]
