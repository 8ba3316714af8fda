"""
Currency conversion of invoice prices into the catalogue currency.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict

from price_verification.models import (
    Amount, PriceVerificationError, UnsupportedCurrencyError, to_decimal
)
from .currencies import format_price, normalize_currency_code
from .rate_providers import RateProvider

import logging
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConversionResult:
    converted_amount: Decimal
    rate_used: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            'converted_amount': str(self.converted_amount),
            'rate_used': str(self.rate_used)
        }


def convert(amount: Amount, from_currency: str, to_currency: str,
            rate_provider: RateProvider) -> ConversionResult:
    """
    Convert an amount between currencies.

    The provider is not consulted when both codes are the same currency
    (case-insensitive); the amount comes back unchanged at rate 1. No
    rounding is applied.

    Args:
        amount: Amount in ``from_currency``
        from_currency: ISO 4217 code of the amount
        to_currency: ISO 4217 code to convert into
        rate_provider: Exchange-rate source

    Returns:
        ConversionResult with the converted amount and the rate used

    Raises:
        ValidationError: If the amount or a currency code is malformed
        UnsupportedCurrencyError: If no usable rate exists for the pair
    """
    value = to_decimal(amount, 'amount')
    source = normalize_currency_code(from_currency)
    target = normalize_currency_code(to_currency)

    if source == target:
        return ConversionResult(converted_amount=value, rate_used=Decimal(1))

    try:
        rate = rate_provider.get_rate(source, target)
        rate = to_decimal(rate, f"rate {source}->{target}")
    except UnsupportedCurrencyError:
        raise
    except PriceVerificationError as e:
        raise UnsupportedCurrencyError(f"Cannot convert {source} to {target}: {e}") from e

    if rate <= 0:
        raise UnsupportedCurrencyError(f"Non-positive exchange rate {rate} for {source} -> {target}")

    return ConversionResult(converted_amount=value * rate, rate_used=rate)


def format_price_with_conversion(amount: Amount, from_currency: str, to_currency: str,
                                 rate_provider: RateProvider) -> Dict[str, Any]:
    """Display strings for an amount and its converted value."""
    result = convert(amount, from_currency, to_currency, rate_provider)
    return {
        'original': format_price(amount, from_currency),
        'converted': format_price(result.converted_amount, to_currency),
        'rate': result.rate_used
    }
