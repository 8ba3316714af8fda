"""
Supported currencies and price presentation.

Rounding for display happens here only; conversion arithmetic is never
rounded.
"""

import re
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Optional

from price_verification.models import Amount, ValidationError, to_decimal

_CODE_PATTERN = re.compile(r'^[A-Za-z]{3}$')


@dataclass(frozen=True)
class Currency:
    code: str
    symbol: str
    name: str
    locale: str


SUPPORTED_CURRENCIES: Dict[str, Currency] = {c.code: c for c in (
    Currency("USD", "$", "US Dollar", "en-US"),
    Currency("EUR", "€", "Euro", "de-DE"),
    Currency("GBP", "£", "British Pound", "en-GB"),
    Currency("JPY", "¥", "Japanese Yen", "ja-JP"),
    Currency("CHF", "CHF", "Swiss Franc", "de-CH"),
    Currency("CAD", "C$", "Canadian Dollar", "en-CA"),
    Currency("AUD", "A$", "Australian Dollar", "en-AU"),
    Currency("CNY", "¥", "Chinese Yuan", "zh-CN"),
    Currency("INR", "₹", "Indian Rupee", "en-IN"),
    Currency("MXN", "MX$", "Mexican Peso", "es-MX"),
    Currency("BRL", "R$", "Brazilian Real", "pt-BR"),
    Currency("KRW", "₩", "South Korean Won", "ko-KR"),
    Currency("SGD", "S$", "Singapore Dollar", "en-SG"),
    Currency("HKD", "HK$", "Hong Kong Dollar", "zh-HK"),
    Currency("NOK", "kr", "Norwegian Krone", "nb-NO"),
    Currency("SEK", "kr", "Swedish Krona", "sv-SE"),
    Currency("DKK", "kr", "Danish Krone", "da-DK"),
    Currency("NZD", "NZ$", "New Zealand Dollar", "en-NZ"),
    Currency("ZAR", "R", "South African Rand", "en-ZA"),
    Currency("RUB", "₽", "Russian Ruble", "ru-RU"),
    Currency("TRY", "₺", "Turkish Lira", "tr-TR"),
    Currency("PLN", "zł", "Polish Zloty", "pl-PL"),
    Currency("THB", "฿", "Thai Baht", "th-TH"),
    Currency("AED", "د.إ", "UAE Dirham", "ar-AE"),
    Currency("SAR", "﷼", "Saudi Riyal", "ar-SA"),
)}

ZERO_DECIMAL_CURRENCIES = frozenset({"JPY", "KRW"})


def normalize_currency_code(code: Optional[str]) -> str:
    """
    Upper-case a three-letter ISO 4217 code.

    Raises:
        ValidationError: If the code is not three letters
    """
    if not isinstance(code, str) or not _CODE_PATTERN.match(code.strip()):
        raise ValidationError(f"Invalid currency code: {code!r}")
    return code.strip().upper()


def get_currency_info(code: Optional[str]) -> Optional[Currency]:
    return SUPPORTED_CURRENCIES.get((code or '').upper())


def get_currency_symbol(code: Optional[str]) -> str:
    """Symbol for a currency, the code itself when unknown, '$' when empty."""
    currency = get_currency_info(code)
    if currency:
        return currency.symbol
    return code or "$"


def format_price(price: Amount, currency_code: str = "USD") -> str:
    """
    Format a price for display.

    JPY and KRW are shown without decimals and with thousands separators,
    every other currency with two decimals. Unreadable prices render as
    zero.
    """
    symbol = get_currency_symbol(currency_code)
    try:
        amount = to_decimal(price, 'price')
    except ValidationError:
        return f"{symbol}0.00"

    if (currency_code or '').upper() in ZERO_DECIMAL_CURRENCIES:
        return f"{symbol}{amount.quantize(Decimal('1'), rounding=ROUND_HALF_UP):,}"
    return f"{symbol}{amount.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)}"
