"""
Exchange-rate providers.

A provider answers "how many units of ``to_currency`` is one unit of
``from_currency`` worth". Rates are Decimals; an unknown currency is an
error, never a silent rate of 1.
"""

import threading
import time
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Callable, Dict, Mapping, Optional, Tuple, Union

from price_verification.connectors.api_connector import APIConnector
from price_verification.connectors.base_connector import ConnectorError
from price_verification.models import (
    Amount, PriceVerificationError, RateAPIConnectionConfig, UnsupportedCurrencyError,
    ValidationError, to_decimal
)

import logging
logger = logging.getLogger(__name__)

# Approximate USD based rates, used when live rates are unavailable
FALLBACK_RATES_FROM_USD: Dict[str, Decimal] = {code: Decimal(rate) for code, rate in {
    "USD": "1.0",
    "EUR": "0.92",
    "GBP": "0.79",
    "JPY": "148.5",
    "CHF": "0.88",
    "CAD": "1.36",
    "AUD": "1.54",
    "CNY": "7.25",
    "INR": "83.5",
    "MXN": "17.2",
    "BRL": "4.95",
    "KRW": "1320",
    "SGD": "1.34",
    "HKD": "7.82",
    "NOK": "10.5",
    "SEK": "10.3",
    "DKK": "6.85",
    "NZD": "1.62",
    "ZAR": "18.7",
    "RUB": "92.5",
    "TRY": "32.5",
    "PLN": "4.02",
    "THB": "35.2",
    "AED": "3.67",
    "SAR": "3.75",
}.items()}


class RateProvider(ABC):
    """Source of exchange rates."""

    @abstractmethod
    def get_rate(self, from_currency: str, to_currency: str) -> Decimal:
        """
        Rate to multiply a ``from_currency`` amount by to get ``to_currency``.

        Raises:
            UnsupportedCurrencyError: If no rate is known for the pair
        """
        pass


class StaticRateProvider(RateProvider):
    """
    Rates from fixed tables.

    Explicit pair rates win; the reverse of a known pair is inverted.
    Otherwise both currencies must appear in the per-base table and the
    rate is crossed through the base. With no tables given, the USD
    fallback table is used.
    """

    def __init__(self, pair_rates: Optional[Mapping[Tuple[str, str], Amount]] = None,
                 base_rates: Optional[Mapping[str, Amount]] = None,
                 base_currency: str = "USD"):
        if pair_rates is None and base_rates is None:
            base_rates = FALLBACK_RATES_FROM_USD

        self.base_currency = base_currency.upper()
        self.pair_rates: Dict[Tuple[str, str], Decimal] = {
            (source.upper(), target.upper()): to_decimal(rate, f"rate {source}->{target}")
            for (source, target), rate in (pair_rates or {}).items()
        }
        self.base_rates: Dict[str, Decimal] = {
            code.upper(): to_decimal(rate, f"rate {self.base_currency}->{code}")
            for code, rate in (base_rates or {}).items()
        }

    def get_rate(self, from_currency: str, to_currency: str) -> Decimal:
        source, target = from_currency.upper(), to_currency.upper()
        if source == target:
            return Decimal(1)

        rate = self.pair_rates.get((source, target))
        if rate is not None and rate > 0:
            return rate

        reverse = self.pair_rates.get((target, source))
        if reverse is not None and reverse > 0:
            return Decimal(1) / reverse

        source_rate = self.base_rates.get(source)
        target_rate = self.base_rates.get(target)
        if source_rate and target_rate and source_rate > 0 and target_rate > 0:
            return target_rate / source_rate

        raise UnsupportedCurrencyError(f"No exchange rate available for {source} -> {target}")


class ExchangeRateAPIProvider(RateProvider):
    """
    Live rates from an exchangerate-api style endpoint.

    ``GET {base_url}/latest/{FROM}`` must answer ``{"rates": {CODE: rate}}``.
    Rate tables are cached per base currency for ``cache_seconds``. When
    the live call fails, the ``fallback`` provider answers instead.
    """

    def __init__(self, connector: APIConnector, fallback: Optional[RateProvider] = None,
                 cache_seconds: Optional[int] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.logger = logging.getLogger(f"{__name__}.ExchangeRateAPIProvider")
        self.connector = connector
        self.fallback = fallback
        self.cache_seconds = cache_seconds if cache_seconds is not None else connector.config.cache_seconds
        self._clock = clock
        self._cache: Dict[str, Tuple[float, Dict[str, Decimal]]] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config: RateAPIConnectionConfig,
                    fallback: Union[RateProvider, None] = None) -> 'ExchangeRateAPIProvider':
        """Build a provider over a fresh connector, falling back to the static table."""
        return cls(APIConnector(config), fallback=fallback or StaticRateProvider(),
                   cache_seconds=config.cache_seconds)

    def fetch_rates(self, base_currency: str) -> Dict[str, Decimal]:
        """
        Rate table for one base currency, from cache when fresh.

        Raises:
            ConnectorError: If the API call fails or the answer has no rates
        """
        base = base_currency.upper()
        with self._lock:
            cached = self._cache.get(base)
            if cached and self._clock() - cached[0] < self.cache_seconds:
                return cached[1]

        data = self.connector.get_json(f"latest/{base}")
        raw_rates = data.get('rates') if isinstance(data, dict) else None
        if not isinstance(raw_rates, dict):
            raise ConnectorError(f"Exchange rate response for {base} has no rates table")

        rates: Dict[str, Decimal] = {}
        for code, value in raw_rates.items():
            try:
                rates[str(code).upper()] = to_decimal(value, f"rate {base}->{code}")
            except ValidationError:
                self.logger.warning(f"Ignoring unreadable rate {base}->{code}: {value!r}")

        with self._lock:
            self._cache[base] = (self._clock(), rates)
        self.logger.info(f"Fetched live rates for {base} ({len(rates)} currencies)")
        return rates

    def get_rate(self, from_currency: str, to_currency: str) -> Decimal:
        source, target = from_currency.upper(), to_currency.upper()
        if source == target:
            return Decimal(1)

        try:
            rate = self.fetch_rates(source).get(target)
            if rate is not None and rate > 0:
                self.logger.debug(f"Live rate: 1 {source} = {rate} {target}")
                return rate
            reason = f"rate not found for {source} -> {target}"
        except ConnectorError as e:
            reason = str(e)

        if self.fallback is None:
            raise UnsupportedCurrencyError(f"No exchange rate available for {source} -> {target}: {reason}")

        self.logger.warning(f"Using fallback exchange rate for {source} -> {target}: {reason}")
        return self.fallback.get_rate(source, target)

    def clear_cache(self):
        with self._lock:
            self._cache.clear()


class CachingRateProvider(RateProvider):
    """
    Per-run memo around another provider.

    Each pair is asked for at most once, so every line of one comparison
    run is converted at the same rate. Failures are remembered too.
    """

    def __init__(self, provider: RateProvider):
        self.provider = provider
        self._rates: Dict[Tuple[str, str], Union[Decimal, PriceVerificationError]] = {}
        self._lock = threading.Lock()

    def get_rate(self, from_currency: str, to_currency: str) -> Decimal:
        key = (from_currency.upper(), to_currency.upper())
        with self._lock:
            if key not in self._rates:
                try:
                    self._rates[key] = self.provider.get_rate(*key)
                except PriceVerificationError as e:
                    self._rates[key] = e
            answer = self._rates[key]

        if isinstance(answer, PriceVerificationError):
            raise answer
        return answer
