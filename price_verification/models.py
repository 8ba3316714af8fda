"""
Core data models for the price verification system.

This module defines the fundamental data structures used throughout the
catalogue matching and price comparison process, including catalogue and
invoice items, match results, comparison reports and configuration models.
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union
import json


Amount = Union[Decimal, int, float, str]


class MatchConfidence(Enum):
    """Discrete confidence tiers summarising match quality for a reviewer."""
    EXACT = "EXACT"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    NONE = "NONE"


class MatchedOn(Enum):
    """Catalogue field(s) a match was found on."""
    PRODUCT_NAME = "productName"
    SKU = "sku"
    BOTH = "both"


class MatchLayer(Enum):
    """Matching layer that produced a result."""
    MANUAL = "manual"
    EXACT = "exact"
    HEURISTIC = "heuristic"
    FUZZY = "fuzzy"
    AI = "ai"


class ComparisonStatus(Enum):
    """Price comparison outcome for a single invoice line."""
    MATCH = "MATCH"
    OVERCHARGE = "OVERCHARGE"
    UNDERCHARGE = "UNDERCHARGE"
    UNMATCHED = "UNMATCHED"


class ConnectionType(Enum):
    """Types of external collaborators the connectors talk to."""
    EXCHANGE_RATE_API = "exchange_rate_api"
    AI_MATCHING = "ai_matching"


# Custom exceptions for price verification
class PriceVerificationError(Exception):
    """Base exception for price verification operations."""
    pass


class ValidationError(PriceVerificationError):
    """Raised when input data validation fails."""
    pass


class UnsupportedCurrencyError(PriceVerificationError):
    """Raised when no exchange rate can be resolved for a currency pair."""
    pass


class MatchProviderError(PriceVerificationError):
    """Raised when the AI matching collaborator fails or answers garbage."""
    pass


class ConfigurationError(PriceVerificationError):
    """Raised when configuration is invalid or missing."""
    pass


def to_decimal(value: Amount, field_name: str = 'amount') -> Decimal:
    """
    Convert a monetary value to Decimal without going through binary floats.

    Strings may carry a currency symbol and thousands separators.

    Raises:
        ValidationError: If the value cannot be read as a number
    """
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool) or value is None:
        raise ValidationError(f"{field_name} is required and must be numeric")
    elif isinstance(value, (int, float)):
        result = Decimal(str(value))
    elif isinstance(value, str):
        cleaned = value.replace('$', '').replace(',', '').strip()
        try:
            result = Decimal(cleaned)
        except InvalidOperation:
            raise ValidationError(f"{field_name} is not a valid number: {value!r}")
    else:
        raise ValidationError(f"{field_name} has unsupported type {type(value).__name__}")

    if not result.is_finite():
        raise ValidationError(f"{field_name} must be a finite number")
    return result


def _decimal_or_none(value: Optional[Decimal]) -> Optional[str]:
    return str(value) if value is not None else None


def _pick(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    """Return the first present key, so camelCase and snake_case both work."""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


@dataclass(frozen=True)
class CatalogueItem:
    """
    A reference price entry of a supplier catalogue.

    Immutable for the duration of a comparison run and uniquely identified
    by ``id``. Several items may share the same product name.
    """
    id: str
    product_name: str
    price: Decimal
    sku: Optional[str] = None
    unit: Optional[str] = None
    category: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, 'price', to_decimal(self.price, 'price'))

    def validate(self) -> None:
        """Raise ValidationError if the item cannot take part in matching."""
        if not self.id:
            raise ValidationError("Catalogue item id is required")
        if not self.product_name or not str(self.product_name).strip():
            raise ValidationError(f"Catalogue item '{self.id}' has no product name")
        if self.price < 0:
            raise ValidationError(f"Catalogue item '{self.id}' has a negative price")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'id': self.id,
            'product_name': self.product_name,
            'sku': self.sku,
            'price': str(self.price),
            'unit': self.unit,
            'category': self.category
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CatalogueItem':
        """Create CatalogueItem from dictionary (snake_case or camelCase keys)."""
        item_id = _pick(data, 'id', 'catalogue_item_id', 'catalogueItemId')
        return cls(
            id=str(item_id) if item_id is not None else '',
            product_name=_pick(data, 'product_name', 'productName', default=''),
            price=to_decimal(_pick(data, 'price'), 'price'),
            sku=_pick(data, 'sku'),
            unit=_pick(data, 'unit'),
            category=_pick(data, 'category')
        )


@dataclass(frozen=True)
class InvoiceLineItem:
    """
    A single line of an invoice or receipt.

    Product names are free text and may be noisy when extracted from
    scanned documents.
    """
    line_number: int
    product_name: str
    quantity: Decimal
    unit_price: Decimal
    total_price: Decimal
    unit: Optional[str] = None

    def __post_init__(self):
        # plain ints and floats are accepted and stored as Decimal
        for name in ('quantity', 'unit_price', 'total_price'):
            object.__setattr__(self, name, to_decimal(getattr(self, name), name))

    def validate(self) -> None:
        """
        Check the line item for malformed values.

        Raises:
            ValidationError: If a required field is missing or out of range
        """
        if self.line_number is None or self.line_number < 1:
            raise ValidationError(f"Line number must be a positive integer, got {self.line_number}")
        if not self.product_name or not str(self.product_name).strip():
            raise ValidationError(f"Line {self.line_number}: product name is required")
        if self.quantity <= 0:
            raise ValidationError(f"Line {self.line_number}: quantity must be greater than zero")
        if self.unit_price < 0:
            raise ValidationError(f"Line {self.line_number}: unit price cannot be negative")
        if self.total_price < 0:
            raise ValidationError(f"Line {self.line_number}: total price cannot be negative")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'line_number': self.line_number,
            'product_name': self.product_name,
            'quantity': str(self.quantity),
            'unit': self.unit,
            'unit_price': str(self.unit_price),
            'total_price': str(self.total_price)
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], line_number: Optional[int] = None) -> 'InvoiceLineItem':
        """
        Create InvoiceLineItem from dictionary.

        Args:
            data: Item fields (snake_case or camelCase keys)
            line_number: Fallback line number when the data carries none

        Returns:
            InvoiceLineItem instance
        """
        quantity = to_decimal(_pick(data, 'quantity', default=1), 'quantity')
        unit_price = to_decimal(_pick(data, 'unit_price', 'unitPrice'), 'unit_price')
        total = _pick(data, 'total_price', 'totalPrice')
        total_price = to_decimal(total, 'total_price') if total is not None else unit_price * quantity
        number = _pick(data, 'line_number', 'lineNumber', default=line_number)
        try:
            number = int(number) if number is not None else 0
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Line number must be an integer, got {number!r}") from e
        return cls(
            line_number=number,
            product_name=_pick(data, 'product_name', 'productName', default=''),
            quantity=quantity,
            unit_price=unit_price,
            total_price=total_price,
            unit=_pick(data, 'unit')
        )


@dataclass(frozen=True)
class MatchSuggestion:
    """
    A ranked fuzzy-index candidate for an invoice product name.

    ``score`` is a distance: 0.0 is a perfect match, 1.0 no match at all.
    """
    catalogue_item: CatalogueItem
    score: float
    confidence: MatchConfidence
    matched_on: MatchedOn

    @property
    def catalogue_item_id(self) -> str:
        return self.catalogue_item.id

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'catalogue_item_id': self.catalogue_item_id,
            'score': self.score,
            'confidence': self.confidence.value,
            'matched_on': self.matched_on.value
        }


@dataclass(frozen=True)
class MatchResult:
    """
    The best catalogue match chosen by one layer of the matching cascade.

    ``score`` uses the same distance convention as MatchSuggestion
    (0.0 best). Layers that naturally produce a percent match convert
    with ``1 - similarity`` before building the result.
    """
    catalogue_item: CatalogueItem
    layer: MatchLayer
    confidence: MatchConfidence
    score: float
    matched_on: MatchedOn = MatchedOn.PRODUCT_NAME
    reasoning: str = ''

    @property
    def similarity(self) -> float:
        """Percent-match view of the score (1.0 best), for display only."""
        return 1.0 - self.score

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'catalogue_item_id': self.catalogue_item.id,
            'layer': self.layer.value,
            'confidence': self.confidence.value,
            'score': self.score,
            'matched_on': self.matched_on.value,
            'reasoning': self.reasoning
        }


@dataclass(frozen=True)
class ComparisonItem:
    """
    Comparison outcome for one invoice line.

    Created once per comparison run and never mutated; re-running a
    comparison produces a new report.
    """
    invoice_line_item: InvoiceLineItem
    invoice_price: Decimal
    match_confidence: MatchConfidence
    status: ComparisonStatus
    catalogue_item: Optional[CatalogueItem] = None
    invoice_price_converted: Optional[Decimal] = None
    catalogue_price: Optional[Decimal] = None
    price_difference: Optional[Decimal] = None
    percentage_diff: Optional[Decimal] = None
    exchange_rate: Optional[Decimal] = None
    match_layer: Optional[MatchLayer] = None
    auto_matched: bool = False
    note: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'invoice_line_item': self.invoice_line_item.to_dict(),
            'catalogue_item': self.catalogue_item.to_dict() if self.catalogue_item else None,
            'invoice_price': str(self.invoice_price),
            'invoice_price_converted': _decimal_or_none(self.invoice_price_converted),
            'catalogue_price': _decimal_or_none(self.catalogue_price),
            'price_difference': _decimal_or_none(self.price_difference),
            'percentage_diff': _decimal_or_none(self.percentage_diff),
            'exchange_rate': _decimal_or_none(self.exchange_rate),
            'match_confidence': self.match_confidence.value,
            'status': self.status.value,
            'match_layer': self.match_layer.value if self.match_layer else None,
            'auto_matched': self.auto_matched,
            'note': self.note
        }


@dataclass(frozen=True)
class ComparisonReport:
    """
    Aggregate result of comparing one invoice against one catalogue.

    Holds one ComparisonItem per input line, in input order, plus the
    summary totals. The report is fully built before it is handed to a
    persistence or export collaborator.
    """
    items: Tuple[ComparisonItem, ...]
    total_items: int
    matched_items: int
    total_overcharge: Decimal
    total_undercharge: Decimal
    invoice_currency: str
    catalogue_currency: str
    exchange_rate: Optional[Decimal] = None
    warnings: Tuple[str, ...] = ()

    @property
    def unmatched_count(self) -> int:
        return sum(1 for item in self.items if item.status == ComparisonStatus.UNMATCHED)

    @property
    def mismatches(self) -> int:
        """Number of matched lines whose price differs from the catalogue."""
        return sum(1 for item in self.items
                   if item.status in (ComparisonStatus.OVERCHARGE, ComparisonStatus.UNDERCHARGE))

    @property
    def has_currency_conversion(self) -> bool:
        return self.invoice_currency != self.catalogue_currency

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'items': [item.to_dict() for item in self.items],
            'total_items': self.total_items,
            'matched_items': self.matched_items,
            'mismatches': self.mismatches,
            'total_overcharge': str(self.total_overcharge),
            'total_undercharge': str(self.total_undercharge),
            'invoice_currency': self.invoice_currency,
            'catalogue_currency': self.catalogue_currency,
            'exchange_rate': _decimal_or_none(self.exchange_rate),
            'warnings': list(self.warnings)
        }

    def to_json(self) -> str:
        """Serialize deterministically (sorted keys, no timestamps)."""
        return json.dumps(self.to_dict(), sort_keys=True, ensure_ascii=False)


@dataclass
class MatchingSettings:
    """Tunable constants of the matching cascade and price classification."""
    heuristic_overlap_threshold: float = 0.7
    heuristic_substring_score: float = 0.9
    heuristic_min_word_length: int = 3
    fuzzy_threshold: float = 0.5  # 0.0 exact .. 1.0 anything
    product_name_weight: float = 0.7
    sku_weight: float = 0.3
    min_match_char_length: int = 2
    max_suggestions: int = 5
    high_confidence_max_score: float = 0.10
    medium_confidence_max_score: float = 0.25
    low_confidence_max_score: float = 0.40
    price_tolerance_percentage: float = 0.0  # 0.0 means exact equality
    enable_ai_matching: bool = False
    ai_max_candidates: int = 20

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'heuristic_overlap_threshold': self.heuristic_overlap_threshold,
            'heuristic_substring_score': self.heuristic_substring_score,
            'heuristic_min_word_length': self.heuristic_min_word_length,
            'fuzzy_threshold': self.fuzzy_threshold,
            'product_name_weight': self.product_name_weight,
            'sku_weight': self.sku_weight,
            'min_match_char_length': self.min_match_char_length,
            'max_suggestions': self.max_suggestions,
            'high_confidence_max_score': self.high_confidence_max_score,
            'medium_confidence_max_score': self.medium_confidence_max_score,
            'low_confidence_max_score': self.low_confidence_max_score,
            'price_tolerance_percentage': self.price_tolerance_percentage,
            'enable_ai_matching': self.enable_ai_matching,
            'ai_max_candidates': self.ai_max_candidates
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MatchingSettings':
        """Create MatchingSettings from dictionary, ignoring unknown keys."""
        known = set(cls().to_dict())
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class RateAPIConnectionConfig:
    """Configuration for the live exchange-rate HTTP API."""
    connection_id: str = 'exchange-rates'
    base_url: str = 'https://api.exchangerate-api.com/v4'
    api_key: Optional[str] = None
    timeout: int = 10
    rate_limit: int = 60  # requests per minute
    retry_attempts: int = 2
    cache_seconds: int = 3600
    additional_headers: Dict[str, str] = field(default_factory=dict)

    def to_dict(self, include_api_key: bool = False) -> Dict[str, Any]:
        """Convert to dictionary, optionally excluding the API key."""
        data = {
            'connection_id': self.connection_id,
            'base_url': self.base_url,
            'timeout': self.timeout,
            'rate_limit': self.rate_limit,
            'retry_attempts': self.retry_attempts,
            'cache_seconds': self.cache_seconds,
            'additional_headers': self.additional_headers
        }
        if include_api_key:
            data['api_key'] = self.api_key
        return data


@dataclass
class AIConnectionConfig:
    """Configuration for the AI product matching collaborator."""
    connection_id: str = 'ai-matching'
    api_key: Optional[str] = None
    model: str = 'gpt-4o-mini'
    azure_endpoint: Optional[str] = None
    api_version: str = '2024-02-01'
    timeout: int = 60
    rate_limit: int = 30  # requests per minute
    retry_attempts: int = 2
    max_concurrency: int = 1
    temperature: float = 0.1

    @property
    def is_azure(self) -> bool:
        return bool(self.azure_endpoint)

    def to_dict(self, include_api_key: bool = False) -> Dict[str, Any]:
        """Convert to dictionary, optionally excluding the API key."""
        data = {
            'connection_id': self.connection_id,
            'model': self.model,
            'azure_endpoint': self.azure_endpoint,
            'api_version': self.api_version,
            'timeout': self.timeout,
            'rate_limit': self.rate_limit,
            'retry_attempts': self.retry_attempts,
            'max_concurrency': self.max_concurrency,
            'temperature': self.temperature
        }
        if include_api_key:
            data['api_key'] = self.api_key
        return data


@dataclass
class ConnectionTestResult:
    """Result of testing a connector."""
    success: bool
    connection_id: str
    connection_type: ConnectionType
    response_time: float
    error_message: Optional[str] = None
    additional_info: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'success': self.success,
            'connection_id': self.connection_id,
            'connection_type': self.connection_type.value,
            'response_time': self.response_time,
            'error_message': self.error_message,
            'additional_info': self.additional_info
        }


def catalogue_items_from_dicts(rows: List[Dict[str, Any]]) -> List[CatalogueItem]:
    """Build catalogue items from plain dictionaries."""
    return [CatalogueItem.from_dict(row) for row in rows]


def invoice_items_from_dicts(rows: List[Dict[str, Any]]) -> List[InvoiceLineItem]:
    """Build invoice line items, numbering lines from 1 when the data has none."""
    return [InvoiceLineItem.from_dict(row, line_number=index)
            for index, row in enumerate(rows, start=1)]
