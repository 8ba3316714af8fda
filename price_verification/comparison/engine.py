"""
Comparison engine.

Matches every invoice line against the catalogue, converts matched prices
into the catalogue currency and classifies each line as a match, an
overcharge or an undercharge. Every input line appears in the report:
lines that cannot be compared are reported as UNMATCHED with a note.
"""

from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from price_verification.config.validation import ConfigurationValidator
from price_verification.currency.converter import convert
from price_verification.currency.currencies import normalize_currency_code
from price_verification.currency.rate_providers import (
    CachingRateProvider, RateProvider, StaticRateProvider
)
from price_verification.matching.ai_matcher import AIMatchLayer
from price_verification.matching.confidence import is_auto_match
from price_verification.matching.product_matcher import ProductMatcher
from price_verification.models import (
    CatalogueItem, ComparisonItem, ComparisonReport, ComparisonStatus, InvoiceLineItem,
    MatchConfidence, MatchedOn, MatchingSettings, MatchLayer, MatchResult,
    UnsupportedCurrencyError, ValidationError
)

import logging
logger = logging.getLogger(__name__)

CatalogueInput = Union[CatalogueItem, Dict[str, Any]]
InvoiceInput = Union[InvoiceLineItem, Dict[str, Any]]

_ZERO = Decimal(0)


class ComparisonEngine:
    """
    Compares invoices against catalogues.

    One engine can run many comparisons; each run gets its own rate memo
    and its own matcher, so runs share no mutable state.
    """

    def __init__(self, settings: Optional[MatchingSettings] = None,
                 ai_layer: Optional[AIMatchLayer] = None):
        """
        Initialize comparison engine.

        Args:
            settings: Matching settings
            ai_layer: Optional AI fallback for lines the other layers miss

        Raises:
            ConfigurationError: If the settings are invalid
        """
        self.logger = logging.getLogger(f"{__name__}.ComparisonEngine")
        self.settings = settings or MatchingSettings()
        ConfigurationValidator().validate_matching_settings(self.settings).raise_if_invalid("Matching settings")
        self.ai_layer = ai_layer
        self._tolerance = Decimal(str(self.settings.price_tolerance_percentage))

    def compare(self, invoice_items: Sequence[InvoiceInput],
                catalogue_items: Sequence[CatalogueInput],
                invoice_currency: str, catalogue_currency: str,
                rate_provider: Optional[RateProvider] = None,
                manual_matches: Optional[Mapping[int, str]] = None) -> ComparisonReport:
        """
        Compare an invoice against a catalogue.

        Args:
            invoice_items: Invoice lines (dataclasses or dictionaries)
            catalogue_items: Catalogue items (dataclasses or dictionaries)
            invoice_currency: ISO 4217 code of the invoice prices
            catalogue_currency: ISO 4217 code of the catalogue prices
            rate_provider: Exchange-rate source (default: static fallback table)
            manual_matches: Invoice line number -> catalogue item id links
                confirmed by a reviewer; these bypass matching

        Returns:
            ComparisonReport with one item per invoice line, in input order

        Raises:
            ValidationError: If a currency code is malformed
        """
        invoice_code = normalize_currency_code(invoice_currency)
        catalogue_code = normalize_currency_code(catalogue_currency)
        rates = CachingRateProvider(rate_provider or StaticRateProvider())
        warnings: List[str] = []

        catalogue = self._prepare_catalogue(catalogue_items, warnings)
        lines = self._prepare_invoice(invoice_items)
        matcher = ProductMatcher(catalogue, self.settings, self.ai_layer)

        report_rate = None
        if invoice_code != catalogue_code:
            try:
                report_rate = convert(1, invoice_code, catalogue_code, rates).rate_used
            except UnsupportedCurrencyError as e:
                warnings.append(str(e))
                self.logger.warning(f"No exchange rate for {invoice_code} -> {catalogue_code}: {e}")

        results = self._match_lines(lines, matcher, manual_matches or {}, warnings)

        items = []
        for (line, error), match in zip(lines, results):
            if error is not None:
                items.append(self._unmatched(line, note=error))
            elif match is None:
                items.append(self._unmatched(line))
            else:
                items.append(self._compare_line(line, match, invoice_code, catalogue_code, rates))

        report = self._build_report(items, invoice_code, catalogue_code, report_rate, warnings)
        self.logger.info(f"Compared {report.total_items} invoice lines: {report.matched_items} matched, "
                         f"{report.mismatches} price mismatches, overcharge {report.total_overcharge} "
                         f"{catalogue_code}, undercharge {report.total_undercharge} {catalogue_code}")
        return report

    def _prepare_catalogue(self, catalogue_items: Sequence[CatalogueInput],
                           warnings: List[str]) -> List[CatalogueItem]:
        catalogue = []
        for position, raw in enumerate(catalogue_items, start=1):
            try:
                item = raw if isinstance(raw, CatalogueItem) else CatalogueItem.from_dict(raw)
                item.validate()
            except ValidationError as e:
                message = f"Catalogue item {position} excluded: {e}"
                warnings.append(message)
                self.logger.warning(message)
                continue
            catalogue.append(item)
        return catalogue

    def _prepare_invoice(self, invoice_items: Sequence[InvoiceInput]) -> List[Tuple[InvoiceLineItem, Optional[str]]]:
        lines = []
        for position, raw in enumerate(invoice_items, start=1):
            if isinstance(raw, InvoiceLineItem):
                line = raw
            else:
                try:
                    line = InvoiceLineItem.from_dict(raw, line_number=position)
                except ValidationError as e:
                    lines.append((self._placeholder_line(raw, position), str(e)))
                    continue
            try:
                line.validate()
            except ValidationError as e:
                self.logger.warning(f"Invoice line {position} cannot be compared: {e}")
                lines.append((line, str(e)))
                continue
            lines.append((line, None))
        return lines

    @staticmethod
    def _placeholder_line(raw: Dict[str, Any], position: int) -> InvoiceLineItem:
        """Stand-in for an unreadable invoice row so it still appears in the report."""
        name = ''
        if isinstance(raw, dict):
            name = raw.get('product_name') or raw.get('productName') or ''
        return InvoiceLineItem(line_number=position, product_name=str(name), quantity=_ZERO,
                               unit_price=_ZERO, total_price=_ZERO)

    def _match_lines(self, lines: List[Tuple[InvoiceLineItem, Optional[str]]], matcher: ProductMatcher,
                     manual_matches: Mapping[int, str], warnings: List[str]) -> List[Optional[MatchResult]]:
        results: List[Optional[MatchResult]] = [None] * len(lines)
        pending = []

        for index, (line, error) in enumerate(lines):
            if error is not None:
                continue
            linked_id = manual_matches.get(line.line_number)
            if linked_id is not None:
                item = matcher.find_item(str(linked_id))
                if item is not None:
                    results[index] = MatchResult(
                        catalogue_item=item,
                        layer=MatchLayer.MANUAL,
                        confidence=MatchConfidence.EXACT,
                        score=0.0,
                        matched_on=MatchedOn.PRODUCT_NAME,
                        reasoning="Manually linked"
                    )
                    continue
                message = f"Line {line.line_number}: linked catalogue item '{linked_id}' not found, matching instead"
                warnings.append(message)
                self.logger.warning(message)
            pending.append(index)

        outcomes = matcher.match_items([lines[index][0] for index in pending])
        for index, outcome in zip(pending, outcomes):
            results[index] = outcome.result
        return results

    def _unmatched(self, line: InvoiceLineItem, note: Optional[str] = None,
                   match: Optional[MatchResult] = None) -> ComparisonItem:
        return ComparisonItem(
            invoice_line_item=line,
            invoice_price=line.unit_price,
            match_confidence=match.confidence if match else MatchConfidence.NONE,
            status=ComparisonStatus.UNMATCHED,
            catalogue_item=match.catalogue_item if match else None,
            match_layer=match.layer if match else None,
            note=note
        )

    def classify(self, price_difference: Decimal, percentage_diff: Optional[Decimal]) -> ComparisonStatus:
        """Status from the sign of the difference, widened by the price tolerance."""
        if self._tolerance > 0 and percentage_diff is not None and abs(percentage_diff) <= self._tolerance:
            return ComparisonStatus.MATCH
        if price_difference > 0:
            return ComparisonStatus.OVERCHARGE
        if price_difference < 0:
            return ComparisonStatus.UNDERCHARGE
        return ComparisonStatus.MATCH

    def _compare_line(self, line: InvoiceLineItem, match: MatchResult, invoice_code: str,
                      catalogue_code: str, rates: RateProvider) -> ComparisonItem:
        try:
            conversion = convert(line.unit_price, invoice_code, catalogue_code, rates)
        except UnsupportedCurrencyError as e:
            return self._unmatched(line, note=f"Currency conversion failed: {e}", match=match)

        catalogue_price = match.catalogue_item.price
        difference = conversion.converted_amount - catalogue_price
        percentage = difference * 100 / catalogue_price if catalogue_price != 0 else None
        status = self.classify(difference, percentage)

        self.logger.debug(f"Line {line.line_number}: {conversion.converted_amount} vs {catalogue_price} "
                          f"{catalogue_code} -> {status.value}")
        return ComparisonItem(
            invoice_line_item=line,
            invoice_price=line.unit_price,
            match_confidence=match.confidence,
            status=status,
            catalogue_item=match.catalogue_item,
            invoice_price_converted=conversion.converted_amount,
            catalogue_price=catalogue_price,
            price_difference=difference,
            percentage_diff=percentage,
            exchange_rate=conversion.rate_used if invoice_code != catalogue_code else None,
            match_layer=match.layer,
            auto_matched=match.layer != MatchLayer.MANUAL and is_auto_match(match.confidence)
        )

    @staticmethod
    def _build_report(items: List[ComparisonItem], invoice_code: str, catalogue_code: str,
                      exchange_rate: Optional[Decimal], warnings: List[str]) -> ComparisonReport:
        total_overcharge = sum((item.price_difference for item in items
                                if item.status == ComparisonStatus.OVERCHARGE), _ZERO)
        total_undercharge = sum((abs(item.price_difference) for item in items
                                 if item.status == ComparisonStatus.UNDERCHARGE), _ZERO)
        return ComparisonReport(
            items=tuple(items),
            total_items=len(items),
            matched_items=sum(1 for item in items if item.status != ComparisonStatus.UNMATCHED),
            total_overcharge=total_overcharge,
            total_undercharge=total_undercharge,
            invoice_currency=invoice_code,
            catalogue_currency=catalogue_code,
            exchange_rate=exchange_rate,
            warnings=tuple(warnings)
        )


def compare(invoice_items: Sequence[InvoiceInput], catalogue_items: Sequence[CatalogueInput],
            invoice_currency: str, catalogue_currency: str,
            rate_provider: Optional[RateProvider] = None,
            settings: Optional[MatchingSettings] = None,
            manual_matches: Optional[Mapping[int, str]] = None,
            ai_layer: Optional[AIMatchLayer] = None) -> ComparisonReport:
    """Compare an invoice against a catalogue with a one-off engine."""
    engine = ComparisonEngine(settings=settings, ai_layer=ai_layer)
    return engine.compare(invoice_items, catalogue_items, invoice_currency, catalogue_currency,
                          rate_provider=rate_provider, manual_matches=manual_matches)
