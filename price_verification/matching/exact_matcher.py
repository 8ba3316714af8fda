"""
Exact matching of invoice product names against a catalogue.

Compares the normalized invoice product name with each catalogue item's
normalized product name and SKU. The first catalogue item (in list order)
that is equal on either field wins.
"""

from typing import Iterable, Optional

from price_verification.models import (
    CatalogueItem, MatchConfidence, MatchedOn, MatchLayer, MatchResult
)
from .normalizer import normalize_text

import logging
logger = logging.getLogger(__name__)


class ExactMatcher:
    """
    Deterministic equality matcher on product name or SKU.

    Exact matches have a percent match of 1.0, i.e. a distance score of 0.0.
    """

    def __init__(self):
        """Initialize exact matcher."""
        self.logger = logging.getLogger(f"{__name__}.ExactMatcher")

    def match(self, invoice_name: str,
              catalogue_items: Iterable[CatalogueItem]) -> Optional[MatchResult]:
        """
        Find the first catalogue item equal to the invoice name.

        Args:
            invoice_name: Product name as written on the invoice
            catalogue_items: Catalogue items in catalogue order

        Returns:
            MatchResult with EXACT confidence, or None
        """
        normalized_invoice = normalize_text(invoice_name)
        if not normalized_invoice:
            return None

        for item in catalogue_items:
            name_equal = normalize_text(item.product_name) == normalized_invoice
            sku_equal = bool(item.sku) and normalize_text(item.sku) == normalized_invoice

            if not (name_equal or sku_equal):
                continue

            if name_equal and sku_equal:
                matched_on = MatchedOn.BOTH
                reasoning = "Exact product name and SKU match"
            elif sku_equal:
                matched_on = MatchedOn.SKU
                reasoning = "Exact SKU match"
            else:
                matched_on = MatchedOn.PRODUCT_NAME
                reasoning = "Exact product name match"

            self.logger.debug(f"Exact match: '{invoice_name}' -> {item.id} ({matched_on.value})")
            return MatchResult(
                catalogue_item=item,
                layer=MatchLayer.EXACT,
                confidence=MatchConfidence.EXACT,
                score=0.0,
                matched_on=matched_on,
                reasoning=reasoning
            )

        return None
