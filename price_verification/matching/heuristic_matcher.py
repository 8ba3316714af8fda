"""
Heuristic normalized matching for near-exact product names.

Falls back on substring containment and word overlap when no exact match
exists. Scores here are percent matches (1.0 best) and are converted to
distances before leaving the module.
"""

from typing import Iterable, Optional, Tuple

from price_verification.models import (
    CatalogueItem, MatchedOn, MatchingSettings, MatchLayer, MatchResult
)
from .confidence import classify_heuristic_similarity, similarity_to_score
from .normalizer import normalize_text, tokenize

import logging
logger = logging.getLogger(__name__)


class HeuristicMatcher:
    """
    Substring and word-overlap matcher.

    A catalogue name containing the invoice name (or the reverse) scores
    ``substring_score``; otherwise the share of shared words must reach
    ``overlap_threshold``.
    """

    def __init__(self, overlap_threshold: float = 0.7, substring_score: float = 0.9,
                 min_word_length: int = 3):
        """
        Initialize heuristic matcher.

        Args:
            overlap_threshold: Minimum word overlap ratio to accept a candidate
            substring_score: Similarity given to substring containment
            min_word_length: Shortest word counted in the overlap ratio
        """
        self.logger = logging.getLogger(f"{__name__}.HeuristicMatcher")
        self.overlap_threshold = overlap_threshold
        self.substring_score = substring_score
        self.min_word_length = min_word_length

    @classmethod
    def from_settings(cls, settings: MatchingSettings) -> 'HeuristicMatcher':
        return cls(
            overlap_threshold=settings.heuristic_overlap_threshold,
            substring_score=settings.heuristic_substring_score,
            min_word_length=settings.heuristic_min_word_length
        )

    def overlap_ratio(self, invoice_name: str, catalogue_name: str) -> float:
        """
        Share of invoice words found in the catalogue name.

        The denominator is the larger word count of the two names, so extra
        words on either side lower the ratio.
        """
        receipt_words = tokenize(invoice_name, self.min_word_length)
        catalogue_words = tokenize(catalogue_name, self.min_word_length)
        denominator = max(len(receipt_words), len(catalogue_words))
        if denominator == 0:
            return 0.0

        catalogue_set = set(catalogue_words)
        matched = [word for word in receipt_words if word in catalogue_set]
        return len(matched) / denominator

    def similarity(self, invoice_name: str, catalogue_name: str) -> float:
        """Percent-match similarity of two names, 0.0 when neither rule applies."""
        normalized_invoice = normalize_text(invoice_name)
        normalized_catalogue = normalize_text(catalogue_name)
        if not normalized_invoice or not normalized_catalogue:
            return 0.0

        if normalized_invoice in normalized_catalogue or normalized_catalogue in normalized_invoice:
            return self.substring_score

        return self.overlap_ratio(normalized_invoice, normalized_catalogue)

    def match(self, invoice_name: str,
              catalogue_items: Iterable[CatalogueItem]) -> Optional[MatchResult]:
        """
        Find the best heuristic match for an invoice product name.

        Args:
            invoice_name: Product name as written on the invoice
            catalogue_items: Catalogue items in catalogue order

        Returns:
            MatchResult (HIGH when similarity >= 0.9, otherwise MEDIUM), or None
            when no candidate reaches the overlap threshold
        """
        if not normalize_text(invoice_name):
            return None

        best: Optional[Tuple[CatalogueItem, float]] = None
        for item in catalogue_items:
            similarity = self.similarity(invoice_name, item.product_name)
            if similarity < self.overlap_threshold:
                continue
            # strict comparison keeps the earliest item on ties
            if best is None or similarity > best[1]:
                best = (item, similarity)

        if best is None:
            return None

        item, similarity = best
        if similarity >= self.substring_score:
            reasoning = "Normalized name containment"
        else:
            reasoning = f"Normalized text match with {round(similarity * 100)}% word overlap"

        self.logger.debug(f"Heuristic match: '{invoice_name}' -> {item.id} (similarity {similarity:.2f})")
        return MatchResult(
            catalogue_item=item,
            layer=MatchLayer.HEURISTIC,
            confidence=classify_heuristic_similarity(similarity, self.substring_score),
            score=similarity_to_score(similarity),
            matched_on=MatchedOn.PRODUCT_NAME,
            reasoning=reasoning
        )
