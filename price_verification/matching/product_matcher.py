"""
Matching cascade: Exact -> Heuristic -> Fuzzy -> AI.

Layers run in strict priority order and the first layer that produces a
match wins. One ProductMatcher is built per catalogue; its fuzzy index is
read-only, so the same matcher serves every line of an invoice.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from price_verification.models import (
    CatalogueItem, InvoiceLineItem, MatchConfidence, MatchingSettings, MatchLayer,
    MatchResult, MatchSuggestion
)
from .ai_matcher import AIMatchLayer
from .confidence import is_auto_match, score_to_percentage
from .exact_matcher import ExactMatcher
from .fuzzy_index import FuzzyIndex
from .heuristic_matcher import HeuristicMatcher

import logging
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MatchOutcome:
    """Result of running the cascade for one invoice product name."""
    product_name: str
    result: Optional[MatchResult] = None
    suggestions: Tuple[MatchSuggestion, ...] = ()

    @property
    def matched(self) -> bool:
        return self.result is not None

    @property
    def confidence(self) -> MatchConfidence:
        return self.result.confidence if self.result else MatchConfidence.NONE

    @property
    def auto_matched(self) -> bool:
        """Accepted without manual confirmation (EXACT or HIGH only)."""
        return is_auto_match(self.confidence)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'product_name': self.product_name,
            'result': self.result.to_dict() if self.result else None,
            'suggestions': [s.to_dict() for s in self.suggestions],
            'auto_matched': self.auto_matched
        }


class ProductMatcher:
    """
    Matches invoice product names against one catalogue.

    Args:
        catalogue_items: Catalogue items in catalogue order
        settings: Matching settings
        ai_layer: Optional AI fallback, used only when the other layers fail
    """

    def __init__(self, catalogue_items: Iterable[CatalogueItem],
                 settings: Optional[MatchingSettings] = None,
                 ai_layer: Optional[AIMatchLayer] = None):
        self.logger = logging.getLogger(f"{__name__}.ProductMatcher")
        self.settings = settings or MatchingSettings()
        self.catalogue_items: Tuple[CatalogueItem, ...] = tuple(catalogue_items)
        self.ai_layer = ai_layer

        self.exact_matcher = ExactMatcher()
        self.heuristic_matcher = HeuristicMatcher.from_settings(self.settings)
        self.index = FuzzyIndex.build(self.catalogue_items, self.settings)

    def _fuzzy_result(self, suggestions: Sequence[MatchSuggestion]) -> Optional[MatchResult]:
        if not suggestions:
            return None
        best = suggestions[0]
        # a NONE candidate stays a suggestion only
        if best.confidence == MatchConfidence.NONE:
            return None
        return MatchResult(
            catalogue_item=best.catalogue_item,
            layer=MatchLayer.FUZZY,
            confidence=best.confidence,
            score=best.score,
            matched_on=best.matched_on,
            reasoning=f"Fuzzy match ({score_to_percentage(best.score)}% similar)"
        )

    def _match_without_ai(self, product_name: str) -> Tuple[Optional[MatchResult], Tuple[MatchSuggestion, ...]]:
        result = self.exact_matcher.match(product_name, self.catalogue_items)
        if result is None:
            result = self.heuristic_matcher.match(product_name, self.catalogue_items)

        if result is not None and is_auto_match(result.confidence):
            return result, ()

        suggestions = tuple(self.index.find_matches(product_name))
        if result is None:
            result = self._fuzzy_result(suggestions)
        return result, suggestions

    def match(self, product_name: str) -> MatchOutcome:
        """
        Run the cascade for one invoice product name.

        Fuzzy suggestions are attached whenever the chosen match still needs
        manual confirmation.
        """
        result, suggestions = self._match_without_ai(product_name)
        if result is None and self.ai_layer is not None:
            result = self.ai_layer.match(product_name, self.catalogue_items, suggestions)

        self._log_outcome(product_name, result)
        return MatchOutcome(product_name=product_name, result=result, suggestions=suggestions)

    def match_items(self, invoice_items: Sequence[Union[InvoiceLineItem, str]]) -> List[MatchOutcome]:
        """
        Match every invoice line independently.

        Lines left unresolved by the first three layers go to the AI layer
        as one batch; outcomes are returned in input order.
        """
        names = [item.product_name if isinstance(item, InvoiceLineItem) else item
                 for item in invoice_items]
        partial = [self._match_without_ai(name) for name in names]

        pending = [i for i, (result, _) in enumerate(partial) if result is None]
        if pending and self.ai_layer is not None:
            ai_results = self.ai_layer.match_many(
                [(names[i], partial[i][1]) for i in pending],
                self.catalogue_items
            )
            for i, ai_result in zip(pending, ai_results):
                partial[i] = (ai_result, partial[i][1])

        outcomes = []
        for name, (result, suggestions) in zip(names, partial):
            self._log_outcome(name, result)
            outcomes.append(MatchOutcome(product_name=name, result=result, suggestions=suggestions))

        matched = sum(1 for outcome in outcomes if outcome.matched)
        self.logger.info(f"Matched {matched}/{len(outcomes)} invoice lines against "
                         f"{len(self.catalogue_items)} catalogue items")
        return outcomes

    def search(self, query: str, limit: int = 20) -> List[CatalogueItem]:
        """Manual catalogue search for the match confirmation dialog."""
        return self.index.search(query, limit)

    def find_item(self, catalogue_item_id: str) -> Optional[CatalogueItem]:
        for item in self.catalogue_items:
            if item.id == catalogue_item_id:
                return item
        return None

    def _log_outcome(self, product_name: str, result: Optional[MatchResult]):
        if result is None:
            self.logger.debug(f"No match for '{product_name}'")
        else:
            self.logger.debug(f"'{product_name}' -> {result.catalogue_item.id} via {result.layer.value} "
                              f"({result.confidence.value})")
