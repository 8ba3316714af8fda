"""
Weighted approximate string search over a catalogue.

The index pre-normalizes every catalogue item's product name and SKU once
and is then used read-only, so one index can serve many invoice lines (or
several threads) without re-normalizing the catalogue.

Field similarity comes from rapidfuzz and searches the query inside the
field. A query no longer than the field takes the best of ``partial_ratio``
(query aligned anywhere inside the field) and ``token_set_ratio``. A query
longer than the field is compared whole, with ``ratio`` and the word-order
independent ``token_sort_ratio``, so a short name or SKU is never found
inside a long unrelated query. Scores are distances, 0.0 for a perfect
match and 1.0 for no match.
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from rapidfuzz import fuzz

from price_verification.models import (
    CatalogueItem, MatchedOn, MatchingSettings, MatchSuggestion
)
from .confidence import classify_fuzzy_score
from .normalizer import normalize_text

import logging
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IndexEntry:
    """A catalogue item with its normalized searchable fields."""
    position: int
    item: CatalogueItem
    name: str
    sku: str


class FuzzyIndex:
    """
    Read-only fuzzy search index over one catalogue.

    Build it with :meth:`build` and pass it to whoever needs to search the
    catalogue; it holds no mutable state after construction.
    """

    def __init__(self, entries: Tuple[IndexEntry, ...], settings: MatchingSettings):
        self.logger = logging.getLogger(f"{__name__}.FuzzyIndex")
        self._entries = entries
        self.settings = settings

    @classmethod
    def build(cls, catalogue_items: Iterable[CatalogueItem],
              settings: Optional[MatchingSettings] = None) -> 'FuzzyIndex':
        """
        Build an index for the given catalogue.

        Args:
            catalogue_items: Catalogue items in catalogue order
            settings: Weights, threshold and confidence tiers

        Returns:
            FuzzyIndex instance
        """
        entries = tuple(
            IndexEntry(
                position=position,
                item=item,
                name=normalize_text(item.product_name),
                sku=normalize_text(item.sku)
            )
            for position, item in enumerate(catalogue_items)
        )
        index = cls(entries, settings or MatchingSettings())
        index.logger.debug(f"Built fuzzy index over {len(entries)} catalogue items")
        return index

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def items(self) -> List[CatalogueItem]:
        return [entry.item for entry in self._entries]

    def field_distance(self, query: str, value: str) -> Optional[float]:
        """
        Distance between a normalized query and one normalized field value.

        Returns:
            Distance in 0..1, or None when the field is too short to search
        """
        if len(value) < self.settings.min_match_char_length:
            return None
        if len(query) <= len(value):
            similarity = max(fuzz.partial_ratio(query, value), fuzz.token_set_ratio(query, value))
        else:
            similarity = max(fuzz.ratio(query, value), fuzz.token_sort_ratio(query, value))
        return 1.0 - similarity / 100.0

    def score_entry(self, query: str, entry: IndexEntry) -> Optional[float]:
        """
        Weighted distance of an entry, or None if no field is within threshold.

        Only fields within the threshold contribute, and their weights are
        renormalized, so an item without a SKU is not penalised for it.
        """
        weighted = [
            (self.field_distance(query, entry.name), self.settings.product_name_weight),
            (self.field_distance(query, entry.sku), self.settings.sku_weight),
        ]
        hits = [(distance, weight) for distance, weight in weighted
                if distance is not None and distance <= self.settings.fuzzy_threshold and weight > 0]
        if not hits:
            return None

        total_weight = sum(weight for _, weight in hits)
        score = sum(distance * weight for distance, weight in hits) / total_weight
        return round(score, 6)

    def matched_on(self, query: str, entry: IndexEntry) -> MatchedOn:
        """Which fields contain the query (or are contained by it)."""
        name_match = bool(entry.name) and (query in entry.name or entry.name in query)
        sku_match = bool(entry.sku) and (query in entry.sku or entry.sku in query)

        if name_match and sku_match:
            return MatchedOn.BOTH
        if sku_match:
            return MatchedOn.SKU
        return MatchedOn.PRODUCT_NAME

    def _ranked(self, query: str) -> List[Tuple[float, IndexEntry]]:
        scored = []
        for entry in self._entries:
            score = self.score_entry(query, entry)
            if score is not None:
                scored.append((score, entry))
        # sort is stable, and position breaks exact ties explicitly
        scored.sort(key=lambda pair: (pair[0], pair[1].position))
        return scored

    def find_matches(self, invoice_name: str, max_results: Optional[int] = None) -> List[MatchSuggestion]:
        """
        Rank catalogue items for an invoice product name.

        Args:
            invoice_name: Product name as written on the invoice
            max_results: Maximum suggestions to return (default from settings)

        Returns:
            MatchSuggestions sorted best-first; empty for a blank query
        """
        if max_results is None:
            max_results = self.settings.max_suggestions

        query = normalize_text(invoice_name)
        if len(query) < self.settings.min_match_char_length or max_results <= 0:
            return []

        suggestions = [
            MatchSuggestion(
                catalogue_item=entry.item,
                score=score,
                confidence=classify_fuzzy_score(score, self.settings),
                matched_on=self.matched_on(query, entry)
            )
            for score, entry in self._ranked(query)[:max_results]
        ]

        if suggestions:
            best = suggestions[0]
            self.logger.debug(f"Fuzzy search '{invoice_name}': best {best.catalogue_item_id} "
                              f"score={best.score:.3f} ({best.confidence.value}), {len(suggestions)} candidates")
        return suggestions

    def search(self, query: str, limit: int = 20) -> List[CatalogueItem]:
        """
        Manual catalogue search.

        An empty query lists the first ``limit`` items in catalogue order.
        """
        normalized = normalize_text(query)
        if not normalized:
            return self.items[:limit]
        if len(normalized) < self.settings.min_match_char_length:
            return []
        return [entry.item for _, entry in self._ranked(normalized)[:limit]]
