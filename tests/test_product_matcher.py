"""
Unit tests for the matching cascade.
"""

from decimal import Decimal
from unittest.mock import Mock

from price_verification.models import (
    CatalogueItem, InvoiceLineItem, MatchConfidence, MatchingSettings, MatchLayer, MatchResult
)
from price_verification.matching.ai_matcher import AIMatchLayer
from price_verification.matching.product_matcher import ProductMatcher


class TestProductMatcher:
    """Test cases for ProductMatcher class."""

    def setup_method(self):
        """Setup test environment."""
        self.catalogue = [
            CatalogueItem(id="C1", product_name="Olive Oil", price=Decimal("9.00")),
            CatalogueItem(id="C2", product_name="Olive Oil 1L", price=Decimal("10.00"), sku="OO-1"),
            CatalogueItem(id="C3", product_name="Whole Organic Milk 2 Litre", price=Decimal("2.00")),
            CatalogueItem(id="C4", product_name="Sea Salt 500g", price=Decimal("2.50"), sku="SS-500"),
        ]
        self.matcher = ProductMatcher(self.catalogue)

    def test_exact_layer_has_priority(self):
        """Test that an exact match wins over an earlier containment match."""
        outcome = self.matcher.match("Olive Oil 1L")

        assert outcome.result.catalogue_item.id == "C2"
        assert outcome.result.layer == MatchLayer.EXACT
        assert outcome.confidence == MatchConfidence.EXACT
        assert outcome.auto_matched is True
        assert outcome.suggestions == ()

    def test_sku_exact(self):
        """Test exact matching on SKU."""
        outcome = self.matcher.match("ss-500")

        assert outcome.result.catalogue_item.id == "C4"
        assert outcome.result.layer == MatchLayer.EXACT

    def test_heuristic_containment(self):
        """Test the heuristic layer when no exact match exists."""
        outcome = self.matcher.match("Extra Virgin Olive Oil 1L Bottle")

        assert outcome.result.layer == MatchLayer.HEURISTIC
        assert outcome.result.catalogue_item.id == "C1"
        assert outcome.auto_matched is True

    def test_heuristic_medium_gets_suggestions(self):
        """Test that a MEDIUM heuristic match carries suggestions for review."""
        outcome = self.matcher.match("Organic Whole Milk 2L")

        assert outcome.result.layer == MatchLayer.HEURISTIC
        assert outcome.confidence == MatchConfidence.MEDIUM
        assert outcome.auto_matched is False
        assert outcome.suggestions

    def test_fuzzy_layer(self):
        """Test the fuzzy layer for misspelled names."""
        outcome = self.matcher.match("Olvie Oil 1L")

        assert outcome.result.layer == MatchLayer.FUZZY
        assert outcome.result.catalogue_item.id == "C2"
        assert outcome.confidence == MatchConfidence.HIGH
        assert outcome.suggestions[0].catalogue_item_id == "C2"

    def test_no_match(self):
        """Test a name no layer can resolve."""
        outcome = self.matcher.match("Unobtainium Widget")

        assert outcome.result is None
        assert outcome.matched is False
        assert outcome.confidence == MatchConfidence.NONE
        assert outcome.auto_matched is False

    def test_none_confidence_candidate_goes_to_ai(self):
        """Test that a fuzzy candidate below every tier does not stop the cascade."""
        settings = MatchingSettings(high_confidence_max_score=0.01, medium_confidence_max_score=0.02,
                                    low_confidence_max_score=0.03)
        ai_layer = Mock(spec=AIMatchLayer)
        ai_layer.match.return_value = MatchResult(
            catalogue_item=self.catalogue[1], layer=MatchLayer.AI,
            confidence=MatchConfidence.MEDIUM, score=0.25
        )
        matcher = ProductMatcher(self.catalogue, settings, ai_layer=ai_layer)

        outcome = matcher.match("Olvie Oil 1L")

        assert outcome.result.layer == MatchLayer.AI
        assert outcome.suggestions[0].confidence == MatchConfidence.NONE
        name, catalogue, suggestions = ai_layer.match.call_args[0]
        assert name == "Olvie Oil 1L"
        assert suggestions == outcome.suggestions

    def test_ai_not_called_when_earlier_layer_matches(self):
        """Test the AI layer is only a fallback."""
        ai_layer = Mock(spec=AIMatchLayer)
        matcher = ProductMatcher(self.catalogue, ai_layer=ai_layer)

        matcher.match("Olive Oil 1L")

        ai_layer.match.assert_not_called()

    def test_match_items_batches_ai_calls(self):
        """Test that unresolved lines reach the AI layer as one batch."""
        ai_layer = Mock(spec=AIMatchLayer)
        ai_layer.match_many.return_value = [None, None]
        matcher = ProductMatcher(self.catalogue, ai_layer=ai_layer)
        items = [
            InvoiceLineItem(1, "Gizmo", Decimal("1"), Decimal("1"), Decimal("1")),
            InvoiceLineItem(2, "Olive Oil 1L", Decimal("1"), Decimal("1"), Decimal("1")),
            InvoiceLineItem(3, "Widget", Decimal("1"), Decimal("1"), Decimal("1")),
        ]

        outcomes = matcher.match_items(items)

        assert [o.product_name for o in outcomes] == ["Gizmo", "Olive Oil 1L", "Widget"]
        assert outcomes[1].result.catalogue_item.id == "C2"
        ai_layer.match_many.assert_called_once()
        requests = ai_layer.match_many.call_args[0][0]
        assert [name for name, _ in requests] == ["Gizmo", "Widget"]

    def test_match_items_equals_individual_matches(self):
        """Test that batch matching gives the same results as one-by-one matching."""
        names = ["Olive Oil 1L", "Olvie Oil 1L", "Organic Whole Milk 2L", "Unobtainium Widget"]

        batch = self.matcher.match_items(names)
        single = [self.matcher.match(name) for name in names]

        assert batch == single

    def test_search_and_find_item(self):
        """Test manual search helpers."""
        assert self.matcher.search("sea salt")[0].id == "C4"
        assert self.matcher.find_item("C3").product_name == "Whole Organic Milk 2 Litre"
        assert self.matcher.find_item("missing") is None
