"""
Unit tests for heuristic substring and word-overlap matching.
"""

from decimal import Decimal

import pytest

from price_verification.models import CatalogueItem, MatchConfidence, MatchingSettings, MatchLayer
from price_verification.matching.heuristic_matcher import HeuristicMatcher


def item(item_id, name):
    return CatalogueItem(id=item_id, product_name=name, price=Decimal("1.00"))


class TestHeuristicMatcher:
    """Test cases for HeuristicMatcher class."""

    def setup_method(self):
        """Setup test environment."""
        self.matcher = HeuristicMatcher()

    def test_substring_match_is_high(self):
        """Test that containment scores as near-exact."""
        catalogue = [item("C1", "Extra Virgin Olive Oil")]

        result = self.matcher.match("Olive Oil", catalogue)

        assert result.catalogue_item.id == "C1"
        assert result.layer == MatchLayer.HEURISTIC
        assert result.confidence == MatchConfidence.HIGH
        assert result.score == pytest.approx(0.1)
        assert result.similarity == pytest.approx(0.9)

    def test_reverse_containment(self):
        """Test that the catalogue name inside the invoice name also counts."""
        result = self.matcher.match("Sea Salt Fine Grain", [item("C1", "Sea Salt")])

        assert result.confidence == MatchConfidence.HIGH

    def test_word_overlap_is_medium(self):
        """Test word overlap above the threshold."""
        catalogue = [item("C1", "Whole Organic Milk 2 Litre")]

        result = self.matcher.match("Organic Whole Milk 2L", catalogue)

        assert result.confidence == MatchConfidence.MEDIUM
        assert result.score == pytest.approx(0.25)

    def test_overlap_ratio_uses_larger_word_count(self):
        """Test the overlap denominator."""
        ratio = self.matcher.overlap_ratio("organic whole milk", "whole organic milk litre")
        assert ratio == pytest.approx(0.75)

    def test_overlap_below_threshold(self):
        """Test that weak overlap is rejected."""
        assert self.matcher.match("Green Tea Bags", [item("C1", "Black Tea Leaves")]) is None

    def test_highest_similarity_wins(self):
        """Test that containment beats word overlap."""
        catalogue = [
            item("C1", "Whole Organic Milk 2 Litre"),
            item("C2", "Organic Whole Milk 2L Bottle"),
        ]

        result = self.matcher.match("Organic Whole Milk 2L", catalogue)

        assert result.catalogue_item.id == "C2"

    def test_ties_keep_catalogue_order(self):
        """Test that equal similarities resolve to the earliest item."""
        catalogue = [item("A", "Olive Oil Extra"), item("B", "Olive Oil Light")]

        assert self.matcher.match("olive oil", catalogue).catalogue_item.id == "A"

    def test_empty_invoice_name(self):
        """Test that an empty name never matches by containment."""
        assert self.matcher.match("", [item("C1", "Olive Oil")]) is None
        assert self.matcher.match("...", [item("C1", "Olive Oil")]) is None

    def test_from_settings(self):
        """Test building the matcher from settings."""
        settings = MatchingSettings(heuristic_overlap_threshold=0.5)
        matcher = HeuristicMatcher.from_settings(settings)

        assert matcher.overlap_threshold == 0.5
        assert matcher.match("Green Tea Bags", [item("C1", "Green Tea Leaves")]) is not None
