"""
Unit tests for exact product name and SKU matching.
"""

from decimal import Decimal

from price_verification.models import CatalogueItem, MatchConfidence, MatchedOn, MatchLayer
from price_verification.matching.exact_matcher import ExactMatcher


class TestExactMatcher:
    """Test cases for ExactMatcher class."""

    def setup_method(self):
        """Setup test environment."""
        self.matcher = ExactMatcher()
        self.catalogue = [
            CatalogueItem(id="C1", product_name="Olive Oil 1L", price=Decimal("10.00"), sku="OO-1"),
            CatalogueItem(id="C2", product_name="Sea Salt 500g", price=Decimal("2.50"), sku="SS-500"),
            CatalogueItem(id="C3", product_name="olive oil 1l", price=Decimal("11.00")),
        ]

    def test_match_product_name_case_insensitive(self):
        """Test matching on the normalized product name."""
        result = self.matcher.match("OLIVE OIL 1L", self.catalogue)

        assert result is not None
        assert result.catalogue_item.id == "C1"
        assert result.layer == MatchLayer.EXACT
        assert result.confidence == MatchConfidence.EXACT
        assert result.score == 0.0
        assert result.similarity == 1.0
        assert result.matched_on == MatchedOn.PRODUCT_NAME

    def test_match_sku(self):
        """Test matching on the normalized SKU."""
        result = self.matcher.match("ss-500", self.catalogue)

        assert result.catalogue_item.id == "C2"
        assert result.matched_on == MatchedOn.SKU

    def test_match_both_fields(self):
        """Test an item whose name and SKU both equal the invoice name."""
        catalogue = [CatalogueItem(id="C9", product_name="ABC123", price=Decimal("1"), sku="abc-123")]

        result = self.matcher.match("ABC123", catalogue)

        assert result.matched_on == MatchedOn.BOTH

    def test_first_catalogue_item_wins(self):
        """Test that ties resolve to catalogue order."""
        result = self.matcher.match("Olive Oil 1L", self.catalogue)
        assert result.catalogue_item.id == "C1"

        result = self.matcher.match("Olive Oil 1L", list(reversed(self.catalogue)))
        assert result.catalogue_item.id == "C3"

    def test_punctuation_only_name_never_matches(self):
        """Test that a name normalizing to empty does not match."""
        catalogue = self.catalogue + [CatalogueItem(id="C4", product_name="---", price=Decimal("1"))]

        assert self.matcher.match("!!!", catalogue) is None
        assert self.matcher.match("", catalogue) is None

    def test_no_match(self):
        """Test a name equal to nothing in the catalogue."""
        assert self.matcher.match("Olive Oil", self.catalogue) is None

    def test_empty_catalogue(self):
        """Test matching against an empty catalogue."""
        assert self.matcher.match("Olive Oil 1L", []) is None
