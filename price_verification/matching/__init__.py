"""
Product matching engine for comparing invoice lines against a catalogue.

Provides text normalization, exact/SKU matching, heuristic and fuzzy
matching, confidence classification and an optional AI fallback layer.
"""

from .ai_matcher import AIMatchLayer
from .confidence import (
    classify_ai_confidence, classify_fuzzy_score, classify_heuristic_similarity,
    is_auto_match
)
from .exact_matcher import ExactMatcher
from .fuzzy_index import FuzzyIndex
from .heuristic_matcher import HeuristicMatcher
from .normalizer import normalize_text, tokenize
from .product_matcher import MatchOutcome, ProductMatcher

__all__ = [
    "AIMatchLayer",
    "ExactMatcher",
    "FuzzyIndex",
    "HeuristicMatcher",
    "MatchOutcome",
    "ProductMatcher",
    "classify_ai_confidence",
    "classify_fuzzy_score",
    "classify_heuristic_similarity",
    "is_auto_match",
    "normalize_text",
    "tokenize"
]
