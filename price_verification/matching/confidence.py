"""
Confidence classification for match scores.

All scores handed to these functions use the distance convention
(0.0 best, 1.0 worst) unless the function name says similarity.
"""

from typing import Optional

from price_verification.models import MatchConfidence, MatchingSettings

_DEFAULT_SETTINGS = MatchingSettings()

AUTO_MATCH_CONFIDENCES = (MatchConfidence.EXACT, MatchConfidence.HIGH)


def classify_fuzzy_score(score: float, settings: Optional[MatchingSettings] = None) -> MatchConfidence:
    """
    Map a fuzzy index distance to a confidence tier.

    Args:
        score: Distance score (0.0 = perfect match)
        settings: Tier boundaries; defaults to 0.10 / 0.25 / 0.40

    Returns:
        HIGH, MEDIUM, LOW or NONE
    """
    settings = settings or _DEFAULT_SETTINGS
    if score <= settings.high_confidence_max_score:
        return MatchConfidence.HIGH
    if score <= settings.medium_confidence_max_score:
        return MatchConfidence.MEDIUM
    if score <= settings.low_confidence_max_score:
        return MatchConfidence.LOW
    return MatchConfidence.NONE


def classify_heuristic_similarity(similarity: float, high_threshold: float = 0.9) -> MatchConfidence:
    """Heuristic layer: near-exact (>= 0.9) is HIGH, anything accepted below is MEDIUM."""
    return MatchConfidence.HIGH if similarity >= high_threshold else MatchConfidence.MEDIUM


def classify_ai_confidence(confidence: float) -> MatchConfidence:
    """Map an AI collaborator's 0..1 confidence to a tier; below 0.5 is no match."""
    if confidence >= 0.9:
        return MatchConfidence.HIGH
    if confidence >= 0.7:
        return MatchConfidence.MEDIUM
    if confidence >= 0.5:
        return MatchConfidence.LOW
    return MatchConfidence.NONE


def is_auto_match(confidence: Optional[MatchConfidence]) -> bool:
    """Only EXACT and HIGH matches are accepted without manual confirmation."""
    return confidence in AUTO_MATCH_CONFIDENCES


def similarity_to_score(similarity: float) -> float:
    """Convert a percent-match (1.0 best) to a distance (0.0 best)."""
    return max(0.0, min(1.0, 1.0 - similarity))


def score_to_percentage(score: float) -> int:
    """Display helper: distance 0.12 -> 88 (%)."""
    return int(round((1.0 - score) * 100))
