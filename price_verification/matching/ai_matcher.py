"""
AI fallback layer of the matching cascade.

Only invoice lines that the exact, heuristic and fuzzy layers could not
resolve reach this layer. Calls to the AI collaborator share one token
bucket, are retried with exponential backoff and may run on a small thread
pool. Any collaborator failure means "no match" for that line.
"""

import time
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Sequence, Tuple

from price_verification.connectors.api_connector import RateLimiter
from price_verification.connectors.openai_connector import AIMatchProvider, AIMatchResponse
from price_verification.models import (
    AIConnectionConfig, CatalogueItem, MatchConfidence, MatchedOn, MatchingSettings,
    MatchLayer, MatchProviderError, MatchResult, MatchSuggestion
)
from .confidence import classify_ai_confidence, similarity_to_score

import logging
logger = logging.getLogger(__name__)

AIRequest = Tuple[str, Sequence[MatchSuggestion]]


class AIMatchLayer:
    """
    Resolves leftover invoice lines through an AIMatchProvider.

    The candidate list sent for a line is its fuzzy suggestions first,
    then the rest of the catalogue in catalogue order, capped at
    ``max_candidates``.
    """

    def __init__(self, provider: AIMatchProvider, max_candidates: int = 20,
                 rate_limiter: Optional[RateLimiter] = None, retry_attempts: int = 2,
                 max_concurrency: int = 1, backoff_seconds: float = 1.0,
                 max_rate_wait: float = 60.0):
        """
        Initialize AI match layer.

        Args:
            provider: AI matching collaborator
            max_candidates: Most catalogue items sent per request
            rate_limiter: Token bucket shared by all calls (default 30/minute)
            retry_attempts: Retries after a failed call
            max_concurrency: Calls in flight at once; 1 runs sequentially
            backoff_seconds: Delay before the first retry, doubled each time
            max_rate_wait: Longest wait for a rate limiter token
        """
        self.logger = logging.getLogger(f"{__name__}.AIMatchLayer")
        self.provider = provider
        self.max_candidates = max_candidates
        self.rate_limiter = rate_limiter or RateLimiter(30)
        self.retry_attempts = max(0, retry_attempts)
        self.max_concurrency = max(1, max_concurrency)
        self.backoff_seconds = backoff_seconds
        self.max_rate_wait = max_rate_wait

    @classmethod
    def from_config(cls, provider: AIMatchProvider, config: AIConnectionConfig,
                    settings: Optional[MatchingSettings] = None) -> 'AIMatchLayer':
        settings = settings or MatchingSettings()
        return cls(
            provider,
            max_candidates=settings.ai_max_candidates,
            rate_limiter=RateLimiter(config.rate_limit),
            retry_attempts=config.retry_attempts,
            max_concurrency=config.max_concurrency
        )

    def build_candidates(self, suggestions: Sequence[MatchSuggestion],
                         catalogue_items: Sequence[CatalogueItem]) -> List[CatalogueItem]:
        candidates: List[CatalogueItem] = []
        seen = set()
        for item in [s.catalogue_item for s in suggestions] + list(catalogue_items):
            if len(candidates) >= self.max_candidates:
                break
            if item.id in seen:
                continue
            seen.add(item.id)
            candidates.append(item)
        return candidates

    def _suggest_with_retry(self, invoice_name: str,
                            candidates: Sequence[CatalogueItem]) -> AIMatchResponse:
        attempts = self.retry_attempts + 1
        last_error: Optional[MatchProviderError] = None

        for attempt in range(1, attempts + 1):
            if not self.rate_limiter.wait(max_wait=self.max_rate_wait):
                raise MatchProviderError("AI matching rate limit wait exceeded")
            try:
                return self.provider.suggest_match(invoice_name, candidates)
            except MatchProviderError as e:
                last_error = e
                if attempt < attempts:
                    delay = self.backoff_seconds * (2 ** (attempt - 1))
                    self.logger.warning(f"AI match for '{invoice_name}' failed ({e}), "
                                        f"retrying in {delay:.1f}s (attempt {attempt}/{attempts})")
                    time.sleep(delay)

        raise last_error

    def match(self, invoice_name: str, catalogue_items: Sequence[CatalogueItem],
              suggestions: Sequence[MatchSuggestion] = ()) -> Optional[MatchResult]:
        """
        Ask the AI collaborator for a match.

        Returns:
            MatchResult with layer AI, or None when the collaborator finds
            nothing, answers below 0.5 confidence or fails
        """
        candidates = self.build_candidates(suggestions, catalogue_items)
        if not candidates or not invoice_name or not invoice_name.strip():
            return None

        try:
            response = self._suggest_with_retry(invoice_name, candidates)
        except MatchProviderError as e:
            self.logger.warning(f"AI matching unavailable for '{invoice_name}': {e}")
            return None

        if response.matched_index < 0:
            self.logger.debug(f"AI found no match for '{invoice_name}'")
            return None
        if response.matched_index >= len(candidates):
            self.logger.warning(f"AI returned out-of-range index {response.matched_index} "
                                f"for '{invoice_name}' ({len(candidates)} candidates)")
            return None

        confidence = classify_ai_confidence(response.confidence)
        if confidence == MatchConfidence.NONE:
            self.logger.debug(f"AI match for '{invoice_name}' rejected at confidence {response.confidence:.2f}")
            return None

        item = candidates[response.matched_index]
        self.logger.debug(f"AI match: '{invoice_name}' -> {item.id} ({confidence.value})")
        return MatchResult(
            catalogue_item=item,
            layer=MatchLayer.AI,
            confidence=confidence,
            score=similarity_to_score(response.confidence),
            matched_on=MatchedOn.PRODUCT_NAME,
            reasoning=response.reasoning or "AI match"
        )

    def match_many(self, requests: Sequence[AIRequest],
                   catalogue_items: Sequence[CatalogueItem]) -> List[Optional[MatchResult]]:
        """
        Resolve several lines; results come back in request order.

        Args:
            requests: (invoice name, fuzzy suggestions) per line
            catalogue_items: Catalogue items in catalogue order

        Returns:
            One MatchResult or None per request
        """
        if not requests:
            return []

        self.logger.info(f"AI matching {len(requests)} unresolved line(s) "
                         f"with concurrency {self.max_concurrency}")

        if self.max_concurrency == 1 or len(requests) == 1:
            return [self.match(name, catalogue_items, suggestions) for name, suggestions in requests]

        with ThreadPoolExecutor(max_workers=min(self.max_concurrency, len(requests))) as executor:
            return list(executor.map(
                lambda request: self.match(request[0], catalogue_items, request[1]),
                requests
            ))
