"""
AI product matching collaborator backed by the OpenAI SDK.

Asks a chat model which catalogue candidate (if any) an invoice product
name refers to. Works with both OpenAI and Azure OpenAI deployments.
Responses that are not valid JSON, including truncated ones, are salvaged
where the answer fields can still be read; anything else is reported as a
MatchProviderError so the caller can treat it as "no match".
"""

import json
import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence

import openai

from price_verification.models import (
    AIConnectionConfig, CatalogueItem, ConnectionTestResult, ConnectionType,
    MatchProviderError
)
from .base_connector import BaseConnector

import logging
logger = logging.getLogger(__name__)


PRODUCT_MATCHING_SYSTEM_PROMPT = """You match product names from supplier invoices and receipts \
to entries of a price catalogue. Invoice names may be abbreviated, misspelled, OCR-damaged or \
written in another language than the catalogue.

You receive one invoice product name and a numbered list of catalogue candidates. Reply with a \
JSON object and nothing else:
{"matchedIndex": <candidate number, or -1 if none is the same product>,
 "confidence": <number between 0 and 1>,
 "reasoning": "<one short sentence>"}

Only match when the candidate is the same product (same item, size and variant). When unsure, \
answer -1."""

_INDEX_PATTERN = re.compile(r'"matched_?[iI]ndex"\s*:\s*(-?\d+)')
_CONFIDENCE_PATTERN = re.compile(r'"confidence"\s*:\s*(-?\d+(?:\.\d+)?)')
_REASONING_PATTERN = re.compile(r'"reasoning"\s*:\s*"((?:[^"\\]|\\.)*)')


@dataclass(frozen=True)
class AIMatchResponse:
    """Answer of an AI matching collaborator."""
    matched_index: int
    confidence: float
    reasoning: str = ''


class AIMatchProvider(ABC):
    """Interface of an external product matching collaborator."""

    @abstractmethod
    def suggest_match(self, invoice_name: str,
                      candidates: Sequence[CatalogueItem]) -> AIMatchResponse:
        """
        Pick the candidate the invoice name refers to.

        Args:
            invoice_name: Product name as written on the invoice
            candidates: Catalogue candidates, indexed from 0

        Returns:
            AIMatchResponse; ``matched_index`` is -1 for no match

        Raises:
            MatchProviderError: On network failure or an unreadable answer
        """
        pass


def build_candidate_list(candidates: Sequence[CatalogueItem]) -> str:
    """Render candidates as the numbered list shown to the model."""
    lines = []
    for index, item in enumerate(candidates):
        sku = f" (SKU: {item.sku})" if item.sku else ""
        lines.append(f"{index}. {item.product_name}{sku}")
    return "\n".join(lines)


def parse_match_payload(content: Optional[str]) -> AIMatchResponse:
    """
    Read the model's answer.

    Falls back to pattern extraction when the JSON is malformed or cut off.

    Raises:
        MatchProviderError: If no matched index and confidence can be read
    """
    if not content or not content.strip():
        raise MatchProviderError("Empty response from AI matching service")

    data: Dict[str, Any] = {}
    try:
        parsed = json.loads(content)
        if isinstance(parsed, dict):
            data = parsed
    except json.JSONDecodeError:
        index_match = _INDEX_PATTERN.search(content)
        confidence_match = _CONFIDENCE_PATTERN.search(content)
        if index_match and confidence_match:
            reasoning_match = _REASONING_PATTERN.search(content)
            logger.warning("Salvaged fields from malformed AI matching response")
            data = {
                'matchedIndex': int(index_match.group(1)),
                'confidence': float(confidence_match.group(1)),
                'reasoning': reasoning_match.group(1) if reasoning_match else ''
            }

    matched_index = data.get('matchedIndex', data.get('matched_index'))
    confidence = data.get('confidence')
    if matched_index is None or confidence is None:
        raise MatchProviderError(f"Unreadable AI matching response: {content[:200]!r}")

    try:
        return AIMatchResponse(
            matched_index=int(matched_index),
            confidence=float(confidence),
            reasoning=str(data.get('reasoning') or '')
        )
    except (TypeError, ValueError) as e:
        raise MatchProviderError(f"Invalid field types in AI matching response: {e}") from e


class OpenAIMatchConnector(BaseConnector, AIMatchProvider):
    """
    AI matching collaborator using chat completions in JSON mode.

    Uses ``openai.AzureOpenAI`` when an Azure endpoint is configured and
    ``openai.OpenAI`` otherwise.
    """

    def __init__(self, config: AIConnectionConfig, client: Optional[Any] = None):
        """
        Initialize OpenAI matching connector.

        Args:
            config: AI connection configuration
            client: Optional pre-built OpenAI client
        """
        super().__init__(config.connection_id)
        self.config = config
        self.client = client or self._create_client()
        self.logger.info(f"AI matching connector initialized with model {config.model}"
                         f"{' (Azure)' if config.is_azure else ''}")

    def _create_client(self):
        if self.config.is_azure:
            return openai.AzureOpenAI(
                azure_endpoint=self.config.azure_endpoint,
                api_key=self.config.api_key,
                api_version=self.config.api_version,
                timeout=self.config.timeout,
                max_retries=0
            )
        return openai.OpenAI(
            api_key=self.config.api_key,
            timeout=self.config.timeout,
            max_retries=0
        )

    def suggest_match(self, invoice_name: str,
                      candidates: Sequence[CatalogueItem]) -> AIMatchResponse:
        """Ask the model which candidate matches ``invoice_name``."""
        start_time = time.time()
        messages = [
            {'role': 'system', 'content': PRODUCT_MATCHING_SYSTEM_PROMPT},
            {'role': 'user', 'content': f'Invoice item: "{invoice_name}"\n\n'
                                        f'Catalogue items:\n{build_candidate_list(candidates)}'},
        ]

        try:
            response = self.client.chat.completions.create(
                model=self.config.model,
                messages=messages,
                temperature=self.config.temperature,
                response_format={'type': 'json_object'}
            )
        except openai.OpenAIError as e:
            raise MatchProviderError(str(self._handle_error("AI match", e))) from e

        duration = time.time() - start_time
        choices = getattr(response, 'choices', None) or []
        content = choices[0].message.content if choices else None
        result = parse_match_payload(content)

        self._connection_healthy = True
        self._log_operation("AI match", duration, True,
                            f"'{invoice_name}' -> index {result.matched_index} ({result.confidence:.2f})")
        return result

    def test_connection(self) -> ConnectionTestResult:
        """Test the connection by listing available models."""
        start_time = time.time()
        try:
            self.client.models.list()
            success, error_message = True, None
        except openai.OpenAIError as e:
            success, error_message = False, str(e)

        result = ConnectionTestResult(
            success=success,
            connection_id=self.connection_id,
            connection_type=ConnectionType.AI_MATCHING,
            response_time=time.time() - start_time,
            error_message=error_message,
            additional_info={'model': self.config.model, 'azure': self.config.is_azure}
        )
        self._last_connection_test = result
        self._connection_healthy = success
        return result

    def get_connection_info(self) -> Dict[str, Any]:
        return {
            'connection_id': self.connection_id,
            'connection_type': ConnectionType.AI_MATCHING.value,
            'model': self.config.model,
            'azure_endpoint': self.config.azure_endpoint,
            'healthy': self.is_healthy(),
            'last_test': self._last_connection_test.to_dict() if self._last_connection_test else None
        }
