"""
Configuration validation utilities.

Validates matching settings and connector configurations with detailed
error reporting, and tests configured connections.
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Union
from urllib.parse import urlparse

from price_verification.models import (
    AIConnectionConfig, ConfigurationError, MatchingSettings, RateAPIConnectionConfig
)
from price_verification.connectors.base_connector import BaseConnector

import logging
logger = logging.getLogger(__name__)

_CONNECTION_ID_PATTERN = re.compile(r'^[a-zA-Z0-9_-]+$')


@dataclass
class ValidationResult:
    """Result of configuration validation."""
    is_valid: bool
    errors: List[str]
    warnings: List[str]
    suggestions: List[str]

    @classmethod
    def ok(cls) -> 'ValidationResult':
        return cls(is_valid=True, errors=[], warnings=[], suggestions=[])

    def add_error(self, message: str):
        """Add an error message."""
        self.errors.append(message)
        self.is_valid = False

    def add_warning(self, message: str):
        """Add a warning message."""
        self.warnings.append(message)

    def add_suggestion(self, message: str):
        """Add a suggestion message."""
        self.suggestions.append(message)

    def raise_if_invalid(self, subject: str = "Configuration"):
        """
        Raises:
            ConfigurationError: Listing every error, if any
        """
        if not self.is_valid:
            raise ConfigurationError(f"{subject} is invalid: {'; '.join(self.errors)}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'is_valid': self.is_valid,
            'errors': self.errors,
            'warnings': self.warnings,
            'suggestions': self.suggestions
        }


class ConfigurationValidator:
    """Validates matching settings and connection configurations."""

    def __init__(self):
        self.logger = logging.getLogger(f"{__name__}.ConfigurationValidator")

    def validate_matching_settings(self, settings: MatchingSettings) -> ValidationResult:
        """
        Validate matching settings.

        Args:
            settings: Matching settings to validate

        Returns:
            ValidationResult with validation details
        """
        result = ValidationResult.ok()

        for name in ('heuristic_overlap_threshold', 'heuristic_substring_score', 'fuzzy_threshold',
                     'product_name_weight', 'sku_weight', 'high_confidence_max_score',
                     'medium_confidence_max_score', 'low_confidence_max_score'):
            value = getattr(settings, name)
            if not isinstance(value, (int, float)) or isinstance(value, bool) or not 0.0 <= value <= 1.0:
                result.add_error(f"{name} must be a number between 0 and 1, got {value!r}")

        if result.is_valid:
            if abs(settings.product_name_weight + settings.sku_weight - 1.0) > 1e-6:
                result.add_error("product_name_weight and sku_weight must sum to 1")

            tiers = (settings.high_confidence_max_score, settings.medium_confidence_max_score,
                     settings.low_confidence_max_score)
            if not tiers[0] <= tiers[1] <= tiers[2]:
                result.add_error("Confidence tier scores must be ascending (high <= medium <= low)")
            if settings.low_confidence_max_score > settings.fuzzy_threshold:
                result.add_warning("low_confidence_max_score is above fuzzy_threshold; "
                                   "the LOW tier will be partly unreachable")

            if settings.heuristic_overlap_threshold < 0.5:
                result.add_warning("heuristic_overlap_threshold below 0.5 accepts loosely related names")

        if settings.heuristic_min_word_length < 1:
            result.add_error("heuristic_min_word_length must be at least 1")
        if settings.min_match_char_length < 1:
            result.add_error("min_match_char_length must be at least 1")
        if settings.max_suggestions < 1:
            result.add_error("max_suggestions must be at least 1")
        if settings.ai_max_candidates < 1:
            result.add_error("ai_max_candidates must be at least 1")

        if settings.price_tolerance_percentage < 0:
            result.add_error("price_tolerance_percentage cannot be negative")
        elif settings.price_tolerance_percentage > 10:
            result.add_warning("price_tolerance_percentage above 10% hides real overcharges")

        self.logger.debug(f"Matching settings validation completed: {len(result.errors)} errors, "
                          f"{len(result.warnings)} warnings")
        return result

    def validate_rate_api_config(self, config: RateAPIConnectionConfig) -> ValidationResult:
        """
        Validate exchange-rate API connection configuration.

        Args:
            config: Exchange-rate API configuration to validate

        Returns:
            ValidationResult with validation details
        """
        result = ValidationResult.ok()
        self._validate_connection_id(config.connection_id, result)
        self._validate_url(config.base_url, "Base URL", result)
        self._validate_limits(config.timeout, config.rate_limit, config.retry_attempts, result)

        if config.cache_seconds < 0:
            result.add_error("Cache duration cannot be negative")
        elif config.cache_seconds == 0:
            result.add_suggestion("Caching is disabled - every conversion pair triggers an API call")

        self.logger.debug(f"Rate API config validation completed: {len(result.errors)} errors, "
                          f"{len(result.warnings)} warnings")
        return result

    def validate_ai_config(self, config: AIConnectionConfig) -> ValidationResult:
        """
        Validate AI matching connection configuration.

        Args:
            config: AI connection configuration to validate

        Returns:
            ValidationResult with validation details
        """
        result = ValidationResult.ok()
        self._validate_connection_id(config.connection_id, result)

        if not config.api_key:
            result.add_error("API key is required for AI matching")
        if not config.model:
            result.add_error("Model (or Azure deployment name) is required")
        if config.azure_endpoint:
            self._validate_url(config.azure_endpoint, "Azure endpoint", result)
            if not config.api_version:
                result.add_error("API version is required for Azure OpenAI")

        self._validate_limits(config.timeout, config.rate_limit, config.retry_attempts, result)

        if config.max_concurrency < 1:
            result.add_error("Max concurrency must be at least 1")
        elif config.max_concurrency > 10:
            result.add_warning("Max concurrency above 10 is likely to hit provider rate limits")

        if not 0.0 <= config.temperature <= 2.0:
            result.add_error("Temperature must be between 0 and 2")
        elif config.temperature > 0.5:
            result.add_suggestion("A low temperature (around 0.1) gives more repeatable matches")

        self.logger.debug(f"AI config validation completed: {len(result.errors)} errors, "
                          f"{len(result.warnings)} warnings")
        return result

    def validate_config(self, config: Union[MatchingSettings, RateAPIConnectionConfig,
                                            AIConnectionConfig]) -> ValidationResult:
        """Validate any supported configuration object."""
        if isinstance(config, MatchingSettings):
            return self.validate_matching_settings(config)
        if isinstance(config, RateAPIConnectionConfig):
            return self.validate_rate_api_config(config)
        if isinstance(config, AIConnectionConfig):
            return self.validate_ai_config(config)

        result = ValidationResult.ok()
        result.add_error(f"Unsupported configuration type: {type(config).__name__}")
        return result

    def _validate_connection_id(self, connection_id: str, result: ValidationResult):
        if not connection_id:
            result.add_error("Connection ID is required")
        elif not _CONNECTION_ID_PATTERN.match(connection_id):
            result.add_error("Connection ID can only contain letters, numbers, hyphens, and underscores")

    def _validate_url(self, url: str, label: str, result: ValidationResult):
        if not url:
            result.add_error(f"{label} is required")
            return

        parsed_url = urlparse(url)
        if not parsed_url.scheme:
            result.add_error(f"{label} must include protocol (http:// or https://)")
        elif parsed_url.scheme not in ['http', 'https']:
            result.add_error(f"{label} must use HTTP or HTTPS protocol")
        elif parsed_url.scheme == 'http':
            result.add_warning("HTTP is not secure - consider using HTTPS")

        if not parsed_url.netloc:
            result.add_error(f"{label} must include hostname")

    def _validate_limits(self, timeout: int, rate_limit: int, retry_attempts: int,
                         result: ValidationResult):
        if timeout <= 0:
            result.add_error("Timeout must be positive")
        elif timeout > 300:
            result.add_warning("Timeout is very high (>5 minutes)")

        if rate_limit <= 0:
            result.add_error("Rate limit must be positive")

        if retry_attempts < 0:
            result.add_error("Retry attempts cannot be negative")
        elif retry_attempts > 10:
            result.add_warning("Retry attempts is very high (>10)")


class ConnectionTester:
    """Runs connection tests against configured connectors."""

    def __init__(self):
        self.logger = logging.getLogger(f"{__name__}.ConnectionTester")

    def test_connector(self, connector: BaseConnector) -> Dict[str, Any]:
        """
        Test a connector and report the outcome.

        Returns:
            Dictionary with the connection info and test result
        """
        test_result = connector.test_connection()
        if test_result.success:
            self.logger.info(f"Connection '{connector.connection_id}' test passed "
                             f"in {test_result.response_time:.3f}s")
        else:
            self.logger.warning(f"Connection '{connector.connection_id}' test failed: "
                                f"{test_result.error_message}")
        return {
            'connection': connector.get_connection_info(),
            'test_result': test_result.to_dict()
        }
