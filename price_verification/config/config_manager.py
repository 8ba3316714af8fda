"""
Configuration manager for the price verification system.

Stores matching settings as JSON and builds connector configurations
from environment variables (a ``.env`` file is honoured).
"""

import json
import os
import time
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from price_verification.models import (
    AIConnectionConfig, ConfigurationError, MatchingSettings, RateAPIConnectionConfig
)
from .validation import ConfigurationValidator

import logging
logger = logging.getLogger(__name__)

CONFIG_DIR_ENV = 'PRICE_VERIFICATION_CONFIG_DIR'


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == '':
        return default
    try:
        return int(value)
    except ValueError as e:
        raise ConfigurationError(f"Environment variable {name} must be an integer, got {value!r}") from e


class ConfigManager:
    """
    Manages configuration storage and retrieval for price verification.

    Matching settings live in ``settings.json`` inside the configuration
    directory; connector credentials only ever come from the environment.
    """

    def __init__(self, config_dir: Optional[str] = None, load_env: bool = True):
        """
        Initialize configuration manager.

        Args:
            config_dir: Directory to store configuration files. If None, uses
                PRICE_VERIFICATION_CONFIG_DIR or ~/.price_verification/config.
            load_env: Load a ``.env`` file into the environment
        """
        self.logger = logging.getLogger(f"{__name__}.ConfigManager")

        if load_env:
            load_dotenv()

        if config_dir:
            self.config_dir = Path(config_dir)
        elif os.getenv(CONFIG_DIR_ENV):
            self.config_dir = Path(os.environ[CONFIG_DIR_ENV])
        else:
            self.config_dir = Path.home() / '.price_verification' / 'config'

        self.settings_file = self.config_dir / 'settings.json'
        self.validator = ConfigurationValidator()

        self.logger.info(f"Configuration manager initialized with directory: {self.config_dir}")

    def save_matching_settings(self, settings: MatchingSettings) -> bool:
        """
        Save matching algorithm settings.

        Args:
            settings: Matching settings to save

        Returns:
            True if saved successfully, False if the file could not be written

        Raises:
            ConfigurationError: If the settings are invalid
        """
        self.validator.validate_matching_settings(settings).raise_if_invalid("Matching settings")

        settings_data = settings.to_dict()
        settings_data['updated_at'] = time.time()

        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
            with open(self.settings_file, 'w') as f:
                json.dump(settings_data, f, indent=2)
        except OSError as e:
            self.logger.error(f"Failed to save matching settings: {e}")
            return False

        self.logger.info("Saved matching settings")
        return True

    def load_matching_settings(self) -> MatchingSettings:
        """
        Load matching algorithm settings.

        Returns:
            MatchingSettings instance (defaults if missing, unreadable or invalid)
        """
        if not self.settings_file.exists():
            self.logger.info("No matching settings file found, using defaults")
            return MatchingSettings()

        try:
            with open(self.settings_file, 'r') as f:
                settings_data = json.load(f)
            settings_data.pop('updated_at', None)
            settings = MatchingSettings.from_dict(settings_data)
        except (OSError, ValueError, TypeError, AttributeError) as e:
            self.logger.error(f"Failed to load matching settings: {e}")
            return MatchingSettings()

        validation = self.validator.validate_matching_settings(settings)
        if not validation.is_valid:
            self.logger.error(f"Stored matching settings are invalid, using defaults: "
                              f"{'; '.join(validation.errors)}")
            return MatchingSettings()
        return settings

    def load_rate_api_config(self) -> RateAPIConnectionConfig:
        """
        Exchange-rate API configuration from the environment.

        Reads EXCHANGE_RATE_API_URL, EXCHANGE_RATE_API_KEY and
        EXCHANGE_RATE_CACHE_SECONDS.
        """
        defaults = RateAPIConnectionConfig()
        return RateAPIConnectionConfig(
            base_url=os.getenv('EXCHANGE_RATE_API_URL') or defaults.base_url,
            api_key=os.getenv('EXCHANGE_RATE_API_KEY') or None,
            cache_seconds=_env_int('EXCHANGE_RATE_CACHE_SECONDS', defaults.cache_seconds)
        )

    def load_ai_config(self) -> Optional[AIConnectionConfig]:
        """
        AI matching configuration from the environment.

        Azure OpenAI (AZURE_OAI_ENDPOINT, AZURE_OAI_KEY,
        AZURE_OAI_DEPLOYMENT_NAME, AZURE_OAI_API_VERSION) takes precedence
        over OpenAI (OPENAI_API_KEY, OPENAI_MODEL).

        Returns:
            AIConnectionConfig, or None when no credentials are configured
        """
        defaults = AIConnectionConfig()
        rate_limit = _env_int('AI_MATCH_RATE_LIMIT', defaults.rate_limit)
        max_concurrency = _env_int('AI_MATCH_MAX_CONCURRENCY', defaults.max_concurrency)

        azure_endpoint = os.getenv('AZURE_OAI_ENDPOINT')
        azure_key = os.getenv('AZURE_OAI_KEY')
        if azure_endpoint and azure_key:
            deployment = os.getenv('AZURE_OAI_DEPLOYMENT_NAME')
            if not deployment:
                self.logger.warning("AZURE_OAI_DEPLOYMENT_NAME is not set, AI matching is disabled")
                return None
            return AIConnectionConfig(
                api_key=azure_key,
                model=deployment,
                azure_endpoint=azure_endpoint,
                api_version=os.getenv('AZURE_OAI_API_VERSION') or defaults.api_version,
                rate_limit=rate_limit,
                max_concurrency=max_concurrency
            )

        api_key = os.getenv('OPENAI_API_KEY')
        if api_key:
            return AIConnectionConfig(
                api_key=api_key,
                model=os.getenv('OPENAI_MODEL') or defaults.model,
                rate_limit=rate_limit,
                max_concurrency=max_concurrency
            )

        self.logger.info("No AI matching credentials configured")
        return None

    def get_config_info(self) -> Dict[str, Any]:
        """
        Get information about the configuration manager.

        Returns:
            Dictionary with configuration manager information
        """
        ai_config = self.load_ai_config()
        return {
            'config_directory': str(self.config_dir),
            'settings_file_exists': self.settings_file.exists(),
            'rate_api': self.load_rate_api_config().to_dict(),
            'ai_matching': ai_config.to_dict() if ai_config else None
        }


# Global configuration manager instance
_global_config_manager: Optional[ConfigManager] = None


def get_config_manager() -> ConfigManager:
    """
    Get the global configuration manager instance.

    Returns:
        Global ConfigManager instance
    """
    global _global_config_manager
    if _global_config_manager is None:
        _global_config_manager = ConfigManager()
    return _global_config_manager
