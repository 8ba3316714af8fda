"""
Unit tests for configuration manager.

Tests settings storage and environment-based connector configuration.
"""

import json
import os
import shutil
import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest

from price_verification.config.config_manager import ConfigManager
from price_verification.models import ConfigurationError, MatchingSettings

CONNECTOR_ENV_VARS = (
    'AZURE_OAI_ENDPOINT', 'AZURE_OAI_KEY', 'AZURE_OAI_DEPLOYMENT_NAME', 'AZURE_OAI_API_VERSION',
    'OPENAI_API_KEY', 'OPENAI_MODEL', 'AI_MATCH_RATE_LIMIT', 'AI_MATCH_MAX_CONCURRENCY',
    'EXCHANGE_RATE_API_URL', 'EXCHANGE_RATE_API_KEY', 'EXCHANGE_RATE_CACHE_SECONDS',
)


def clean_environ(**values):
    """Environment without connector variables, plus ``values``."""
    env = {key: value for key, value in os.environ.items() if key not in CONNECTOR_ENV_VARS}
    env.update(values)
    return env


class TestConfigManager:
    """Test cases for configuration manager."""

    def setup_method(self):
        """Setup test environment."""
        self.temp_dir = tempfile.mkdtemp()
        self.config_manager = ConfigManager(config_dir=self.temp_dir, load_env=False)

    def teardown_method(self):
        """Cleanup test environment."""
        if os.path.exists(self.temp_dir):
            shutil.rmtree(self.temp_dir)

    def test_config_manager_creation(self):
        """Test creating configuration manager."""
        assert self.config_manager.config_dir == Path(self.temp_dir)
        assert self.config_manager.settings_file.parent == Path(self.temp_dir)

    def test_config_dir_from_environment(self):
        """Test the configuration directory environment override."""
        with patch.dict(os.environ, {'PRICE_VERIFICATION_CONFIG_DIR': self.temp_dir}):
            manager = ConfigManager(load_env=False)

        assert manager.config_dir == Path(self.temp_dir)

    def test_save_and_load_matching_settings(self):
        """Test saving and loading matching settings."""
        settings = MatchingSettings(fuzzy_threshold=0.4, max_suggestions=3,
                                    price_tolerance_percentage=2.5, enable_ai_matching=True)

        assert self.config_manager.save_matching_settings(settings) is True
        loaded = self.config_manager.load_matching_settings()

        assert loaded == settings

    def test_saved_file_has_timestamp(self):
        """Test that the stored settings record when they were written."""
        self.config_manager.save_matching_settings(MatchingSettings())

        with open(self.config_manager.settings_file) as f:
            data = json.load(f)

        assert 'updated_at' in data
        assert data['fuzzy_threshold'] == 0.5

    def test_save_creates_directory(self):
        """Test saving into a directory that does not exist yet."""
        manager = ConfigManager(config_dir=os.path.join(self.temp_dir, "nested", "config"), load_env=False)

        assert manager.save_matching_settings(MatchingSettings()) is True
        assert manager.settings_file.exists()

    def test_save_invalid_settings(self):
        """Test that invalid settings are not stored."""
        with pytest.raises(ConfigurationError):
            self.config_manager.save_matching_settings(MatchingSettings(max_suggestions=0))

        assert not self.config_manager.settings_file.exists()

    def test_load_default_matching_settings(self):
        """Test loading default settings when none exist."""
        settings = self.config_manager.load_matching_settings()

        assert settings == MatchingSettings()

    def test_load_corrupt_settings(self):
        """Test that an unreadable settings file gives defaults."""
        self.config_manager.settings_file.write_text("{not json")

        assert self.config_manager.load_matching_settings() == MatchingSettings()

    def test_load_invalid_stored_settings(self):
        """Test that stored settings failing validation give defaults."""
        self.config_manager.settings_file.write_text(json.dumps({'sku_weight': 0.9}))

        assert self.config_manager.load_matching_settings() == MatchingSettings()

    def test_load_ignores_unknown_keys(self):
        """Test forward compatibility with extra keys."""
        self.config_manager.settings_file.write_text(json.dumps({'max_suggestions': 7, 'theme': 'dark'}))

        assert self.config_manager.load_matching_settings().max_suggestions == 7

    def test_rate_api_config_defaults(self):
        """Test exchange-rate configuration without environment overrides."""
        with patch.dict(os.environ, clean_environ(), clear=True):
            config = self.config_manager.load_rate_api_config()

        assert config.base_url == 'https://api.exchangerate-api.com/v4'
        assert config.api_key is None
        assert config.cache_seconds == 3600

    def test_rate_api_config_from_environment(self):
        """Test exchange-rate configuration from the environment."""
        env = clean_environ(EXCHANGE_RATE_API_URL='https://rates.internal/v1',
                            EXCHANGE_RATE_API_KEY='abc', EXCHANGE_RATE_CACHE_SECONDS='120')
        with patch.dict(os.environ, env, clear=True):
            config = self.config_manager.load_rate_api_config()

        assert config.base_url == 'https://rates.internal/v1'
        assert config.api_key == 'abc'
        assert config.cache_seconds == 120

    def test_bad_integer_environment_value(self):
        """Test a non-numeric integer setting."""
        with patch.dict(os.environ, clean_environ(EXCHANGE_RATE_CACHE_SECONDS='soon'), clear=True):
            with pytest.raises(ConfigurationError, match="EXCHANGE_RATE_CACHE_SECONDS"):
                self.config_manager.load_rate_api_config()

    def test_no_ai_credentials(self):
        """Test that AI matching is unconfigured without credentials."""
        with patch.dict(os.environ, clean_environ(), clear=True):
            assert self.config_manager.load_ai_config() is None

    def test_openai_config(self):
        """Test OpenAI configuration from the environment."""
        env = clean_environ(OPENAI_API_KEY='sk-test', OPENAI_MODEL='gpt-4o', AI_MATCH_MAX_CONCURRENCY='4')
        with patch.dict(os.environ, env, clear=True):
            config = self.config_manager.load_ai_config()

        assert config.api_key == 'sk-test'
        assert config.model == 'gpt-4o'
        assert config.is_azure is False
        assert config.max_concurrency == 4

    def test_azure_config_takes_precedence(self):
        """Test that Azure credentials win over OpenAI ones."""
        env = clean_environ(AZURE_OAI_ENDPOINT='https://example.openai.azure.com', AZURE_OAI_KEY='az',
                            AZURE_OAI_DEPLOYMENT_NAME='matcher', OPENAI_API_KEY='sk-test')
        with patch.dict(os.environ, env, clear=True):
            config = self.config_manager.load_ai_config()

        assert config.is_azure is True
        assert config.model == 'matcher'
        assert config.api_key == 'az'

    def test_azure_without_deployment(self):
        """Test that Azure needs a deployment name."""
        env = clean_environ(AZURE_OAI_ENDPOINT='https://example.openai.azure.com', AZURE_OAI_KEY='az')
        with patch.dict(os.environ, env, clear=True):
            assert self.config_manager.load_ai_config() is None

    def test_config_info_hides_secrets(self):
        """Test that configuration info carries no API keys."""
        env = clean_environ(OPENAI_API_KEY='sk-test', EXCHANGE_RATE_API_KEY='abc')
        with patch.dict(os.environ, env, clear=True):
            info = self.config_manager.get_config_info()

        assert info['config_directory'] == self.temp_dir
        assert info['settings_file_exists'] is False
        assert 'api_key' not in info['rate_api']
        assert 'api_key' not in info['ai_matching']
        assert 'sk-test' not in json.dumps(info)
