"""
Configuration management for the price verification system.

Provides storage of matching settings, environment-based connector
configuration and validation with detailed error reporting.
"""

from .config_manager import ConfigManager, get_config_manager
from .validation import ConfigurationValidator, ConnectionTester, ValidationResult

__all__ = [
    "ConfigManager",
    "get_config_manager",
    "ConfigurationValidator",
    "ConnectionTester",
    "ValidationResult"
]
