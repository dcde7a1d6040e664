"""
Configuration management for Tasker.

Loads settings from config.ini with environment variable overrides.
Provides centralized configuration for storage and application defaults.
"""

import configparser
import os
from pathlib import Path
from typing import Optional, Dict, Any

from tasker.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_CONFIG_DIR = Path.home() / ".tasker"
DEFAULT_DATABASE_URL = f"sqlite+aiosqlite:///{DEFAULT_CONFIG_DIR / 'tasker.db'}"


class Config:
    """Application configuration manager."""

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize configuration manager.

        Args:
            config_path: Path to config file, defaults to ~/.tasker/config.ini
        """
        self.config_path = config_path or self._default_config_path()
        self._config = configparser.ConfigParser()
        self._load()

    def _default_config_path(self) -> Path:
        """Get default config path."""
        return DEFAULT_CONFIG_DIR / "config.ini"

    def _load(self):
        """Load configuration from file."""
        if self.config_path.exists():
            try:
                self._config.read(self.config_path)
                logger.info(f"Loaded configuration from {self.config_path}")
            except configparser.Error as e:
                logger.warning(f"Failed to read config file: {e}. Using defaults.")
        else:
            logger.debug(f"Config file not found at {self.config_path}. Using defaults.")

    def get_storage_config(self) -> Dict[str, Any]:
        """
        Get storage configuration with environment overrides.

        Environment variables take precedence over config file:
        - TASKER_DATABASE_URL

        Returns:
            Dictionary with storage configuration
        """
        config = {
            'database_url': os.getenv('TASKER_DATABASE_URL') or
                            self._config.get('storage', 'database_url', fallback=DEFAULT_DATABASE_URL),
        }

        logger.debug(f"Storage config: database_url={config['database_url']}")

        return config

    def get_defaults_config(self) -> Dict[str, Any]:
        """
        Get application defaults with environment overrides.

        Environment variables take precedence over config file:
        - TASKER_DEFAULT_LIST
        - TASKER_DEFAULT_SORT_FIELD
        - TASKER_DEFAULT_SORT_DIRECTION
        - TASKER_THEME

        Returns:
            Dictionary with default list, sort and theme settings
        """
        config = {
            'list_id': os.getenv('TASKER_DEFAULT_LIST') or
                       self._config.get('defaults', 'list_id', fallback='inbox'),
            'sort_field': os.getenv('TASKER_DEFAULT_SORT_FIELD') or
                          self._config.get('defaults', 'sort_field', fallback='order'),
            'sort_direction': os.getenv('TASKER_DEFAULT_SORT_DIRECTION') or
                              self._config.get('defaults', 'sort_direction', fallback='asc'),
            'theme': os.getenv('TASKER_THEME') or
                     self._config.get('defaults', 'theme', fallback='light'),
        }

        logger.debug(f"Defaults config: list_id={config['list_id']}, "
                     f"sort={config['sort_field']} {config['sort_direction']}, "
                     f"theme={config['theme']}")

        return config

    def get(self, section: str, key: str, fallback: Any = None) -> Any:
        """
        Get configuration value with fallback.

        Args:
            section: Config section name
            key: Config key name
            fallback: Default value if not found

        Returns:
            Configuration value or fallback
        """
        return self._config.get(section, key, fallback=fallback)

    def get_bool(self, section: str, key: str, fallback: bool = False) -> bool:
        """Get boolean configuration value."""
        return self._config.getboolean(section, key, fallback=fallback)

    def has_section(self, section: str) -> bool:
        """Check if config section exists."""
        return self._config.has_section(section)

    def sections(self) -> list:
        """Get list of all configuration sections."""
        return self._config.sections()
