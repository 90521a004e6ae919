"""
Configuration management for canvasgraph.

This module handles loading and accessing configuration values from config.yaml.
It provides a centralized way to tune history depth, placement windows, context
formatting and the persistence backend without changing code.
"""

import yaml
from pathlib import Path
from typing import Any, Dict, Optional
import logging


class ConfigManager:
    """
    Manages configuration loading and access for canvasgraph.
    """

    def __init__(self, config_path: str = "config.yaml"):
        """
        Initialize the configuration manager.

        Args:
            config_path: Path to the configuration file
        """
        self.config_path = Path(config_path)
        self._config: Dict[str, Any] = {}
        self._load_config()

    def _load_config(self) -> None:
        """Load configuration from YAML file, merged over the defaults."""
        defaults = self._get_default_config()
        try:
            if not self.config_path.exists():
                logging.debug(f"Configuration file not found: {self.config_path}, using defaults")
                self._config = defaults
                return

            with open(self.config_path, 'r', encoding='utf-8') as f:
                loaded = yaml.safe_load(f) or {}

            self._config = _merge(defaults, loaded)
            logging.info(f"Configuration loaded from {self.config_path}")

        except (OSError, yaml.YAMLError) as e:
            logging.error(f"Failed to load configuration: {e}")
            # Fall back to default configuration
            self._config = defaults

    def _get_default_config(self) -> Dict[str, Any]:
        """Get default configuration values as fallback."""
        return {
            "history": {
                "max_depth": 50
            },
            "placement": {
                "random_min": 100.0,
                "random_max": 500.0,
                "creative_offset_x": 400.0
            },
            "context": {
                "separator": "\n\n---\n\n",
                "image_placeholder": "reference image provided for visual context"
            },
            "store": {
                "backend": "memory",
                "duckdb_path": "canvas.db",
                "rest_url": "http://localhost:54321/rest/v1",
                "rest_api_key": "",
                "timeout": 30.0
            },
            "logging": {
                "level": "INFO",
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            }
        }

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Get a configuration value using dot notation.

        Args:
            key_path: Dot-separated path to the configuration value (e.g., "history.max_depth")
            default: Default value if key is not found

        Returns:
            The configuration value

        Examples:
            config.get("history.max_depth")  # Returns 50
            config.get("store.backend")  # Returns "memory"
        """
        keys = key_path.split('.')
        value = self._config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value

    def get_section(self, section: str) -> Dict[str, Any]:
        """
        Get an entire configuration section.

        Args:
            section: Name of the configuration section

        Returns:
            Dictionary containing the section configuration
        """
        return self._config.get(section, {})

    def reload(self) -> None:
        """Reload configuration from file."""
        self._load_config()

    # Convenience properties for commonly used values

    @property
    def history_max_depth(self) -> int:
        """Get the maximum number of undo snapshots."""
        return int(self.get("history.max_depth", 50))

    @property
    def placement_window(self) -> tuple:
        """Get the (min, max) window for randomized toolbar placement."""
        return (
            float(self.get("placement.random_min", 100.0)),
            float(self.get("placement.random_max", 500.0)),
        )

    @property
    def creative_offset_x(self) -> float:
        """Get the horizontal offset of creatives pushed from a chat block."""
        return float(self.get("placement.creative_offset_x", 400.0))

    @property
    def context_separator(self) -> str:
        """Get the separator placed between context segments."""
        return self.get("context.separator", "\n\n---\n\n")

    @property
    def image_placeholder(self) -> str:
        """Get the body text used for image segments."""
        return self.get("context.image_placeholder", "reference image provided for visual context")

    @property
    def store_backend(self) -> str:
        """Get the configured store backend name."""
        return self.get("store.backend", "memory")

    @property
    def duckdb_path(self) -> str:
        """Get the DuckDB database path."""
        return self.get("store.duckdb_path", "canvas.db")

    @property
    def rest_url(self) -> str:
        """Get the REST store base URL."""
        return self.get("store.rest_url", "http://localhost:54321/rest/v1")

    @property
    def rest_api_key(self) -> Optional[str]:
        """Get the REST store API key, if any."""
        return self.get("store.rest_api_key") or None

    @property
    def store_timeout(self) -> float:
        """Get the REST store timeout in seconds."""
        return float(self.get("store.timeout", 30.0))


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into a copy of base."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


# Global configuration instance
config = ConfigManager()


def get_config() -> ConfigManager:
    """
    Get the global configuration instance.

    Returns:
        The global ConfigManager instance
    """
    return config
