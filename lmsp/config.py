"""
Configuration management for lmsp.

This module handles loading and accessing configuration values from lmsp.yaml.
Values found in the file are merged over the built-in defaults, so a
configuration file only needs to mention the settings it changes.
"""

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


DEFAULT_CONFIG_PATH = "lmsp.yaml"
CONFIG_ENV_VAR = "LMSP_CONFIG"

# Identifier alphabet used by the EV3 Classroom editor when minting ids
DEFAULT_ID_ALPHABET = (
    "!#$%()*+,-./0123456789:;?@ABCDEFGHIJKLMNOPQRSTUVWXYZ[]^`"
    "abcdefghijklmnopqrstuvwxyz{|}~"
)


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into a copy of base."""
    result = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


class ConfigManager:
    """
    Manages configuration loading and access for lmsp.
    """

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize the configuration manager.

        Args:
            config_path: Path to the configuration file. Falls back to the
                LMSP_CONFIG environment variable, then to lmsp.yaml.
        """
        self.config_path = Path(config_path or os.environ.get(CONFIG_ENV_VAR, DEFAULT_CONFIG_PATH))
        self._config: Dict[str, Any] = {}
        self._load_config()

    def _load_config(self) -> None:
        """Load configuration from YAML file."""
        defaults = self._get_default_config()

        if not self.config_path.exists():
            logging.debug(f"Configuration file not found, using defaults: {self.config_path}")
            self._config = defaults
            return

        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                loaded = yaml.safe_load(f) or {}

            if not isinstance(loaded, dict):
                raise ValueError(f"expected a mapping at the top level, got {type(loaded).__name__}")

            self._config = _deep_merge(defaults, loaded)
            logging.info(f"Configuration loaded from {self.config_path}")

        except (OSError, yaml.YAMLError, ValueError) as e:
            logging.error(f"Failed to load configuration: {e}")
            # Fall back to default configuration
            self._config = defaults

    def _get_default_config(self) -> Dict[str, Any]:
        """Get default configuration values as fallback."""
        return {
            "ids": {
                "length": 20,
                "alphabet": DEFAULT_ID_ALPHABET,
                "max_attempts": 1000
            },
            "output": {
                "backup_suffix": ".bak",
                "json_indent": 2
            },
            "archive": {
                "inner_name": "scratch.sb3",
                "project_name": "project.json",
                "icon_name": "icon.svg"
            },
            "logging": {
                "level": "INFO",
                "format": "%(levelname)s: %(message)s",
                "file": None
            }
        }

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Get a configuration value using dot notation.

        Args:
            key_path: Dot-separated path to the configuration value (e.g., "ids.length")
            default: Default value if key is not found

        Returns:
            The configuration value

        Examples:
            config.get("ids.length")              # Returns 20
            config.get("archive.inner_name")      # Returns "scratch.sb3"
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
    def id_length(self) -> int:
        """Get the length of generated identifiers."""
        return int(self.get("ids.length", 20))

    @property
    def id_alphabet(self) -> str:
        """Get the alphabet generated identifiers are drawn from."""
        return self.get("ids.alphabet", DEFAULT_ID_ALPHABET)

    @property
    def id_max_attempts(self) -> int:
        """Get the retry bound for identifier generation."""
        return int(self.get("ids.max_attempts", 1000))

    @property
    def backup_suffix(self) -> str:
        """Get the suffix appended to a replaced output file."""
        return self.get("output.backup_suffix", ".bak")

    @property
    def json_indent(self) -> int:
        """Get the indentation used for JSON output."""
        return int(self.get("output.json_indent", 2))

    @property
    def archive_inner_name(self) -> str:
        """Get the name of the Scratch archive nested in an LMSP file."""
        return self.get("archive.inner_name", "scratch.sb3")

    @property
    def archive_project_name(self) -> str:
        """Get the name of the project document inside the Scratch archive."""
        return self.get("archive.project_name", "project.json")

    @property
    def archive_icon_name(self) -> str:
        """Get the name of the project icon inside an LMSP file."""
        return self.get("archive.icon_name", "icon.svg")

    @property
    def log_filename(self) -> Optional[str]:
        """Get log file name, if file logging is enabled."""
        return self.get("logging.file")


# Global configuration instance
config = ConfigManager()


def get_config() -> ConfigManager:
    """
    Get the global configuration instance.

    Returns:
        The global ConfigManager instance
    """
    return config


def configure(config_path: str) -> ConfigManager:
    """
    Replace the global configuration with one loaded from config_path.

    Args:
        config_path: Path to a YAML configuration file

    Returns:
        The new global ConfigManager instance
    """
    global config
    config = ConfigManager(config_path)
    return config
