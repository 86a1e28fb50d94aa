"""
Configuration Module for the Ledger Reconciliation System.

Settings for header detection, locale parsing, matching tolerances and the
execution host are read from ``settings.yaml`` so that thresholds and keyword
lists can be tuned without touching the pipeline code.
"""

import copy
import yaml
from pathlib import Path
from typing import Any, Dict, Optional


class ConfigurationManager:
    """
    Centralized configuration for the reconciliation pipeline.

    A single instance is shared by the whole process. Values are addressed
    with dot notation (``"matching.tolerance"``).

    Attributes:
        config_path (Path): Path to the YAML file in use.

    Example:
        >>> config = ConfigurationManager()
        >>> config.get("matching.tolerance")
        0.25
        >>> config.get("header.ledger.search_window")
        50
    """

    _instance: Optional['ConfigurationManager'] = None
    _config: Dict[str, Any] = {}

    def __new__(cls, config_path: Optional[str] = None) -> 'ConfigurationManager':
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self, config_path: Optional[str] = None) -> None:
        """
        Load the configuration once per process.

        Args:
            config_path: Optional path to a YAML file.
                        Defaults to config/settings.yaml.
        """
        if self._initialized:
            return

        if config_path is None:
            self.config_path = Path(__file__).parent / "settings.yaml"
        else:
            self.config_path = Path(config_path)

        self._load_config()
        self._initialized = True

    def _load_config(self) -> None:
        """
        Read the YAML file into memory.

        Raises:
            FileNotFoundError: If the configuration file doesn't exist.
            yaml.YAMLError: If the file is not valid YAML.
        """
        if not self.config_path.exists():
            raise FileNotFoundError(
                f"Configuration file not found: {self.config_path}"
            )

        with open(self.config_path, 'r', encoding='utf-8') as f:
            self._config = yaml.safe_load(f) or {}

        self._resolve_paths()

    def _resolve_paths(self) -> None:
        """Make ``paths.*`` entries absolute, relative to the project root."""
        project_root = Path(__file__).parent.parent

        for key, value in self._config.get('paths', {}).items():
            if value and not Path(value).is_absolute():
                self._config['paths'][key] = str(project_root / value)

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value using dot notation.

        Args:
            key: Configuration key (e.g., "matching.tolerance").
            default: Value returned when the key doesn't exist.

        Returns:
            Configuration value or default.

        Example:
            >>> config.get("execution.executor")
            'thread'
            >>> config.get("nonexistent.key", "fallback")
            'fallback'
        """
        value = self._config

        try:
            for part in key.split('.'):
                value = value[part]
            return value
        except (KeyError, TypeError):
            return default

    def set(self, key: str, value: Any) -> None:
        """
        Override a single value in memory (the YAML file is untouched).

        Args:
            key: Configuration key in dot notation.
            value: New value.
        """
        parts = key.split('.')
        node = self._config
        for part in parts[:-1]:
            node = node.setdefault(part, {})
        node[parts[-1]] = value

    def get_all(self) -> Dict[str, Any]:
        """Return a deep copy of the complete configuration."""
        return copy.deepcopy(self._config)

    def reload(self) -> None:
        """Re-read the configuration file, dropping in-memory overrides."""
        self._load_config()

    @classmethod
    def reset(cls) -> None:
        """Forget the singleton instance (used by tests)."""
        cls._instance = None


def get_config(key: str, default: Any = None) -> Any:
    """
    Shortcut for ``ConfigurationManager().get(key, default)``.

    Args:
        key: Configuration key in dot notation.
        default: Default value if key doesn't exist.

    Returns:
        Configuration value or default.
    """
    return ConfigurationManager().get(key, default)


__all__ = ['ConfigurationManager', 'get_config']
