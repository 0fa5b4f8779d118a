"""
Configuration Module for the Invoice Engine.

Thresholds, timeouts and storage locations come from settings.yaml; scoring
weights stay in code so candidate scoring remains a pure function of its
inputs. The settings file can be swapped with the INVOICE_ENGINE_CONFIG
environment variable or an explicit path, and individual keys can be
overridden at runtime (the CLI does this for --debug and --no-database).
"""

import os
import yaml
from pathlib import Path
from typing import Any, Dict, Optional

CONFIG_ENV_VAR = "INVOICE_ENGINE_CONFIG"
DEFAULT_CONFIG_PATH = Path(__file__).parent / "settings.yaml"


class ConfigurationManager:
    """
    Process-wide settings for the invoice engine.

    Attributes:
        config_path (Path): Settings file the values were loaded from.

    Example:
        >>> config = ConfigurationManager()
        >>> config.get("ocr.timeout_seconds")
        30
        >>> config.set("pipeline.ok_threshold", 0.5)
        >>> config.get("pipeline.ok_threshold")
        0.5
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
        Load settings once per process.

        Args:
            config_path: Settings file. Falls back to $INVOICE_ENGINE_CONFIG,
                        then to the packaged settings.yaml.
        """
        if self._initialized:
            return

        self.config_path = Path(config_path or os.environ.get(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH)
        self._config = self._load(self.config_path)
        self._initialized = True

    @staticmethod
    def _load(path: Path) -> Dict[str, Any]:
        """
        Read a YAML settings file and anchor relative output paths at the cwd.

        Raises:
            FileNotFoundError: If the settings file doesn't exist.
            yaml.YAMLError: If the settings file is invalid.
        """
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        with open(path, 'r', encoding='utf-8') as f:
            config = yaml.safe_load(f) or {}

        # Run records land next to wherever the engine is invoked from
        for key, value in (config.get('paths') or {}).items():
            if value and not Path(value).is_absolute():
                config['paths'][key] = str(Path.cwd() / value)

        return config

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a value by dotted key, e.g. ``"quality.blur_threshold"``.

        Missing keys, and keys that descend into a non-mapping, give ``default``.
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
        Override a value by dotted key for the rest of the process.

        Intermediate sections are created as needed.
        """
        *parents, leaf = key.split('.')
        section = self._config
        for part in parents:
            if not isinstance(section.get(part), dict):
                section[part] = {}
            section = section[part]
        section[leaf] = value

    @classmethod
    def reset(cls) -> None:
        """Drop the loaded settings so the next access reloads them."""
        cls._instance = None


def get_config(key: str, default: Any = None) -> Any:
    """Shortcut for ``ConfigurationManager().get(key, default)``."""
    return ConfigurationManager().get(key, default)


__all__ = ['CONFIG_ENV_VAR', 'ConfigurationManager', 'get_config']
