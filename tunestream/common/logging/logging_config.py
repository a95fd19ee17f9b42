"""Centralized logging configuration management."""

import os
import yaml
from pathlib import Path
from typing import Any, Dict, Optional

CONFIG_FILENAME = "logging-config.yaml"
TRUE_VALUES = ("true", "1", "yes")


def _find_config_file() -> Optional[str]:
    """LOGGING_CONFIG, else the nearest logging-config.yaml above this package."""
    if env_path := os.getenv("LOGGING_CONFIG"):
        return env_path
    for directory in list(Path(__file__).parents)[:5]:
        candidate = directory / CONFIG_FILENAME
        if candidate.exists():
            return str(candidate)
    return None


class LoggingConfig:
    """
    Log levels and output format per component.

    Lookup order for a setting, first match wins:
        1. ``LOG_LEVEL_<COMPONENT>`` / ``LOG_JSON_FORMAT_<COMPONENT>``
        2. ``LOG_LEVEL`` / ``LOG_JSON_FORMAT`` (default component only)
        3. ``components.<component>`` in the YAML file
        4. ``default_level`` / ``json_format`` in the YAML file
    """

    _instance: Optional['LoggingConfig'] = None

    def __init__(self, config_path: Optional[str] = None):
        config_path = config_path or _find_config_file()
        self._config: Dict[str, Any] = {}
        if config_path and Path(config_path).exists():
            with open(config_path) as f:
                self._config = yaml.safe_load(f) or {}

    @classmethod
    def get_instance(cls) -> 'LoggingConfig':
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        cls._instance = None

    def _env(self, name: str, component: str) -> Optional[str]:
        suffix = component.upper().replace('-', '_')
        value = os.getenv(f"{name}_{suffix}")
        if not value and component == 'default':
            value = os.getenv(name)
        return value or None

    def _component(self, component: str) -> Any:
        return (self._config.get('components') or {}).get(component)

    def get_level(self, component: str = 'default') -> str:
        """Log level name (DEBUG, INFO, WARNING, ERROR) for a component."""
        if env_level := self._env('LOG_LEVEL', component):
            return env_level.upper()

        comp_cfg = self._component(component)
        if isinstance(comp_cfg, dict) and 'level' in comp_cfg:
            return str(comp_cfg['level']).upper()
        if isinstance(comp_cfg, str):
            return comp_cfg.upper()

        return str(self._config.get('default_level', 'INFO')).upper()

    def get_json_format(self, component: str = 'default') -> bool:
        """Whether console output for a component is JSON."""
        if env_json := self._env('LOG_JSON_FORMAT', component):
            return env_json.lower() in TRUE_VALUES

        comp_cfg = self._component(component)
        if isinstance(comp_cfg, dict) and 'json_format' in comp_cfg:
            return bool(comp_cfg['json_format'])

        return bool(self._config.get('json_format', False))

    def get_module_levels(self) -> Dict[str, str]:
        """Per-logger level overrides (e.g. quieter uvicorn.access)."""
        return {
            name: str(level).upper()
            for name, level in (self._config.get('modules') or {}).items()
        }


def get_logging_config() -> LoggingConfig:
    """Process-wide LoggingConfig."""
    return LoggingConfig.get_instance()
