"""Configuration manager with layered YAML/env/session support."""

from __future__ import annotations

from copy import deepcopy
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from miniapp_factory.config.env_loader import EnvLoader
from miniapp_factory.config.schemas import AppConfig
from miniapp_factory.core.exceptions import ConfigError
from miniapp_factory.utils.logging import get_logger

logger = get_logger("config.config_manager")

DEFAULTS_PATH = Path(__file__).with_name("defaults.yaml")


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge ``override`` into a copy of ``base``."""
    merged = deepcopy(base)
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = deepcopy(value)
    return merged


class ConfigManager:
    """Resolve :class:`AppConfig` from layered sources.

    Layer priority (highest to lowest):
    1. Session overrides (dot-notation keys)
    2. Environment variables (``MAF_`` prefix, ``__`` nesting)
    3. User YAML files, in the order given
    4. Packaged ``defaults.yaml``
    """

    def __init__(
        self,
        config_paths: list[Path | str] | None = None,
        env_loader: EnvLoader | None = None,
        defaults_path: Path | None = None,
    ):
        self.config_paths = [Path(p).expanduser() for p in (config_paths or [])]
        self.env_loader = env_loader or EnvLoader()
        self._defaults_path = defaults_path or DEFAULTS_PATH
        self._global_config: AppConfig | None = None
        self._session_overrides: dict[str, Any] = {}

    @property
    def global_config(self) -> AppConfig:
        if self._global_config is None:
            return self.load_global_config()
        return self._global_config

    def load_global_config(self) -> AppConfig:
        """Load and merge configuration from defaults, YAML files and env.

        Raises:
            ConfigError: If a file is unreadable or the merged config is invalid
        """
        logger.debug("Loading global configuration")
        self.env_loader.load_env_files()

        config_data = self._load_yaml_file(self._defaults_path) or {}

        for config_path in self.config_paths:
            yaml_data = self._load_yaml_file(config_path)
            if yaml_data is None:
                logger.debug(f"YAML file {config_path} does not exist, skipping")
                continue
            config_data = _deep_merge(config_data, yaml_data)
            logger.debug(f"Merged YAML config from {config_path}")

        env_data = self.env_loader.get_config_from_env()
        if env_data:
            config_data = _deep_merge(config_data, env_data)

        try:
            config = AppConfig.from_dict(config_data)
        except ValidationError as e:
            error_msg = f"Invalid global configuration: {e}"
            logger.error(error_msg)
            raise ConfigError(error_msg) from e

        self._global_config = config
        return config

    def set_session_overrides(self, overrides: dict[str, Any]) -> None:
        """Validate and store dot-notation overrides such as ``{"ai.request_timeout": 30}``."""
        if overrides:
            data = _deep_merge(
                self.global_config.to_dict(), self._expand_overrides(overrides)
            )
            try:
                AppConfig.from_dict(data)
            except ValidationError as e:
                raise ConfigError(f"Invalid session overrides: {e}") from e
        self._session_overrides = deepcopy(overrides)

    def clear_session_overrides(self) -> None:
        self._session_overrides.clear()

    def resolve(self, overrides: dict[str, Any] | None = None) -> AppConfig:
        """Return the global config with session and call overrides applied."""
        data = self.global_config.to_dict()
        for layer in (self._session_overrides, overrides or {}):
            if layer:
                data = _deep_merge(data, self._expand_overrides(layer))
        try:
            return AppConfig.from_dict(data)
        except ValidationError as e:
            raise ConfigError(f"Invalid resolved configuration: {e}") from e

    def _load_yaml_file(self, path: Path) -> dict[str, Any] | None:
        if not path.exists():
            return None
        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except (yaml.YAMLError, OSError) as e:
            raise ConfigError(f"Failed to load config from {path}: {e}") from e

        if data is None:
            logger.warning(f"Config file {path} is empty")
            return {}
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")
        return data

    @staticmethod
    def _expand_overrides(overrides: dict[str, Any]) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for key, value in overrides.items():
            current = result
            parts = key.split(".")
            for part in parts[:-1]:
                current = current.setdefault(part, {})
            current[parts[-1]] = value
        return result
