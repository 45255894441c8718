"""Environment variable loading utilities for the mini-app factory."""

import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from miniapp_factory.core.exceptions import ConfigError
from miniapp_factory.utils.logging import get_logger

logger = get_logger("config.env_loader")


class EnvLoader:
    """Loads and parses environment variables for configuration."""

    def __init__(self, env_prefix: str = "MAF_", env_paths: list[Path] | None = None):
        """Initialize the environment loader.

        Args:
            env_prefix: Prefix for environment variables to load (default: "MAF_")
            env_paths: Optional list of .env file paths to load (default: cwd)
        """
        self.env_prefix = env_prefix
        self.env_paths = (
            env_paths
            if env_paths is not None
            else [Path.cwd() / ".env", Path.cwd() / ".env.local"]
        )

    def load_env_files(self) -> None:
        """Load .env files; later files override earlier ones.

        Raises:
            ConfigError: If .env file exists but cannot be loaded
        """
        loaded_any = False
        for env_path in self.env_paths:
            if not env_path.exists():
                continue
            try:
                load_dotenv(env_path, override=loaded_any)
            except OSError as e:
                raise ConfigError(f"Failed to load .env file {env_path}: {e}") from e
            logger.info(f"Loaded environment variables from {env_path}")
            loaded_any = True

        if not loaded_any:
            logger.debug("No .env files found to load")

    def get_config_from_env(self) -> dict[str, Any]:
        """Extract configuration from prefixed environment variables.

        ``MAF_AI__REQUEST_TIMEOUT=30`` becomes ``{"ai": {"request_timeout": 30}}``.
        """
        config_data: dict[str, Any] = {}
        env_count = 0

        for key, value in os.environ.items():
            if not key.startswith(self.env_prefix):
                continue
            config_key = key[len(self.env_prefix) :].lower()
            env_count += 1
            self._set_nested_value(config_data, config_key.split("__"), value)

        if env_count > 0:
            logger.debug(
                f"Loaded {env_count} environment variables with prefix '{self.env_prefix}'"
            )
        return config_data

    def get_secret(self, name: str | None) -> str | None:
        """Read an unprefixed secret such as a provider API key."""
        if not name:
            return None
        value = os.getenv(name)
        if value is None:
            return None
        return value.strip() or None

    def _set_nested_value(
        self, data: dict[str, Any], key_parts: list[str], value: str
    ) -> None:
        current = data
        for part in key_parts[:-1]:
            if part not in current:
                current[part] = {}
            elif not isinstance(current[part], dict):
                logger.warning(
                    f"Cannot set nested value for {'.'.join(key_parts)}: {part} is not a dictionary"
                )
                return
            current = current[part]

        current[key_parts[-1]] = self._convert_env_value(value)

    def _convert_env_value(self, value: str) -> Any:
        """Convert string environment variable value to bool, int, float or str."""
        if value.lower() in ("true", "false"):
            return value.lower() == "true"

        try:
            if "." not in value and "e" not in value.lower():
                return int(value)
            return float(value)
        except ValueError:
            pass

        return value if value != "null" else None
