"""Configuration loading for the mini-app factory."""

from .config_manager import ConfigManager
from .env_loader import EnvLoader
from .schemas import (
    DEFAULT_PROVIDER_ORDER,
    AIConfig,
    AppConfig,
    ProviderConfig,
    ProviderId,
    RuntimeConfig,
)

__all__ = [
    "DEFAULT_PROVIDER_ORDER",
    "AIConfig",
    "AppConfig",
    "ConfigManager",
    "EnvLoader",
    "ProviderConfig",
    "ProviderId",
    "RuntimeConfig",
]
