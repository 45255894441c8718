from __future__ import annotations

import pytest

from miniapp_factory.config import EnvLoader
from miniapp_factory.config.schemas import AIConfig
from miniapp_factory.providers import ProviderRegistry

ALL_KEYS = {
    "google": "g-key",
    "groq": "gsk-key",
    "openrouter": "or-key",
    "cerebras": "cb-key",
}


@pytest.fixture
def make_registry():
    """Build a registry from config overrides and BYOK keys, ignoring .env files."""

    def _make(api_keys=None, **config) -> ProviderRegistry:
        return ProviderRegistry(
            AIConfig(**config),
            api_keys=ALL_KEYS if api_keys is None else api_keys,
            env_loader=EnvLoader(env_paths=[]),
        )

    return _make
