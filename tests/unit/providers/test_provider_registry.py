"""Unit tests for the provider registry."""

from types import MappingProxyType
from unittest.mock import AsyncMock

import pytest

from miniapp_factory.providers import (
    BoundModel,
    ProviderConfigurationError,
    ProviderId,
    ProviderNotFoundError,
    get_provider_class,
    list_providers,
)
from miniapp_factory.providers.builtin_providers import GoogleProvider, GroqProvider


class TestProviderClasses:
    def test_all_builtin_providers_registered(self):
        assert set(list_providers()) == set(ProviderId)

    def test_get_provider_class(self):
        assert get_provider_class("groq") is GroqProvider
        assert get_provider_class(ProviderId.GOOGLE) is GoogleProvider

    def test_get_unknown_provider_class(self):
        with pytest.raises(ProviderNotFoundError):
            get_provider_class("mystery")


class TestProviderRegistry:
    def test_no_keys_means_nothing_usable(self, make_registry):
        registry = make_registry(api_keys={})

        assert registry.usable_providers() == []
        assert all(not s.usable for s in registry.snapshot().values())

    def test_byok_keys_make_providers_usable(self, make_registry):
        registry = make_registry(api_keys={"groq": "  gsk-1 ", "cerebras": ""})

        assert registry.usable_providers() == [ProviderId.GROQ]
        assert registry.state("groq").api_key == "gsk-1"

    def test_env_keys_are_read(self, make_registry, monkeypatch):
        monkeypatch.setenv("GOOGLE_GENERATIVE_AI_API_KEY", "env-google")

        registry = make_registry(api_keys={})

        assert registry.usable_providers() == [ProviderId.GOOGLE]
        assert registry.state(ProviderId.GOOGLE).api_key_env == (
            "GOOGLE_GENERATIVE_AI_API_KEY"
        )

    def test_byok_key_wins_over_env(self, make_registry, monkeypatch):
        monkeypatch.setenv("GROQ_API_KEY", "env-groq")

        registry = make_registry(api_keys={"groq": "byok-groq"})

        assert registry.state("groq").api_key == "byok-groq"

    def test_custom_api_key_env(self, make_registry, monkeypatch):
        monkeypatch.setenv("MY_GROQ", "custom")

        registry = make_registry(
            api_keys={}, providers={"groq": {"api_key_env": "MY_GROQ"}}
        )

        assert registry.state("groq").api_key == "custom"

    def test_unknown_byok_entries_ignored(self, make_registry):
        registry = make_registry(api_keys={"mystery": "x", "groq": None})
        assert registry.usable_providers() == []

    def test_disabled_provider_not_usable(self, make_registry):
        registry = make_registry(providers={"google": {"enabled": False}})

        assert ProviderId.GOOGLE not in registry.usable_providers()
        assert registry.state("google").api_key == "g-key"

    def test_snapshot_follows_provider_order_and_is_read_only(self, make_registry):
        registry = make_registry(provider_order=["cerebras", "groq"])
        snapshot = registry.snapshot()

        assert list(snapshot) == [
            ProviderId.CEREBRAS,
            ProviderId.GROQ,
            ProviderId.GOOGLE,
            ProviderId.OPENROUTER,
        ]
        assert isinstance(snapshot, MappingProxyType)
        with pytest.raises(TypeError):
            snapshot[ProviderId.GROQ] = None  # type: ignore[index]

    def test_config_models_and_defaults(self, make_registry):
        registry = make_registry(
            providers={
                "groq": {
                    "default_model": "llama-3.3-70b-versatile",
                    "fallback_model": "qwen/qwen3-32b",
                    "models": ["custom-model"],
                }
            }
        )
        state = registry.state("groq")

        assert state.default_model == "llama-3.3-70b-versatile"
        assert state.fallback_model == "qwen/qwen3-32b"
        assert "custom-model" in state.models
        assert state.catalog[0] == "llama-3.3-70b-versatile"
        assert len(state.catalog) == len(set(state.catalog))

    def test_state_repr_masks_key(self, make_registry):
        text = repr(make_registry().state("groq"))

        assert "gsk-key" not in text
        assert "***" in text

    def test_state_unknown_provider(self, make_registry):
        with pytest.raises(ProviderNotFoundError):
            make_registry().state("nope")

    def test_find_provider_for_model(self, make_registry):
        registry = make_registry()

        assert registry.find_provider_for_model("qwen-3-32b") == ProviderId.CEREBRAS
        assert registry.find_provider_for_model("not-a-model") is None

    def test_find_provider_for_model_skips_unusable(self, make_registry):
        registry = make_registry(api_keys={"google": "g"})
        assert registry.find_provider_for_model("qwen-3-32b") is None

    def test_with_api_keys_returns_new_registry(self, make_registry):
        registry = make_registry(api_keys={})
        updated = registry.with_api_keys({"openrouter": "or"})

        assert registry.usable_providers() == []
        assert updated.usable_providers() == [ProviderId.OPENROUTER]

    def test_get_provider_is_cached_and_configured(self, make_registry):
        registry = make_registry(request_timeout=30)

        provider = registry.get_provider("groq")

        assert isinstance(provider, GroqProvider)
        assert provider.api_key == "gsk-key"
        assert provider.base_url == "https://api.groq.com/openai/v1"
        assert provider.request_timeout == 30
        assert registry.get_provider(ProviderId.GROQ) is provider

    def test_get_provider_unusable_raises(self, make_registry):
        registry = make_registry(api_keys={})

        with pytest.raises(ProviderConfigurationError):
            registry.get_provider("groq")

    def test_create_generator_binds_model(self, make_registry):
        registry = make_registry(temperature=0.2, max_tokens=512)

        generator = registry.create_generator("cerebras", "qwen-3-32b")

        assert isinstance(generator, BoundModel)
        assert generator.model == "qwen-3-32b"
        assert generator.temperature == 0.2
        assert generator.max_tokens == 512
        assert generator.provider is registry.get_provider("cerebras")

    async def test_aclose_closes_created_providers(self, make_registry):
        registry = make_registry()
        provider = registry.get_provider("groq")
        provider.aclose = AsyncMock()

        await registry.aclose()

        provider.aclose.assert_awaited_once()
        assert registry.get_provider("groq") is not provider
