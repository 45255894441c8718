"""
Provider registry: which providers exist, how they are configured, and
whether each one is usable right now.
"""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType

from miniapp_factory.config.env_loader import EnvLoader
from miniapp_factory.config.schemas import AIConfig
from miniapp_factory.providers.base import (
    BaseProvider,
    BoundModel,
    ProviderId,
    ProviderState,
)
from miniapp_factory.providers.exceptions import (
    ProviderConfigurationError,
    ProviderNotFoundError,
)
from miniapp_factory.utils.logging import get_logger

logger = get_logger("providers.registry")

# Module-level registry for provider classes (filled by the decorator)
_provider_registry: dict[ProviderId, type[BaseProvider]] = {}


def register_provider(provider_id: ProviderId | str):
    """Decorator to register a provider class under a provider id"""

    def decorator(cls: type[BaseProvider]) -> type[BaseProvider]:
        _provider_registry[ProviderId(provider_id)] = cls
        logger.debug(f"Registered builtin provider: {ProviderId(provider_id).value}")
        return cls

    return decorator


def list_providers() -> list[ProviderId]:
    """Return the ids of all registered provider classes."""
    return list(_provider_registry)


def get_provider_class(provider_id: ProviderId | str) -> type[BaseProvider]:
    try:
        return _provider_registry[ProviderId(provider_id)]
    except (KeyError, ValueError) as e:
        raise ProviderNotFoundError(
            f"Unknown provider: {provider_id}", provider=str(provider_id)
        ) from e


def _sanitize_api_keys(
    api_keys: Mapping[str, str | None] | None,
) -> dict[ProviderId, str]:
    known = {p.value for p in ProviderId}
    keys: dict[ProviderId, str] = {}
    for name, value in (api_keys or {}).items():
        name = name.value if isinstance(name, ProviderId) else str(name)
        if name not in known or not isinstance(value, str):
            continue
        if value.strip():
            keys[ProviderId(name)] = value.strip()
    return keys


class ProviderRegistry:
    """Effective provider settings built from config, environment and BYOK keys.

    The registry is built once and read many times; :meth:`snapshot` returns
    an immutable view. Provider instances (and the HTTP clients inside their
    drivers) are created lazily and owned by the registry, so :meth:`aclose`
    releases them.
    """

    def __init__(
        self,
        config: AIConfig | None = None,
        *,
        api_keys: Mapping[str, str | None] | None = None,
        env_loader: EnvLoader | None = None,
    ):
        self.config = config or AIConfig()
        self._env_loader = env_loader or EnvLoader()
        self._api_keys = _sanitize_api_keys(api_keys)
        self._states: Mapping[ProviderId, ProviderState] = MappingProxyType(
            self._build_states()
        )
        self._providers: dict[ProviderId, BaseProvider] = {}

    def _build_states(self) -> dict[ProviderId, ProviderState]:
        states: dict[ProviderId, ProviderState] = {}
        for provider_id in self.config.provider_order:
            provider_cls = _provider_registry.get(provider_id)
            if provider_cls is None:
                logger.debug(f"No provider class registered for {provider_id.value}")
                continue

            settings = self.config.provider(provider_id)
            api_key_env = settings.api_key_env or provider_cls.default_api_key_env
            api_key = self._api_keys.get(provider_id) or self._env_loader.get_secret(
                api_key_env
            )

            models: list[str] = []
            for model in (*provider_cls.default_models, *settings.models):
                if model not in models:
                    models.append(model)

            states[provider_id] = ProviderState(
                provider_id=provider_id,
                enabled=settings.enabled,
                api_key=api_key,
                default_model=settings.default_model or provider_cls.default_model,
                fallback_model=settings.fallback_model,
                models=tuple(models),
                api_key_env=api_key_env,
                base_url=settings.base_url or provider_cls.default_base_url,
            )
        return states

    def with_api_keys(self, api_keys: Mapping[str, str | None]) -> ProviderRegistry:
        """Return a new registry where ``api_keys`` take precedence (bring-your-own-key)."""
        merged: dict[str, str | None] = {k.value: v for k, v in self._api_keys.items()}
        merged.update({str(getattr(k, "value", k)): v for k, v in api_keys.items()})
        return ProviderRegistry(
            self.config, api_keys=merged, env_loader=self._env_loader
        )

    def snapshot(self) -> Mapping[ProviderId, ProviderState]:
        return self._states

    def state(self, provider_id: ProviderId | str) -> ProviderState:
        try:
            return self._states[ProviderId(provider_id)]
        except (KeyError, ValueError) as e:
            raise ProviderNotFoundError(
                f"Unknown provider: {provider_id}", provider=str(provider_id)
            ) from e

    def usable_providers(self) -> list[ProviderId]:
        """Usable providers in configured priority order."""
        return [pid for pid, state in self._states.items() if state.usable]

    def find_provider_for_model(self, model: str) -> ProviderId | None:
        """First usable provider (by priority) whose catalog lists ``model``."""
        for provider_id in self.usable_providers():
            if model in self._states[provider_id].catalog:
                return provider_id
        return None

    def get_provider(self, provider_id: ProviderId | str) -> BaseProvider:
        provider_id = ProviderId(provider_id)
        if provider_id in self._providers:
            return self._providers[provider_id]

        state = self.state(provider_id)
        if not state.usable:
            raise ProviderConfigurationError(
                "Provider is disabled or has no API key", provider=provider_id.value
            )

        provider = get_provider_class(provider_id)(
            state.api_key,
            base_url=state.base_url,
            request_timeout=self.config.request_timeout,
        )
        self._providers[provider_id] = provider
        return provider

    def create_generator(self, provider_id: ProviderId | str, model: str) -> BoundModel:
        """Bind ``model`` to the provider, producing a text generator."""
        return BoundModel(
            provider=self.get_provider(provider_id),
            model=model,
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
        )

    async def aclose(self) -> None:
        providers = list(self._providers.values())
        self._providers.clear()
        for provider in providers:
            await provider.aclose()
