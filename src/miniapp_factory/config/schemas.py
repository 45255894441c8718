"""Configuration schemas for the mini-app factory."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator


class ProviderId(str, Enum):
    """Closed set of text-generation providers."""

    GOOGLE = "google"
    GROQ = "groq"
    OPENROUTER = "openrouter"
    CEREBRAS = "cerebras"


DEFAULT_PROVIDER_ORDER: list[ProviderId] = [
    ProviderId.GOOGLE,
    ProviderId.GROQ,
    ProviderId.OPENROUTER,
    ProviderId.CEREBRAS,
]


def _dedupe_strings(values: list[Any]) -> list[str]:
    seen: set[str] = set()
    result: list[str] = []
    for value in values:
        if not isinstance(value, str):
            continue
        stripped = value.strip()
        if stripped and stripped not in seen:
            seen.add(stripped)
            result.append(stripped)
    return result


class ProviderConfig(BaseModel):
    """Per-provider overrides.

    Unset fields fall back to the defaults of the registered provider class.
    """

    enabled: bool = Field(default=True, description="Whether the provider may be used")
    api_key_env: str | None = Field(
        default=None, description="Environment variable holding the API key"
    )
    base_url: str | None = Field(
        default=None, description="OpenAI-compatible endpoint for the provider"
    )
    default_model: str | None = Field(
        default=None, description="Model used for the provider's primary step"
    )
    fallback_model: str | None = Field(
        default=None, description="Optional second model tried after the default"
    )
    models: list[str] = Field(
        default_factory=list, description="Additional models offered for selection"
    )

    @field_validator("default_model", "fallback_model", "api_key_env", "base_url")
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        return v or None

    @field_validator("models", mode="before")
    @classmethod
    def sanitize_models(cls, v: Any) -> list[str]:
        if v is None:
            return []
        if isinstance(v, str):
            v = v.split(",")
        if not isinstance(v, list):
            raise ValueError("models must be a list of model names")
        return _dedupe_strings(v)


class AIConfig(BaseModel):
    """Provider ordering, per-provider settings and request policy."""

    provider_order: list[ProviderId] = Field(
        default_factory=lambda: list(DEFAULT_PROVIDER_ORDER),
        description="Priority order used to build the fallback chain",
    )
    providers: dict[ProviderId, ProviderConfig] = Field(default_factory=dict)
    request_timeout: float = Field(
        default=120.0, gt=0.0, description="Per-attempt deadline in seconds"
    )
    retry_base_delay: float = Field(
        default=0.5, ge=0.0, description="Linear backoff base between retries"
    )
    retry_provider: ProviderId | None = Field(
        default=ProviderId.GOOGLE,
        description="Provider whose steps are retried once on transient errors",
    )
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int | None = Field(default=None, gt=0)

    @field_validator("provider_order", mode="before")
    @classmethod
    def sanitize_provider_order(cls, v: Any) -> list[str]:
        """Drop unknown ids and duplicates, then append missing providers."""
        if v is None:
            v = []
        if isinstance(v, str):
            v = v.split(",")
        if not isinstance(v, list):
            raise ValueError("provider_order must be a list of provider ids")

        known = {p.value for p in ProviderId}
        order: list[str] = []
        for item in v:
            value = item.value if isinstance(item, ProviderId) else str(item).strip()
            if value in known and value not in order:
                order.append(value)
        for provider_id in DEFAULT_PROVIDER_ORDER:
            if provider_id.value not in order:
                order.append(provider_id.value)
        return order

    @field_validator("providers", mode="before")
    @classmethod
    def drop_unknown_providers(cls, v: Any) -> dict[str, Any]:
        if v is None:
            return {}
        if not isinstance(v, dict):
            raise ValueError("providers must be a mapping of provider id to settings")
        known = {p.value for p in ProviderId}
        return {
            (k.value if isinstance(k, ProviderId) else str(k)): cfg
            for k, cfg in v.items()
            if (k.value if isinstance(k, ProviderId) else str(k)) in known
        }

    def provider(self, provider_id: ProviderId) -> ProviderConfig:
        """Return the settings for ``provider_id`` (defaults when unset)."""
        return self.providers.get(provider_id) or ProviderConfig()


class RuntimeConfig(BaseModel):
    """Configuration for runtime behavior and settings."""

    log_level: str = Field(default="INFO", description="Logging level")
    projects_root: str = Field(
        default=".", description="Directory holding one sub-directory per project"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"log_level must be one of {sorted(valid_levels)}")
        return upper


class AppConfig(BaseModel):
    """Main application configuration."""

    ai: AIConfig = Field(default_factory=AIConfig)
    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AppConfig:
        return cls.model_validate(data)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")
