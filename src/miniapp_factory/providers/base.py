"""
Base classes for text-generation providers
"""

from __future__ import annotations

import abc
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, Field, field_validator

from miniapp_factory.config.schemas import ProviderId
from miniapp_factory.utils.logging import get_logger

logger = get_logger("providers.base")

__all__ = [
    "BaseDriver",
    "BaseProvider",
    "BoundModel",
    "ProviderId",
    "ProviderLLMRequest",
    "ProviderLLMResponse",
    "ProviderLLMResponseDelta",
    "ProviderState",
]


class ProviderLLMRequest(BaseModel):
    """Standardized request format for all providers with validation."""

    messages: list[dict[str, Any]] = Field(
        description="List of message objects with role and content"
    )
    model: str = Field(
        description="Model identifier to use for generation", min_length=1
    )
    temperature: float = Field(
        default=0.7,
        ge=0.0,
        le=2.0,
        description="Sampling temperature for response generation",
    )
    max_tokens: int | None = Field(default=None, gt=0)

    @field_validator("messages")
    @classmethod
    def validate_messages(cls, v):
        """Ensure messages are properly formatted"""
        if not v:
            raise ValueError("messages cannot be empty")
        for msg in v:
            if not isinstance(msg, dict) or "role" not in msg or "content" not in msg:
                raise ValueError("Each message must have 'role' and 'content' fields")
        return v

    def to_payload(self) -> dict[str, Any]:
        """Build the keyword arguments for ``chat.completions.create``."""
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": self.messages,
            "temperature": self.temperature,
        }
        if self.max_tokens is not None:
            payload["max_tokens"] = self.max_tokens
        return payload


class ProviderLLMResponse(BaseModel):
    """Standardized response format from all providers"""

    content: str = Field(description="Generated text content")
    model: str = Field(description="Model that generated the response", min_length=1)
    finish_reason: str | None = None
    usage: dict[str, Any] | None = None
    metadata: dict[str, Any] | None = None


class ProviderLLMResponseDelta(BaseModel):
    """Standardized streaming response delta format"""

    content: str = ""
    finish_reason: str | None = None


class BaseDriver(abc.ABC):
    """Base class for drivers that perform the actual API calls"""

    def __init__(self, api_key: str | None, base_url: str, **kwargs):
        self.api_key = api_key
        self.base_url = base_url
        self.kwargs = kwargs

    @abc.abstractmethod
    async def generate(self, request: ProviderLLMRequest) -> ProviderLLMResponse:
        """Generate a response from the LLM"""

    async def stream(
        self, request: ProviderLLMRequest
    ) -> AsyncIterator[ProviderLLMResponseDelta]:
        """Generate a streaming response from the LLM.

        Drivers without native streaming yield the full response as one delta.
        """
        response = await self.generate(request)
        yield ProviderLLMResponseDelta(
            content=response.content, finish_reason=response.finish_reason
        )

    @abc.abstractmethod
    async def health_check(self) -> bool:
        """Check if the provider is healthy and accessible"""

    async def aclose(self) -> None:
        """Release network resources held by the driver."""


@dataclass(frozen=True)
class ProviderState:
    """Read-only view of one provider's effective settings."""

    provider_id: ProviderId
    enabled: bool
    api_key: str | None
    default_model: str
    fallback_model: str | None = None
    models: tuple[str, ...] = ()
    api_key_env: str | None = None
    base_url: str = ""

    @property
    def usable(self) -> bool:
        return self.enabled and bool(self.api_key)

    @property
    def catalog(self) -> tuple[str, ...]:
        """Every model this provider is known to serve, default first."""
        seen: list[str] = []
        for model in (self.default_model, self.fallback_model, *self.models):
            if model and model not in seen:
                seen.append(model)
        return tuple(seen)

    def __repr__(self) -> str:
        return (
            f"ProviderState(provider_id={self.provider_id.value!r}, "
            f"enabled={self.enabled}, api_key={'***' if self.api_key else None}, "
            f"default_model={self.default_model!r}, "
            f"fallback_model={self.fallback_model!r})"
        )


class BaseProvider(abc.ABC):
    """Base class for providers.

    Subclasses declare their endpoint and model defaults as class attributes
    and implement :meth:`_create_driver_instance`. The driver is created on
    first use so that building a provider never touches the network.
    """

    provider_id: ProviderId
    default_base_url: str = ""
    default_api_key_env: str | None = None
    default_model: str = ""
    default_models: tuple[str, ...] = ()

    def __init__(
        self,
        api_key: str | None,
        *,
        base_url: str | None = None,
        request_timeout: float = 120.0,
    ):
        self.name = self.provider_id.value
        self.api_key = api_key
        self.base_url = base_url or self.default_base_url
        self.request_timeout = request_timeout
        self._driver: BaseDriver | None = None

    @abc.abstractmethod
    def _create_driver_instance(self) -> BaseDriver:
        """Create and return a driver instance for this provider."""

    @property
    def driver(self) -> BaseDriver:
        if self._driver is None:
            self._driver = self._create_driver_instance()
        return self._driver

    async def generate(self, request: ProviderLLMRequest) -> ProviderLLMResponse:
        """Generate a response using this provider"""
        return await self.driver.generate(request)

    async def stream(
        self, request: ProviderLLMRequest
    ) -> AsyncIterator[ProviderLLMResponseDelta]:
        """Generate a streaming response using this provider"""
        async for delta in self.driver.stream(request):
            yield delta

    async def health_check(self) -> bool:
        return await self.driver.health_check()

    async def aclose(self) -> None:
        if self._driver is not None:
            await self._driver.aclose()
            self._driver = None


@dataclass
class BoundModel:
    """A provider bound to one model: the text-generation capability.

    Exposes ``generate(messages) -> str`` and ``stream(messages)`` which
    yields text chunks.
    """

    provider: BaseProvider
    model: str
    temperature: float = 0.7
    max_tokens: int | None = None

    def _request(self, messages: list[dict[str, Any]]) -> ProviderLLMRequest:
        return ProviderLLMRequest(
            messages=messages,
            model=self.model,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )

    async def generate(self, messages: list[dict[str, Any]]) -> str:
        response = await self.provider.generate(self._request(messages))
        return response.content

    async def stream(self, messages: list[dict[str, Any]]) -> AsyncIterator[str]:
        async for delta in self.provider.stream(self._request(messages)):
            if delta.content:
                yield delta.content
