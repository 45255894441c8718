"""
OpenAI-compatible chat completions driver

Every supported provider exposes an OpenAI-compatible ``/chat/completions``
endpoint, so one driver covers all of them. SDK-level retries are disabled:
retrying and falling back is the fallback executor's job.
"""

from collections.abc import AsyncIterator
from typing import Any, NoReturn

import httpx
import openai
from openai import AsyncOpenAI

from miniapp_factory.providers.base import (
    BaseDriver,
    ProviderLLMRequest,
    ProviderLLMResponse,
    ProviderLLMResponseDelta,
)
from miniapp_factory.providers.exceptions import (
    ProviderAuthError,
    ProviderConnectionError,
    ProviderEmptyResponseError,
    ProviderError,
    ProviderRateLimitError,
    ProviderTimeoutError,
)
from miniapp_factory.utils.logging import get_logger

logger = get_logger("providers.compatible_drivers")


class OpenAIChatCompletionsDriver(BaseDriver):
    """Driver for OpenAI-compatible chat.completions API using the openai library"""

    def __init__(
        self,
        api_key: str | None,
        base_url: str,
        *,
        provider_name: str | None = None,
        request_timeout: float = 120.0,
        client: AsyncOpenAI | None = None,
        **kwargs,
    ):
        super().__init__(api_key, base_url, provider_name=provider_name, **kwargs)
        self.provider_name = provider_name
        self.client = client or AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            max_retries=0,
            timeout=httpx.Timeout(request_timeout, connect=10.0),
        )

    async def generate(self, request: ProviderLLMRequest) -> ProviderLLMResponse:
        """Generate using OpenAI chat.completions API"""
        payload = request.to_payload()
        payload["stream"] = False

        try:
            response = await self.client.chat.completions.create(**payload)
        except Exception as e:
            self._handle_error(e)

        logger.debug(
            "Completion received",
            extra={"provider": self.provider_name, "model": request.model},
        )
        return self._parse_response(response, request.model)

    async def stream(
        self, request: ProviderLLMRequest
    ) -> AsyncIterator[ProviderLLMResponseDelta]:
        """Generate a streaming response using OpenAI chat.completions API"""
        payload = request.to_payload()
        payload["stream"] = True

        try:
            stream = await self.client.chat.completions.create(**payload)
            async for chunk in stream:
                if not chunk.choices:
                    continue
                choice = chunk.choices[0]
                yield ProviderLLMResponseDelta(
                    content=choice.delta.content or "",
                    finish_reason=choice.finish_reason,
                )
        except ProviderError:
            raise
        except Exception as e:
            self._handle_error(e)

    def _parse_response(self, response: Any, model: str) -> ProviderLLMResponse:
        choices = getattr(response, "choices", None) or []
        if not choices:
            raise ProviderEmptyResponseError(
                "Response contained no choices", provider=self.provider_name
            )

        choice = choices[0]
        content = getattr(choice.message, "content", None) or ""
        if not content.strip():
            raise ProviderEmptyResponseError(
                "Response contained no text content", provider=self.provider_name
            )

        usage = getattr(response, "usage", None)
        return ProviderLLMResponse(
            content=content,
            model=getattr(response, "model", None) or model,
            finish_reason=choice.finish_reason,
            usage=usage.model_dump() if hasattr(usage, "model_dump") else None,
            metadata={"response_id": getattr(response, "id", None)},
        )

    async def health_check(self) -> bool:
        """Check if the API is accessible"""
        try:
            await self.client.models.list()
            return True
        except (openai.OpenAIError, httpx.HTTPError) as e:
            logger.debug(f"Health check failed for {self.provider_name}: {e}")
            return False

    async def aclose(self) -> None:
        await self.client.close()

    def _extract_status_code(self, e: Exception) -> int | None:
        status_code = getattr(e, "status_code", None)
        if status_code is None:
            response = getattr(e, "response", None)
            status_code = getattr(response, "status_code", None)
        return int(status_code) if status_code is not None else None

    def _handle_http_error(self, status_code: int, error_message: str) -> NoReturn:
        """Map an HTTP status to a provider exception."""
        provider = self.provider_name

        if status_code in (401, 403):
            raise ProviderAuthError(
                f"Invalid API key (HTTP {status_code})",
                provider=provider,
                status_code=status_code,
            )
        if status_code == 408:
            raise ProviderTimeoutError(
                f"Request timed out (HTTP {status_code})",
                provider=provider,
                status_code=status_code,
            )
        if status_code == 429:
            raise ProviderRateLimitError(
                f"Rate limit exceeded (HTTP {status_code})", provider=provider
            )
        if 500 <= status_code < 600:
            raise ProviderConnectionError(
                f"Server error (HTTP {status_code})",
                provider=provider,
                status_code=status_code,
            )

        raise ProviderError(
            f"HTTP {status_code} error: {error_message}",
            provider=provider,
            status_code=status_code,
        )

    def _handle_error(self, e: Exception) -> NoReturn:
        """Translate SDK/transport exceptions into provider exceptions."""
        provider = self.provider_name

        if isinstance(e, openai.APITimeoutError | httpx.TimeoutException):
            raise ProviderTimeoutError("Request timed out", provider=provider) from e
        if isinstance(e, openai.APIConnectionError | httpx.TransportError):
            raise ProviderConnectionError(
                f"Connection error: {e}", provider=provider
            ) from e

        status_code = self._extract_status_code(e)
        if status_code is not None:
            logger.debug(f"{provider or 'unknown'} answered HTTP {status_code}")
            try:
                self._handle_http_error(status_code, str(e))
            except ProviderError as mapped:
                raise mapped from e

        logger.error(f"API error in {provider or 'unknown'}: {e}", exc_info=True)
        raise ProviderError(f"API error: {e}", provider=provider) from e
