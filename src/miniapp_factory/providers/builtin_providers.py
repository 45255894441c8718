"""
Built-in provider implementations

All four providers speak the OpenAI chat completions protocol; they differ
only in endpoint, credential variable and model catalog.
"""

from miniapp_factory.providers.base import BaseDriver, BaseProvider, ProviderId
from miniapp_factory.providers.compatible_drivers import OpenAIChatCompletionsDriver
from miniapp_factory.providers.provider_registry import register_provider


class OpenAICompatibleProvider(BaseProvider):
    """Provider backed by :class:`OpenAIChatCompletionsDriver`"""

    def _create_driver_instance(self) -> BaseDriver:
        return OpenAIChatCompletionsDriver(
            api_key=self.api_key,
            base_url=self.base_url,
            provider_name=self.name,
            request_timeout=self.request_timeout,
        )


@register_provider(ProviderId.GOOGLE)
class GoogleProvider(OpenAICompatibleProvider):
    """Gemini models through Google's OpenAI-compatible endpoint"""

    provider_id = ProviderId.GOOGLE
    default_base_url = "https://generativelanguage.googleapis.com/v1beta/openai/"
    default_api_key_env = "GOOGLE_GENERATIVE_AI_API_KEY"
    default_model = "gemini-3-flash-preview"
    default_models = (
        "gemini-3-flash-preview",
        "gemini-3-pro-preview",
        "gemini-2.5-pro",
        "gemini-2.5-flash",
        "gemma-3-27b",
    )


@register_provider(ProviderId.GROQ)
class GroqProvider(OpenAICompatibleProvider):
    """Provider for the Groq API"""

    provider_id = ProviderId.GROQ
    default_base_url = "https://api.groq.com/openai/v1"
    default_api_key_env = "GROQ_API_KEY"
    default_model = "moonshotai/kimi-k2-instruct-0905"
    default_models = (
        "moonshotai/kimi-k2-instruct-0905",
        "qwen/qwen3-32b",
        "llama-3.3-70b-versatile",
        "meta-llama/llama-4-scout-17b-16e-instruct",
    )


@register_provider(ProviderId.OPENROUTER)
class OpenRouterProvider(OpenAICompatibleProvider):
    """Provider for OpenRouter API"""

    provider_id = ProviderId.OPENROUTER
    default_base_url = "https://openrouter.ai/api/v1"
    default_api_key_env = "OPENROUTER_API_KEY"
    default_model = "openai/gpt-oss-120b"
    default_models = (
        "openai/gpt-oss-120b",
        "anthropic/claude-3.5-sonnet",
        "google/gemini-2.5-pro",
        "meta-llama/llama-3.3-70b-instruct",
    )


@register_provider(ProviderId.CEREBRAS)
class CerebrasProvider(OpenAICompatibleProvider):
    """Provider for the Cerebras inference API"""

    provider_id = ProviderId.CEREBRAS
    default_base_url = "https://api.cerebras.ai/v1"
    default_api_key_env = "CEREBRAS_API_KEY"
    default_model = "llama-3.3-70b"
    default_models = ("llama-3.3-70b", "qwen-3-32b", "llama3.1-8b")
