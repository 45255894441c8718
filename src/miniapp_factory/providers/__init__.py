"""
Text-generation providers

Registry of OpenAI-compatible providers plus the fallback chain that decides
which provider/model pair to try, and in what order.
"""

from .base import (
    BaseDriver,
    BaseProvider,
    BoundModel,
    ProviderId,
    ProviderLLMRequest,
    ProviderLLMResponse,
    ProviderState,
)
from .exceptions import (
    ProviderAuthError,
    ProviderConfigurationError,
    ProviderConnectionError,
    ProviderEmptyResponseError,
    ProviderError,
    ProviderNotFoundError,
    ProviderRateLimitError,
    ProviderTimeoutError,
)
from .provider_registry import (
    ProviderRegistry,
    get_provider_class,
    list_providers,
    register_provider,
)

# Import provider modules to trigger decorator registration
from . import builtin_providers  # noqa: E402,F401  isort: skip
from .fallback import (  # noqa: E402  isort: skip
    FallbackChain,
    FallbackExecutor,
    FallbackStep,
    build_fallback_chain,
    is_retryable_error,
)

__all__ = [
    "BaseDriver",
    "BaseProvider",
    "BoundModel",
    "FallbackChain",
    "FallbackExecutor",
    "FallbackStep",
    "ProviderAuthError",
    "ProviderConfigurationError",
    "ProviderConnectionError",
    "ProviderEmptyResponseError",
    "ProviderError",
    "ProviderId",
    "ProviderLLMRequest",
    "ProviderLLMResponse",
    "ProviderNotFoundError",
    "ProviderRateLimitError",
    "ProviderRegistry",
    "ProviderState",
    "ProviderTimeoutError",
    "build_fallback_chain",
    "get_provider_class",
    "is_retryable_error",
    "list_providers",
    "register_provider",
]
