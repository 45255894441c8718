"""
Provider-specific exceptions
"""

from miniapp_factory.core.exceptions import LLMError


class ProviderError(LLMError):
    """Base exception for provider-related errors.

    ``status_code`` carries the upstream HTTP status when one was observed.
    """

    subsystem = "provider"

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        *,
        status_code: int | None = None,
    ):
        self.provider = provider
        self.status_code = status_code
        super().__init__(f"[{provider}] {message}" if provider else message)
        self.message = message


class ProviderConnectionError(ProviderError):
    """Raised when connection to provider fails or the provider answers 5xx"""


class ProviderAuthError(ProviderError):
    """Raised when authentication with provider fails"""


class ProviderRateLimitError(ProviderError):
    """Raised when rate limit is exceeded"""

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        *,
        retry_after: float | None = None,
        status_code: int | None = 429,
    ):
        self.retry_after = retry_after
        super().__init__(message, provider, status_code=status_code)


class ProviderTimeoutError(ProviderError):
    """Raised when request times out"""


class ProviderEmptyResponseError(ProviderError):
    """Raised when the provider returns no text content"""


class ProviderNotFoundError(ProviderError):
    """Raised when a requested provider is not registered"""


class ProviderConfigurationError(ProviderError):
    """Raised when no usable provider/model combination is configured"""
