"""
Fallback chain construction and execution

A chain is an ordered, de-duplicated tuple of steps, each naming a
provider/model pair and how many attempts it gets. The executor walks the
chain, retrying transient failures with linear backoff and falling through to
the next step otherwise.
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from functools import partial
from typing import TypeVar

import httpx
import openai

from miniapp_factory.config.schemas import DEFAULT_PROVIDER_ORDER
from miniapp_factory.providers.base import BoundModel, ProviderId
from miniapp_factory.providers.exceptions import (
    ProviderAuthError,
    ProviderConfigurationError,
    ProviderConnectionError,
    ProviderEmptyResponseError,
    ProviderError,
    ProviderRateLimitError,
    ProviderTimeoutError,
)
from miniapp_factory.providers.provider_registry import ProviderRegistry
from miniapp_factory.runtime.events import (
    ProviderFallbackEvent,
    ProviderSelectedEvent,
    SessionEvent,
)
from miniapp_factory.utils.logging import get_logger

logger = get_logger("providers.fallback")

T = TypeVar("T")

GeneratorFactory = Callable[[], BoundModel]
EmitFn = Callable[[SessionEvent], None]

_RETRYABLE_PATTERN = re.compile(
    r"timeout|timed out|etimedout|econnreset|econnrefused|enotfound|eai_again"
    r"|fetch failed|network|rate.?limit|too many requests|\b429\b"
    r"|overload|capacity|temporarily unavailable|upstream",
    re.IGNORECASE,
)

_RETRYABLE_TYPES = (
    TimeoutError,
    ProviderTimeoutError,
    ProviderConnectionError,
    ProviderRateLimitError,
    ProviderEmptyResponseError,
    openai.APITimeoutError,
    openai.APIConnectionError,
    openai.RateLimitError,
    openai.InternalServerError,
    httpx.TimeoutException,
    httpx.TransportError,
)


@dataclass(frozen=True)
class FallbackStep:
    """One provider/model pair in a fallback chain."""

    label: str
    provider_id: ProviderId
    model: str
    factory: GeneratorFactory
    max_attempts: int = 1

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    @property
    def key(self) -> tuple[ProviderId, str]:
        return (self.provider_id, self.model)


FallbackChain = tuple[FallbackStep, ...]


def is_retryable_error(error: BaseException) -> bool:
    """Whether ``error`` is transient and worth another attempt on the same step."""
    if isinstance(error, ProviderAuthError):
        return False
    if isinstance(error, _RETRYABLE_TYPES):
        return True

    status_code = getattr(error, "status_code", None)
    if isinstance(status_code, int):
        if status_code == 429 or status_code >= 500:
            return True
        if 400 <= status_code < 500:
            # A rejected request fails the same way on every attempt
            return False

    message = error.message if isinstance(error, ProviderError) else str(error)
    return bool(_RETRYABLE_PATTERN.search(message))


def _step_label(provider_id: ProviderId, model: str) -> str:
    return f"{provider_id.value}:{model}"


def build_fallback_chain(
    registry: ProviderRegistry,
    *,
    provider_id: ProviderId | str | None = None,
    model: str | None = None,
    order: Sequence[ProviderId | str] | None = None,
    retry_provider: ProviderId | str | None = ProviderId.GOOGLE,
) -> FallbackChain:
    """Build the ordered attempt plan for a session.

    The requested pair (if its provider is usable) comes first, then each
    usable provider's default model followed by its fallback model, in
    priority order with the requested provider moved to the front. Steps for
    ``retry_provider`` get two attempts; fallback-model steps always get one.
    Duplicated ``(provider, model)`` pairs keep their first position.

    Returns an empty tuple when no provider is usable.
    """
    states = registry.snapshot()
    retry_id = ProviderId(retry_provider) if retry_provider else None

    priority = [ProviderId(p) for p in (order or registry.config.provider_order)]
    if not priority:
        priority = list(DEFAULT_PROVIDER_ORDER)

    requested_id = ProviderId(provider_id) if provider_id else None
    requested_model = model.strip() if model and model.strip() else None
    if requested_id is None and requested_model:
        requested_id = registry.find_provider_for_model(requested_model)
        if requested_id is None:
            logger.info(
                f"Requested model {requested_model!r} is not offered by any usable provider"
            )

    steps: list[FallbackStep] = []
    seen: set[tuple[ProviderId, str]] = set()

    def add(pid: ProviderId, step_model: str, max_attempts: int) -> None:
        if (pid, step_model) in seen:
            return
        seen.add((pid, step_model))
        steps.append(
            FallbackStep(
                label=_step_label(pid, step_model),
                provider_id=pid,
                model=step_model,
                factory=partial(registry.create_generator, pid, step_model),
                max_attempts=max_attempts,
            )
        )

    if requested_id is not None:
        state = states.get(requested_id)
        if state is not None and state.usable:
            add(
                requested_id,
                requested_model or state.default_model,
                2 if requested_id == retry_id else 1,
            )
            priority = [requested_id, *(p for p in priority if p != requested_id)]
        else:
            logger.info(f"Requested provider {requested_id.value} is not usable")

    for pid in dict.fromkeys(priority):
        state = states.get(pid)
        if state is None or not state.usable:
            continue
        add(pid, state.default_model, 2 if pid == retry_id else 1)
        if state.fallback_model and state.fallback_model != state.default_model:
            add(pid, state.fallback_model, 1)

    return tuple(steps)


class FallbackExecutor:
    """Runs a unit of work against each step of a chain until one succeeds.

    ``work`` receives the step's text generator and the step itself. Each
    attempt runs under its own deadline. Events are delivered through
    ``emit`` in the order they happen.
    """

    def __init__(
        self,
        *,
        base_delay: float = 0.5,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.base_delay = base_delay
        self._sleep = sleep

    async def run(
        self,
        chain: FallbackChain,
        work: Callable[[BoundModel, FallbackStep], Awaitable[T]],
        *,
        timeout: float | None = None,
        emit: EmitFn | None = None,
    ) -> T:
        if not chain:
            raise ProviderConfigurationError(
                "No AI provider is configured for this request"
            )

        def notify(event: SessionEvent) -> None:
            if emit is not None:
                emit(event)

        last_error: Exception | None = None

        for step in chain:
            for attempt in range(1, step.max_attempts + 1):
                notify(
                    ProviderSelectedEvent(
                        provider_id=step.provider_id.value,
                        model=step.model,
                        label=step.label,
                    )
                )
                try:
                    async with asyncio.timeout(timeout):
                        generator = step.factory()
                        return await work(generator, step)
                except Exception as e:
                    last_error = e

                retryable = is_retryable_error(last_error)
                will_retry = retryable and attempt < step.max_attempts
                message = str(last_error) or type(last_error).__name__
                notify(
                    ProviderFallbackEvent(
                        label=step.label,
                        error_message=message,
                        attempt=attempt if will_retry else None,
                        max_attempts=step.max_attempts if will_retry else None,
                    )
                )

                if not will_retry:
                    logger.warning(
                        f"Step {step.label} failed, moving on",
                        extra={"retryable": retryable, "error": message},
                    )
                    break

                delay = self.base_delay * attempt
                logger.info(
                    f"Retrying {step.label} after transient error",
                    extra={"attempt": attempt, "delay": delay},
                )
                await self._sleep(delay)

        if last_error is None:
            raise ProviderConfigurationError("Fallback chain made no attempts")
        raise last_error
