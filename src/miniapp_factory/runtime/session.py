"""AI sessions: one system prompt, a fixed fallback chain, many turns.

A session owns the asyncio tasks it starts so that :meth:`AISession.destroy`
can cancel in-flight work. Every turn goes through the
:class:`~miniapp_factory.providers.fallback.FallbackExecutor`; failures that
survive the whole chain are normalized into a :class:`SessionError` with one
of four categories.
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import AsyncIterator, Awaitable, Callable, Mapping
from typing import Any, TypeVar

import openai

from miniapp_factory.config.schemas import AIConfig, AppConfig
from miniapp_factory.core.exceptions import SessionError
from miniapp_factory.providers import (
    BoundModel,
    FallbackChain,
    FallbackExecutor,
    FallbackStep,
    ProviderAuthError,
    ProviderConfigurationError,
    ProviderConnectionError,
    ProviderEmptyResponseError,
    ProviderError,
    ProviderId,
    ProviderRegistry,
    ProviderTimeoutError,
    build_fallback_chain,
)
from miniapp_factory.runtime.events import (
    AssistantMessageEvent,
    EventEmitter,
    EventListener,
    SessionErrorEvent,
    SessionEvent,
)
from miniapp_factory.utils.logging import get_logger

logger = get_logger("runtime.session")

T = TypeVar("T")

NO_PROVIDER_MESSAGE = (
    "No AI provider is configured. Set an API key for at least one AI provider "
    "(GOOGLE_GENERATIVE_AI_API_KEY, GROQ_API_KEY, OPENROUTER_API_KEY or CEREBRAS_API_KEY)."
)

_TIMEOUT_PATTERN = re.compile(r"timed out|timeout", re.IGNORECASE)
_NETWORK_PATTERN = re.compile(
    r"fetch failed|network|connection error|enotfound|eai_again|econnrefused|econnreset",
    re.IGNORECASE,
)
_AUTH_PATTERN = re.compile(r"\b401\b|\b403\b|authentication|unauthorized", re.IGNORECASE)

_PROVIDER_NAMES = {
    ProviderId.GOOGLE: "Google AI",
    ProviderId.GROQ: "Groq",
    ProviderId.OPENROUTER: "OpenRouter",
    ProviderId.CEREBRAS: "Cerebras",
}

_END_OF_STREAM = object()


async def _next_chunk(iterator: AsyncIterator[str]) -> Any:
    try:
        return await anext(iterator)
    except StopAsyncIteration:
        return _END_OF_STREAM


def normalize_error(
    error: BaseException,
    *,
    provider_id: ProviderId | None = None,
    api_key_env: str | None = None,
) -> tuple[str, str]:
    """Map an exception to ``(category, message)`` for callers.

    ``category`` is one of ``timeout``, ``network``, ``authentication`` or
    ``generic``.
    """
    name = _PROVIDER_NAMES.get(provider_id, "the AI provider")
    text = error.message if isinstance(error, ProviderError) else str(error)

    if (
        isinstance(
            error,
            TimeoutError
            | asyncio.CancelledError
            | ProviderTimeoutError
            | openai.APITimeoutError,
        )
        or _TIMEOUT_PATTERN.search(text)
    ):
        return "timeout", f"Request to {name} timed out."

    if isinstance(error, ProviderAuthError) or _AUTH_PATTERN.search(text):
        hint = api_key_env or "the provider API key"
        subject = name[0].upper() + name[1:]
        return "authentication", f"{subject} authentication failed. Check {hint}."

    is_connection = (
        isinstance(error, ProviderConnectionError)
        and getattr(error, "status_code", None) is None
    ) or isinstance(error, openai.APIConnectionError)
    if is_connection or _NETWORK_PATTERN.search(text):
        return "network", f"Network error contacting {name}."

    return "generic", text or type(error).__name__


class AISession:
    """A conversation context bound to one fallback chain.

    Use :meth:`send_and_wait` for a full reply or :meth:`stream` for chunks;
    subscribe to :class:`~miniapp_factory.runtime.events.SessionEvent` with
    :meth:`on`. Always call :meth:`destroy` (or use :func:`with_session`).
    """

    def __init__(
        self,
        chain: FallbackChain,
        *,
        system_prompt: str | None = None,
        executor: FallbackExecutor | None = None,
        default_timeout: float = 120.0,
        api_key_envs: Mapping[ProviderId, str | None] | None = None,
    ):
        if not chain:
            raise ProviderConfigurationError(NO_PROVIDER_MESSAGE)
        self.chain = chain
        self.system_prompt = system_prompt
        self.default_timeout = default_timeout
        self._executor = executor or FallbackExecutor()
        self._api_key_envs = dict(api_key_envs or {})
        self._emitter = EventEmitter()
        self._tasks: set[asyncio.Task[Any]] = set()
        self._destroyed = False

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    @property
    def active_tasks(self) -> int:
        return len(self._tasks)

    def on(self, listener: EventListener) -> Callable[[], None]:
        """Subscribe to session events; returns the unsubscribe callable."""
        return self._emitter.on(listener)

    def _emit(self, event: SessionEvent) -> None:
        self._emitter.emit(event)

    def _build_messages(self, prompt: str) -> list[dict[str, str]]:
        messages = []
        if self.system_prompt:
            messages.append({"role": "system", "content": self.system_prompt})
        messages.append({"role": "user", "content": prompt})
        return messages

    def _ensure_active(self) -> None:
        if self._destroyed:
            raise SessionError("Session has been destroyed", category="generic")

    def _track(self, task: asyncio.Task[T]) -> asyncio.Task[T]:
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run_tracked(
        self,
        work: Callable[[BoundModel, FallbackStep], Awaitable[T]],
        timeout: float | None,
    ) -> T:
        """Run ``work`` through the chain inside a task owned by this session."""
        last_step: list[FallbackStep] = []

        async def recording_work(generator: BoundModel, step: FallbackStep) -> T:
            last_step[:] = [step]
            return await work(generator, step)

        task = asyncio.create_task(
            self._executor.run(
                self.chain,
                recording_work,
                timeout=timeout if timeout is not None else self.default_timeout,
                emit=self._emit,
            )
        )
        self._track(task)

        try:
            return await task
        except asyncio.CancelledError as e:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                # The caller itself is being cancelled
                raise
            raise self._fail(e, last_step) from e
        except Exception as e:
            raise self._fail(e, last_step) from e

    def _fail(self, error: BaseException, last_step: list[FallbackStep]) -> SessionError:
        provider_id = last_step[0].provider_id if last_step else None
        category, message = normalize_error(
            error,
            provider_id=provider_id,
            api_key_env=self._api_key_envs.get(provider_id) if provider_id else None,
        )
        logger.error(
            f"Session turn failed: {message}",
            extra={"category": category, "cause": type(error).__name__},
        )
        self._emit(SessionErrorEvent(message=message, category=category))
        return SessionError(message, category=category)

    async def send_and_wait(self, prompt: str, timeout: float | None = None) -> str:
        """Send ``prompt`` and wait for the complete reply text.

        Args:
            prompt: User message for this turn
            timeout: Per-attempt deadline in seconds (session default if None)

        Raises:
            SessionError: When every step of the chain failed
        """
        self._ensure_active()
        messages = self._build_messages(prompt)

        async def generate(generator: BoundModel, step: FallbackStep) -> str:
            return await generator.generate(messages)

        content = await self._run_tracked(generate, timeout)
        self._emit(AssistantMessageEvent(content=content))
        return content

    async def stream(
        self, prompt: str, timeout: float | None = None
    ) -> AsyncIterator[str]:
        """Yield reply chunks.

        Fallback covers opening the stream (up to the first chunk); once text
        has been delivered a failure is raised without switching providers.
        """
        self._ensure_active()
        messages = self._build_messages(prompt)

        async def open_stream(
            generator: BoundModel, step: FallbackStep
        ) -> tuple[str, AsyncIterator[str], FallbackStep]:
            iterator = aiter(generator.stream(messages))
            try:
                first = await anext(iterator)
            except StopAsyncIteration as e:
                raise ProviderEmptyResponseError(
                    "Stream ended without content", provider=step.provider_id.value
                ) from e
            return first, iterator, step

        first, iterator, step = await self._run_tracked(open_stream, timeout)
        chunks = [first]
        pending: asyncio.Task | None = None
        try:
            yield first
            while True:
                if self._destroyed:
                    raise self._fail(
                        TimeoutError("Session destroyed while streaming"), [step]
                    )
                pending = self._track(asyncio.create_task(_next_chunk(iterator)))
                try:
                    chunk = await pending
                except asyncio.CancelledError as e:
                    current = asyncio.current_task()
                    if current is not None and current.cancelling():
                        raise
                    raise self._fail(e, [step]) from e
                except Exception as e:
                    raise self._fail(e, [step]) from e
                if chunk is _END_OF_STREAM:
                    break
                chunks.append(chunk)
                yield chunk
        finally:
            if pending is not None and not pending.done():
                pending.cancel()
                await asyncio.wait([pending])
            aclose = getattr(iterator, "aclose", None)
            if aclose is not None:
                await aclose()

        self._emit(AssistantMessageEvent(content="".join(chunks)))

    async def destroy(self) -> None:
        """Cancel in-flight work and drop listeners. Safe to call repeatedly."""
        if self._destroyed:
            return
        self._destroyed = True

        pending = [task for task in self._tasks if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._tasks.clear()
        self._emitter.clear()
        logger.debug("Session destroyed", extra={"cancelled": len(pending)})


class AIClient:
    """Creates sessions from a :class:`ProviderRegistry`.

    The client is built once and passed to whoever needs it; it does not
    hold process-wide state.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        *,
        executor: FallbackExecutor | None = None,
    ):
        self.registry = registry
        self.config: AIConfig = registry.config
        self.executor = executor or FallbackExecutor(
            base_delay=self.config.retry_base_delay
        )

    @classmethod
    def from_config(
        cls,
        config: AppConfig | AIConfig,
        *,
        api_keys: Mapping[str, str | None] | None = None,
    ) -> AIClient:
        ai_config = config.ai if isinstance(config, AppConfig) else config
        return cls(ProviderRegistry(ai_config, api_keys=api_keys))

    def build_chain(
        self,
        *,
        model: str | None = None,
        provider_id: ProviderId | str | None = None,
    ) -> FallbackChain:
        return build_fallback_chain(
            self.registry,
            provider_id=provider_id,
            model=model,
            retry_provider=self.config.retry_provider,
        )

    def create_session(
        self,
        *,
        model: str | None = None,
        provider_id: ProviderId | str | None = None,
        system_prompt: str | None = None,
        timeout: float | None = None,
    ) -> AISession:
        """Materialize the fallback chain and open a session.

        Raises:
            ProviderConfigurationError: If no provider is usable
        """
        chain = self.build_chain(model=model, provider_id=provider_id)
        if not chain:
            raise ProviderConfigurationError(NO_PROVIDER_MESSAGE)

        logger.info(
            "Session created",
            extra={"steps": [step.label for step in chain]},
        )
        return AISession(
            chain,
            system_prompt=system_prompt,
            executor=self.executor,
            default_timeout=timeout or self.config.request_timeout,
            api_key_envs={
                pid: state.api_key_env for pid, state in self.registry.snapshot().items()
            },
        )

    async def aclose(self) -> None:
        await self.registry.aclose()


async def with_session(
    client: AIClient,
    fn: Callable[[AISession], Awaitable[T]],
    **session_options: Any,
) -> T:
    """Create a session, run ``fn`` with it, and always destroy it."""
    session = client.create_session(**session_options)
    try:
        return await fn(session)
    finally:
        await session.destroy()


async def wait_for_event(
    session: AISession,
    event_type: str,
    timeout: float | None = None,
) -> SessionEvent:
    """Wait for the first event of ``event_type`` emitted by ``session``."""
    loop = asyncio.get_running_loop()
    future: asyncio.Future[SessionEvent] = loop.create_future()

    def listener(event: SessionEvent) -> None:
        if event.type == event_type and not future.done():
            future.set_result(event)

    unsubscribe = session.on(listener)
    try:
        async with asyncio.timeout(timeout):
            return await future
    finally:
        unsubscribe()
