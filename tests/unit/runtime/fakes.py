"""In-memory stand-ins for provider-bound models used by the runtime tests."""

from __future__ import annotations

from typing import Any

from miniapp_factory.providers import FallbackStep, ProviderId


class FakeGenerator:
    """Stands in for a provider-bound model.

    ``replies`` items are returned in order; exceptions are raised and
    callables are awaited with the messages.
    """

    def __init__(self, *replies: Any, chunks: list[Any] | None = None):
        self.replies = list(replies)
        self.chunks = chunks
        self.calls: list[list[dict[str, str]]] = []

    async def _next(self, messages):
        self.calls.append(messages)
        reply = self.replies.pop(0) if self.replies else "done"
        if isinstance(reply, BaseException):
            raise reply
        if callable(reply):
            return await reply(messages)
        return reply

    async def generate(self, messages):
        return await self._next(messages)

    async def stream(self, messages):
        self.calls.append(messages)
        for item in self.chunks or []:
            if isinstance(item, BaseException):
                raise item
            yield item


def step_for(
    label: str, generator: FakeGenerator, max_attempts: int = 1
) -> FallbackStep:
    provider, model = label.split(":", 1)
    return FallbackStep(
        label=label,
        provider_id=ProviderId(provider),
        model=model,
        factory=lambda: generator,
        max_attempts=max_attempts,
    )
