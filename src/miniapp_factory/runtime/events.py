"""Session events and the listener registry that fans them out."""

from __future__ import annotations

from collections.abc import Callable
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

from miniapp_factory.utils.logging import get_logger

logger = get_logger("runtime.events")


class _Event(BaseModel):
    model_config = ConfigDict(frozen=True)


class ProviderSelectedEvent(_Event):
    """An attempt is about to start on ``provider_id``/``model``."""

    type: Literal["provider.selected"] = "provider.selected"
    provider_id: str
    model: str
    label: str


class ProviderFallbackEvent(_Event):
    """An attempt failed; ``attempt`` is set only when the step will be retried."""

    type: Literal["provider.fallback"] = "provider.fallback"
    label: str
    error_message: str
    attempt: int | None = None
    max_attempts: int | None = None


class AssistantMessageEvent(_Event):
    type: Literal["assistant.message"] = "assistant.message"
    content: str


class SessionErrorEvent(_Event):
    type: Literal["session.error"] = "session.error"
    message: str
    category: str


SessionEvent = Annotated[
    ProviderSelectedEvent
    | ProviderFallbackEvent
    | AssistantMessageEvent
    | SessionErrorEvent,
    Field(discriminator="type"),
]

EventListener = Callable[[SessionEvent], None]


class EventEmitter:
    """Synchronous, ordered fan-out of events to registered listeners.

    A listener that raises is logged and skipped; delivery to the remaining
    listeners continues.
    """

    def __init__(self) -> None:
        self._listeners: list[EventListener] = []

    def on(self, listener: EventListener) -> Callable[[], None]:
        """Register ``listener`` and return a callable that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self, event: SessionEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.warning(
                    f"Session listener failed while handling {event.type}",
                    exc_info=True,
                )

    def clear(self) -> None:
        self._listeners.clear()

    def __len__(self) -> int:
        return len(self._listeners)
