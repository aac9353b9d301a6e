"""In-process lifecycle events for conversations, sweeps and the engine."""

from collections.abc import Callable, Coroutine
from datetime import UTC, datetime
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field

logger = structlog.get_logger()

ENGINE_STARTED = "engine.started"
ENGINE_STOPPED = "engine.stopped"
CONVERSATION_STARTED = "conversation.started"
CONVERSATION_COMPLETED = "conversation.completed"
CONVERSATION_FAILED = "conversation.failed"
CONVERSATION_REJECTED = "conversation.rejected"
FRAME_DELIVERED = "frame.delivered"
SWEEP_COMPLETED = "sweep.completed"


class Event(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    data: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


EventHandler = Callable[[Event], Coroutine[Any, Any, None]]


class EventBus:
    """Fan-out of named events to async handlers.

    Named handlers run first, in subscription order, then catch-all handlers.
    A failing handler is logged and never reaches the emitter.
    """

    def __init__(self) -> None:
        self._by_name: dict[str, list[EventHandler]] = {}
        self._catch_all: list[EventHandler] = []

    def subscribe(self, event_name: str, handler: EventHandler) -> None:
        self._by_name.setdefault(event_name, []).append(handler)

    def subscribe_all(self, handler: EventHandler) -> None:
        self._catch_all.append(handler)

    def unsubscribe(self, event_name: str, handler: EventHandler) -> None:
        named = self._by_name.get(event_name)
        if named and handler in named:
            named.remove(handler)
            if not named:
                del self._by_name[event_name]

    def handler_count(self, event_name: str) -> int:
        return len(self._by_name.get(event_name, ())) + len(self._catch_all)

    async def emit(self, event: Event) -> None:
        for handler in [*self._by_name.get(event.name, ()), *self._catch_all]:
            try:
                await handler(event)
            except Exception:
                logger.exception(
                    "event_handler_failed",
                    event_name=event.name,
                    handler=getattr(handler, "__qualname__", repr(handler)),
                )
