"""Conversation driver — one /ask command from validation to the last frame."""

from __future__ import annotations

import enum
from typing import TYPE_CHECKING

import structlog
from pydantic import BaseModel, ConfigDict

from courier.agents.base import StreamError, TextDelta, ToolCall, ToolResult
from courier.connectors.base import ReplyTarget
from courier.core.chunker import iter_frames
from courier.core.events import (
    CONVERSATION_COMPLETED,
    CONVERSATION_FAILED,
    CONVERSATION_REJECTED,
    CONVERSATION_STARTED,
    FRAME_DELIVERED,
    Event,
    EventBus,
)
from courier.core.interactions import ChannelCommand
from courier.exceptions import AgentError, InputValidationError, RateLimitedError

if TYPE_CHECKING:
    from collections.abc import Callable, Coroutine
    from typing import Any

    from courier.agents.base import AgentEvent, BaseAgent
    from courier.connectors.base import BaseConnector
    from courier.core.config import CourierConfig
    from courier.core.cooldown import CooldownGuard
    from courier.core.interactions import Command

logger = structlog.get_logger()

TOO_LONG_MESSAGE = (
    "Sorry, your message is too long ({length} characters). "
    "Please keep it under {limit} characters."
)
COOLDOWN_MESSAGE = "Please wait {seconds} seconds before sending another message."
ERROR_MESSAGE = "Sorry, I encountered an error processing your request."
THREAD_NOTICE = "I've created a thread for our conversation: <#{thread_id}>"
THINKING_NOTICE = "Thinking about your question..."
TOOL_NOTICE = "Checking {tool}. Please wait..."
TOOL_ERROR_NOTICE = "Sorry, there was an error executing the tool."


class ConversationState(enum.Enum):
    VALIDATING = "validating"
    RATE_LIMITED = "rate_limited"
    ADMITTED = "admitted"
    TARGET_OPENED = "target_opened"
    GENERATING = "generating"
    DELIVERING = "delivering"
    COMPLETED = "completed"
    FAILED = "failed"


class ConversationOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    state: ConversationState
    frames_delivered: int = 0
    reply: str | None = None
    error: str | None = None


class _ReplySurface:
    """Delivers text to a ReplyTarget in call order.

    Thread targets get a new message per delivery. Direct targets fill the
    original deferred reply first and post follow-ups after that, so later
    frames never overwrite earlier ones.
    """

    def __init__(self, connector: BaseConnector, target: ReplyTarget) -> None:
        self._connector = connector
        self.target = target
        self._original_filled = False

    async def deliver(self, text: str) -> None:
        target = self.target
        if target.thread_id is not None:
            await self._connector.create_message(target.thread_id, text)
        elif not self._original_filled:
            await self._connector.edit_original(
                target.application_id, target.token, text
            )
            self._original_filled = True
        else:
            await self._connector.send_followup(
                target.application_id, target.token, text
            )


class _StreamingRelay:
    """Consumes agent stream events and forwards partial text as frames."""

    def __init__(
        self,
        deliver_text: Callable[[str], Coroutine[Any, Any, int]],
        notify: Callable[[str], Coroutine[Any, Any, None]],
        *,
        flush_chars: int,
        tool_prefix: str = "",
    ) -> None:
        self._deliver_text = deliver_text
        self._notify = notify
        self._flush_chars = flush_chars
        self._tool_prefix = tool_prefix
        self._buffer = ""
        self._tools_shown: set[str] = set()
        self.frames_delivered = 0
        self.text_length = 0

    @property
    def buffer(self) -> str:
        return self._buffer

    def _display_name(self, tool_name: str) -> str | None:
        if not self._tool_prefix:
            return tool_name or None
        if self._tool_prefix not in tool_name:
            return None
        return tool_name.replace(self._tool_prefix, "") or tool_name

    async def on_event(self, event: AgentEvent) -> None:
        if isinstance(event, TextDelta):
            self._buffer += event.text
            self.text_length += len(event.text)
        elif isinstance(event, ToolCall):
            name = self._display_name(event.tool_name)
            logger.debug("agent_tool_call", tool_name=event.tool_name)
            if name and name not in self._tools_shown:
                self._tools_shown.add(name)
                await self._notify(TOOL_NOTICE.format(tool=name))
        elif isinstance(event, ToolResult):
            logger.debug("agent_tool_result", tool_name=event.tool_name)
        elif isinstance(event, StreamError):
            logger.warning("agent_stream_error", error=event.error)
            await self._notify(TOOL_ERROR_NOTICE)

        if len(self._buffer) > self._flush_chars:
            await self.flush()

    async def flush(self) -> None:
        if not self._buffer:
            return
        text, self._buffer = self._buffer, ""
        self.frames_delivered += await self._deliver_text(text)


class ConversationDriver:
    def __init__(
        self,
        connector: BaseConnector,
        agent: BaseAgent,
        guard: CooldownGuard,
        config: CourierConfig,
        event_bus: EventBus | None = None,
    ) -> None:
        self.connector = connector
        self.agent = agent
        self.guard = guard
        self.config = config
        self.event_bus = event_bus or EventBus()

    def _transition(
        self, command: Command, state: ConversationState
    ) -> ConversationState:
        logger.info(
            "conversation_state",
            requester=command.user_id,
            interaction_id=command.interaction_id,
            state=state.value,
        )
        return state

    def _check_input(self, command: Command) -> None:
        content = command.content or ""
        limit = self.config.max_input_length
        if len(content) > limit:
            raise InputValidationError(
                TOO_LONG_MESSAGE.format(length=len(content), limit=limit)
            )

    def _take_cooldown(self, command: Command, now: float | None) -> None:
        admission = self.guard.try_admit(command.user_id, now)
        if not admission.admitted:
            raise RateLimitedError(admission.remaining_seconds)

    async def admit(
        self, command: Command, now: float | None = None
    ) -> ConversationOutcome | None:
        """Run validation and the cooldown check.

        Returns a terminal outcome carrying the user-facing rejection, or None
        once the requester's cooldown has been armed and the conversation may
        proceed.
        """
        state = self._transition(command, ConversationState.VALIDATING)
        try:
            self._check_input(command)
            self._take_cooldown(command, now)
        except InputValidationError as e:
            logger.info("conversation_input_rejected", requester=command.user_id)
            reply = str(e)
        except RateLimitedError as e:
            state = self._transition(command, ConversationState.RATE_LIMITED)
            reply = COOLDOWN_MESSAGE.format(seconds=e.remaining_seconds)
        else:
            self._transition(command, ConversationState.ADMITTED)
            return None

        await self.event_bus.emit(
            Event(
                name=CONVERSATION_REJECTED,
                data={"requester": command.user_id, "state": state.value},
            )
        )
        return ConversationOutcome(state=state, reply=reply)

    async def handle(
        self, command: Command, now: float | None = None
    ) -> ConversationOutcome:
        """Admit and, if admitted, run the whole conversation."""
        rejected = await self.admit(command, now)
        if rejected is not None:
            return rejected
        return await self.converse(command)

    async def converse(self, command: Command) -> ConversationOutcome:
        """Open the reply target, generate, and deliver. Requires admit() first."""
        structlog.contextvars.bind_contextvars(
            requester=command.user_id, interaction_id=command.interaction_id
        )
        surface = _ReplySurface(
            self.connector,
            ReplyTarget(application_id=command.application_id, token=command.token),
        )
        state = ConversationState.ADMITTED
        frames = 0
        try:
            await self.event_bus.emit(
                Event(
                    name=CONVERSATION_STARTED,
                    data={"requester": command.user_id, "kind": command.kind},
                )
            )
            surface = await self._open_target(command, surface)
            state = self._transition(command, ConversationState.TARGET_OPENED)
            await self._announce(command, surface)

            state = self._transition(command, ConversationState.GENERATING)
            if self.config.streaming_enabled:
                frames = await self._generate_streaming(command, surface)
            else:
                response = await self.agent.generate(command.content or "")
                if not response.content:
                    raise AgentError("Agent returned an empty response")
                state = self._transition(command, ConversationState.DELIVERING)
                frames = await self._deliver_text(surface, response.content)

            state = self._transition(command, ConversationState.COMPLETED)
            await self.event_bus.emit(
                Event(
                    name=CONVERSATION_COMPLETED,
                    data={"requester": command.user_id, "frames": frames},
                )
            )
            return ConversationOutcome(state=state, frames_delivered=frames)
        except Exception as exc:
            logger.exception("conversation_failed", failed_in=state.value)
            self.guard.release(command.user_id)
            await self._notify_failure(surface)
            self._transition(command, ConversationState.FAILED)
            await self.event_bus.emit(
                Event(
                    name=CONVERSATION_FAILED,
                    data={
                        "requester": command.user_id,
                        "failed_in": state.value,
                        "error": str(exc),
                    },
                )
            )
            return ConversationOutcome(
                state=ConversationState.FAILED,
                frames_delivered=frames,
                error=str(exc),
            )
        finally:
            structlog.contextvars.unbind_contextvars("requester", "interaction_id")

    async def _open_target(
        self, command: Command, surface: _ReplySurface
    ) -> _ReplySurface:
        if not isinstance(command, ChannelCommand):
            return surface
        thread_id = await self.connector.create_thread(
            command.channel_id,
            f"Chat with {command.username}",
            auto_archive_minutes=self.config.thread_auto_archive_minutes,
        )
        return _ReplySurface(
            self.connector,
            surface.target.model_copy(update={"thread_id": thread_id}),
        )

    async def _announce(self, command: Command, surface: _ReplySurface) -> None:
        target = surface.target
        if target.thread_id is not None:
            await self.connector.edit_original(
                target.application_id,
                target.token,
                THREAD_NOTICE.format(thread_id=target.thread_id),
            )
        await self._deliver_text(surface, f"> {command.content or ''}", count=False)
        if target.thread_id is not None:
            await surface.deliver(THINKING_NOTICE)

    async def _deliver_text(
        self, surface: _ReplySurface, text: str, *, count: bool = True
    ) -> int:
        """Chunk *text* and deliver each frame, awaiting each before the next."""
        delivered = 0
        for frame in iter_frames(text, self.config.frame_size):
            await surface.deliver(frame)
            delivered += 1
            if count:
                await self.event_bus.emit(
                    Event(name=FRAME_DELIVERED, data={"length": len(frame)})
                )
        return delivered

    async def _generate_streaming(
        self, command: Command, surface: _ReplySurface
    ) -> int:
        async def _deliver(text: str) -> int:
            return await self._deliver_text(surface, text)

        relay = _StreamingRelay(
            _deliver,
            surface.deliver,
            flush_chars=self.config.stream_flush_chars,
            tool_prefix=self.config.status_tool_prefix,
        )
        async for event in self.agent.stream(command.content or ""):
            await relay.on_event(event)
        self._transition(command, ConversationState.DELIVERING)
        await relay.flush()
        if relay.text_length == 0:
            raise AgentError("Agent stream produced no text")
        return relay.frames_delivered

    async def _notify_failure(self, surface: _ReplySurface) -> None:
        try:
            await surface.deliver(ERROR_MESSAGE)
        except Exception:
            logger.warning("failure_notice_undeliverable", exc_info=True)
