"""Abstract agent protocol and stream event types."""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict

if TYPE_CHECKING:
    from collections.abc import AsyncIterator


class AgentResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    content: str
    finish_reason: str | None = None


class TextDelta(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["text-delta"] = "text-delta"
    text: str


class ToolCall(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["tool-call"] = "tool-call"
    tool_name: str
    tool_call_id: str = ""


class ToolResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["tool-result"] = "tool-result"
    tool_name: str = ""
    tool_call_id: str = ""


class StreamError(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["error"] = "error"
    error: str


class Finish(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["finish"] = "finish"
    reason: str | None = None


AgentEvent = TextDelta | ToolCall | ToolResult | StreamError | Finish


@runtime_checkable
class BaseAgent(Protocol):
    async def generate(self, content: str) -> AgentResponse: ...

    def stream(self, content: str) -> AsyncIterator[AgentEvent]:
        """Lazy, finite, non-restartable sequence of events for one prompt."""
        ...

    async def shutdown(self) -> None: ...
