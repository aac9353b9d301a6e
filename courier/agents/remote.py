"""Remote agent — calls an agent service's generate and stream endpoints."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import httpx
import structlog

from courier.agents.base import (
    AgentEvent,
    AgentResponse,
    Finish,
    StreamError,
    TextDelta,
    ToolCall,
    ToolResult,
)
from courier.exceptions import AgentError, HTTPResponseError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from courier.core.retry import RetryTransport

logger = structlog.get_logger()

_ERROR_TRUNCATION_LENGTH = 200

# Data stream line prefixes
_TEXT = "0"
_ERROR = "3"
_TOOL_CALL = "9"
_TOOL_RESULT = "a"
_FINISH = "d"


def parse_stream_line(line: str, tool_names: dict[str, str]) -> AgentEvent | None:
    """Decode one ``<code>:<json>`` line of a data stream.

    *tool_names* maps tool call IDs to names so results can be labelled.
    Returns None for blank lines and codes the pipeline does not consume.
    """
    line = line.strip()
    if not line or ":" not in line:
        return None
    code, _, raw = line.partition(":")
    try:
        value: Any = json.loads(raw)
    except json.JSONDecodeError:
        logger.debug("agent_stream_line_undecodable", code=code)
        return None

    if code == _TEXT:
        return TextDelta(text=str(value))
    if code == _TOOL_CALL and isinstance(value, dict):
        call_id = str(value.get("toolCallId", ""))
        name = str(value.get("toolName", ""))
        tool_names[call_id] = name
        return ToolCall(tool_name=name, tool_call_id=call_id)
    if code == _TOOL_RESULT and isinstance(value, dict):
        call_id = str(value.get("toolCallId", ""))
        name = str(value.get("toolName") or tool_names.get(call_id, ""))
        return ToolResult(tool_name=name, tool_call_id=call_id)
    if code == _ERROR:
        return StreamError(error=str(value)[:_ERROR_TRUNCATION_LENGTH])
    if code == _FINISH:
        reason = value.get("finishReason") if isinstance(value, dict) else None
        return Finish(reason=reason)
    return None


class RemoteAgent:
    def __init__(
        self,
        base_url: str,
        agent_id: str,
        retry: RetryTransport,
        *,
        max_steps: int = 10,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._retry = retry
        self._agent_path = f"/api/agents/{agent_id}"
        self._max_steps = max_steps
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=retry.policy.timeout,
            transport=http_transport,
        )

    @staticmethod
    def _messages(content: str) -> list[dict[str, str]]:
        return [{"role": "user", "content": content}]

    async def generate(self, content: str) -> AgentResponse:
        client = self._client

        async def _call() -> Any:
            response = await client.post(
                f"{self._agent_path}/generate",
                json={"messages": self._messages(content)},
            )
            if not response.is_success:
                raise HTTPResponseError(response.status_code, response.reason_phrase)
            return response.json()

        data = await self._retry.execute(_call, operation="agent_generate")
        text = data.get("text") if isinstance(data, dict) else None
        if not isinstance(text, str):
            raise AgentError("Agent response did not include text")
        logger.info("agent_generated", response_length=len(text))
        return AgentResponse(content=text, finish_reason=data.get("finishReason"))

    async def stream(self, content: str) -> AsyncIterator[AgentEvent]:
        client = self._client
        request = client.build_request(
            "POST",
            f"{self._agent_path}/stream",
            json={"messages": self._messages(content), "maxSteps": self._max_steps},
        )

        async def _open() -> httpx.Response:
            response = await client.send(request, stream=True)
            if not response.is_success:
                await response.aclose()
                raise HTTPResponseError(response.status_code, response.reason_phrase)
            return response

        response = await self._retry.execute(_open, operation="agent_stream")
        tool_names: dict[str, str] = {}
        try:
            async for line in response.aiter_lines():
                event = parse_stream_line(line, tool_names)
                if event is None:
                    continue
                yield event
                if isinstance(event, Finish):
                    break
        finally:
            await response.aclose()

    async def shutdown(self) -> None:
        await self._client.aclose()
